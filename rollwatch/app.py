from __future__ import annotations

import logging
from dataclasses import asdict

from fastapi import FastAPI, HTTPException

from . import journal
from .api_models import (
    DeletionWaitRequest,
    NormalizeRequest,
    NormalizeResponse,
    ReadyWaitRequest,
    StabilityWaitRequest,
    WaitStarted,
)
from .kube_ops import KubeUnitClient
from .quantities import MalformedQuantity, parse_cpu_as_milli_cpus, parse_memory, format_memory, format_milli_cpu
from .runtime import RuntimeState
from .settings import settings
from .tracker import UnitTracker
from .waits import WaitManager

logger = logging.getLogger("rollwatch.app")

app = FastAPI(title="rollwatch")


def default_tracker() -> UnitTracker:
    return UnitTracker(KubeUnitClient(settings.namespace))


runtime = RuntimeState()
waits = WaitManager(runtime, default_tracker)


@app.on_event("startup")
def startup() -> None:
    logging.basicConfig(level=settings.log_level.upper())
    journal.init_db()
    logger.info(f"rollwatch started (namespace={settings.namespace})")


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "healthy"}


@app.post("/quantities/normalize", response_model=NormalizeResponse)
def normalize(req: NormalizeRequest) -> NormalizeResponse:
    if req.cpu is None and req.memory is None:
        raise HTTPException(status_code=422, detail="Provide cpu and/or memory")
    out = NormalizeResponse()
    try:
        if req.cpu is not None:
            out.milli_cpu = parse_cpu_as_milli_cpus(req.cpu)
            out.cpu = format_milli_cpu(out.milli_cpu)
        if req.memory is not None:
            out.memory_bytes = parse_memory(req.memory)
            out.memory = format_memory(out.memory_bytes)
    except MalformedQuantity as e:
        raise HTTPException(status_code=422, detail=str(e)) from e
    return out


@app.post("/waits/ready", response_model=WaitStarted)
def start_ready_wait(req: ReadyWaitRequest) -> WaitStarted:
    return WaitStarted(id=waits.start_ready_wait(req.selector, req.expected_count, req.check_containers))


@app.post("/waits/stable", response_model=WaitStarted)
def start_stability_wait(req: StabilityWaitRequest) -> WaitStarted:
    return WaitStarted(id=waits.start_stability_wait(req.prefix))


@app.post("/waits/deletion", response_model=WaitStarted)
def start_deletion_wait(req: DeletionWaitRequest) -> WaitStarted:
    return WaitStarted(id=waits.start_deletion_wait(req.name))


@app.get("/waits")
def list_waits() -> list[dict]:
    return [asdict(st) for st in runtime.list_waits()]


@app.get("/waits/{wait_id}")
def get_wait(wait_id: str) -> dict:
    st = runtime.get_wait(wait_id)
    if not st:
        raise HTTPException(status_code=404, detail="unknown wait")
    return asdict(st)


@app.get("/events")
def events(limit: int = 100) -> list[dict]:
    return journal.latest_events(max(1, min(1000, limit)))
