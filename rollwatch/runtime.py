from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from threading import Lock


def utc_now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


@dataclass
class WaitStatus:
    id: str
    kind: str  # ready|stable|deletion
    target: str
    state: str  # running|converged|timed_out|failed
    message: str
    started_at: str = field(default_factory=utc_now)
    updated_at: str = field(default_factory=utc_now)

    @property
    def finished(self) -> bool:
        return self.state != "running"


class RuntimeState:
    """In-memory registry of background waits."""

    def __init__(self) -> None:
        self.lock = Lock()
        self.waits: dict[str, WaitStatus] = {}

    def upsert_wait(self, st: WaitStatus) -> None:
        with self.lock:
            st.updated_at = utc_now()
            self.waits[st.id] = st

    def get_wait(self, wait_id: str) -> WaitStatus | None:
        with self.lock:
            return self.waits.get(wait_id)

    def list_waits(self) -> list[WaitStatus]:
        with self.lock:
            return list(self.waits.values())
