from __future__ import annotations

import secrets
from threading import Lock, Thread
from typing import Callable

from . import journal
from .polling import WaitTimeout
from .runtime import RuntimeState, WaitStatus
from .tracker import UnitTracker
from .units import Selector, format_selector


class WaitManager:
    """Runs tracker waits in background threads and records their outcome."""

    def __init__(self, runtime: RuntimeState, tracker_factory: Callable[[], UnitTracker]):
        self.runtime = runtime
        self.tracker_factory = tracker_factory
        self._lock = Lock()
        self._threads: dict[str, Thread] = {}

    def start_ready_wait(self, selector: Selector, expected_count: int, check_containers: bool = True) -> str:
        return self._start(
            "ready",
            format_selector(selector),
            lambda t: t.wait_for_units_ready(selector, expected_count, check_containers),
        )

    def start_stability_wait(self, prefix: str) -> str:
        return self._start("stable", prefix, lambda t: t.wait_until_units_by_name_stable(prefix))

    def start_deletion_wait(self, name: str) -> str:
        return self._start("deletion", name, lambda t: t.wait_for_unit_deletion(name))

    def join(self, wait_id: str, timeout: float | None = None) -> WaitStatus:
        with self._lock:
            thr = self._threads.get(wait_id)
        st = self.runtime.get_wait(wait_id)
        if not thr or not st:
            raise KeyError("unknown wait")
        thr.join(timeout)
        return st

    def _start(self, kind: str, target: str, action: Callable[[UnitTracker], None]) -> str:
        wait_id = secrets.token_hex(6)
        st = WaitStatus(
            id=wait_id,
            kind=kind,
            target=target,
            state="running",
            message=f"Waiting for {kind} of {target}",
        )
        self.runtime.upsert_wait(st)
        journal.log_event("INFO", st.message, kind=kind, target=target)

        thr = Thread(target=self._run, args=(wait_id, action), daemon=True)
        with self._lock:
            self._threads[wait_id] = thr
        thr.start()
        return wait_id

    def _run(self, wait_id: str, action: Callable[[UnitTracker], None]) -> None:
        st = self.runtime.get_wait(wait_id)
        if not st:
            return
        try:
            action(self.tracker_factory())
        except WaitTimeout as e:
            st.state = "timed_out"
            st.message = str(e)
            self.runtime.upsert_wait(st)
            journal.log_event("ERROR", st.message, kind=st.kind, target=st.target)
            return
        except Exception as e:
            st.state = "failed"
            st.message = f"{type(e).__name__}: {e}"
            self.runtime.upsert_wait(st)
            journal.log_event("ERROR", st.message, kind=st.kind, target=st.target)
            return

        st.state = "converged"
        st.message = f"{st.kind} wait for {st.target} converged"
        self.runtime.upsert_wait(st)
        journal.log_event("INFO", st.message, kind=st.kind, target=st.target)
