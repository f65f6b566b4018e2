import sys
from dataclasses import replace

import pytest

# Ensure project root is importable (so `import rollwatch` and `import cli` work without installing)
import os as _os
_project_root = _os.path.dirname(_os.path.dirname(__file__))
if _project_root not in sys.path:
    sys.path.insert(0, _project_root)

from rollwatch import journal
from rollwatch.polling import Clock
from rollwatch.settings import Settings
from rollwatch.units import ContainerStatus, UnitStatus


class FakeClock(Clock):
    """Clock that only moves when slept on. Hooks fire before a given poll."""

    def __init__(self) -> None:
        self.t = 0.0
        self.sleeps: list[float] = []
        self._hooks: dict[int, list] = {}

    def now(self) -> float:
        return self.t

    def sleep(self, seconds: float) -> None:
        self.t += seconds
        self.sleeps.append(seconds)
        for fn in self._hooks.pop(len(self.sleeps), []):
            fn()

    def before_poll(self, n: int, fn) -> None:
        """Run ``fn`` right before poll ``n`` (1-based, n >= 2)."""
        assert n >= 2
        self._hooks.setdefault(n - 1, []).append(fn)


class FakeUnitClient:
    """In-memory pods keyed by name; selectors are label dicts or 'k=v,...' strings."""

    def __init__(self, units=()) -> None:
        self.units = {u.name: u for u in units}
        self.list_calls = 0
        self.get_calls = 0
        self.deleted: list[str] = []
        self.fail_lists = 0
        self.fail_gets = 0
        self.deletion_delay = 0
        self.logs: dict[str, str] = {}
        self._pending_delete: dict[str, int] = {}

    def put(self, unit: UnitStatus) -> None:
        self.units[unit.name] = unit

    def list_units(self, selector):
        self.list_calls += 1
        if self.fail_lists:
            self.fail_lists -= 1
            raise RuntimeError("apiserver hiccup")
        if isinstance(selector, str):
            selector = dict(t.split("=", 1) for t in selector.split(",") if t)
        return [u for u in self.units.values() if all(u.labels.get(k) == v for k, v in selector.items())]

    def list_units_by_prefix(self, prefix):
        return [u for u in self.units.values() if u.name.startswith(prefix)]

    def get_unit(self, name):
        self.get_calls += 1
        if self.fail_gets:
            self.fail_gets -= 1
            raise ConnectionError("apiserver unreachable")
        if name in self._pending_delete:
            if self._pending_delete[name] <= 0:
                del self._pending_delete[name]
                self.units.pop(name, None)
            else:
                self._pending_delete[name] -= 1
        return self.units.get(name)

    def delete_unit(self, name):
        self.deleted.append(name)
        if name not in self.units:
            return False
        self._pending_delete[name] = self.deletion_delay
        return True

    def unit_logs(self, name, container=None):
        return self.logs.get(name if container is None else f"{name}:{container}", "")


def make_unit(name, revision=None, phase="Running", ready=True, containers=None, labels=None, **kw) -> UnitStatus:
    if containers is None:
        containers = (ContainerStatus(name="kafka", ready=ready, image="strimzi/kafka:latest"),)
    return UnitStatus(
        name=name,
        revision=revision or f"uid-{name}",
        phase=phase,
        ready=ready,
        containers=tuple(containers),
        labels=labels if labels is not None else {"app": "kafka"},
        **kw,
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        global_poll_interval_s=1.0,
        global_timeout_s=60.0,
        global_status_timeout_s=30.0,
        log_timeout_s=10.0,
        readiness_poll_interval_s=1.0,
        readiness_timeout_s=100.0,
        readiness_stable_polls=10,
        deletion_poll_interval_s=1.0,
        deletion_timeout_s=20.0,
        reconciliation_count=3,
        stable_phase="Running",
    )


@pytest.fixture
def isolated_journal(tmp_path, monkeypatch):
    """Point the event journal at a throwaway sqlite file."""
    monkeypatch.setattr(journal, "settings", replace(journal.settings, db_path=str(tmp_path / "events.db")))
    journal.init_db()
    return journal


@pytest.fixture
def fake_client() -> FakeUnitClient:
    return FakeUnitClient()


@pytest.fixture
def unit():
    return make_unit


@pytest.fixture
def make_clock():
    """Factory for extra clocks when a test runs more than one wait."""
    return FakeClock
