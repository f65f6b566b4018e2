from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Mapping, Protocol, Union

# Either {"app": "kafka"} or the label-selector string "app=kafka".
Selector = Union[Mapping[str, str], str]
UnitSnapshot = dict[str, str]


@dataclass(frozen=True)
class ContainerStatus:
    name: str
    ready: bool
    image: str = ""
    waiting_reason: str | None = None


@dataclass(frozen=True)
class UnitStatus:
    """Observed state of one managed unit (a pod)."""

    name: str
    revision: str  # changes whenever the unit is replaced
    phase: str
    ready: bool
    containers: tuple[ContainerStatus, ...] = ()
    created_at: datetime | None = None
    labels: Mapping[str, str] = field(default_factory=dict)
    images: tuple[str, ...] = ()  # from the pod spec, in declaration order
    init_images: tuple[str, ...] = ()
    container_names: tuple[str, ...] = ()

    @property
    def containers_ready(self) -> bool:
        return all(c.ready for c in self.containers)


class UnitClient(Protocol):
    """Read/delete access to the units of one namespace."""

    def list_units(self, selector: Selector) -> list[UnitStatus]: ...

    def list_units_by_prefix(self, prefix: str) -> list[UnitStatus]: ...

    def get_unit(self, name: str) -> UnitStatus | None: ...

    def delete_unit(self, name: str) -> bool: ...

    def unit_logs(self, name: str, container: str | None = None) -> str: ...


def format_selector(selector: Selector) -> str:
    if isinstance(selector, str):
        return selector
    return ",".join(f"{k}={v}" for k, v in sorted(selector.items()))


def take_snapshot(units: list[UnitStatus]) -> UnitSnapshot:
    return {u.name: u.revision for u in units}
