from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Iterable

from .polling import Clock, StabilityCounter, debounced, wait_until
from .settings import Settings, settings as default_settings
from .units import Selector, UnitClient, UnitSnapshot, UnitStatus, format_selector, take_snapshot

logger = logging.getLogger("rollwatch.tracker")

UnitSupplier = Callable[[], Iterable[UnitStatus]]


class UnitTracker:
    """Waits on groups of pods until they settle.

    Every wait runs its own poll session and counter, so one tracker can be
    shared by several threads waiting on different groups.
    """

    def __init__(self, client: UnitClient, clock: Clock | None = None, settings: Settings | None = None):
        self.client = client
        self.clock = clock
        self.settings = settings or default_settings

    def _wait(
        self,
        description: str,
        interval_s: float,
        timeout_s: float,
        predicate: Callable[[], bool],
        on_timeout: Callable[[], None] | None = None,
    ) -> float:
        return wait_until(description, interval_s, timeout_s, predicate, on_timeout=on_timeout, clock=self.clock)

    def _global_wait(self, description: str, predicate: Callable[[], bool], timeout_s: float | None = None) -> float:
        return self._wait(
            description,
            self.settings.global_poll_interval_s,
            self.settings.global_status_timeout_s if timeout_s is None else timeout_s,
            predicate,
        )

    def _require_unit(self, name: str) -> UnitStatus:
        unit = self.client.get_unit(name)
        if unit is None:
            raise LookupError(f"Pod {name} not found")
        return unit

    # ------------------------------------------------------------------
    # Snapshots and rolling restarts
    # ------------------------------------------------------------------

    def snapshot(self, selector: Selector) -> UnitSnapshot:
        """Map of pod name -> UID for every pod matching ``selector``."""
        return take_snapshot(self.client.list_units(selector))

    def has_rolled(self, selector: Selector, snapshot: UnitSnapshot) -> bool:
        """True once no pod from ``snapshot`` is still running with its old UID."""
        current = self.snapshot(selector)
        logger.debug(f"Existing snapshot: {dict(sorted(snapshot.items()))}")
        logger.debug(f"Current snapshot: {dict(sorted(current.items()))}")
        if current == snapshot:
            return False
        for name, revision in current.items():
            if snapshot.get(name) == revision:
                return False
        return True

    def wait_till_rolled(self, selector: Selector, snapshot: UnitSnapshot, expected_count: int | None = None) -> UnitSnapshot:
        """Wait for a rolling restart of the pods in ``snapshot`` and for the new pods to be ready."""
        sel = format_selector(selector)
        logger.info(f"Waiting for rolling update of pods matching {sel}")
        self._wait(
            f"pods matching {sel} to roll",
            self.settings.readiness_poll_interval_s,
            self.settings.readiness_timeout_s,
            lambda: self.has_rolled(selector, snapshot),
        )
        self.wait_for_units_ready(selector, expected_count if expected_count is not None else len(snapshot), True)
        logger.info(f"Pods matching {sel} have rolled")
        return self.snapshot(selector)

    # ------------------------------------------------------------------
    # Readiness
    # ------------------------------------------------------------------

    def wait_for_units_ready(
        self,
        selector: Selector,
        expected_count: int,
        check_containers: bool,
        on_timeout: Callable[[], None] | None = None,
    ) -> None:
        """Wait until exactly ``expected_count`` pods match and all of them stay ready.

        The condition must hold on more than ``readiness_stable_polls``
        consecutive polls; pods that turn ready and then restart straight
        after a rollout reset the count.
        """
        sel = format_selector(selector)
        counter = StabilityCounter(self.settings.readiness_stable_polls, exceed=True)

        def all_ready() -> bool:
            units = self.client.list_units(selector)
            if not units:
                logger.debug(f"Not ready (no pods matching {sel})")
                return False
            if len(units) != expected_count:
                logger.debug(f"Not ready ({len(units)} pods matching {sel}, expected {expected_count})")
                return False
            for unit in units:
                if not unit.ready:
                    logger.debug(f"Not ready (at least 1 pod not ready: {unit.name})")
                    return False
                if check_containers:
                    for cs in unit.containers:
                        if not cs.ready:
                            logger.debug(f"Not ready (at least 1 container of pod {unit.name} not ready: {cs.name})")
                            return False
            logger.debug(f"Pods {', '.join(u.name for u in units)} are ready ({counter.remaining} polls to go)")
            return True

        self._wait(
            f"all pods matching {sel} to be ready",
            self.settings.readiness_poll_interval_s,
            self.settings.readiness_timeout_s,
            debounced(all_ready, counter),
            on_timeout=on_timeout,
        )
        logger.info(f"Pods matching {sel} are ready")

    def wait_for_unit(self, name: str) -> None:
        """Wait until every container of pod ``name`` is ready."""
        logger.info(f"Waiting when Pod {name} will be ready")
        self._wait(
            f"pod {name} to be ready",
            self.settings.readiness_poll_interval_s,
            self.settings.readiness_timeout_s,
            lambda: self._require_unit(name).containers_ready,
        )
        logger.info(f"Pod {name} is ready")

    def wait_for_unit_update(self, name: str, since: datetime) -> None:
        """Wait until pod ``name`` has been recreated after ``since``."""

        def recreated() -> bool:
            created = self._require_unit(name).created_at
            return created is not None and created > since

        self._wait(
            f"{name} update",
            self.settings.readiness_poll_interval_s,
            self.settings.readiness_timeout_s,
            recreated,
        )

    # ------------------------------------------------------------------
    # Deletion
    # ------------------------------------------------------------------

    def wait_for_unit_deletion(self, name: str) -> None:
        """Delete pod ``name`` if it exists and wait until it is gone."""
        logger.info(f"Waiting when Pod {name} will be deleted")
        requested = False

        def gone() -> bool:
            nonlocal requested
            if self.client.get_unit(name) is None:
                return True
            if not requested:
                logger.debug(f"Deleting pod {name}")
                self.client.delete_unit(name)
                requested = True
            return False

        self._wait(
            f"pod {name} to be deleted",
            self.settings.deletion_poll_interval_s,
            self.settings.deletion_timeout_s,
            gone,
        )
        logger.info(f"Pod {name} deleted")

    def wait_for_units_with_prefix_deletion(self, prefix: str) -> None:
        logger.info(f"Waiting when all Pods with prefix {prefix} will be deleted")
        for unit in self.client.list_units_by_prefix(prefix):
            self.wait_for_unit_deletion(unit.name)

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def unit_name_by_prefix(self, prefix: str) -> str:
        for unit in self.client.list_units_by_prefix(prefix):
            return unit.name
        raise LookupError(f"No pod with prefix {prefix}")

    def first_unit_name_containing(self, term: str) -> str:
        for unit in self.client.list_units_by_prefix(""):
            if term in unit.name:
                return unit.name
        raise LookupError(f"No pod name contains {term}")

    def first_container_image(self, name: str) -> str:
        images = self._require_unit(name).images
        if not images:
            raise LookupError(f"Pod {name} has no containers")
        return images[0]

    def container_image(self, name: str, container: str) -> str:
        unit = self._require_unit(name)
        for cname, image in zip(unit.container_names, unit.images):
            if cname == container:
                return image
        raise LookupError(f"Pod {name} has no container {container}")

    def init_container_image(self, name: str) -> str:
        images = self._require_unit(name).init_images
        if not images:
            raise LookupError(f"Pod {name} has no init containers")
        return images[0]

    # ------------------------------------------------------------------
    # Counts, phases, logs, labels
    # ------------------------------------------------------------------

    def wait_until_unit_count(self, prefix: str, count: int) -> None:
        logger.info(f"Wait until {count} Pods with prefix {prefix} are present")
        self._global_wait(
            f"{count} pods with prefix {prefix}",
            lambda: len(self.client.list_units_by_prefix(prefix)) == count,
        )
        logger.info(f"Pods with count {count} are present")

    def wait_until_unit_container_count(self, prefix: str, count: int) -> None:
        logger.info(f"Wait until Pod {prefix} will have {count} containers")
        self._global_wait(
            f"pod {prefix} to have {count} containers",
            lambda: len(self.client.list_units_by_prefix(prefix)[0].container_names) == count,
        )
        logger.info(f"Pod {prefix} has {count} containers")

    def wait_until_unit_present(self, prefix: str) -> None:
        logger.info(f"Wait until Pod {prefix} is present")
        self._global_wait(f"pod {prefix} to be present", lambda: bool(self.client.list_units_by_prefix(prefix)))
        logger.info(f"Pod {prefix} is present")

    def wait_until_unit_in_crash_loop(self, name: str) -> None:
        logger.info(f"Wait until Pod {name} is in CrashLoopBackOff state")
        self._global_wait(
            f"pod {name} to be in CrashLoopBackOff state",
            lambda: self._require_unit(name).containers[0].waiting_reason == "CrashLoopBackOff",
        )
        logger.info(f"Pod {name} is in CrashLoopBackOff state")

    def wait_until_unit_pending(self, name: str) -> None:
        logger.info(f"Wait until Pod {name} is in pending state")
        self._global_wait(
            f"pod {name} to be in pending state",
            lambda: self._require_unit(name).phase == "Pending",
            timeout_s=self.settings.global_timeout_s,
        )
        logger.info(f"Pod {name} is in pending state")

    def wait_until_message_in_logs(self, name: str, message: str, container: str | None = None) -> None:
        where = f"{name}:{container}" if container else name
        logger.info(f"Waiting for message to appear in the {where} log")
        self._global_wait(
            f"message in {where} log",
            lambda: message in self.client.unit_logs(name, container),
            timeout_s=self.settings.log_timeout_s,
        )
        logger.info(f"Message {message!r} found in {where} log")

    def wait_until_unit_labels_deleted(self, name: str, *label_keys: str) -> None:
        for key in label_keys:
            logger.info(f"Waiting for Pod {name} label {key} to be removed")
            self._wait(
                f"pod {name} label {key} to be removed",
                self.settings.readiness_poll_interval_s,
                self.settings.readiness_timeout_s,
                lambda key=key: key not in self._require_unit(name).labels,
            )
            logger.info(f"Pod {name} label {key} removed")

    # ------------------------------------------------------------------
    # Phase stability
    # ------------------------------------------------------------------

    def wait_until_units_stable(self, units: UnitSupplier) -> None:
        """Wait until every supplied pod stays in the stable phase.

        Each poll re-reads the pods by name. The count of consecutive
        all-stable polls must reach ``reconciliation_count``; note this is
        "reaches", one poll sooner than the readiness wait's "more than".
        """
        required = self.settings.reconciliation_count
        phase = self.settings.stable_phase
        counter = StabilityCounter(required)
        names: list[str] = []

        def all_in_phase() -> bool:
            names[:] = [u.name for u in units()]
            current = [(n, self.client.get_unit(n)) for n in names]
            for n, unit in current:
                if unit is None or unit.phase != phase:
                    logger.info(
                        f"Pod {n} is not stable in phase {unit.phase if unit else 'Missing'}, "
                        f"resetting the stability counter from {counter.value} to 0"
                    )
                    return False
                logger.info(
                    f"Pod {n} is in the {phase} state. Remaining polls for pod to be stable "
                    f"{required - counter.value}"
                )
            return True

        self._wait(
            "pods stability",
            self.settings.global_poll_interval_s,
            self.settings.global_timeout_s,
            debounced(all_in_phase, counter),
        )
        logger.info(f"All pods are stable {', '.join(names)}")

    def wait_until_units_by_name_stable(self, prefix: str) -> None:
        self.wait_until_units_stable(lambda: self.client.list_units_by_prefix(prefix))

    def wait_until_unit_list_stable(self, units: list[UnitStatus]) -> None:
        self.wait_until_units_stable(lambda: units)
