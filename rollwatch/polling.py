from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Callable

logger = logging.getLogger("rollwatch.polling")

Predicate = Callable[[], bool]


class WaitTimeout(Exception):
    """A condition did not hold within the allotted time."""

    def __init__(
        self,
        description: str,
        timeout_s: float,
        polls: int = 0,
        last_error: BaseException | None = None,
    ) -> None:
        super().__init__(f"Timeout after {timeout_s:g}s waiting for {description}")
        self.description = description
        self.timeout_s = timeout_s
        self.polls = polls
        self.last_error = last_error


class Clock(ABC):
    """Monotonic time source plus sleep; swapped for a fake in tests."""

    @abstractmethod
    def now(self) -> float: ...

    @abstractmethod
    def sleep(self, seconds: float) -> None: ...


class SystemClock(Clock):
    def now(self) -> float:
        return time.monotonic()

    def sleep(self, seconds: float) -> None:
        time.sleep(seconds)


SYSTEM_CLOCK = SystemClock()


@dataclass
class PollSession:
    """State of one convergence wait. Lives only as long as the wait call."""

    description: str
    interval_s: float
    timeout_s: float
    predicate: Predicate
    on_timeout: Callable[[], None] | None = None
    clock: Clock = field(default=SYSTEM_CLOCK)
    polls: int = 0
    errors: int = 0
    last_error: BaseException | None = None

    def _evaluate(self) -> bool:
        self.polls += 1
        try:
            return bool(self.predicate())
        except Exception as e:
            self.errors += 1
            self.last_error = e
            if self.errors == 1:
                logger.error(f"Exception while waiting for {self.description}: {type(e).__name__}: {e}")
            else:
                logger.debug(f"Poll {self.polls} for {self.description} failed: {type(e).__name__}: {e}")
            return False

    def run(self) -> float:
        """Poll until the predicate holds. Returns the seconds left before the deadline."""
        deadline = self.clock.now() + self.timeout_s
        while True:
            ok = self._evaluate()
            time_left = deadline - self.clock.now()
            if ok:
                return time_left
            if time_left <= 0:
                if self.errors > 1:
                    logger.error(
                        f"Exceeded timeout of {self.timeout_s:g}s while waiting for {self.description}; "
                        f"{self.errors} polls raised, last: {self.last_error!r}"
                    )
                if self.on_timeout is not None:
                    self.on_timeout()
                raise WaitTimeout(self.description, self.timeout_s, self.polls, self.last_error)
            self.clock.sleep(min(self.interval_s, time_left))


def wait_until(
    description: str,
    interval_s: float,
    timeout_s: float,
    predicate: Predicate,
    on_timeout: Callable[[], None] | None = None,
    clock: Clock | None = None,
) -> float:
    """Evaluate ``predicate`` every ``interval_s`` until it returns true.

    An exception from the predicate counts as a failed poll. Once more than
    ``timeout_s`` has elapsed, ``on_timeout`` is called once and
    :class:`WaitTimeout` is raised.
    """
    session = PollSession(
        description=description,
        interval_s=interval_s,
        timeout_s=timeout_s,
        predicate=predicate,
        on_timeout=on_timeout,
        clock=clock or SYSTEM_CLOCK,
    )
    return session.run()


class StabilityCounter:
    """Consecutive-success counter for debounced waits.

    With ``exceed=True`` a success is declared on the poll where the count
    *before* incrementing is greater than ``threshold``; otherwise once the
    count reaches ``threshold``.
    """

    def __init__(self, threshold: int, exceed: bool = False) -> None:
        self.threshold = int(threshold)
        self.exceed = exceed
        self.value = 0

    def reset(self) -> None:
        self.value = 0

    def record_success(self) -> bool:
        previous = self.value
        self.value += 1
        if self.exceed:
            return previous > self.threshold
        return self.value >= self.threshold

    @property
    def remaining(self) -> int:
        target = self.threshold + 2 if self.exceed else self.threshold
        return max(0, target - self.value)


def debounced(predicate: Predicate, counter: StabilityCounter) -> Predicate:
    """Require ``predicate`` to hold on consecutive polls before reporting success."""

    def check() -> bool:
        try:
            ok = predicate()
        except Exception:
            counter.reset()
            raise
        if not ok:
            counter.reset()
            return False
        return counter.record_success()

    return check
