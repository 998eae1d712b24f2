"""
Fixed-rate tick source and single-shot deadline.

The two timers are meant to be raced against each other: a Ticker fires at
``origin + k * secs`` (k = 1, 2, ...) while a Deadline fires once at
``origin + timeout``. ``Ticker.until(deadline)`` yields on every tick that
precedes the deadline and returns once the deadline wins the race.

Both take an injectable clock and sleep function so callers (and tests) can
drive them with a fake clock.

Example:
    deadline = Deadline(60.0)
    for tick in Ticker(lg, secs=3.0).until(deadline):
        if ready():
            break
"""

import math
import threading
import time
from collections.abc import Callable, Iterator
from typing import Any

Clock = Callable[[], float]
Sleep = Callable[[float], None]


class Deadline:
    """Single-shot timer that expires ``secs`` after construction."""

    def __init__(self, secs: float, clock: Clock = time.monotonic) -> None:
        self._clock = clock
        self._secs = secs
        self._at = clock() + secs

    @property
    def at(self) -> float:
        """Clock value at which the deadline fires."""
        return self._at

    @property
    def secs(self) -> float:
        return self._secs

    def remaining(self) -> float:
        return max(0.0, self._at - self._clock())

    def expired(self) -> bool:
        return self._clock() >= self._at


class Ticker:
    """
    Periodic tick source.

    Ticks are scheduled at a fixed rate relative to the moment iteration
    starts, so time spent by the caller between ticks does not make the
    schedule drift. Ticks whose slot passed while the caller was busy are
    dropped; the next tick fires at the following slot.

    Args:
        lg: Logger for trace output
        secs: Interval between ticks in seconds
        initial: Whether to fire tick 0 immediately instead of after one interval
        clock: Monotonic clock function
        sleep: Function used to wait between ticks
    """

    def __init__(
        self,
        lg: Any,
        secs: float,
        initial: bool = False,
        clock: Clock = time.monotonic,
        sleep: Sleep = time.sleep,
    ) -> None:
        if secs <= 0:
            raise ValueError(f"Ticker interval must be positive, got {secs}")
        self._lg = lg
        self._secs = secs
        self._initial = initial
        self._clock = clock
        self._sleep = sleep
        self._origin: float | None = None
        self._count = 0
        self._running = False
        self._stop_event = threading.Event()

    def next_at(self) -> float:
        """Clock value of the next scheduled tick."""
        if self._origin is None:
            raise RuntimeError("Ticker has not started")
        offset = self._count if self._initial else self._count + 1
        return self._origin + offset * self._secs

    def _skip_missed(self) -> None:
        overdue = self._clock() - self.next_at()
        if overdue > 0:
            self._count += math.floor(overdue / self._secs) + 1

    def _wait_until(self, at: float) -> None:
        delay = at - self._clock()
        if delay > 0:
            self._sleep(delay)

    def __iter__(self) -> Iterator[int]:
        """Yield tick count on each interval until stopped."""
        return self._ticks(None)

    def until(self, deadline: Deadline, min_ticks: int = 0) -> Iterator[int]:
        """
        Yield ticks until the deadline fires.

        When the next tick would fire at or after the deadline, the iterator
        waits for the deadline and stops. No tick is yielded once the clock
        has passed the deadline. If fewer than ``min_ticks`` ticks have been
        yielded by then, the remaining ones are yielded at the deadline.
        """
        return self._ticks(deadline, min_ticks)

    def _ticks(self, deadline: Deadline | None, min_ticks: int = 0) -> Iterator[int]:
        self._origin = self._clock()
        self._count = 0
        self._running = True
        self._stop_event.clear()
        fired = 0
        try:
            while not self._stop_event.is_set():
                self._skip_missed()
                at = self.next_at()
                if deadline is not None and at >= deadline.at:
                    self._wait_until(deadline.at)
                    while fired < min_ticks:
                        fired += 1
                        yield self._fire()
                    self._lg.debug("deadline reached", extra={"ticks": fired})
                    return
                self._wait_until(at)
                if deadline is not None and deadline.expired() and fired >= min_ticks:
                    self._lg.debug("deadline reached", extra={"ticks": fired})
                    return
                fired += 1
                yield self._fire()
        finally:
            self._running = False

    def _fire(self) -> int:
        tick = self._count
        self._count += 1
        return tick

    def stop(self) -> None:
        """Stop iteration after the current tick."""
        self._stop_event.set()

    def is_running(self) -> bool:
        return self._running

    def get_status(self) -> dict:
        """Status information: running state, interval and ticks fired."""
        return {
            "running": self._running,
            "interval": self._secs,
            "ticks": self._count,
            "stop_requested": self._stop_event.is_set(),
        }
