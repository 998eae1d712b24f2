"""
Bounded retry/poll primitive.

Side effects of asynchronous infrastructure (a row written by a function that
a connection event triggered, a website that becomes reachable after a deploy)
are not visible the moment the triggering call returns. The poller waits for
such conditions without busy-spinning and without hanging: a read-only probe
is invoked once per interval until it returns True or the overall timeout
elapses.

Example:
    policy = RetryPolicy(interval=3.0, timeout=60.0)
    result = poll_until(lambda: table_row_count() == 1, policy, what="row written")
    lg.info("row visible", extra={"after": result.elapsed})

For one-shot conditions that may need a single nudge (e.g. a handshake that
must be re-sent once), use the corrective variant:

    poll_with_correction(handshake_ok, resend_handshake, policy)
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from .exceptions import ConfigError, CorrectionExhaustedError, PollTimeoutError
from .time import Deadline, Ticker, delta_to_secs
from .time.ticker import Clock, Sleep

Probe = Callable[[], bool]


@dataclass(frozen=True)
class RetryPolicy:
    """
    Poll interval and overall timeout, in seconds.

    When ``interval >= timeout`` the policy is degenerate: the poller makes a
    single attempt when the deadline is reached.
    """

    interval: float
    timeout: float

    def __post_init__(self) -> None:
        if self.interval <= 0:
            raise ConfigError("poll interval must be positive", interval=self.interval)
        if self.timeout <= 0:
            raise ConfigError("poll timeout must be positive", timeout=self.timeout)

    @property
    def degenerate(self) -> bool:
        return self.interval >= self.timeout

    @classmethod
    def of(cls, interval: str | float, timeout: str | float) -> RetryPolicy:
        """Build a policy from numbers or duration strings like ``"3s"``."""
        try:
            return cls(delta_to_secs(interval), delta_to_secs(timeout))
        except ValueError as e:
            raise ConfigError(f"invalid retry policy: {e}") from e

    @classmethod
    def from_config(cls, config: Any) -> RetryPolicy:
        """Build a policy from any object with ``interval`` and ``timeout``."""
        return cls.of(config.interval, config.timeout)


CONSISTENCY = RetryPolicy(interval=3.0, timeout=60.0)
READINESS = RetryPolicy(interval=3.0, timeout=600.0)


@dataclass(frozen=True)
class PollResult:
    """Outcome of a successful poll."""

    attempts: int
    elapsed: float
    corrections: int = 0


class Poller:
    """
    Runs probes on a ticker raced against a deadline.

    Probes are first invoked one interval after polling starts, then once per
    interval. Exceptions raised by a probe are not retried; they propagate to
    the caller unchanged.

    Args:
        lg: Logger for poll progress (attempts are logged at trace level)
        clock: Monotonic clock function
        sleep: Function used to wait between attempts
    """

    def __init__(
        self,
        lg: Any = None,
        clock: Clock = time.monotonic,
        sleep: Sleep = time.sleep,
    ) -> None:
        if lg is None:
            from .log import default_lg

            lg = default_lg(["stacktest", "poll"])
        self._lg = lg
        self._clock = clock
        self._sleep = sleep

    @property
    def lg(self) -> Any:
        return self._lg

    def until(
        self, probe: Probe, policy: RetryPolicy, what: str = "condition"
    ) -> PollResult:
        """
        Wait until ``probe()`` returns True.

        Returns:
            PollResult with the number of attempts and elapsed seconds

        Raises:
            PollTimeoutError: If the timeout elapsed without a successful probe
        """
        start_t = self._clock()
        deadline = Deadline(policy.timeout, clock=self._clock)
        ticker = Ticker(
            self._lg, policy.interval, clock=self._clock, sleep=self._sleep
        )

        attempts = 0
        ticks = ticker.until(deadline, min_ticks=1)
        try:
            for _ in ticks:
                attempts += 1
                if probe():
                    elapsed = self._clock() - start_t
                    self._lg.debug(
                        f"{what} met",
                        extra={"after": elapsed, "attempts": attempts},
                    )
                    return PollResult(attempts=attempts, elapsed=elapsed)
                self._lg.trace(f"{what} not met yet", extra={"attempt": attempts})
        finally:
            ticks.close()

        elapsed = self._clock() - start_t
        self._lg.debug(
            f"timed out waiting for {what}",
            extra={"after": elapsed, "attempts": attempts},
        )
        raise PollTimeoutError(
            f"timed out waiting for {what}",
            attempts=attempts,
            elapsed=elapsed,
            timeout=policy.timeout,
        )

    def until_with_correction(
        self,
        probe: Probe,
        correct: Callable[[], Any],
        policy: RetryPolicy,
        what: str = "condition",
        corrections: int = 1,
    ) -> PollResult:
        """
        Wait for ``probe()``, applying ``correct()`` after each exhausted cycle.

        Each cycle is a full bounded poll. After a cycle times out the
        corrective action runs once and a new cycle starts, at most
        ``corrections`` times.

        Raises:
            CorrectionExhaustedError: If the last cycle also timed out
        """
        if corrections < 0:
            raise ConfigError(
                "corrections must not be negative", corrections=corrections
            )

        start_t = self._clock()
        attempts = 0
        applied = 0
        while True:
            try:
                result = self.until(probe, policy, what)
            except PollTimeoutError as e:
                attempts += e.attempts
                if applied >= corrections:
                    elapsed = self._clock() - start_t
                    self._lg.debug(
                        f"{what} still unmet after correction",
                        extra={"after": elapsed, "corrections": applied},
                    )
                    raise CorrectionExhaustedError(
                        f"{what} unmet after {applied} correction(s)",
                        attempts=attempts,
                        elapsed=elapsed,
                        timeout=policy.timeout,
                        corrections=applied,
                    ) from e
                applied += 1
                self._lg.debug(
                    f"applying correction for {what}", extra={"correction": applied}
                )
                correct()
                continue
            return PollResult(
                attempts=attempts + result.attempts,
                elapsed=self._clock() - start_t,
                corrections=applied,
            )


def poll_until(
    probe: Probe, policy: RetryPolicy = CONSISTENCY, what: str = "condition"
) -> PollResult:
    """Wait until ``probe()`` returns True, using a default Poller."""
    return Poller().until(probe, policy, what)


def poll_with_correction(
    probe: Probe,
    correct: Callable[[], Any],
    policy: RetryPolicy = CONSISTENCY,
    what: str = "condition",
    corrections: int = 1,
) -> PollResult:
    """Wait for ``probe()`` with bounded corrective retries (default Poller)."""
    return Poller().until_with_correction(probe, correct, policy, what, corrections)
