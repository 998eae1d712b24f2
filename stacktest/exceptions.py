"""
Unified exception hierarchy for stacktest.

Every error raised by the lifecycle controller, the poller and the
configuration layer derives from StackTestError, so callers can catch all
harness failures with a single except clause while still telling stages apart.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .lifecycle.stage import ErrorKind, Stage


class StackTestError(Exception):
    """
    Base exception for all stacktest errors.

    Example:
        try:
            controller.run(run)
        except StackTestError as e:
            lg.error("run failed", extra={"exception": e})
    """

    def __init__(self, message: str, **context: Any) -> None:
        """
        Initialize the exception with a message and optional context.

        Args:
            message: Human-readable error message
            **context: Additional context information (stored in self.context)
        """
        super().__init__(message)
        self.message = message
        self.context = context

    def __str__(self) -> str:
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"{self.message} ({context_str})"
        return self.message


class ConfigError(StackTestError):
    """
    Configuration-related errors.

    Examples:
        - Config file not found or not valid YAML
        - Schema validation failed
        - Required environment input (e.g. AWS_REGION) missing
    """

    pass


class StageError(StackTestError):
    """
    Failure of one lifecycle stage.

    Carries the stage that failed and the classification the controller
    assigned to it. Callers inspect ``kind`` rather than the exception type
    to decide whether a failure should change the run's outcome.
    """

    def __init__(
        self,
        stage: Stage,
        kind: ErrorKind,
        message: str,
        cause: BaseException | None = None,
        **context: Any,
    ) -> None:
        super().__init__(message, stage=stage.value, **context)
        self.stage = stage
        self.kind = kind
        self.cause = cause

    @property
    def fatal(self) -> bool:
        """Whether this failure decides the run's outcome."""
        from .lifecycle.stage import ErrorKind

        return self.kind is not ErrorKind.IGNORABLE


class SetupFailure(StageError):
    """Prepare or Initialize failed: the environment or backend is not usable."""

    pass


class ValidationFailure(StageError):
    """The system under test did not reach the expected state."""

    def __init__(
        self,
        stage: Stage,
        kind: ErrorKind,
        message: str,
        cause: BaseException | None = None,
        stdout: str = "",
        stderr: str = "",
        **context: Any,
    ) -> None:
        super().__init__(stage, kind, message, cause, **context)
        self.stdout = stdout
        self.stderr = stderr


class TeardownFailure(StageError):
    """Destroy or Cleanup failed; fatal or ignorable depending on policy."""

    pass


class PollTimeoutError(StackTestError):
    """
    A probed condition never became true within its time budget.

    Distinct from ValidationFailure so callers can tell "never became true"
    apart from "was checked once and was wrong".
    """

    def __init__(
        self,
        message: str,
        attempts: int,
        elapsed: float,
        timeout: float,
        **context: Any,
    ) -> None:
        super().__init__(message, attempts=attempts, timeout=timeout, **context)
        self.attempts = attempts
        self.elapsed = elapsed
        self.timeout = timeout


class CorrectionExhaustedError(PollTimeoutError):
    """The condition stayed unmet even after the allowed corrective actions."""

    def __init__(
        self,
        message: str,
        attempts: int,
        elapsed: float,
        timeout: float,
        corrections: int,
        **context: Any,
    ) -> None:
        super().__init__(
            message, attempts, elapsed, timeout, corrections=corrections, **context
        )
        self.corrections = corrections
