"""
Lifecycle stages and failure classification.
"""

from dataclasses import dataclass
from enum import Enum


class Stage(Enum):
    """Ordered steps of a provisioning test."""

    PREPARE = "prepare"
    INITIALIZE = "initialize"
    PREVIEW_UPDATE_VALIDATE = "preview_update_validate"
    DESTROY = "destroy"
    CLEANUP = "cleanup"

    @property
    def order(self) -> int:
        return list(Stage).index(self)


class ErrorKind(Enum):
    """
    How a stage failure affects the run.

    FATAL failures end the run with a failing result. IGNORABLE failures are
    logged and swallowed. EXPECTED_FAILURE marks a failure the session has
    already reported itself (a failed assertion in runtime validation): it
    fails the run, but callers surface the original error as-is instead of
    wrapping it.
    """

    FATAL = "fatal"
    IGNORABLE = "ignorable"
    EXPECTED_FAILURE = "expected_failure"


@dataclass(frozen=True)
class StageResult:
    """Outcome of one executed stage."""

    stage: Stage
    ok: bool
    elapsed: float
    kind: ErrorKind | None = None
    error: BaseException | None = None
