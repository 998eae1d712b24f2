"""
Staged test lifecycle with guaranteed teardown.

A provisioning test runs through five stages in a fixed order:

    prepare -> initialize -> preview/update/validate -> destroy -> cleanup

Teardown is unwind-protected: once prepare succeeds, cleanup runs on every
exit path; once initialize succeeds, destroy runs on every exit path, always
before cleanup. A destroy failure is fatal under the strict policy and merely
logged under the best-effort policy. Cleanup failures are always logged only.
"""

from __future__ import annotations

from collections.abc import Callable
from enum import Enum
from typing import Any

from .. import time
from ..exceptions import (
    SetupFailure,
    StageError,
    TeardownFailure,
    ValidationFailure,
)
from .run import TestRun
from .stage import ErrorKind, Stage, StageResult


class TeardownPolicy(Enum):
    """How destroy failures are classified."""

    STRICT = "strict"
    BEST_EFFORT = "best_effort"


_FAILURE_TYPES: dict[Stage, type[StageError]] = {
    Stage.PREPARE: SetupFailure,
    Stage.INITIALIZE: SetupFailure,
    Stage.PREVIEW_UPDATE_VALIDATE: ValidationFailure,
    Stage.DESTROY: TeardownFailure,
    Stage.CLEANUP: TeardownFailure,
}

_FAILURE_MESSAGES: dict[Stage, str] = {
    Stage.PREPARE: "copying test to temp dir",
    Stage.INITIALIZE: "initializing test project",
    Stage.PREVIEW_UPDATE_VALIDATE: "running test preview, update, and edits",
    Stage.DESTROY: "destroying test stack",
    Stage.CLEANUP: "cleaning up test directory",
}


class LifecycleController:
    """
    Drives a TestRun through its stages.

    Example:
        controller = LifecycleController(lg, TeardownPolicy.BEST_EFFORT)
        run = controller.run(TestRun(session=CommandSession(opts)))
        assert run.finished

    Args:
        lg: Logger for stage transitions
        policy: Destroy failure classification
    """

    def __init__(
        self, lg: Any = None, policy: TeardownPolicy = TeardownPolicy.STRICT
    ) -> None:
        if lg is None:
            from ..log import default_lg

            lg = default_lg(["stacktest", "lifecycle"])
        self._lg = lg
        self._policy = policy

    @property
    def policy(self) -> TeardownPolicy:
        return self._policy

    def run(self, run: TestRun) -> TestRun:
        """
        Execute all stages of ``run``.

        Returns:
            The same TestRun, with one StageResult per executed stage

        Raises:
            SetupFailure: Prepare or initialize failed
            ValidationFailure: Preview, update, edits or runtime validation failed
            TeardownFailure: Destroy failed under the strict policy
        """
        session = run.session
        self._execute(run, Stage.PREPARE, session.prepare)
        run.work_dir = getattr(session, "work_dir", run.work_dir)

        primary: BaseException | None = None
        teardown_error: StageError | None = None
        try:
            self._set_finished(run, False)
            self._execute(run, Stage.INITIALIZE, session.initialize)
            try:
                self._execute(
                    run, Stage.PREVIEW_UPDATE_VALIDATE, session.preview_update_and_edits
                )
                self._set_finished(run, True)
            except BaseException as e:
                primary = e
                raise
            finally:
                teardown_error = self._destroy(run, primary)
        finally:
            self._cleanup(run)

        if teardown_error is not None:
            raise teardown_error

        self._lg.debug(
            "test finished",
            extra={"prefix": run.prefix, "stages": [s.value for s in run.stages]},
        )
        return run

    def _set_finished(self, run: TestRun, value: bool) -> None:
        run.finished = value
        if hasattr(run.session, "finished"):
            run.session.finished = value

    def _execute(
        self,
        run: TestRun,
        stage: Stage,
        action: Callable[[], Any],
        kind: ErrorKind = ErrorKind.FATAL,
    ) -> StageError | None:
        """
        Run one stage and record its result.

        Fatal failures are raised as the stage's StageError subclass;
        ignorable failures are returned. Exceptions that are not ``Exception``
        subclasses (KeyboardInterrupt, SystemExit) are recorded and re-raised
        unchanged.
        """
        start_t = time.start()
        self._lg.trace(f"{stage.value}...", extra={"prefix": run.prefix})
        try:
            action()
        except Exception as e:
            error = self._classify(run, stage, kind, e)
            run.record(
                StageResult(stage, False, time.since(start_t), error.kind, error)
            )
            if error.kind is ErrorKind.IGNORABLE:
                return error
            self._lg.error(
                f"{stage.value} failed",
                extra={"after": time.since(start_t), "exception": e},
            )
            raise error from e
        except BaseException as e:
            run.record(
                StageResult(stage, False, time.since(start_t), ErrorKind.FATAL, e)
            )
            raise

        run.record(StageResult(stage, True, time.since(start_t)))
        self._lg.debug(f"{stage.value} complete", extra={"after": time.since(start_t)})
        return None

    def _classify(
        self, run: TestRun, stage: Stage, kind: ErrorKind, e: Exception
    ) -> StageError:
        if isinstance(e, AssertionError) and kind is ErrorKind.FATAL:
            kind = ErrorKind.EXPECTED_FAILURE

        failure_type = _FAILURE_TYPES[stage]
        message = f"{_FAILURE_MESSAGES[stage]}: {e}"
        if failure_type is ValidationFailure:
            return ValidationFailure(
                stage,
                kind,
                message,
                cause=e,
                stdout=run.captured(run.stdout),
                stderr=run.captured(run.stderr),
            )
        return failure_type(stage, kind, message, cause=e)

    def _destroy(
        self, run: TestRun, primary: BaseException | None
    ) -> StageError | None:
        """
        Destroy the stack; never raises.

        Returns the TeardownFailure to raise after cleanup, or None when
        destroy succeeded, was ignorable, or an earlier failure is already
        propagating.
        """
        kind = (
            ErrorKind.IGNORABLE
            if self._policy is TeardownPolicy.BEST_EFFORT
            else ErrorKind.FATAL
        )
        try:
            error = self._execute(run, Stage.DESTROY, run.session.destroy, kind)
        except StageError as e:
            if primary is None:
                return e
            self._lg.warning(
                "destroy failed after an earlier failure",
                extra={"exception": e.cause or e},
            )
            if isinstance(primary, StageError):
                primary.context["destroy_error"] = str(e.cause or e)
            return None

        if error is not None:
            self._lg.warning(
                "ignoring destroy error", extra={"exception": error.cause or error}
            )
        return None

    def _cleanup(self, run: TestRun) -> None:
        """Release local resources; failures are logged only."""
        error = self._execute(
            run, Stage.CLEANUP, run.session.cleanup, ErrorKind.IGNORABLE
        )
        if error is not None:
            self._lg.warning(
                "cleanup failed", extra={"exception": error.cause or error}
            )
