"""
Tests for the lifecycle controller.

Tests the stage sequencing and teardown guarantees including:
- Stage ordering on the happy path
- Guaranteed destroy/cleanup once initialize succeeded
- Strict versus best-effort destroy failures
- Unexpected faults (KeyboardInterrupt) still tearing down
- The finished flag
"""

from pathlib import Path

import pytest

from stacktest.exceptions import (
    SetupFailure,
    StageError,
    TeardownFailure,
    ValidationFailure,
)
from stacktest.lifecycle import (
    ErrorKind,
    LifecycleController,
    ProgramSession,
    Stage,
    StageResult,
    TeardownPolicy,
    TestRun,
)

ALL_CALLS = [
    "prepare",
    "initialize",
    "preview_update_and_edits",
    "destroy",
    "cleanup",
]

# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def strict(lg):
    return LifecycleController(lg, TeardownPolicy.STRICT)


@pytest.fixture
def best_effort(lg):
    return LifecycleController(lg, TeardownPolicy.BEST_EFFORT)


# =============================================================================
# Happy path
# =============================================================================


@pytest.mark.unit
class TestHappyPath:
    """Test a run where every stage succeeds."""

    def test_stage_order(self, strict, make_session):
        session = make_session()
        run = strict.run(TestRun(session=session, prefix="a1b2c"))
        assert session.journal == ALL_CALLS
        assert run.stages == list(Stage)
        assert all(r.ok for r in run.results)
        assert run.passed()
        assert run.outcome() == "passed"

    def test_finished_flag(self, strict, make_session):
        session = make_session()
        run = strict.run(TestRun(session=session))
        assert run.finished
        assert session.finished
        assert session.finished_during_destroy is True

    def test_work_dir_taken_from_session(self, strict, make_session):
        run = strict.run(TestRun(session=make_session()))
        assert run.work_dir == Path("/tmp/fake-work-dir")

    def test_fake_session_is_program_session(self, make_session):
        assert isinstance(make_session(), ProgramSession)

    def test_logs_stage_transitions(self, strict, make_session, log_stream):
        strict.run(TestRun(session=make_session(), prefix="a1b2c"))
        out = log_stream.getvalue()
        for stage in Stage:
            assert f"{stage.value} complete" in out
        assert "test finished" in out


# =============================================================================
# Setup failures
# =============================================================================


@pytest.mark.unit
class TestSetupFailures:
    """Test failures before the stack exists."""

    def test_prepare_failure_runs_nothing_else(self, strict, make_session):
        session = make_session(failures={"prepare": OSError("disk full")})
        run = TestRun(session=session)
        with pytest.raises(SetupFailure) as exc_info:
            strict.run(run)
        error = exc_info.value
        assert error.stage is Stage.PREPARE
        assert error.kind is ErrorKind.FATAL
        assert "copying test to temp dir: disk full" in str(error)
        assert session.journal == ["prepare"]
        assert run.stages == [Stage.PREPARE]

    def test_initialize_failure_cleans_up_without_destroy(self, strict, make_session):
        session = make_session(failures={"initialize": RuntimeError("no backend")})
        run = TestRun(session=session)
        with pytest.raises(SetupFailure) as exc_info:
            strict.run(run)
        assert exc_info.value.stage is Stage.INITIALIZE
        assert "initializing test project" in str(exc_info.value)
        assert session.journal == ["prepare", "initialize", "cleanup"]
        assert not run.finished

    def test_cause_is_chained(self, strict, make_session):
        cause = RuntimeError("no backend")
        session = make_session(failures={"initialize": cause})
        with pytest.raises(SetupFailure) as exc_info:
            strict.run(TestRun(session=session))
        assert exc_info.value.cause is cause
        assert exc_info.value.__cause__ is cause


# =============================================================================
# Update/validate failures
# =============================================================================


@pytest.mark.unit
class TestValidationFailures:
    """Test failures of the productive stage."""

    def test_teardown_still_runs(self, strict, make_session):
        session = make_session(
            failures={"preview_update_and_edits": RuntimeError("update failed")}
        )
        run = TestRun(session=session)
        with pytest.raises(ValidationFailure) as exc_info:
            strict.run(run)
        assert exc_info.value.stage is Stage.PREVIEW_UPDATE_VALIDATE
        assert exc_info.value.kind is ErrorKind.FATAL
        assert session.journal == ALL_CALLS
        assert not run.finished
        assert session.finished_during_destroy is False
        assert run.outcome() == "failed"

    def test_assertion_is_expected_failure(self, strict, make_session):
        cause = AssertionError("expected 1 row, got 0")
        session = make_session(failures={"preview_update_and_edits": cause})
        with pytest.raises(ValidationFailure) as exc_info:
            strict.run(TestRun(session=session))
        assert exc_info.value.kind is ErrorKind.EXPECTED_FAILURE
        assert exc_info.value.cause is cause

    def test_captured_output_attached(self, strict, make_session):
        run = None

        def update():
            run.stdout.write("Updating (a1b2c-website)\n")
            run.stderr.write("error: bucket exists\n")
            raise RuntimeError("update failed")

        session = make_session(on_update=update)
        run = TestRun(session=session)
        with pytest.raises(ValidationFailure) as exc_info:
            strict.run(run)
        assert exc_info.value.stdout == "Updating (a1b2c-website)\n"
        assert exc_info.value.stderr == "error: bucket exists\n"

    def test_best_effort_still_fails_on_update(self, best_effort, make_session):
        session = make_session(
            failures={
                "preview_update_and_edits": RuntimeError("update failed"),
                "destroy": RuntimeError("DependencyViolation"),
            }
        )
        with pytest.raises(ValidationFailure):
            best_effort.run(TestRun(session=session))
        assert session.journal == ALL_CALLS


# =============================================================================
# Teardown failures
# =============================================================================


@pytest.mark.unit
class TestTeardownFailures:
    """Test destroy and cleanup failure classification."""

    def test_strict_destroy_failure_fails_run(self, strict, make_session):
        session = make_session(failures={"destroy": RuntimeError("cloud said no")})
        run = TestRun(session=session)
        with pytest.raises(TeardownFailure) as exc_info:
            strict.run(run)
        error = exc_info.value
        assert error.stage is Stage.DESTROY
        assert error.kind is ErrorKind.FATAL
        assert "destroying test stack: cloud said no" in str(error)
        assert session.journal == ALL_CALLS
        assert run.result_for(Stage.CLEANUP).ok

    def test_best_effort_destroy_failure_passes(
        self, best_effort, make_session, log_stream
    ):
        session = make_session(failures={"destroy": RuntimeError("cloud said no")})
        run = best_effort.run(TestRun(session=session))
        assert run.passed()
        assert run.finished
        assert session.journal == ALL_CALLS
        destroy = run.result_for(Stage.DESTROY)
        assert not destroy.ok
        assert destroy.kind is ErrorKind.IGNORABLE
        out = log_stream.getvalue()
        assert "ignoring destroy error" in out
        assert "cloud said no" in out

    def test_strict_destroy_does_not_mask_update_failure(
        self, strict, make_session, log_stream
    ):
        session = make_session(
            failures={
                "preview_update_and_edits": RuntimeError("update failed"),
                "destroy": RuntimeError("cloud said no"),
            }
        )
        with pytest.raises(ValidationFailure) as exc_info:
            strict.run(TestRun(session=session))
        assert exc_info.value.context["destroy_error"] == "cloud said no"
        assert "destroy failed after an earlier failure" in log_stream.getvalue()
        assert session.journal == ALL_CALLS

    def test_cleanup_failure_is_logged_only(self, strict, make_session, log_stream):
        session = make_session(failures={"cleanup": OSError("busy")})
        run = strict.run(TestRun(session=session))
        assert run.passed()
        assert run.result_for(Stage.CLEANUP).kind is ErrorKind.IGNORABLE
        assert "cleanup failed" in log_stream.getvalue()

    def test_cleanup_failure_after_setup_failure(self, strict, make_session):
        session = make_session(
            failures={
                "initialize": RuntimeError("no backend"),
                "cleanup": OSError("busy"),
            }
        )
        with pytest.raises(SetupFailure):
            strict.run(TestRun(session=session))


# =============================================================================
# Unexpected faults
# =============================================================================


@pytest.mark.unit
class TestUnexpectedFaults:
    """Test BaseExceptions that are not ordinary errors."""

    def test_interrupt_during_update_tears_down(self, strict, make_session):
        session = make_session(
            failures={"preview_update_and_edits": KeyboardInterrupt()}
        )
        run = TestRun(session=session)
        with pytest.raises(KeyboardInterrupt):
            strict.run(run)
        assert session.journal == ALL_CALLS
        result = run.result_for(Stage.PREVIEW_UPDATE_VALIDATE)
        assert not result.ok
        assert isinstance(result.error, KeyboardInterrupt)

    def test_interrupt_during_destroy_still_cleans_up(self, strict, make_session):
        session = make_session(failures={"destroy": KeyboardInterrupt()})
        with pytest.raises(KeyboardInterrupt):
            strict.run(TestRun(session=session))
        assert session.journal == ALL_CALLS

    def test_interrupt_during_update_with_destroy_failure(self, strict, make_session):
        session = make_session(
            failures={
                "preview_update_and_edits": KeyboardInterrupt(),
                "destroy": RuntimeError("cloud said no"),
            }
        )
        with pytest.raises(KeyboardInterrupt):
            strict.run(TestRun(session=session))
        assert session.journal == ALL_CALLS


# =============================================================================
# TestRun bookkeeping
# =============================================================================


@pytest.mark.unit
class TestTestRun:
    """Test TestRun result recording."""

    def test_stage_recorded_once(self, make_session):
        run = TestRun(session=make_session())
        run.record(StageResult(Stage.PREPARE, True, 0.1))
        with pytest.raises(RuntimeError, match="already executed"):
            run.record(StageResult(Stage.PREPARE, True, 0.1))

    def test_result_for_missing_stage(self, make_session):
        assert TestRun(session=make_session()).result_for(Stage.DESTROY) is None

    def test_stage_order_property(self):
        assert [s.order for s in Stage] == [0, 1, 2, 3, 4]

    def test_stage_errors_are_stage_errors(self):
        assert issubclass(TeardownFailure, StageError)
