"""
Provisioning session backed by the provisioning engine's command line.

CommandSession implements ProgramSession by shelling out to the engine's CLI
(``pulumi`` by default). It does not interpret what the program provisions:
it copies the program into a private working directory, creates a stack
named after the run prefix, deploys, hands the stack outputs to the caller's
validation callback, and tears everything down again.
"""

from __future__ import annotations

import json
import os
import shutil
import subprocess
import tempfile
from collections.abc import Callable, Sequence
from io import StringIO
from pathlib import Path
from typing import IO, Any

from .exceptions import StackTestError
from .lifecycle import LifecycleController, TeardownPolicy, TestRun
from .log import Logger, default_lg, derive_lg
from .options import EditDir, ProgramTestOptions

Runner = Callable[..., subprocess.CompletedProcess]


class CommandError(StackTestError):
    """A CLI command exited with a non-zero status."""

    def __init__(self, args: Sequence[str], returncode: int, stderr: str) -> None:
        tail = stderr.strip().splitlines()[-1] if stderr.strip() else ""
        super().__init__(
            f"command failed: {' '.join(args)}", returncode=returncode, stderr=tail
        )
        self.args_list = list(args)
        self.returncode = returncode
        self.stderr = stderr


class CommandSession:
    """
    ProgramSession running the provisioning CLI through subprocesses.

    Args:
        opts: Test options; ``dir`` is required
        lg: Logger for command output
        stdout: Sink receiving every command's standard output
        stderr: Sink receiving every command's standard error
        runner: subprocess.run-compatible callable
    """

    def __init__(
        self,
        opts: ProgramTestOptions,
        lg: Any = None,
        stdout: IO[str] | None = None,
        stderr: IO[str] | None = None,
        runner: Runner = subprocess.run,
    ) -> None:
        if opts.dir is None:
            raise StackTestError("program dir is required")
        if lg is None:
            lg = default_lg(["stacktest", "command"])
        self._opts = opts
        self._lg = lg
        self._stdout = stdout if stdout is not None else opts.stdout
        self._stderr = stderr if stderr is not None else opts.stderr
        self._runner = runner
        self._stack = opts.resolved_stack_name()
        self.work_dir: Path | None = None
        self.stack_created = False
        self.finished = False

    @property
    def stack(self) -> str:
        return self._stack

    @property
    def program_dir(self) -> Path:
        if self.work_dir is None:
            raise StackTestError("session not prepared")
        return self.work_dir / "program"

    # Lifecycle

    def prepare(self) -> None:
        """Copy the program into a fresh temporary working directory."""
        assert self._opts.dir is not None
        source = Path(self._opts.dir)
        if not source.is_dir():
            raise StackTestError("program dir does not exist", dir=str(source))
        self.work_dir = Path(tempfile.mkdtemp(prefix=f"stacktest-{self._stack}-"))
        shutil.copytree(source, self.program_dir)
        self._lg.debug(
            "copied program",
            extra={"src": str(source), "dst": str(self.program_dir)},
        )

    def initialize(self) -> None:
        """
        Create the stack and apply the run's config.

        The controller does not destroy a stack whose initialize failed, so a
        stack created before a failing ``config set`` is removed here.
        """
        self._run(["stack", "init", self._stack, "--non-interactive"])
        self.stack_created = True
        try:
            for key, value in sorted(self._opts.config.items()):
                self._run(["config", "set", key, value, "--stack", self._stack])
        except Exception:
            self._remove_stack()
            raise

    def _remove_stack(self) -> None:
        self._lg.warning(
            "initialize failed, removing stack", extra={"stack": self._stack}
        )
        try:
            self._run(["stack", "rm", "--yes", self._stack])
        except CommandError as e:
            self._lg.warning(
                "failed to remove stack", extra={"stack": self._stack, "exception": e}
            )
            return
        self.stack_created = False

    def preview_update_and_edits(self) -> None:
        """Preview, deploy and validate the program, then each edit step."""
        if not self._opts.skip_preview:
            self._run(["preview", "--non-interactive", "--stack", self._stack])

        if not self._update(self._opts.expect_failure):
            return
        if not self._opts.skip_refresh:
            self._refresh()
        self._validate(self._opts.extra_runtime_validation)

        for edit in self._opts.edit_dirs:
            self._apply_edit(edit)
            if not self._update(edit.expect_failure):
                continue
            self._validate(edit.extra_runtime_validation)

    def destroy(self) -> None:
        """Destroy the stack's resources and remove the stack."""
        self._run(["destroy", "--yes", "--skip-preview", "--stack", self._stack])
        self._run(["stack", "rm", "--yes", self._stack])
        self.stack_created = False

    def cleanup(self) -> None:
        """Remove the working directory."""
        if self.work_dir is None:
            return
        shutil.rmtree(self.work_dir)
        self._lg.trace("removed work dir", extra={"dir": str(self.work_dir)})
        self.work_dir = None

    # Steps

    def _update(self, expect_failure: bool) -> bool:
        """
        Deploy the working copy.

        Returns True when the update succeeded and validation should follow;
        False when it failed as expected. With ``retry_failed_steps`` a failed
        update is run once more before it counts as a failure.
        """
        args = ["up", "--yes", "--skip-preview", "--non-interactive"]
        args += ["--stack", self._stack]
        if not expect_failure:
            if not self._opts.retry_failed_steps:
                self._run(args)
                return True
            result = self._run(args, check=False)
            if result.returncode != 0:
                self._lg.warning(
                    "update failed, retrying",
                    extra={"stack": self._stack, "returncode": result.returncode},
                )
                self._run(args)
            return True

        result = self._run(args, check=False)
        if result.returncode == 0:
            raise AssertionError("expected update to fail, but it succeeded")
        self._lg.debug("update failed as expected", extra={"stack": self._stack})
        return False

    def _refresh(self) -> None:
        args = ["refresh", "--yes", "--skip-preview", "--stack", self._stack]
        if not self._opts.expect_refresh_changes:
            args.append("--expect-no-changes")
        self._run(args)

    def _apply_edit(self, edit: EditDir) -> None:
        if not edit.additive:
            shutil.rmtree(self.program_dir)
        shutil.copytree(edit.dir, self.program_dir, dirs_exist_ok=True)
        self._lg.debug(
            "applied edit", extra={"dir": str(edit.dir), "additive": edit.additive}
        )

    def _validate(self, validation: Callable[[dict[str, Any]], None] | None) -> None:
        if validation is None:
            return
        validation(self.outputs())

    def outputs(self) -> dict[str, Any]:
        """Current stack outputs, decoded from the CLI's JSON."""
        result = self._run(
            ["stack", "output", "--json", "--show-secrets", "--stack", self._stack],
            echo=False,
        )
        try:
            return json.loads(result.stdout or "{}")
        except json.JSONDecodeError as e:
            raise StackTestError("stack outputs are not valid JSON") from e

    def _run(
        self, args: list[str], check: bool = True, echo: bool = True
    ) -> subprocess.CompletedProcess:
        cmd = [self._opts.binary, *args]
        cwd = self.program_dir if self.work_dir is not None else None
        env = {**os.environ, **self._opts.env}

        self._lg.trace("running command", extra={"cmd": " ".join(cmd)})
        result = self._runner(cmd, cwd=cwd, env=env, capture_output=True, text=True)

        if echo and self._stdout is not None and result.stdout:
            self._stdout.write(result.stdout)
        if self._stderr is not None and result.stderr:
            self._stderr.write(result.stderr)

        if check and result.returncode != 0:
            raise CommandError(cmd, result.returncode, result.stderr or "")
        return result


SessionFactory = Callable[[ProgramTestOptions, Any, IO[str], IO[str]], Any]


def _command_session(
    opts: ProgramTestOptions, lg: Any, stdout: IO[str], stderr: IO[str]
) -> CommandSession:
    return CommandSession(opts, lg=lg, stdout=stdout, stderr=stderr)


def run_program_test(
    opts: ProgramTestOptions,
    policy: TeardownPolicy | None = None,
    lg: Logger | None = None,
    session_factory: SessionFactory = _command_session,
) -> TestRun:
    """
    Run a program test through the lifecycle controller.

    Returns the completed TestRun; StageErrors propagate unchanged.
    """
    if lg is None:
        lg = default_lg("stacktest")

    stdout = opts.stdout if opts.stdout is not None else StringIO()
    stderr = opts.stderr if opts.stderr is not None else StringIO()
    session = session_factory(opts, derive_lg(lg, "command"), stdout, stderr)
    run = TestRun(session=session, prefix=opts.prefix, stdout=stdout, stderr=stderr)

    controller = LifecycleController(
        derive_lg(lg, "lifecycle"), policy if policy is not None else opts.teardown
    )
    return controller.run(run)
