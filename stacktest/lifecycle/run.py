"""
State of one provisioning-test execution.
"""

from dataclasses import dataclass, field
from io import StringIO
from pathlib import Path
from typing import IO

from .session import ProgramSession
from .stage import ErrorKind, Stage, StageResult


@dataclass
class TestRun:
    """
    One execution of a provisioning test.

    Owned by a single LifecycleController call; never shared between tests.
    ``stdout``/``stderr`` are the sinks the session writes command output to.
    """

    __test__ = False  # not a pytest test class

    session: ProgramSession
    prefix: str = ""
    work_dir: Path | None = None
    finished: bool = False
    stdout: IO[str] = field(default_factory=StringIO)
    stderr: IO[str] = field(default_factory=StringIO)
    results: list[StageResult] = field(default_factory=list)

    def record(self, result: StageResult) -> None:
        if any(r.stage is result.stage for r in self.results):
            raise RuntimeError(f"stage {result.stage.value} already executed")
        self.results.append(result)

    def result_for(self, stage: Stage) -> StageResult | None:
        for result in self.results:
            if result.stage is stage:
                return result
        return None

    @property
    def stages(self) -> list[Stage]:
        """Stages executed so far, in execution order."""
        return [r.stage for r in self.results]

    def passed(self) -> bool:
        """True if no stage failed in a way that decides the outcome."""
        return all(r.ok or r.kind is ErrorKind.IGNORABLE for r in self.results)

    def outcome(self) -> str:
        """``"passed"`` or ``"failed"``, ignoring ignorable teardown failures."""
        return "passed" if self.passed() else "failed"

    def captured(self, stream: IO[str]) -> str:
        if isinstance(stream, StringIO):
            return stream.getvalue()
        return ""
