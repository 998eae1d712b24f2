"""
Staged lifecycle for provisioning tests.

    controller = LifecycleController(lg, TeardownPolicy.STRICT)
    controller.run(TestRun(session=session, prefix=prefix))
"""

from .controller import LifecycleController, TeardownPolicy
from .run import TestRun
from .session import ProgramSession, RuntimeValidation
from .stage import ErrorKind, Stage, StageResult

__all__ = [
    "LifecycleController",
    "TeardownPolicy",
    "TestRun",
    "ProgramSession",
    "RuntimeValidation",
    "ErrorKind",
    "Stage",
    "StageResult",
]
