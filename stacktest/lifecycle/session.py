"""
Interface between the lifecycle controller and a provisioning-test session.
"""

from collections.abc import Callable
from typing import Any, Protocol, runtime_checkable

# Invoked after a successful update with the stack's named outputs
RuntimeValidation = Callable[[dict[str, Any]], None]


@runtime_checkable
class ProgramSession(Protocol):
    """
    A provisioning-test session driven through its lifecycle.

    Each method signals failure by raising. The controller never inspects
    what a session provisions; it only sequences these calls and classifies
    their failures. ``finished`` is a diagnostic flag the controller sets once
    the productive stages completed.
    """

    finished: bool

    def prepare(self) -> None: ...

    def initialize(self) -> None: ...

    def preview_update_and_edits(self) -> None: ...

    def destroy(self) -> None: ...

    def cleanup(self) -> None: ...
