"""
Pytest configuration and shared fixtures.

This module provides central pytest configuration, custom markers,
and shared fixtures for the stacktest test suite.
"""

import logging
import shutil
import tempfile
from collections.abc import Callable, Generator
from io import StringIO
from pathlib import Path

import pytest

from stacktest.log import Logger, LoggerFactory

# =============================================================================
# Pytest Configuration
# =============================================================================


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "unit: Unit tests (fast, isolated, no external dependencies)"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests (may use filesystem or subprocesses)"
    )
    config.addinivalue_line("markers", "slow: Tests that take >1 second to run")


def pytest_collection_modifyitems(config, items):
    """Add the 'unit' marker to tests without other markers."""
    for item in items:
        if not any(
            mark.name in ["integration", "slow"] for mark in item.iter_markers()
        ):
            item.add_marker(pytest.mark.unit)


# =============================================================================
# Logging
# =============================================================================


@pytest.fixture(autouse=True)
def reset_logging_state() -> Generator[None, None, None]:
    """
    Reset Python logging global state after each test.

    Topic loggers live in the global loggerDict; without this, a derived
    logger from one test would keep writing to a previous test's stream.
    """
    original_handlers = logging.root.handlers[:]
    original_level = logging.root.level

    yield

    for name in list(logging.root.manager.loggerDict.keys()):
        if name.startswith("/") or name.startswith("test"):
            del logging.root.manager.loggerDict[name]

    logging.root.handlers = original_handlers
    logging.root.setLevel(original_level)


@pytest.fixture
def log_stream() -> StringIO:
    """Stream receiving everything the ``lg`` fixture logs."""
    return StringIO()


@pytest.fixture
def lg(log_stream: StringIO) -> Logger:
    """Root logger at TRACE level writing to ``log_stream``."""
    return LoggerFactory.create_root(
        logging.TRACE,  # type: ignore[attr-defined]
        stream=log_stream,
    )


# =============================================================================
# Time
# =============================================================================


class FakeClock:
    """
    Deterministic monotonic clock.

    ``sleep`` advances the clock instantly and records the requested delay,
    so timing assertions hold exactly without real waiting.
    """

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, secs: float) -> None:
        self.sleeps.append(secs)
        self.now += secs

    def advance(self, secs: float) -> None:
        self.now += secs


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


# =============================================================================
# Lifecycle
# =============================================================================


class FakeSession:
    """
    ProgramSession recording every call into a shared journal.

    ``failures`` maps a method name to the exception that method raises.
    """

    def __init__(
        self,
        journal: list[str] | None = None,
        failures: dict[str, BaseException] | None = None,
        on_update: Callable[[], None] | None = None,
    ) -> None:
        self.journal = journal if journal is not None else []
        self.failures = failures or {}
        self.on_update = on_update
        self.finished = False
        self.finished_during_destroy: bool | None = None
        self.work_dir: Path | None = None

    def _call(self, name: str) -> None:
        self.journal.append(name)
        if name in self.failures:
            raise self.failures[name]

    def prepare(self) -> None:
        self._call("prepare")
        self.work_dir = Path("/tmp/fake-work-dir")

    def initialize(self) -> None:
        self._call("initialize")

    def preview_update_and_edits(self) -> None:
        self._call("preview_update_and_edits")
        if self.on_update is not None:
            self.on_update()

    def destroy(self) -> None:
        self.finished_during_destroy = self.finished
        self._call("destroy")

    def cleanup(self) -> None:
        self._call("cleanup")


@pytest.fixture
def make_session() -> Callable[..., FakeSession]:
    """Factory for FakeSession instances."""
    return FakeSession


# =============================================================================
# Shared Fixtures
# =============================================================================


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """
    Provide a temporary directory that is cleaned up after the test.

    Yields:
        Path: Temporary directory path
    """
    temp_path = Path(tempfile.mkdtemp(prefix="stacktest-test-"))
    try:
        yield temp_path
    finally:
        shutil.rmtree(temp_path, ignore_errors=True)
