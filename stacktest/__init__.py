"""
stacktest - integration testing harness for infrastructure programs.

Provisions a program through the provisioning engine's CLI, validates what it
built and tears it down again, with guaranteed teardown and a bounded poller
for eventually-consistent checks.
"""

from importlib.metadata import PackageNotFoundError, version

from .command import CommandError, CommandSession, SessionFactory, run_program_test
from .config import StackTestConfig, load_config
from .exceptions import (
    ConfigError,
    CorrectionExhaustedError,
    PollTimeoutError,
    SetupFailure,
    StackTestError,
    StageError,
    TeardownFailure,
    ValidationFailure,
)
from .lifecycle import (
    ErrorKind,
    LifecycleController,
    ProgramSession,
    Stage,
    StageResult,
    TeardownPolicy,
    TestRun,
)
from .options import (
    EditDir,
    ProgramTestOptions,
    base_options,
    get_env_region,
    get_prefix,
    stack_name,
)
from .poll import (
    CONSISTENCY,
    READINESS,
    Poller,
    PollResult,
    RetryPolicy,
    poll_until,
    poll_with_correction,
)
from .probes import assert_http_result_with_retry, http_probe, output_probe

# Version is read from package metadata (pyproject.toml)
try:
    __version__ = version("stacktest")
except PackageNotFoundError:
    # Package not installed, use fallback (development mode)
    __version__ = "0.3.0-dev"

# Explicit public API
__all__ = [
    # Version
    "__version__",
    # Lifecycle
    "LifecycleController",
    "ProgramSession",
    "TestRun",
    "Stage",
    "StageResult",
    "ErrorKind",
    "TeardownPolicy",
    "CommandSession",
    "CommandError",
    "SessionFactory",
    "run_program_test",
    # Options
    "EditDir",
    "ProgramTestOptions",
    "base_options",
    "get_prefix",
    "get_env_region",
    "stack_name",
    # Polling
    "RetryPolicy",
    "Poller",
    "PollResult",
    "CONSISTENCY",
    "READINESS",
    "poll_until",
    "poll_with_correction",
    "http_probe",
    "assert_http_result_with_retry",
    "output_probe",
    # Configuration
    "StackTestConfig",
    "load_config",
    # Exceptions
    "StackTestError",
    "ConfigError",
    "StageError",
    "SetupFailure",
    "ValidationFailure",
    "TeardownFailure",
    "PollTimeoutError",
    "CorrectionExhaustedError",
]
