"""
Pytest integration for provisioning tests.

Loaded automatically as a pytest plugin once stacktest is installed. Provides
fixtures for the per-run prefix, the target region, base options and the
configured retry policies (``poll_policy``, ``readiness_policy``), plus the
two entry points tests call:

    def test_custom_resource(base_options):
        opts = base_options.with_(
            ProgramTestOptions(
                dir=HERE / "custom-resource", extra_runtime_validation=check
            )
        )
        program_test(opts)

    def test_eks(base_options):
        # teardown of EKS clusters races on dependency violations
        program_test_ignore_destroy_errors(base_options.with_(...))
"""

from __future__ import annotations

import os
from typing import Any

import pytest

from .command import run_program_test
from .config import CONFIG_FILE_VAR, ENV_PREFIX, StackTestConfig, load_config
from .exceptions import ConfigError, StageError
from .lifecycle import ErrorKind, TeardownPolicy, TestRun
from .log import Logger, create_root_lg
from .options import ProgramTestOptions
from .options import base_options as make_base_options
from .options import get_env_region, get_prefix
from .poll import RetryPolicy


def _report(error: StageError) -> None:
    """Turn a fatal stage error into a pytest failure naming the stage."""
    if error.kind is ErrorKind.EXPECTED_FAILURE and error.cause is not None:
        destroy_error = error.context.get("destroy_error")
        if destroy_error is not None:
            error.cause.add_note(f"destroy also failed: {destroy_error}")
        raise error.cause
    pytest.fail(f"[{error.stage.value}] {error}", pytrace=False)


def program_test(opts: ProgramTestOptions, **kwargs: Any) -> TestRun:
    """Run a program test; any stage failure, destroy included, fails the test."""
    try:
        return run_program_test(opts, **kwargs)
    except StageError as e:
        _report(e)


def program_test_ignore_destroy_errors(
    opts: ProgramTestOptions, **kwargs: Any
) -> TestRun:
    """
    Run a program test whose destroy failures are logged but not reported.

    For programs whose teardown is known to be flaky for reasons outside the
    test (dependency-violation races while deleting). Prepare, initialize and
    update failures still fail the test.
    """
    if opts.destroy_on_cleanup:
        pytest.fail("destroy_on_cleanup is not supported", pytrace=False)
    if opts.run_update_test:
        pytest.fail("run_update_test is not supported", pytrace=False)
    kwargs["policy"] = TeardownPolicy.BEST_EFFORT
    return program_test(opts, **kwargs)


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture(scope="session")
def stacktest_config() -> StackTestConfig:
    """Configuration from STACKTEST_CONFIG (if set) and STACKTEST_* variables."""
    try:
        return load_config(os.environ.get(ENV_PREFIX + CONFIG_FILE_VAR))
    except ConfigError as e:
        pytest.fail(str(e), pytrace=False)


@pytest.fixture(scope="session")
def stacktest_logger(stacktest_config: StackTestConfig) -> Logger:
    """Root logger configured from the logging section."""
    return create_root_lg(
        stacktest_config.logging.level, colors=stacktest_config.logging.colors
    )


@pytest.fixture
def run_prefix(stacktest_logger: Logger) -> str:
    """Name prefix for this test's cloud resources."""
    prefix = get_prefix()
    stacktest_logger.info("using prefix", extra={"prefix": prefix})
    return prefix


@pytest.fixture
def env_region() -> str:
    """Target region; skips the test when AWS_REGION is not set."""
    try:
        return get_env_region()
    except ConfigError:
        pytest.skip("Skipping test due to missing AWS_REGION environment variable")


@pytest.fixture
def base_options(
    env_region: str, run_prefix: str, stacktest_config: StackTestConfig
) -> ProgramTestOptions:
    """Base options for a provisioning test in the configured region."""
    opts = make_base_options(env={"AWS_REGION": env_region}, prefix=run_prefix)
    opts.binary = stacktest_config.binary
    opts.teardown = stacktest_config.teardown.policy
    return opts


@pytest.fixture(scope="session")
def poll_policy(stacktest_config: StackTestConfig) -> RetryPolicy:
    """Retry policy for eventually consistent checks (the poll section)."""
    return stacktest_config.poll.policy()


@pytest.fixture(scope="session")
def readiness_policy(stacktest_config: StackTestConfig) -> RetryPolicy:
    """Retry policy for slow resources coming up (the readiness section)."""
    return stacktest_config.readiness.policy()
