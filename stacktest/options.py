"""
Options describing one provisioning test.

Tests usually start from ``base_options()`` (region and a per-run name
prefix taken from the environment) and layer their own settings on top:

    opts = base_options().with_(
        ProgramTestOptions(
            dir=Path(__file__).parent / "custom-resource",
            extra_runtime_validation=check_website,
        )
    )
"""

from __future__ import annotations

import dataclasses
import os
import random
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import IO

from .exceptions import ConfigError
from .lifecycle.controller import TeardownPolicy
from .lifecycle.session import RuntimeValidation

PREFIX_LENGTH = 5


@dataclass
class EditDir:
    """
    A follow-up program applied on top of the deployed stack.

    With ``additive`` the edit's files are copied over the working copy;
    otherwise the working copy is replaced by them.
    """

    dir: Path
    additive: bool = False
    expect_failure: bool = False
    extra_runtime_validation: RuntimeValidation | None = None


@dataclass
class ProgramTestOptions:
    """Everything a CommandSession needs to run a test program."""

    dir: Path | None = None
    config: dict[str, str] = field(default_factory=dict)
    prefix: str = ""
    region: str = ""
    stack_name: str = ""
    edit_dirs: list[EditDir] = field(default_factory=list)
    expect_failure: bool = False
    skip_preview: bool = False
    skip_refresh: bool = False
    expect_refresh_changes: bool = False
    retry_failed_steps: bool = False
    extra_runtime_validation: RuntimeValidation | None = None
    stdout: IO[str] | None = None
    stderr: IO[str] | None = None
    binary: str = "pulumi"
    env: dict[str, str] = field(default_factory=dict)
    teardown: TeardownPolicy = TeardownPolicy.STRICT
    # Unsupported by the best-effort runner; see program_test_ignore_destroy_errors
    destroy_on_cleanup: bool = False
    run_update_test: bool = False

    def with_(self, other: ProgramTestOptions) -> ProgramTestOptions:
        """
        Return a copy of these options overridden by ``other``.

        Fields of ``other`` that differ from their defaults win. ``config``
        and ``env`` are merged key by key and ``edit_dirs`` are appended.
        """
        defaults = ProgramTestOptions()
        merged = dataclasses.replace(
            self,
            config=dict(self.config),
            env=dict(self.env),
            edit_dirs=list(self.edit_dirs),
        )
        for f in dataclasses.fields(self):
            value = getattr(other, f.name)
            if value == getattr(defaults, f.name):
                continue
            if f.name in ("config", "env"):
                getattr(merged, f.name).update(value)
            elif f.name == "edit_dirs":
                merged.edit_dirs.extend(value)
            else:
                setattr(merged, f.name, value)
        return merged

    def resolved_stack_name(self) -> str:
        """Stack name for this run, derived from prefix and program dir if unset."""
        if self.stack_name:
            return self.stack_name
        if self.dir is None:
            raise ConfigError("program dir is required to derive a stack name")
        return stack_name(self.prefix, self.dir)


def get_prefix(env: Mapping[str, str] | None = None) -> str:
    """
    Per-run name prefix that keeps concurrent runs from colliding.

    Uses the CI commit (``GITHUB_SHA``) when available, otherwise a random
    number, truncated to five characters. Cloud resource names have to start
    with a letter, so the result is prefixed with ``a``.
    """
    env = os.environ if env is None else env
    prefix = env.get("GITHUB_SHA", "")
    if not prefix:
        prefix = str(random.randrange(10000))
    return "a" + prefix[:PREFIX_LENGTH]


def get_env_region(env: Mapping[str, str] | None = None) -> str:
    """
    Target region from ``AWS_REGION``.

    Raises:
        ConfigError: If the variable is unset or empty
    """
    env = os.environ if env is None else env
    region = env.get("AWS_REGION", "")
    if not region:
        raise ConfigError("missing AWS_REGION environment variable")
    return region


def base_options(
    env: Mapping[str, str] | None = None, prefix: str | None = None
) -> ProgramTestOptions:
    """
    Options shared by every test: region config, run prefix, no refresh.

    Failed updates are retried once.
    """
    region = get_env_region(env)
    prefix = prefix or get_prefix(env)
    return ProgramTestOptions(
        config={
            "aws:region": region,
            "aws-native:region": region,
            "prefix": prefix,
        },
        prefix=prefix,
        region=region,
        skip_refresh=True,
        expect_refresh_changes=True,
        retry_failed_steps=True,
    )


def stack_name(prefix: str, program_dir: Path) -> str:
    """Stack identifier unique to this run: ``<prefix>-<program dir name>``."""
    base = re.sub(r"[^a-zA-Z0-9_.-]+", "-", Path(program_dir).name).strip("-")
    return f"{prefix}-{base}" if prefix else base
