"""
Configuration loading for stacktest.

Settings come from an optional YAML file, overridden by environment
variables, and are validated with pydantic models.

Environment Variable Override Format:
    STACKTEST_<SECTION>_<KEY>=value

Examples:
    STACKTEST_LOGGING_LEVEL=debug
    STACKTEST_POLL_TIMEOUT=2m
    STACKTEST_TEARDOWN_POLICY=best_effort

YAML values may reference other values with ``${section.key}``:

    poll:
      interval: 3s
      timeout: 60s
    readiness:
      interval: ${poll.interval}
      timeout: 10m
"""

from __future__ import annotations

import os
import re
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .exceptions import ConfigError
from .lifecycle.controller import TeardownPolicy
from .log.constants import LogConstants
from .poll import RetryPolicy
from .time import delta_to_secs

ENV_PREFIX = "STACKTEST_"

# Names the config file itself; not an override
CONFIG_FILE_VAR = "CONFIG"

# Config files are small; anything larger is a mistake
MAX_CONFIG_SIZE_BYTES = 1024 * 1024

_VAR_PATTERN = re.compile(r"\$\{([a-zA-Z0-9_.]+)\}")


class LoggingConfig(BaseModel):
    """Logging section."""

    level: str = Field(default="info", description="Root log level")
    colors: bool = Field(default=False, description="ANSI colored console output")

    model_config = ConfigDict(extra="forbid")

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: Any) -> str:
        v = str(v).lower()
        if v not in LogConstants.LEVEL_NAMES:
            raise ValueError(
                f"Invalid log level '{v}'. Must be one of: "
                f"{', '.join(LogConstants.LEVEL_NAMES)}"
            )
        return v


class PollConfig(BaseModel):
    """Interval and timeout of a retry policy; durations may be strings."""

    interval: float = Field(default=3.0, gt=0)
    timeout: float = Field(default=60.0, gt=0)

    model_config = ConfigDict(extra="forbid")

    @field_validator("interval", "timeout", mode="before")
    @classmethod
    def parse_duration(cls, v: Any) -> float:
        return delta_to_secs(v)

    def policy(self) -> RetryPolicy:
        return RetryPolicy.from_config(self)


class TeardownConfig(BaseModel):
    """Destroy failure policy."""

    policy: TeardownPolicy = TeardownPolicy.STRICT

    model_config = ConfigDict(extra="forbid")


class StackTestConfig(BaseModel):
    """Top-level configuration."""

    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    poll: PollConfig = Field(default_factory=PollConfig)
    readiness: PollConfig = Field(
        default_factory=lambda: PollConfig(interval=3.0, timeout=600.0)
    )
    teardown: TeardownConfig = Field(default_factory=TeardownConfig)
    binary: str = Field(default="pulumi", description="Provisioning CLI binary")

    model_config = ConfigDict(extra="forbid")


def load_config(
    path: str | Path | None = None,
    env: Mapping[str, str] | None = None,
    env_prefix: str = ENV_PREFIX,
) -> StackTestConfig:
    """
    Load configuration from ``path`` (optional) and environment overrides.

    Raises:
        ConfigError: If the file cannot be read or the result is invalid
    """
    env = os.environ if env is None else env
    data = _read_yaml(Path(path)) if path is not None else {}
    data = _apply_env_overrides(data, env, env_prefix)
    data = _resolve(data, data)
    try:
        return StackTestConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"invalid configuration: {e}", path=path) from e


def _read_yaml(path: Path) -> dict[str, Any]:
    if not path.is_file():
        raise ConfigError("config file not found", path=str(path))
    size = path.stat().st_size
    if size > MAX_CONFIG_SIZE_BYTES:
        raise ConfigError(
            "config file too large",
            path=str(path),
            size=size,
            limit=MAX_CONFIG_SIZE_BYTES,
        )
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid YAML: {e}", path=str(path)) from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError("config root must be a mapping", path=str(path))
    return data


def _apply_env_overrides(
    data: dict[str, Any], env: Mapping[str, str], prefix: str
) -> dict[str, Any]:
    """Apply ``<prefix>SECTION_KEY`` variables, e.g. STACKTEST_POLL_TIMEOUT=2m."""
    for key, value in env.items():
        if not key.startswith(prefix) or key == prefix + CONFIG_FILE_VAR:
            continue
        path = key[len(prefix) :].lower().split("_", 1)
        _set_nested_value(data, path, _convert_env_value(value))
    return data


def _set_nested_value(data: dict[str, Any], path: list[str], value: Any) -> None:
    current = data
    for part in path[:-1]:
        if not isinstance(current.get(part), dict):
            current[part] = {}
        current = current[part]
    current[path[-1]] = value


def _convert_env_value(value: str) -> bool | int | float | str | list | None:
    """Convert an environment string to the scalar or list it looks like."""
    if value.lower() in ("null", "none", ""):
        return None
    if value.lower() in ("true", "false"):
        return value.lower() == "true"
    if "," in value:
        return [_convert_env_value(v.strip()) for v in value.split(",")]
    try:
        return float(value) if "." in value else int(value)
    except ValueError:
        return value


def _lookup(data: Mapping[str, Any], dotted: str) -> Any:
    current: Any = data
    for part in dotted.split("."):
        if not isinstance(current, Mapping) or part not in current:
            raise ConfigError("undefined config variable", name=dotted)
        current = current[part]
    return current


def _resolve(content: Any, root: Mapping[str, Any]) -> Any:
    """Recursively substitute ``${dotted.key}`` references."""
    if isinstance(content, dict):
        return {k: _resolve(v, root) for k, v in content.items()}
    if isinstance(content, list):
        return [_resolve(v, root) for v in content]
    if isinstance(content, str):
        return _VAR_PATTERN.sub(lambda m: str(_lookup(root, m.group(1))), content)
    return content
