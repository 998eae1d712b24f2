"""
Structured logging for stacktest.

Loggers are named by topic (``/stacktest/lifecycle``, ``/stacktest/poll``)
and render structured ``extra`` fields after the message. A TRACE level
(5) sits below DEBUG for per-attempt polling output.
"""

import logging

from .constants import LogConstants
from .exceptions import InvalidLogLevelError, LogError
from .factory import LoggerFactory
from .formatters import LogFormatter
from .logger import Logger

logging.TRACE = LogConstants.CUSTOM_LEVELS["TRACE"]  # type: ignore[attr-defined]
logging.addLevelName(logging.TRACE, "TRACE")  # type: ignore[attr-defined]


def resolve_level(s: str | int | bool) -> int | bool:
    """
    Resolve log level from string, numeric value, or boolean.

    Raises:
        InvalidLogLevelError: If the log level is invalid
    """
    if isinstance(s, bool):
        return s if s is False else logging.INFO
    if isinstance(s, int):
        return s
    if s.isnumeric():
        return int(s)
    if s.lower() in LogConstants.LEVEL_NAMES:
        return LogConstants.LEVEL_NAMES[s.lower()]
    raise InvalidLogLevelError(s)


def create_root_lg(level: str | int | bool = "info", colors: bool = False) -> Logger:
    """Create the root logger from a level name."""
    return LoggerFactory.create_root(resolve_level(level), colors=colors)


def derive_lg(lg: Logger, tags: str | list[str]) -> Logger:
    """Derive a topic logger from a parent logger."""
    return LoggerFactory.derive(lg, tags)


def default_lg(tags: str | list[str]) -> Logger:
    """
    Return a topic logger under the shared ``/`` root, creating the root on demand.

    Components that are not handed a logger explicitly use this.
    """
    root = logging.root.manager.loggerDict.get("/")
    if not isinstance(root, Logger):
        root = LoggerFactory.create_root()
    return LoggerFactory.derive(root, tags)


__all__ = [
    "Logger",
    "LoggerFactory",
    "LogFormatter",
    "LogConstants",
    "LogError",
    "InvalidLogLevelError",
    "resolve_level",
    "create_root_lg",
    "derive_lg",
    "default_lg",
]
