"""
Factory for creating root loggers and derived topic loggers.
"""

import logging
import sys
from typing import IO, Any

from .formatters import LogFormatter
from .logger import Logger


class LoggerFactory:
    """Factory for creating and configuring loggers."""

    @staticmethod
    def create_root(
        level: int | bool = logging.INFO,
        colors: bool = False,
        stream: IO[str] | None = None,
        extra: dict[str, Any] | None = None,
    ) -> Logger:
        """
        Create the root ``/`` logger with a console handler.

        Example:
            >>> lg = LoggerFactory.create_root(logging.DEBUG)
            >>> lg.info("run started", extra={"prefix": "a1b2c"})
            [12:34:56,789] [I] run started     [prefix:a1b2c] [1234] [/]
        """
        return LoggerFactory.create("/", level, colors, stream, extra)

    @staticmethod
    def create(
        name: str,
        level: int | bool = logging.INFO,
        colors: bool = False,
        stream: IO[str] | None = None,
        extra: dict[str, Any] | None = None,
    ) -> Logger:
        """Create a standalone logger with its own handler, replacing any prior one."""
        lg = Logger(name, level, extra)
        handler = logging.StreamHandler(stream if stream is not None else sys.stdout)
        handler.setFormatter(LogFormatter(colors=colors))
        lg.addHandler(handler)
        lg.propagate = False
        lg.parent = logging.root
        logging.root.manager.loggerDict[name] = lg
        return lg

    @staticmethod
    def derive(parent: Logger, tags: str | list[str]) -> Logger:
        """
        Derive a "view" logger that delegates to the root's handlers.

        Examples:
            >>> LoggerFactory.derive(root, ["stacktest", "poll"]).name
            '/stacktest/poll'
        """
        if isinstance(tags, str):
            tags = [tags]

        prefix = parent.name if parent.name == "/" else parent.name + "/"
        name = prefix + "/".join(tags)

        root = parent._root_logger if parent._root_logger else parent
        existing = logging.root.manager.loggerDict.get(name)
        if isinstance(existing, Logger) and existing._root_logger is root:
            return existing

        lg = Logger(name, logging.NOTSET, parent.extra)
        lg._root_logger = root
        lg.parent = parent
        lg.propagate = False
        logging.root.manager.loggerDict[name] = lg
        return lg
