"""
Logger class with structured extra fields and a TRACE level.
"""

import logging
from typing import Any

from .constants import LogConstants


class Logger(logging.Logger):
    """
    Logger that carries pre-populated extra fields and a TRACE level.

    Structured fields passed via ``extra`` are merged with the logger's own
    fields and attached to the record as ``__stacktest__extra`` so the
    formatter can render them as ``[key:value]`` blocks. Derived loggers
    (see LoggerFactory.derive) have no handlers of their own and hand their
    records to the root logger's handlers.
    """

    def __init__(
        self,
        name: str,
        level: int | bool = logging.INFO,
        extra: dict[str, Any] | None = None,
    ) -> None:
        if level is False:
            super().__init__(name, logging.CRITICAL + 1)
            self._logging_disabled = True
        else:
            super().__init__(name, level)
            self._logging_disabled = False
        self._extra = dict(extra or {})
        self._root_logger: Logger | None = None

    @property
    def extra(self) -> dict[str, Any]:
        """Pre-populated fields included in every record."""
        return self._extra

    def makeRecord(  # type: ignore[override]
        self,
        name: str,
        level: int,
        fn: str,
        lno: int,
        msg: object,
        args: Any,
        exc_info: Any,
        func: str | None = None,
        extra: dict[str, Any] | None = None,
        sinfo: str | None = None,
    ) -> logging.LogRecord:
        merged = {**self._extra, **(extra or {})}
        record = super().makeRecord(
            name, level, fn, lno, msg, args, exc_info, func, None, sinfo
        )
        setattr(record, "__stacktest__extra", merged)
        return record

    def isEnabledFor(self, level: int) -> bool:
        if self._logging_disabled:
            return False
        return super().isEnabledFor(level)

    def trace(self, msg: str, *args: Any, **kwargs: Any) -> None:
        """Log a TRACE level message (below DEBUG)."""
        trace_level = LogConstants.CUSTOM_LEVELS["TRACE"]
        if self.isEnabledFor(trace_level):
            self._log(trace_level, msg, args, **kwargs)

    def callHandlers(self, record: logging.LogRecord) -> None:
        if self._root_logger is not None:
            for handler in self._root_logger.handlers:
                if record.levelno >= handler.level:
                    handler.handle(record)
        else:
            super().callHandlers(record)
