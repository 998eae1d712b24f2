"""
Formatter rendering stacktest log records.

Output layout:

    [12:34:56,789] [I] destroy complete     [after:1m2s] [stage:destroy]
        [1234] [/stacktest/lifecycle]

(shown wrapped; a record is a single line)
"""

import logging
from typing import Any

from .. import time as sttime
from .constants import LogConstants


def _format_value(name: str, value: Any) -> str:
    if name == "after" and isinstance(value, float):
        return sttime.delta_str(value)
    if name == "exception" and isinstance(value, BaseException):
        return f"{value.__class__.__name__}: {value}"
    if isinstance(value, list):
        return ",".join(str(v) for v in value)
    return str(value)


def format_fields(fields: dict[str, Any]) -> str:
    """Render extra fields as ``[key:value]`` blocks, ``after`` first."""
    parts = []
    if "after" in fields:
        parts.append(f"[{_format_value('after', fields['after'])}]")
    for key in sorted(fields):
        if key == "after":
            continue
        parts.append(f"[{key}:{_format_value(key, fields[key])}]")
    return " ".join(parts)


class LogFormatter(logging.Formatter):
    """Formatter that appends structured fields, pid and logger name."""

    def __init__(self, colors: bool = False) -> None:
        super().__init__(LogConstants.DEFAULT_FORMAT)
        self._colors = colors

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        width = len(line.split("\n", 1)[0])
        pad = " " * max(1, LogConstants.DEFAULT_RULE_WIDTH - width)

        fields = getattr(record, "__stacktest__extra", None) or {}
        rendered = format_fields(fields)
        tail = f"[{record.process}] [{record.name}]"
        head, sep, rest = line.partition("\n")
        head = head + pad + (rendered + " " if rendered else "") + tail
        line = head + sep + rest

        if self._colors:
            col = LogConstants.COLORS.get(record.levelno)
            if col:
                line = col + "m" + line + LogConstants.RESET
        return line
