"""
Duration formatting and parsing.

Durations in stacktest are plain float seconds. Configuration and the command
line also accept compact strings such as ``"3s"``, ``"1m30s"`` or ``"250ms"``.
"""

import math
import re

SECONDS_PER_MINUTE = 60
SECONDS_PER_HOUR = 3600
SECONDS_PER_DAY = 86400

_UNITS = {
    "d": SECONDS_PER_DAY,
    "h": SECONDS_PER_HOUR,
    "m": SECONDS_PER_MINUTE,
    "s": 1.0,
    "ms": 1e-3,
}

# Longer units first so "ms" is not read as "m" + "s"
_PATTERN = re.compile(r"(\d+(?:\.\d+)?)(ms|d|h|m|s)")


class InvalidDurationError(ValueError):
    """Raised when a duration is negative, non-finite or cannot be parsed."""

    pass


def delta_str(secs: float | None) -> str:
    """
    Format a duration in seconds as a compact human-readable string.

    Examples:
        >>> delta_str(3661.5)
        '1h1m1s'
        >>> delta_str(12.0)
        '12s'
        >>> delta_str(1.5)
        '1.500s'
        >>> delta_str(0.25)
        '250ms'
    """
    if secs is None:
        return ""
    if math.isnan(secs) or math.isinf(secs) or secs < 0:
        raise InvalidDurationError(f"Invalid duration: {secs}")

    if secs < 1:
        ms = secs * 1000
        if ms == 0:
            return "0s"
        return f"{ms:.3f}ms" if ms < 10 else f"{int(ms)}ms"

    if secs < 60:
        if secs < 10 and secs != int(secs):
            return f"{secs:.3f}s"
        return f"{int(secs)}s"

    isecs = int(secs)
    days, isecs = divmod(isecs, SECONDS_PER_DAY)
    hours, isecs = divmod(isecs, SECONDS_PER_HOUR)
    minutes, isecs = divmod(isecs, SECONDS_PER_MINUTE)

    out = ""
    if days:
        out += f"{days}d"
    if days or hours:
        out += f"{hours}h"
    return out + f"{minutes}m{isecs}s"


def delta_to_secs(duration: str | int | float) -> float:
    """
    Parse a duration into seconds.

    Numbers pass through unchanged; strings are parsed as a sequence of
    ``<number><unit>`` components with units d, h, m, s and ms.

    Examples:
        >>> delta_to_secs("1m30s")
        90.0
        >>> delta_to_secs("250ms")
        0.25
        >>> delta_to_secs(3)
        3.0

    Raises:
        InvalidDurationError: If the value cannot be parsed or is negative
    """
    if isinstance(duration, bool):
        raise InvalidDurationError(f"Invalid duration: {duration!r}")
    if isinstance(duration, (int, float)):
        if duration < 0 or math.isnan(duration) or math.isinf(duration):
            raise InvalidDurationError(f"Invalid duration: {duration}")
        return float(duration)

    text = duration.strip().replace(" ", "")
    if not text:
        raise InvalidDurationError("Duration string cannot be empty")

    try:
        return delta_to_secs(float(text))
    except ValueError:
        pass

    matches = _PATTERN.findall(text)
    if not matches or "".join(v + u for v, u in matches) != text:
        raise InvalidDurationError(f"Could not parse duration string: '{duration}'")

    seen: set[str] = set()
    total = 0.0
    for value, unit in matches:
        if unit in seen:
            raise InvalidDurationError(f"Duplicate unit '{unit}' in duration string")
        seen.add(unit)
        total += float(value) * _UNITS[unit]
    return total


__all__ = [
    "delta_str",
    "delta_to_secs",
    "InvalidDurationError",
]
