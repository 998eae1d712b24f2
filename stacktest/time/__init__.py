"""
Timing utilities: monotonic stopwatch helpers, duration strings and the
ticker/deadline pair used by the poller.
"""

import time as _time

from .delta import InvalidDurationError, delta_str, delta_to_secs
from .ticker import Deadline, Ticker


def start() -> float:
    """Current monotonic time, for use with since()."""
    return _time.monotonic()


def since(start_t: float) -> float:
    """Seconds elapsed since ``start_t`` (from start())."""
    return _time.monotonic() - start_t


__all__ = [
    "start",
    "since",
    "delta_str",
    "delta_to_secs",
    "InvalidDurationError",
    "Deadline",
    "Ticker",
]
