"""
Constants for the stacktest logging layer.
"""

import logging


class LogConstants:
    """Constants for the logging system."""

    DEFAULT_FORMAT: str = "[%(asctime)s] [%(levelname).1s] %(message)s"

    # Column where structured fields start
    DEFAULT_RULE_WIDTH: int = 70

    CUSTOM_LEVELS: dict[str, int] = {"TRACE": 5}

    LEVEL_NAMES: dict[str, int | bool] = {
        "critical": logging.CRITICAL,
        "error": logging.ERROR,
        "warning": logging.WARNING,
        "info": logging.INFO,
        "debug": logging.DEBUG,
        "trace": 5,
        "false": False,  # disables all logging
    }

    RESET: str = "\x1b[0m"

    COLORS: dict[int, str] = {
        5: "\x1b[38;5;244",  # gray for TRACE
        logging.DEBUG: "\x1b[38;5;32",
        logging.INFO: "\x1b[36",
        logging.WARNING: "\x1b[33",
        logging.ERROR: "\x1b[31",
        logging.CRITICAL: "\x1b[35",
    }
