"""
Logging setup for authzgate.

Operator-facing logs go through the standard logging module. This is
separate from the audit log, which has its own destinations.
"""

import logging
from logging import config as logging_config
from typing import Any

# Default logging configuration
DEFAULT_LOGGING_CONFIG: dict[str, Any] = {
    "version": 1,
    "disable_existing_loggers": False,
    "root": {"level": "INFO", "handlers": ["consoleHandler"]},
    "loggers": {
        "authzgate": {
            "level": "INFO",
        },
    },
    "handlers": {
        "consoleHandler": {
            "class": "logging.StreamHandler",
            "level": "DEBUG",
            "formatter": "formatter_formatter",
            "stream": "ext://sys.stderr",
        }
    },
    "formatters": {
        "formatter_formatter": {
            "format": "%(asctime)s.%(msecs)03d - %(name)s - %(levelname)s - %(message)s",
            "datefmt": "%Y-%m-%d %H:%M:%S",
        },
    },
}


def init_logging(debug: bool = False) -> None:
    """
    Configure process logging.

    Logs go to stderr so they never mix with audit records written to
    stdout.

    Args:
        debug: Log authzgate at DEBUG level instead of INFO
    """
    logging_config.dictConfig(DEFAULT_LOGGING_CONFIG)
    level = logging.DEBUG if debug else logging.INFO
    logging.getLogger("authzgate").setLevel(level)


def uvicorn_log_level(debug: bool) -> str:
    """Map the debug flag to a uvicorn log level name."""
    return "debug" if debug else "info"
