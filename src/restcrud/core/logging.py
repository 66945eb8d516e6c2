"""
Logging Configuration

Single stdout handler shared by the application, uvicorn and SQLAlchemy.

SQL statements are logged through the standard ``sqlalchemy.engine``
logger (INFO when ``SQL_ECHO`` is set) instead of the engine's ``echo``
flag, so they share the application format and handler.
"""

import sys
from logging.config import dictConfig
from typing import Any

from restcrud.core.config import settings

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def build_logging_config(level: str, sql_echo: bool = False) -> dict[str, Any]:
    """
    Build the ``dictConfig`` schema.

    Args:
        level: Level name for the root and ``restcrud`` loggers.
        sql_echo: Log every SQL statement (``sqlalchemy.engine`` at INFO).
    """
    level = level.upper()

    def _logger(logger_level: str) -> dict[str, Any]:
        # Own handler, no propagation: one line per record
        return {"level": logger_level, "handlers": ["console"], "propagate": False}

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {"format": LOG_FORMAT, "datefmt": DATE_FORMAT},
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "stream": sys.stdout,
                "formatter": "default",
            },
        },
        "root": {"level": level, "handlers": ["console"]},
        "loggers": {
            "restcrud": _logger(level),
            "uvicorn": _logger("INFO"),
            "uvicorn.access": _logger("INFO"),
            "sqlalchemy.engine": _logger("INFO" if sql_echo else "WARNING"),
        },
    }


def setup_logging() -> None:
    """Apply the logging configuration from settings (``LOG_LEVEL``, ``SQL_ECHO``)."""
    dictConfig(build_logging_config(settings.LOG_LEVEL, settings.SQL_ECHO))
