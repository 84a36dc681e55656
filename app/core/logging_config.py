"""
Logging configuration for the DevPath API.

Call setup_logging() once at application startup.
"""

import logging
import logging.config
import sys
from typing import Any, Dict


def get_logging_config(log_level: str = "INFO") -> Dict[str, Any]:
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {
                "format": "%(levelname)s:     %(name)s - %(message)s",
            },
            "detailed": {
                "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": log_level,
                "formatter": "default",
                "stream": sys.stdout,
            },
        },
        "loggers": {
            "app": {
                "level": log_level,
                "handlers": ["console"],
                "propagate": False,
            },
            # Third-party noise
            "httpx": {"level": "WARNING"},
            "passlib": {"level": "ERROR"},
            "sqlalchemy.engine": {"level": "WARNING"},
        },
        "root": {
            "level": "WARNING",
            "handlers": ["console"],
        },
    }


def setup_logging(log_level: str = "INFO") -> None:
    logging.config.dictConfig(get_logging_config(log_level.upper()))
    logging.getLogger(__name__).debug("Logging configured at %s", log_level)
