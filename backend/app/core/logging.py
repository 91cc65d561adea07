"""
Logging configuration for the application.
"""

import json
import logging
import logging.config
from typing import Any, Dict

from app.core.config import get_settings

settings = get_settings()

# Attributes every LogRecord carries; anything else was passed through ``extra``
# or added by a filter.
_RESERVED_ATTRS = frozenset(
    {
        "name",
        "msg",
        "args",
        "created",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "module",
        "msecs",
        "message",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "thread",
        "threadName",
        "taskName",
        "exc_info",
        "exc_text",
        "stack_info",
    }
)


class JSONFormatter(logging.Formatter):
    """Custom JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data: Dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        # Request ids, sync job context and any ``extra=`` values
        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS and key not in log_data:
                log_data[key] = value

        return json.dumps(log_data, default=str)


def _formatter_config(fmt: str) -> Dict[str, Any]:
    if settings.logging.json_logs:
        return {"()": f"{JSONFormatter.__module__}.{JSONFormatter.__name__}"}
    return {"format": fmt}


def configure_logging() -> None:
    """Configure application logging."""
    config: Dict[str, Any] = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": _formatter_config(settings.logging.format),
            "access": _formatter_config(
                "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
            ),
        },
        "handlers": {
            "default": {
                "class": "logging.StreamHandler",
                "level": settings.logging.level,
                "formatter": "default",
                "stream": "ext://sys.stdout",
            },
            "access": {
                "class": "logging.StreamHandler",
                "level": "INFO",
                "formatter": "access",
                "stream": "ext://sys.stdout",
            },
        },
        "loggers": {
            "app": {
                "level": settings.logging.level,
                "handlers": ["default"],
                "propagate": False,
            },
            "uvicorn.access": {
                "handlers": ["access"],
                "level": "INFO",
                "propagate": False,
            },
            "uvicorn.error": {
                "level": "INFO",
                "handlers": ["default"],
                "propagate": False,
            },
            "sqlalchemy.engine": {
                "level": "WARNING" if not settings.database.echo else "INFO",
                "handlers": ["default"],
                "propagate": False,
            },
            # httpx logs every request URL at INFO, which includes SOC credentials
            "httpx": {
                "level": "WARNING",
                "handlers": ["default"],
                "propagate": False,
            },
            "apscheduler": {
                "level": "WARNING",
                "handlers": ["default"],
                "propagate": False,
            },
        },
        "root": {
            "level": settings.logging.level,
            "handlers": ["default"],
        },
    }

    logging.config.dictConfig(config)

    logger = logging.getLogger(__name__)
    logger.info(
        f"Logging configured - Level: {settings.logging.level}, "
        f"JSON: {settings.logging.json_logs}"
    )
