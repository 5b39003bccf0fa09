"""Logging setup: console, rotating JSON application log and transition audit log."""

import json
import logging
import logging.config
import logging.handlers
import os
from datetime import datetime
from typing import Any, Dict

from kpi_engine.core.config import settings

# Logger receiving one record per committed submission transition
AUDIT_LOGGER = "kpi_engine.audit"

# Attributes copied from `extra=` into JSON records
CONTEXT_FIELDS = (
    "submission_id",
    "period_id",
    "event",
    "status",
    "approval_stage",
    "revision",
    "actor_id",
    "total_score",
    "error_code",
)


class JSONFormatter(logging.Formatter):
    """One JSON object per line, with scoring context when present."""

    def __init__(self, service_name: str = "kpi-engine"):
        super().__init__()
        self.service_name = service_name

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.utcfromtimestamp(record.created).isoformat() + "Z",
            "level": record.levelname,
            "service": self.service_name,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for name in CONTEXT_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                entry[name] = str(value)

        if record.exc_info:
            entry["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(entry)


def build_logging_config(log_directory: str, level: str) -> Dict[str, Any]:
    """dictConfig for console + app.log + audit.log under `log_directory`."""
    def rotating(filename: str) -> Dict[str, Any]:
        return {
            "class": "logging.handlers.RotatingFileHandler",
            "level": level,
            "formatter": "json",
            "filename": os.path.join(log_directory, filename),
            "maxBytes": settings.LOG_MAX_BYTES,
            "backupCount": settings.LOG_BACKUP_COUNT,
            "encoding": "utf-8",
        }

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "json": {
                "()": "kpi_engine.utils.logging.JSONFormatter",
                "service_name": settings.SERVICE_NAME,
            },
            "simple": {
                "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": level,
                "formatter": "simple",
                "stream": "ext://sys.stdout",
            },
            "app_file": rotating(f"{settings.SERVICE_NAME}.log"),
            "audit_file": rotating(f"{settings.SERVICE_NAME}-audit.log"),
        },
        "loggers": {
            "": {"level": level, "handlers": ["console", "app_file"]},
            AUDIT_LOGGER: {"level": "INFO", "handlers": ["audit_file"], "propagate": True},
            "uvicorn.access": {"level": "INFO", "handlers": ["console"], "propagate": False},
            "sqlalchemy.engine": {"level": "INFO" if settings.SQL_ECHO else "WARNING"},
        },
    }


def _console_only(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler()],
    )


def setup_logging() -> None:
    """Configure logging once at startup; console-only if LOG_DIRECTORY is unusable."""
    level = "DEBUG" if settings.DEBUG else "INFO"
    log_directory = os.path.abspath(settings.LOG_DIRECTORY)

    try:
        os.makedirs(log_directory, exist_ok=True)
        if not os.access(log_directory, os.W_OK):
            raise PermissionError(f"{log_directory} is not writable")
    except OSError as e:
        _console_only(level)
        logging.getLogger(__name__).warning(
            f"Log directory {log_directory} unusable ({e}), logging to console only"
        )
        return

    try:
        logging.config.dictConfig(build_logging_config(log_directory, level))
    except (ValueError, TypeError, AttributeError, ImportError) as e:
        _console_only(level)
        logging.getLogger(__name__).error(f"Error setting up logging configuration: {e}")


def get_audit_logger() -> logging.Logger:
    return logging.getLogger(AUDIT_LOGGER)
