"""
Logging Configuration for the FollowTrain API.

Centralised setup for application logging. Development gets colour-coded,
human-readable console output; every other environment gets one JSON object per
line, ready for a log aggregator. Each record is stamped with the correlation
ID of the request that produced it.

Key Components:
- `CorrelationFilter`: copies the current request's correlation ID (held in a
  `ContextVar`) onto every log record.
- `StructuredFormatter`: JSON formatter for production.
- `ColoredConsoleFormatter`: coloured formatter for development.
- `get_logging_config` / `setup_logging`: build and apply the `dictConfig`.
- `log_function_call`: decorator logging entry, exit and duration of a call.
"""

import asyncio
import functools
import json
import logging
import logging.config
import time
from datetime import datetime, timezone
from typing import Dict, Any, Optional
from contextvars import ContextVar

from core.config import Settings

# Context variable for request correlation ID
correlation_id: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)

_STANDARD_RECORD_KEYS = frozenset(
    {
        "name",
        "msg",
        "args",
        "levelname",
        "levelno",
        "pathname",
        "filename",
        "module",
        "lineno",
        "funcName",
        "created",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "taskName",
        "exc_info",
        "exc_text",
        "stack_info",
        "correlation_id",
        "message",
    }
)


class CorrelationFilter(logging.Filter):
    """Filter that adds correlation ID to log records"""

    def filter(self, record: logging.LogRecord) -> bool:
        corr_id = correlation_id.get()
        if corr_id:
            record.correlation_id = corr_id
        return True


class StructuredFormatter(logging.Formatter):
    """Formatter that outputs one JSON object per record"""

    def format(self, record: logging.LogRecord) -> str:
        log_entry: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        corr_id = getattr(record, "correlation_id", None) or correlation_id.get()
        if corr_id:
            log_entry["correlation_id"] = corr_id

        if record.exc_info:
            log_entry["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
                "traceback": self.formatException(record.exc_info),
            }

        extra_fields = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _STANDARD_RECORD_KEYS
        }
        if extra_fields:
            log_entry["extra"] = extra_fields

        return json.dumps(log_entry, default=str)


class ColoredConsoleFormatter(logging.Formatter):
    """Colored console formatter for development"""

    COLORS = {
        "DEBUG": "\033[36m",  # Cyan
        "INFO": "\033[32m",  # Green
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",  # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, "")
        timestamp = datetime.fromtimestamp(record.created).strftime("%Y-%m-%d %H:%M:%S")

        corr_id = getattr(record, "correlation_id", None)
        corr_part = f" [{corr_id}]" if corr_id else ""

        formatted = (
            f"{color}[{timestamp}] {record.levelname:8} {record.name}{corr_part}: "
            f"{record.getMessage()}{self.RESET}"
        )
        if record.exc_info:
            formatted += "\n" + self.formatException(record.exc_info)
        return formatted


def get_logging_config(settings: Optional[Settings] = None) -> Dict[str, Any]:
    """Get logging configuration based on environment"""
    settings = settings or Settings.from_env()
    log_level = settings.log_level
    formatter = (
        "colored_console" if settings.environment == "development" else "structured"
    )

    def app_logger() -> Dict[str, Any]:
        return {"level": log_level, "handlers": ["console"], "propagate": False}

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {"correlation": {"()": CorrelationFilter}},
        "formatters": {
            "structured": {"()": StructuredFormatter},
            "colored_console": {"()": ColoredConsoleFormatter},
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": log_level,
                "formatter": formatter,
                "filters": ["correlation"],
                "stream": "ext://sys.stdout",
            },
        },
        "loggers": {
            # Application loggers
            "api": app_logger(),
            "services": app_logger(),
            "providers": app_logger(),
            "core": app_logger(),
            "client": app_logger(),
            # Third-party loggers
            "uvicorn": {"level": "INFO", "handlers": ["console"], "propagate": False},
            "uvicorn.access": {
                "level": "INFO",
                "handlers": ["console"],
                "propagate": False,
            },
        },
        "root": {"level": log_level, "handlers": ["console"]},
    }


def setup_logging(settings: Optional[Settings] = None):
    """Initialize logging configuration"""
    settings = settings or Settings.from_env()
    logging.config.dictConfig(get_logging_config(settings))
    logging.getLogger("core.logging").info(
        f"Logging initialized for {settings.environment} environment"
    )


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance with the specified name"""
    return logging.getLogger(name)


def set_correlation_id(corr_id: Optional[str]):
    """Set correlation ID for the current context"""
    correlation_id.set(corr_id)


def get_correlation_id() -> Optional[str]:
    """Get correlation ID from the current context"""
    return correlation_id.get()


def log_function_call(logger: logging.Logger):
    """Decorator to log calls to an async function with their execution time"""

    def decorator(func):
        if not asyncio.iscoroutinefunction(func):
            raise TypeError("log_function_call only wraps async functions")

        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            start_time = time.perf_counter()
            logger.debug(f"Calling {func.__name__}")
            try:
                result = await func(*args, **kwargs)
            except Exception as e:
                logger.info(
                    f"Failed {func.__name__}: {e}",
                    extra={
                        "execution_time_ms": round(
                            (time.perf_counter() - start_time) * 1000, 2
                        ),
                        "error_type": type(e).__name__,
                    },
                )
                raise
            logger.debug(
                f"Completed {func.__name__}",
                extra={
                    "execution_time_ms": round(
                        (time.perf_counter() - start_time) * 1000, 2
                    )
                },
            )
            return result

        return wrapper

    return decorator
