"""
Logging Configuration for the Roast API.

This module provides a centralized and configurable logging system for the
application. It supports structured JSON logging for production environments and
color-coded, human-readable logs for development. It also includes support for
request correlation IDs so that every line logged while handling one roast
request (proxy fetch, extraction, each generation attempt, persistence) can be
grouped together.

Key Components:
- `CorrelationFilter`: A filter that injects the current correlation ID into
  each log record.
- `StructuredFormatter`: Outputs log records as JSON, including any `extra`
  fields such as `stage`, `attempt` and `duration_ms` emitted by the pipeline.
- `ColoredConsoleFormatter`: Adds color to log levels for local development.
- `get_logging_config`: Builds the `dictConfig` dictionary from settings.
- `setup_logging`: Initializes logging for the whole application.
- `log_function_call`: A decorator that logs entry, exit and execution time of
  sync or async functions.

Architectural Design:
- Environment-Aware Configuration: The format and level come from
  `core.config.Settings` (`ENVIRONMENT`, `LOG_LEVEL`).
- Context-Aware Logging: The correlation ID is stored in a `ContextVar`, so it
  follows the asynchronous context of each request.
"""

import json
import logging
import logging.config
from datetime import datetime
from typing import Dict, Any, Optional
from contextvars import ContextVar

from .config import get_settings

# Context variable for request correlation ID
correlation_id: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)

# LogRecord attributes that are not user supplied extras
_RESERVED_ATTRS = {
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
    "getMessage",
    "exc_info",
    "exc_text",
    "stack_info",
    "taskName",
    "correlation_id",
}


class CorrelationFilter(logging.Filter):
    """Filter that adds correlation ID to log records"""

    def filter(self, record: logging.LogRecord) -> bool:
        corr_id = correlation_id.get()
        if corr_id:
            record.correlation_id = corr_id
        return True


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
        reset = self.RESET

        timestamp = datetime.fromtimestamp(record.created).strftime("%Y-%m-%d %H:%M:%S")

        corr_id = getattr(record, "correlation_id", None)
        corr_part = f" [{corr_id}]" if corr_id else ""

        formatted = f"{color}[{timestamp}] {record.levelname:8} {record.name}{corr_part}: {record.getMessage()}{reset}"

        if record.exc_info:
            formatted += "\n" + self.formatException(record.exc_info)

        return formatted


class StructuredFormatter(logging.Formatter):
    """Formatter that outputs structured JSON logs"""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.utcnow().isoformat() + "Z",
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
            if key not in _RESERVED_ATTRS
        }
        if extra_fields:
            log_entry["extra"] = extra_fields

        return json.dumps(log_entry, default=str, ensure_ascii=False)


def get_logging_config() -> Dict[str, Any]:
    """Get logging configuration based on environment"""

    settings = get_settings()
    environment = settings.environment.lower()
    log_level = settings.log_level.upper()

    def app_logger() -> Dict[str, Any]:
        return {"level": log_level, "handlers": ["console"], "propagate": False}

    config = {
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {
            "correlation": {"()": CorrelationFilter},
        },
        "formatters": {
            "structured": {
                "()": StructuredFormatter,
            },
            "colored_console": {
                "()": ColoredConsoleFormatter,
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": log_level,
                "formatter": "colored_console"
                if environment == "development"
                else "structured",
                "filters": ["correlation"],
                "stream": "ext://sys.stdout",
            },
        },
        "loggers": {
            # Application loggers
            "api": app_logger(),
            "core": app_logger(),
            "services": app_logger(),
            "providers": app_logger(),
            # Third-party loggers
            "uvicorn": {"level": "INFO", "handlers": ["console"], "propagate": False},
            "uvicorn.access": {
                "level": "INFO",
                "handlers": ["console"],
                "propagate": False,
            },
            "aiohttp": {"level": "WARNING", "handlers": ["console"], "propagate": False},
        },
        "root": {"level": log_level, "handlers": ["console"]},
    }

    return config


def setup_logging():
    """Initialize logging configuration"""
    config = get_logging_config()
    logging.config.dictConfig(config)

    logger = logging.getLogger("core.logging")
    logger.info(f"Logging initialized for {get_settings().environment} environment")


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance with the specified name"""
    return logging.getLogger(name)


def set_correlation_id(corr_id: str):
    """Set correlation ID for the current context"""
    correlation_id.set(corr_id)


def get_correlation_id() -> Optional[str]:
    """Get correlation ID from the current context"""
    return correlation_id.get()


def log_function_call(logger: logging.Logger):
    """Decorator to log function calls with parameters and execution time"""

    def decorator(func):
        import asyncio
        import functools
        import time

        @functools.wraps(func)
        async def async_wrapper(*args, **kwargs):
            start_time = time.time()
            logger.debug(
                f"Calling {func.__name__}",
                extra={
                    "call": func.__name__,
                    "args_count": len(args),
                    "kwargs_keys": list(kwargs.keys()),
                },
            )

            try:
                result = await func(*args, **kwargs)
                execution_time = time.time() - start_time
                logger.debug(
                    f"Completed {func.__name__}",
                    extra={
                        "call": func.__name__,
                        "execution_time_ms": round(execution_time * 1000, 2),
                        "success": True,
                    },
                )
                return result
            except Exception as e:
                execution_time = time.time() - start_time
                logger.error(
                    f"Failed {func.__name__}: {str(e)}",
                    extra={
                        "call": func.__name__,
                        "execution_time_ms": round(execution_time * 1000, 2),
                        "success": False,
                        "error_type": type(e).__name__,
                    },
                    exc_info=True,
                )
                raise

        @functools.wraps(func)
        def sync_wrapper(*args, **kwargs):
            start_time = time.time()
            logger.debug(
                f"Calling {func.__name__}",
                extra={
                    "call": func.__name__,
                    "args_count": len(args),
                    "kwargs_keys": list(kwargs.keys()),
                },
            )

            try:
                result = func(*args, **kwargs)
                execution_time = time.time() - start_time
                logger.debug(
                    f"Completed {func.__name__}",
                    extra={
                        "call": func.__name__,
                        "execution_time_ms": round(execution_time * 1000, 2),
                        "success": True,
                    },
                )
                return result
            except Exception as e:
                execution_time = time.time() - start_time
                logger.error(
                    f"Failed {func.__name__}: {str(e)}",
                    extra={
                        "call": func.__name__,
                        "execution_time_ms": round(execution_time * 1000, 2),
                        "success": False,
                        "error_type": type(e).__name__,
                    },
                    exc_info=True,
                )
                raise

        if asyncio.iscoroutinefunction(func):
            return async_wrapper
        return sync_wrapper

    return decorator
