"""Structured logging configuration for vocal_pitch.

The library only creates module loggers; nothing is configured on import.
Applications call ``setup_logging`` once at startup.
"""

import logging
import logging.handlers
import os
import sys
import json
import time
import threading
from functools import wraps
from typing import Dict, Any, Optional
from pathlib import Path

# Calls slower than this (seconds) are logged as warnings by log_execution_time
SLOW_OPERATION_THRESHOLD = 5.0

_STANDARD_RECORD_KEYS = frozenset([
    "name", "msg", "args", "created", "filename", "funcName",
    "levelname", "levelno", "lineno", "module", "msecs",
    "message", "pathname", "process", "processName",
    "relativeCreated", "thread", "threadName", "exc_info",
    "exc_text", "stack_info", "taskName",
])


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
            "thread_name": record.threadName,
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        # Fields passed through ``extra=``
        for key, value in record.__dict__.items():
            if key not in _STANDARD_RECORD_KEYS and key not in log_data:
                log_data[key] = value

        return json.dumps(log_data, default=str)


class ColoredFormatter(logging.Formatter):
    """Colored formatter for console output in development."""

    COLORS = {
        'DEBUG': '\033[36m',    # Cyan
        'INFO': '\033[32m',     # Green
        'WARNING': '\033[33m',  # Yellow
        'ERROR': '\033[31m',    # Red
        'CRITICAL': '\033[35m'  # Magenta
    }
    RESET = '\033[0m'

    def format(self, record: logging.LogRecord) -> str:
        """Format log record with colors, leaving the record itself untouched."""
        color = self.COLORS.get(record.levelname, self.RESET)
        original_levelname = record.levelname
        record.levelname = f"{color}{original_levelname}{self.RESET}"
        try:
            return super().format(record)
        finally:
            record.levelname = original_levelname


def setup_logging(config: Optional[Dict[str, Any]] = None) -> logging.Logger:
    """
    Set up logging for an application using vocal_pitch.

    Settings are read from the ``logging`` section of ``config`` and overridden
    by the LOG_LEVEL, LOG_FORMAT and LOG_DIR environment variables. A rotating
    file handler is added only when a log directory is configured.

    Args:
        config: Optional configuration dictionary (full config or its ``logging`` section)

    Returns:
        The configured ``vocal_pitch`` package logger
    """
    config = config or {}
    section = config.get('logging', config)

    log_level = os.getenv('LOG_LEVEL', section.get('level', 'INFO')).upper()
    log_format = os.getenv('LOG_FORMAT', section.get('format', 'text')).lower()
    log_dir = os.getenv('LOG_DIR', section.get('dir'))

    level = getattr(logging, log_level, None)
    if not isinstance(level, int):
        raise ValueError(f"Invalid logging level: {log_level}")

    package_logger = logging.getLogger('vocal_pitch')
    package_logger.setLevel(level)
    package_logger.propagate = False

    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
        handler.close()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    if log_format == 'json':
        console_handler.setFormatter(JSONFormatter())
    else:
        console_handler.setFormatter(ColoredFormatter(
            '%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        ))
    package_logger.addHandler(console_handler)

    if log_dir:
        Path(log_dir).mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            filename=os.path.join(log_dir, 'vocal_pitch.log'),
            maxBytes=10 * 1024 * 1024,  # 10MB
            backupCount=5,
            encoding='utf-8'
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(JSONFormatter())
        package_logger.addHandler(file_handler)

    package_logger.debug(
        "Logging configured",
        extra={"log_level": log_level, "log_format": log_format, "log_dir": log_dir}
    )
    return package_logger


class LogContext:
    """Context manager that attaches key/value fields to every log record.

    Example:
        >>> with LogContext(recording='take_3'):
        ...     tracker.track(audio)
    """

    _context = threading.local()

    def __init__(self, **kwargs):
        self.context = kwargs
        self.old_factory = None

    def __enter__(self):
        if not hasattr(self._context, 'data'):
            self._context.data = {}
        self._context.data.update(self.context)

        self.old_factory = logging.getLogRecordFactory()
        old_factory = self.old_factory
        data = self._context.data

        def record_factory(*args, **kwargs):
            record = old_factory(*args, **kwargs)
            for key, value in data.items():
                setattr(record, key, value)
            return record

        logging.setLogRecordFactory(record_factory)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.old_factory:
            logging.setLogRecordFactory(self.old_factory)
        for key in self.context:
            self._context.data.pop(key, None)


def log_execution_time(operation_name: str, slow_threshold: float = SLOW_OPERATION_THRESHOLD):
    """Decorator to log function execution time.

    Durations are logged at debug level; calls slower than ``slow_threshold``
    seconds also log a warning. Exceptions are re-raised unchanged.
    """

    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            logger = logging.getLogger(func.__module__)
            start_time = time.perf_counter()

            try:
                result = func(*args, **kwargs)
            except Exception as e:
                logger.debug(
                    f"{operation_name} failed after {time.perf_counter() - start_time:.4f}s: {e}",
                    extra={"operation": operation_name, "error": str(e)}
                )
                raise

            execution_time = time.perf_counter() - start_time
            logger.debug(
                f"{operation_name} completed in {execution_time:.4f}s",
                extra={"operation": operation_name, "execution_time": execution_time}
            )
            if execution_time > slow_threshold:
                logger.warning(
                    f"{operation_name} took longer than expected ({execution_time:.2f}s)",
                    extra={
                        "operation": operation_name,
                        "execution_time": execution_time,
                        "threshold": slow_threshold
                    }
                )
            return result

        return wrapper
    return decorator


__all__ = [
    'JSONFormatter',
    'ColoredFormatter',
    'setup_logging',
    'LogContext',
    'log_execution_time',
    'SLOW_OPERATION_THRESHOLD',
]
