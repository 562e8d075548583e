"""Logging for patchsync.

Everything is logged to stderr, leaving stdout to command output (key
listings, changed files). structlog renders each event once and a single
handler on the root logger writes it, optionally mirrored to a rotating file.
"""

import functools
import inspect
import logging
import logging.handlers
import sys
import time
from pathlib import Path
from typing import Optional

import colorlog
import structlog
from structlog.typing import EventDict, Processor


HANDLER_NAME = "patchsync"

LOG_FILE_MAX_BYTES = 5 * 1024 * 1024
LOG_FILE_BACKUPS = 3

# Event keys whose values never reach a log line.
SECRET_FIELDS = frozenset({"secret_key", "access_key", "authorization", "Authorization"})

LEVEL_COLORS = {
    "DEBUG": "cyan",
    "INFO": "green",
    "WARNING": "yellow",
    "ERROR": "red",
    "CRITICAL": "red,bg_white",
}


def redact_secrets(logger, method_name: str, event_dict: EventDict) -> EventDict:
    """structlog processor masking credential fields."""
    for name in SECRET_FIELDS.intersection(event_dict):
        event_dict[name] = "***"
    return event_dict


def setup_logging(
    log_level: Optional[str] = None,
    log_format: Optional[str] = None,
    log_file: Optional[str] = None
) -> None:
    """Configure structlog and the root handlers.

    Arguments override the ``PATCHSYNC_LOG_*`` settings. Calling this again
    replaces the handlers installed by the previous call.

    Args:
        log_level: Level name, e.g. ``DEBUG``
        log_format: ``console`` or ``json``
        log_file: Path of a rotating log file
    """
    from ..config.settings import get_settings

    configured = get_settings().logging
    level = getattr(logging, (log_level or configured.level).upper(), logging.INFO)
    format_type = log_format or configured.format
    file_path = log_file or configured.file_path

    root = logging.getLogger()
    for handler in [h for h in root.handlers if h.get_name() == HANDLER_NAME]:
        root.removeHandler(handler)
        handler.close()

    root.setLevel(level)
    root.addHandler(_console_handler(format_type))
    if file_path:
        root.addHandler(_file_handler(file_path))

    processors: list[Processor] = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        redact_secrets,
    ]

    if format_type == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        # colorlog colours the whole line by level
        processors.append(structlog.dev.ConsoleRenderer(colors=False))

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def _console_handler(format_type: str) -> logging.Handler:
    handler = colorlog.StreamHandler(sys.stderr)
    if format_type == "json":
        handler.setFormatter(logging.Formatter("%(message)s"))
    else:
        handler.setFormatter(
            colorlog.ColoredFormatter("%(log_color)s%(message)s", reset=True, log_colors=LEVEL_COLORS)
        )
    handler.set_name(HANDLER_NAME)
    return handler


def _file_handler(file_path: str) -> logging.Handler:
    Path(file_path).parent.mkdir(parents=True, exist_ok=True)

    handler = logging.handlers.RotatingFileHandler(
        file_path,
        maxBytes=LOG_FILE_MAX_BYTES,
        backupCount=LOG_FILE_BACKUPS,
        encoding="utf-8"
    )
    handler.setFormatter(logging.Formatter("%(message)s"))
    handler.set_name(HANDLER_NAME)
    return handler


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)


def log_execution_time(func):
    """Log the duration of ``func`` at debug level and failures at error level.

    Works for plain functions and coroutine functions alike.
    """
    logger = get_logger(func.__module__)
    operation = func.__qualname__

    def succeeded(start: float) -> None:
        logger.debug("Operation finished", operation=operation, duration=f"{time.perf_counter() - start:.4f}s")

    def failed(start: float, error: Exception) -> None:
        logger.error(
            "Operation failed",
            operation=operation,
            duration=f"{time.perf_counter() - start:.4f}s",
            error=str(error)
        )

    if inspect.iscoroutinefunction(func):
        @functools.wraps(func)
        async def async_wrapper(*args, **kwargs):
            start = time.perf_counter()
            try:
                result = await func(*args, **kwargs)
            except Exception as e:
                failed(start, e)
                raise
            succeeded(start)
            return result

        return async_wrapper

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        start = time.perf_counter()
        try:
            result = func(*args, **kwargs)
        except Exception as e:
            failed(start, e)
            raise
        succeeded(start)
        return result

    return wrapper
