"""
LinkFeed Logging Configuration
=============================

Console and rotating-file logging for interactive use and scheduled
ingestion runs. Every component logs through a ``ComponentLogger`` so that
records carry the component name and, where known, the feed URL being
processed.
"""

import logging
import logging.handlers
import sys
import json
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Any, Optional

from ..config.settings import LoggingSettings


# Attributes every LogRecord has; anything else was passed via ``extra``
_STANDARD_ATTRIBUTES = frozenset(logging.makeLogRecord({}).__dict__) | {"message", "asctime"}

# Context keys promoted to the top level of JSON records
_CONTEXT_KEYS = ("component", "feed_url")


def _record_context(record: logging.LogRecord) -> Dict[str, Any]:
    return {k: v for k, v in record.__dict__.items() if k not in _STANDARD_ATTRIBUTES}


class StructuredFormatter(logging.Formatter):
    """One JSON object per line, for log files and log shippers."""

    def format(self, record: logging.LogRecord) -> str:
        context = _record_context(record)

        entry: Dict[str, Any] = {
            "time": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "source": f"{record.module}:{record.funcName}:{record.lineno}",
        }
        for key in _CONTEXT_KEYS:
            if key in context:
                entry[key] = context.pop(key)
        if context:
            entry["context"] = context
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, ensure_ascii=False, default=str)


class ColoredConsoleFormatter(logging.Formatter):
    """Short coloured lines for a terminal."""

    LEVEL_COLORS = {
        logging.DEBUG: "\033[36m",
        logging.INFO: "\033[32m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[31m",
        logging.CRITICAL: "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelno, self.RESET)
        clock = time.strftime("%H:%M:%S", time.localtime(record.created))
        component = getattr(record, "component", record.name)

        line = f"{color}{clock} {record.levelname:<8}{self.RESET} {component}: {record.getMessage()}"

        feed_url = getattr(record, "feed_url", None)
        if feed_url:
            line += f" [{feed_url}]"
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def _console_handler(structured: bool) -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(StructuredFormatter() if structured else ColoredConsoleFormatter())
    return handler


def _file_handler(log_file: str, max_file_size: int, backup_count: int) -> logging.Handler:
    path = Path(log_file)
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.handlers.RotatingFileHandler(
        path, maxBytes=max_file_size, backupCount=backup_count, encoding="utf-8"
    )
    # Files are always JSON so runs can be grepped by feed_url
    handler.setFormatter(StructuredFormatter())
    return handler


def setup_logger(
    name: str = "linkfeed",
    level: str = "INFO",
    log_file: Optional[str] = None,
    console: bool = True,
    structured: bool = False,
    max_file_size: int = 10 * 1024 * 1024,
    backup_count: int = 5,
) -> logging.Logger:
    """Replace the handlers of logger ``name``.

    Args:
        name: Logger name
        level: Logging level name
        log_file: Rotating JSON log file (optional)
        console: Whether to log to stdout
        structured: JSON instead of coloured text on stdout
        max_file_size: Rotation threshold in bytes
        backup_count: Rotated files to keep

    Returns:
        The configured logger
    """
    handlers = []
    if console:
        handlers.append(_console_handler(structured))
    if log_file:
        handlers.append(_file_handler(log_file, max_file_size, backup_count))

    logger = logging.getLogger(name)
    logger.setLevel(level.upper())
    for old_handler in list(logger.handlers):
        logger.removeHandler(old_handler)
        old_handler.close()
    for handler in handlers:
        logger.addHandler(handler)
    return logger


class ComponentLogger(logging.LoggerAdapter):
    """Adds component (and feed) context to every record.

    Context given on the logging call itself takes precedence over the
    adapter's own.
    """

    def process(self, msg: Any, kwargs: Dict[str, Any]) -> tuple:
        kwargs["extra"] = {**self.extra, **(kwargs.get("extra") or {})}
        return msg, kwargs

    def bind(self, **context: Any) -> "ComponentLogger":
        """Adapter over the same logger with additional context."""
        return ComponentLogger(self.logger, {**self.extra, **context})


def get_logger_for_component(component_name: str, feed_url: Optional[str] = None) -> ComponentLogger:
    """Logger named ``linkfeed.<component_name>``.

    Args:
        component_name: Name of the component (e.g. 'feed_loader', 'urls')
        feed_url: Feed being processed, if the logger is per feed
    """
    context: Dict[str, Any] = {"component": component_name}
    if feed_url:
        context["feed_url"] = feed_url
    return ComponentLogger(logging.getLogger(f"linkfeed.{component_name}"), context)


def configure_application_logging(settings: LoggingSettings, log_level: Optional[str] = None) -> None:
    """Configure the ``linkfeed`` logger tree from logging settings.

    Args:
        settings: Logging section of the application settings
        log_level: Overrides ``settings.level`` (e.g. DEBUG for --debug)
    """
    setup_logger(
        name="linkfeed",
        level=log_level or settings.level.value,
        log_file=settings.file_path,
        console=settings.console_logging,
        structured=settings.structured_logging,
        max_file_size=settings.max_file_size_mb * 1024 * 1024,
        backup_count=settings.backup_count,
    )

    # requests logs every connection at DEBUG
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("requests").setLevel(logging.WARNING)


class PerformanceLogger:
    """Context manager that logs how long an operation took.

    The elapsed time is kept on ``duration`` after the block exits. A block
    that raises is logged at WARNING and the exception propagates.
    """

    def __init__(self, logger: logging.LoggerAdapter, operation: str, **context: Any):
        self.logger = logger
        self.operation = operation
        self.context = context
        self.duration: Optional[float] = None
        self._started: Optional[float] = None

    def __enter__(self) -> "PerformanceLogger":
        self._started = time.perf_counter()
        self.logger.debug(f"Starting {self.operation}", extra=dict(self.context))
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.duration = time.perf_counter() - self._started
        extra = {**self.context, "duration_seconds": round(self.duration, 3)}

        if exc_type is None:
            self.logger.info(f"Completed {self.operation} in {self.duration:.3f}s", extra=extra)
        else:
            extra["error_type"] = exc_type.__name__
            self.logger.warning(f"Failed {self.operation} in {self.duration:.3f}s: {exc_val}", extra=extra)
