"""
Logging configuration for the qBittorrent client.
Provides JSON or colored console output, optional log rotation, and
per-operation context fields. Nothing here runs on import; applications
call setup_logging() themselves.
"""

import json
import logging
import logging.handlers
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Dict, Any


class ContextFilter(logging.Filter):
    """
    Add context fields to log records.
    Allows setting per-request or per-operation context. The context
    follows the current asyncio task, so concurrent calls on one event
    loop do not see each other's fields.
    """

    _context: ContextVar[Dict[str, Any]] = ContextVar("qbittorrent_log_context", default={})

    @classmethod
    def set_context(cls, **kwargs) -> None:
        """Set context fields for subsequent log messages in this task."""
        # Copy on write: tasks inherit the mapping, never share it
        cls._context.set({**cls._context.get(), **kwargs})

    @classmethod
    def clear_context(cls, *keys) -> None:
        """Clear specific context fields or all if no keys specified."""
        if keys:
            context = {k: v for k, v in cls._context.get().items() if k not in keys}
        else:
            context = {}
        cls._context.set(context)

    @classmethod
    def get_context(cls) -> Dict[str, Any]:
        """Get current context."""
        return dict(cls._context.get())

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in self._context.get().items():
            if not hasattr(record, key):
                setattr(record, key, value)
        return True


class JSONFormatter(logging.Formatter):
    """
    Format logs as JSON for structured logging.
    Includes timestamp, level, logger name, message, and context fields.
    """

    CONTEXT_FIELDS = [
        "operation",
        "method",
        "endpoint",
        "status",
        "attempt",
        "torrent_hash",
        "session_strategy",
        "duration_ms",
        "error",
    ]

    def format(self, record: logging.LogRecord) -> str:
        log_obj = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for field in self.CONTEXT_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                log_obj[field] = value

        if record.exc_info:
            log_obj["exception"] = self.formatException(record.exc_info)
            log_obj["exception_type"] = record.exc_info[0].__name__ if record.exc_info[0] else None

        return json.dumps(log_obj, default=str)


class ColoredFormatter(logging.Formatter):
    """
    Colored console formatter for better readability.
    """

    COLORS = {
        "DEBUG": "\033[36m",     # Cyan
        "INFO": "\033[32m",      # Green
        "WARNING": "\033[33m",   # Yellow
        "ERROR": "\033[31m",     # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"

    def __init__(self, use_colors: bool = True):
        super().__init__(
            fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        self.use_colors = use_colors and sys.stdout.isatty()

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)

        if self.use_colors:
            color = self.COLORS.get(record.levelname, "")
            if color:
                message = message.replace(
                    record.levelname,
                    f"{color}{record.levelname}{self.RESET}",
                    1
                )

        context_parts = []
        for field in ["operation", "endpoint", "status"]:
            value = getattr(record, field, None)
            if value is not None and value != "":
                context_parts.append(f"{field}={value}")

        if context_parts:
            message += f" [{', '.join(context_parts)}]"

        return message


# Component-specific log levels
COMPONENT_LOG_LEVELS = {
    "aiohttp": "WARNING",
    "aiohttp.client": "WARNING",
    "aiohttp.access": "WARNING",
}


def setup_logging(
    log_level: str = "INFO",
    log_file: Optional[str] = None,
    log_format: str = "text",
    max_file_size_mb: int = 10,
    backup_count: int = 5,
    use_colors: bool = True,
) -> logging.Logger:
    """
    Configure logging with optional file rotation and structured output.

    Args:
        log_level: Level for the qbittorrent_client logger tree
        log_file: Path to log file (enables rotation if set)
        log_format: "text" for human-readable, "json" for structured
        max_file_size_mb: Maximum size of each log file before rotation
        backup_count: Number of rotated log files to keep
        use_colors: Use colored output in console (if terminal supports it)

    Returns:
        The configured package logger
    """
    package_logger = logging.getLogger("qbittorrent_client")
    package_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    for handler in package_logger.handlers[:]:
        package_logger.removeHandler(handler)

    context_filter = ContextFilter()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.addFilter(context_filter)
    if log_format == "json":
        console_handler.setFormatter(JSONFormatter())
    else:
        console_handler.setFormatter(ColoredFormatter(use_colors=use_colors))
    package_logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=max_file_size_mb * 1024 * 1024,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.addFilter(context_filter)

        if log_format == "json":
            file_handler.setFormatter(JSONFormatter())
        else:
            file_handler.setFormatter(logging.Formatter(
                "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            ))

        package_logger.addHandler(file_handler)

    # The package logger owns its handlers; avoid duplicate lines via root
    package_logger.propagate = False

    for logger_name, level in COMPONENT_LOG_LEVELS.items():
        logging.getLogger(logger_name).setLevel(getattr(logging, level))

    package_logger.info(
        f"Logging configured: level={log_level}, format={log_format}, "
        f"file={log_file or 'none'}"
    )

    return package_logger


def setup_logging_from_settings(settings) -> logging.Logger:
    """Configure logging from a ClientSettings instance."""
    return setup_logging(
        log_level=settings.log_level,
        log_file=settings.log_file,
        log_format=settings.log_format,
    )


class LogContext:
    """
    Context manager for setting log context fields.

    Usage:
        with LogContext(operation="TorrentsInfo", endpoint="/api/v2/torrents/info"):
            logger.info("Listing torrents")
    """

    def __init__(self, **kwargs):
        self.context = kwargs
        self.previous_context = {}

    def __enter__(self):
        self.previous_context = ContextFilter.get_context()
        ContextFilter.set_context(**self.context)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        ContextFilter.clear_context()
        if self.previous_context:
            ContextFilter.set_context(**self.previous_context)
        return False
