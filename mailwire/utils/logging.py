"""Logging utility for mailwire.

The protocol core never logs on its own; it emits ``SessionEvent`` objects.
This module owns every handler and provides ``log_session_event`` as the
subscriber that turns those events into log records.
"""

import json
import logging
import re
from datetime import datetime, timezone
from functools import wraps
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, Optional

from rich.logging import RichHandler

from .paths import LOGS_DIR

ROOT_LOGGER_NAME = "mailwire"

EVENT_FIELDS = (
    "event_type",
    "protocol",
    "command",
    "response",
    "state",
    "error",
    "message_id",
)


def _ensure_log_dir(log_dir: Path) -> Path:
    """Create the log directory on first use."""

    from .errors import FileSystemError

    try:
        log_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise FileSystemError(f"Failed to create log directory: {log_dir}") from e

    return log_dir


## Custom JSON Formatter


class JSONFormatter(logging.Formatter):
    """Custom JSON formatter for log records."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
            "message": record.getMessage(),
        }

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        for field in EVENT_FIELDS:
            if hasattr(record, field):
                log_entry[field] = getattr(record, field)

        return json.dumps(log_entry, default=str)


## Log Masking


class SensitiveDataMasker:
    """Utility to mask sensitive data in log messages."""

    PATTERNS = {
        "password": re.compile(
            r'(password["\']?\s*[:=]\s*["\']?)([^"\'}\s]+)', re.IGNORECASE
        ),
        "pass_command": re.compile(r"^(PASS\s+)(\S+)", re.IGNORECASE),
        "secret": re.compile(
            r'(secret["\']?\s*[:=]\s*["\']?)([^"\'}\s]+)', re.IGNORECASE
        ),
        "user_key": re.compile(
            r'(user_key["\']?\s*[:=]\s*["\']?)([^"\'}\s]+)', re.IGNORECASE
        ),
        "authorization": re.compile(
            r'(authorization["\']?\s*[:=]\s*["\']?)([^"\'}\s]+)', re.IGNORECASE
        ),
        "email": re.compile(
            r"([a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,})", re.IGNORECASE
        ),
    }

    SENSITIVE_FIELDS = {
        "password",
        "passwd",
        "pwd",
        "secret",
        "token",
        "user_key",
        "authorization",
        "credential",
        "private_key",
    }

    MASK_STRATEGIES = {
        "full": lambda x: "[REDACTED]",
        "partial": lambda x: x[:3] + "*" * (len(x) - 6) + x[-3:]
        if len(x) > 6
        else "[REDACTED]",
    }

    def __init__(self, strategy: str = "full"):
        """Initialize masker with specified strategy."""

        self.strategy = strategy
        self.mask_func = self.MASK_STRATEGIES[strategy]

    def mask_string(self, text: str) -> str:
        """Mask sensitive data in a string message."""

        if not text or not isinstance(text, str):
            return text

        masked = text

        for name, pattern in self.PATTERNS.items():
            if name == "email":
                masked = pattern.sub(lambda m: self._mask_email(m.group(0)), masked)
            else:
                masked = pattern.sub(
                    lambda m: m.group(1) + self.mask_func(m.group(2)), masked
                )

        return masked

    def mask_dict(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Mask sensitive data in a dictionary."""

        if not isinstance(data, dict):
            return data

        masked = {}

        for key, value in data.items():
            if str(key).lower() in self.SENSITIVE_FIELDS:
                masked[key] = self.mask_func(str(value))
            elif isinstance(value, dict):
                masked[key] = self.mask_dict(value)
            elif isinstance(value, str):
                masked[key] = self.mask_string(value)
            else:
                masked[key] = value

        return masked

    def _mask_email(self, email: str) -> str:
        """Mask an email address while preserving the first characters."""

        username, _, domain = email.partition("@")
        masked_username = username[0] + "***" if len(username) > 1 else "***"
        masked_domain = domain[0] + ("***" if len(domain) > 1 else "*")

        return f"{masked_username}@{masked_domain}"


class SensitiveDataFilter(logging.Filter):
    """Logging filter to mask sensitive data in log records."""

    def __init__(self, strategy: str = "full"):
        """Initialize filter with specified masking strategy."""

        super().__init__()
        self.masker = SensitiveDataMasker(strategy)

    def filter(self, record) -> bool:
        """Filter log record to mask sensitive data."""

        if isinstance(record.msg, str):
            record.msg = self.masker.mask_string(record.msg)

        for key, value in list(record.__dict__.items()):
            if key.lower() in self.masker.SENSITIVE_FIELDS:
                setattr(record, key, self.masker.mask_func(str(value)))
            elif key in EVENT_FIELDS and isinstance(value, str):
                setattr(record, key, self.masker.mask_string(value))
            elif isinstance(value, dict):
                setattr(record, key, self.masker.mask_dict(value))

        return True


## Main Log Manager


class LogManager:
    """Manages logging configuration and provides logger instances."""

    def __init__(self, log_level: str = "INFO", log_dir: Optional[Path] = None):
        self.log_level = self._resolve_level(log_level)
        self.log_dir = log_dir or LOGS_DIR
        self.root_logger = logging.getLogger(ROOT_LOGGER_NAME)
        self.root_logger.setLevel(logging.DEBUG)
        self._setup_handlers()

    @staticmethod
    def _resolve_level(level: str) -> int:
        resolved = logging.getLevelName(level.upper())
        if not isinstance(resolved, int):
            raise ValueError(f"Invalid logging level: {level}")
        return resolved

    def _setup_handlers(self) -> None:
        """Setup console and file handlers with sensitive data filtering."""

        from .errors import FileSystemError

        sensitive_filter = SensitiveDataFilter(strategy="full")

        self.root_logger.handlers.clear()

        console_handler = RichHandler(
            show_time=True,
            show_path=False,
            markup=False,
            rich_tracebacks=True,
        )
        console_handler.setLevel(max(self.log_level, logging.WARNING))
        console_handler.setFormatter(logging.Formatter("%(message)s", datefmt="[%X]"))
        console_handler.addFilter(sensitive_filter)

        log_dir = _ensure_log_dir(self.log_dir)

        try:
            app_handler = RotatingFileHandler(
                log_dir / "app.log",
                maxBytes=5_242_880,
                backupCount=5,
                encoding="utf-8",
            )
            event_handler = RotatingFileHandler(
                log_dir / "events.log",
                maxBytes=2_048_000,
                backupCount=3,
                encoding="utf-8",
            )
        except OSError as e:
            raise FileSystemError(f"Failed to create log file handlers: {e}") from e

        app_handler.setLevel(self.log_level)
        app_handler.setFormatter(JSONFormatter())
        app_handler.addFilter(sensitive_filter)

        event_handler.setLevel(logging.DEBUG)
        event_handler.setFormatter(JSONFormatter())
        event_handler.addFilter(lambda record: hasattr(record, "event_type"))
        event_handler.addFilter(sensitive_filter)

        self.root_logger.addHandler(console_handler)
        self.root_logger.addHandler(app_handler)
        self.root_logger.addHandler(event_handler)

    def set_level(self, level: str) -> None:
        """Set logging level at runtime"""

        self.log_level = self._resolve_level(level)

        for handler in self.root_logger.handlers:
            if isinstance(handler, RichHandler):
                handler.setLevel(max(self.log_level, logging.WARNING))
            else:
                handler.setLevel(self.log_level)

    def log_event(self, event_type: str, message: str, level: str = "INFO", **extra):
        """Log an event with specific type and extra context."""

        extra_dict = {"event_type": event_type}
        extra_dict.update(extra)
        self.root_logger.log(self._resolve_level(level), message, extra=extra_dict)


## Decorators for Logging


def log_call(func):
    """Decorator to log function calls with their duration."""

    @wraps(func)
    def wrapper(*args, **kwargs):
        logger = logging.getLogger(ROOT_LOGGER_NAME)
        func_name = f"{func.__module__}.{func.__qualname__}"
        logger.debug(f"-> Entering {func_name}")
        start_time = datetime.now()

        try:
            result = func(*args, **kwargs)
            duration = (datetime.now() - start_time).total_seconds()
            logger.debug(f"<- Exiting {func_name} (Duration: {duration:.3f}s)")
            return result

        except Exception as e:
            duration = (datetime.now() - start_time).total_seconds()
            logger.debug(f"<- Error in {func_name} after {duration:.3f}s: {e}")
            raise

    return wrapper


def async_log_call(func):
    """Async decorator to log coroutine calls with their duration."""

    @wraps(func)
    async def wrapper(*args, **kwargs):
        logger = logging.getLogger(ROOT_LOGGER_NAME)
        func_name = f"{func.__module__}.{func.__qualname__}"
        logger.debug(f"-> Entering {func_name} (async)")
        start_time = datetime.now()

        try:
            result = await func(*args, **kwargs)
            duration = (datetime.now() - start_time).total_seconds()
            logger.debug(f"<- Exiting {func_name} (Duration: {duration:.3f}s)")
            return result

        except Exception as e:
            duration = (datetime.now() - start_time).total_seconds()
            logger.debug(f"<- Error in {func_name} after {duration:.3f}s: {e}")
            raise

    return wrapper


## Module-level LogManager Instance and Helper Functions

_log_manager: Optional[LogManager] = None


def init_logging(log_level: str = "INFO", log_dir: Optional[Path] = None) -> LogManager:
    """Initialize logging system and return LogManager instance."""

    global _log_manager

    if _log_manager is None:
        _log_manager = LogManager(log_level, log_dir)
    else:
        _log_manager.set_level(log_level)

    return _log_manager


def reset_logging() -> None:
    """Drop the configured handlers (for testing purposes)."""

    global _log_manager

    if _log_manager is not None:
        for handler in list(_log_manager.root_logger.handlers):
            _log_manager.root_logger.removeHandler(handler)
            handler.close()
    _log_manager = None


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Get a logger under the ``mailwire`` hierarchy.

    Handlers are only attached by ``init_logging``; until then records go
    through the standard library's last-resort handler.
    """

    if name and not name.startswith(ROOT_LOGGER_NAME):
        name = f"{ROOT_LOGGER_NAME}.{name}"

    return logging.getLogger(name or ROOT_LOGGER_NAME)


def log_event(event_type: str, message, level: str = "INFO", **extra):
    """Log an event with specific type and extra context (module-level wrapper)."""

    if isinstance(message, dict):
        extra.update(message)
        message = f"Event: {event_type}"

    if _log_manager is None:
        extra_dict = {"event_type": event_type}
        extra_dict.update(extra)
        get_logger().log(LogManager._resolve_level(level), message, extra=extra_dict)
        return

    _log_manager.log_event(event_type, message, level=level, **extra)


## Session Event Subscriber


def log_session_event(event) -> None:
    """Record a ``SessionEvent`` emitted by a protocol session."""

    from mailwire.core.models.session import EventKind

    if event.kind is EventKind.COMMAND_SENT:
        message = f"{event.protocol} >>> {event.command}"
        level = "DEBUG"
    elif event.kind is EventKind.RESPONSE_RECEIVED:
        message = f"{event.protocol} <<< {event.response}"
        level = "DEBUG"
    elif event.kind is EventKind.ERROR:
        message = f"{event.protocol} error: {event.error}"
        level = "WARNING"
    else:
        message = f"{event.protocol} {event.kind.value}: {event.state}"
        level = "INFO"

    fields = {
        key: value
        for key, value in event.as_dict().items()
        if value is not None and key in EVENT_FIELDS
    }
    log_event(f"session.{event.kind.value}", message, level=level, **fields)
