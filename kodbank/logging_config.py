"""
Structured Logging Configuration Module

JSON log lines for every banking event. Each line can be traced back to the
HTTP request that caused it (``request_id``, bound by the API middleware) and
to the ledger operation that wrote it (``operation_id``). Credential fields in
``extra`` are masked before they reach a handler.
"""

import logging
import json
from contextvars import ContextVar, Token
from datetime import datetime, timezone
from typing import Any, Optional


TEXT_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

# Keys whose values never appear in logs
SENSITIVE_KEYS = frozenset({"password", "password_hash", "salt", "token", "authorization"})
REDACTED = "***"

_request_id: ContextVar[Optional[str]] = ContextVar("kodbank_request_id", default=None)


def bind_request_id(request_id: Optional[str]) -> Token:
    """Attach a request id to every log line emitted in the current context"""
    return _request_id.set(request_id)


def reset_request_id(token: Token) -> None:
    _request_id.reset(token)


def current_request_id() -> Optional[str]:
    return _request_id.get()


def redact(data: Any) -> Any:
    """Copy of ``data`` with credential values masked, recursing into dicts and lists"""
    if isinstance(data, dict):
        return {
            k: REDACTED if str(k).lower() in SENSITIVE_KEYS else redact(v)
            for k, v in data.items()
        }
    if isinstance(data, (list, tuple)):
        return [redact(v) for v in data]
    return data


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging"""

    def format(self, record):
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "request_id": getattr(record, 'request_id', None) or current_request_id(),
            "operation_id": getattr(record, 'operation_id', None),
            "user_id": getattr(record, 'user_id', None),
            "action": getattr(record, 'action', None),
            "resource": getattr(record, 'resource', None),
            "extra": redact(getattr(record, 'extra', None))
        }

        # Remove None values
        log_entry = {k: v for k, v in log_entry.items() if v is not None}

        if record.exc_info:
            log_entry['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str)


def setup_logging(level: str = "INFO", log_format: str = "json",
                  logger_name: str = "kodbank") -> logging.Logger:
    """
    Setup logging for the application.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: "json" for structured output, "text" for plain lines
        logger_name: Name of the root application logger

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(logger_name)

    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    handler = logging.StreamHandler()
    if log_format == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT))

    logger.addHandler(handler)
    logger.setLevel(getattr(logging, level.upper()))
    logger.propagate = False

    return logger


def get_logger(name: str = "kodbank") -> logging.Logger:
    """Get logger instance"""
    return logging.getLogger(name)


def log_action(logger: logging.Logger, level: str, message: str,
               user_id: Optional[str] = None, action: Optional[str] = None,
               resource: Optional[str] = None, operation_id: Optional[str] = None,
               extra: Optional[dict] = None):
    """
    Log a banking event with structured data.

    Args:
        logger: Logger instance
        level: Log level (info, warning, error, etc.)
        message: Log message
        user_id: ID of the account performing the action
        action: Action being performed
        resource: Resource being acted upon, e.g. ``account:KODA12345678``
        operation_id: Ledger operation the event belongs to
        extra: Additional structured data; credential keys are masked
    """
    levelno = getattr(logging, level.upper())
    if not logger.isEnabledFor(levelno):
        return

    record = logger.makeRecord(
        logger.name, levelno, __name__, 0, message, (), None
    )
    record.request_id = current_request_id()

    if user_id:
        record.user_id = user_id
    if action:
        record.action = action
    if resource:
        record.resource = resource
    if operation_id:
        record.operation_id = operation_id
    if extra:
        record.extra = redact(extra)

    logger.handle(record)
