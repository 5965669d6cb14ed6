"""
Logging configuration: JSON records in production, coloured console output in development
"""
import logging
import sys
import json
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from momento.core.config import settings

_log_context: ContextVar[Dict[str, Any]] = ContextVar("log_context", default={})

# LogRecord attributes that are not user supplied extras
_RESERVED = {
    "name", "msg", "args", "created", "filename", "funcName", "levelname",
    "levelno", "lineno", "module", "msecs", "pathname", "process",
    "processName", "relativeCreated", "stack_info", "exc_info", "exc_text",
    "thread", "threadName", "taskName", "message",
}


class JSONFormatter(logging.Formatter):
    """
    One JSON object per record, with request context and ``extra`` fields
    """

    def __init__(self, **kwargs):
        super().__init__()
        self.default_fields = kwargs

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        log_data.update(self.default_fields)

        for key, value in record.__dict__.items():
            if key not in _RESERVED and not key.startswith("_") and value is not None:
                log_data[key] = value

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


class ConsoleFormatter(logging.Formatter):
    """
    Human-readable formatter for development
    """

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, self.RESET)
        timestamp = datetime.fromtimestamp(record.created).strftime("%Y-%m-%d %H:%M:%S")

        parts = [timestamp, f"{color}{record.levelname:8}{self.RESET}"]

        request_id = getattr(record, "request_id", None)
        if request_id:
            parts.append(f"[{request_id[:8]}]")

        device_id = getattr(record, "device_id", None)
        if device_id:
            parts.append(f"device={device_id}")

        parts.extend([record.name, record.getMessage()])
        message = " | ".join(parts)

        if record.exc_info:
            message += f"\n{self.formatException(record.exc_info)}"

        return message


class RequestContextFilter(logging.Filter):
    """
    Copies the current request context onto each record.

    Context lives in a ContextVar, so concurrent requests never see each
    other's fields.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in _log_context.get().items():
            if not hasattr(record, key):
                setattr(record, key, value)
        return True


context_filter = RequestContextFilter()


def set_log_context(**kwargs) -> None:
    """Add fields to the current request's log context"""
    _log_context.set({**_log_context.get(), **kwargs})


def setup_logging(
    log_level: str = "INFO",
    json_logs: Optional[bool] = None
):
    """
    Configure application logging

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_logs: Force JSON logging (None = JSON unless DEBUG)
    """
    use_json = json_logs if json_logs is not None else not settings.DEBUG

    handler = logging.StreamHandler(sys.stdout)
    if use_json:
        handler.setFormatter(JSONFormatter(
            service=settings.PROJECT_NAME,
            environment=settings.ENVIRONMENT
        ))
    else:
        handler.setFormatter(ConsoleFormatter())
    handler.addFilter(context_filter)

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, log_level.upper()))

    for existing in root_logger.handlers[:]:
        root_logger.removeHandler(existing)
    root_logger.addHandler(handler)

    # Third-party noise
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("google").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


class log_context:
    """
    Context manager that scopes log fields to a block

    Usage:
        with log_context(device_id="abc123"):
            logger.info("Registering guest device")
    """

    def __init__(self, **kwargs):
        self.fields = kwargs
        self._token = None

    def __enter__(self):
        self._token = _log_context.set({**_log_context.get(), **self.fields})
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        _log_context.reset(self._token)
        return False
