"""
Structured Logging with Callback Context.
JSON or plain-text logging, callback-scoped context for log records.
"""

import json
import logging
import logging.handlers
import sys
import traceback
from contextvars import ContextVar
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

# Context of the callback the current task is working on
callback_context: ContextVar[Optional["CallbackContext"]] = ContextVar(
    "callback_context", default=None
)

_RESERVED_ATTRS = frozenset(
    [
        "name", "msg", "args", "levelname", "levelno", "pathname", "filename",
        "module", "lineno", "funcName", "created", "msecs", "relativeCreated",
        "thread", "threadName", "processName", "process", "exc_info", "exc_text",
        "stack_info", "taskName", "message", "asctime",
    ]
)


@dataclass
class CallbackContext:
    """Callback execution context for logging"""
    callback_id: str
    remote_url: str
    attempt: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging"""

    def __init__(self, include_traceback: bool = True):
        super().__init__()
        self.include_traceback = include_traceback

    def format(self, record: logging.LogRecord) -> str:
        ctx = callback_context.get()

        log_data: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "message": record.getMessage(),
            "logger_name": record.name,
            "module": record.module,
            "function": record.funcName,
            "line_number": record.lineno,
            "callback": ctx.to_dict() if ctx else None,
        }

        if record.exc_info:
            exc_type, exc_value, exc_traceback = record.exc_info
            exception_data = {
                "type": exc_type.__name__ if exc_type else None,
                "message": str(exc_value) if exc_value else None,
            }
            if self.include_traceback and exc_traceback:
                exception_data["traceback"] = traceback.format_exception(
                    exc_type, exc_value, exc_traceback
                )
            log_data["exception"] = exception_data

        extra_fields = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _RESERVED_ATTRS
        }
        if extra_fields:
            log_data["extra_fields"] = extra_fields

        return json.dumps(log_data, default=str)


class CallbackLogContext:
    """
    Sets the callback context for log records emitted inside the block.

    Each asyncio task runs in its own copy of the context, so concurrent
    callbacks do not see each other's context.
    """

    def __init__(self, callback_id: str, remote_url: str):
        self.context = CallbackContext(callback_id=callback_id, remote_url=remote_url)
        self._token = None

    def __enter__(self) -> "CallbackLogContext":
        self._token = callback_context.set(self.context)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        callback_context.reset(self._token)

    def next_attempt(self) -> int:
        self.context.attempt += 1
        return self.context.attempt


def setup_logging(
    log_level: str = "INFO",
    log_format: str = "simple",
    log_file: Optional[str] = None,
    max_file_size: int = 100 * 1024 * 1024,  # 100MB
    backup_count: int = 5,
):
    """Configure the root logger for the DelayHook process."""
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, log_level.upper()))
    root_logger.handlers.clear()

    if log_format.lower() == "structured":
        formatter: logging.Formatter = JSONFormatter()
    else:
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            log_file, maxBytes=max_file_size, backupCount=backup_count
        )
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    # aiohttp access noise stays out of INFO logs
    logging.getLogger("aiohttp").setLevel(logging.WARNING)
