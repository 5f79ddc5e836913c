import contextvars
import json
import logging
import uuid
from contextlib import contextmanager
from typing import Optional

_operation_id_ctx: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar("operation_id", default=None)


class OperationContextFilter(logging.Filter):
    """Injects operation_id from contextvar into the log record."""

    def filter(self, record):
        record.operation_id = _operation_id_ctx.get()
        return True


@contextmanager
def operation_context(operation_id: str):
    """Context manager to set the operation_id for the current context."""
    token = _operation_id_ctx.set(operation_id)
    try:
        yield
    finally:
        _operation_id_ctx.reset(token)


def current_operation_id() -> Optional[str]:
    return _operation_id_ctx.get()


@contextmanager
def operation_scope(kind: str):
    """Tags log records of one execution unless an outer operation is already active."""
    if _operation_id_ctx.get() is not None:
        yield
        return
    with operation_context(f"{kind}-{uuid.uuid4().hex[:12]}"):
        yield


class JsonFormatter(logging.Formatter):
    """Formatter that outputs JSON strings after parsing the LogRecord."""

    # Standard LogRecord attributes to ignore
    standard_attrs = {
        "args", "asctime", "created", "exc_info", "exc_text", "filename",
        "funcName", "levelname", "levelno", "lineno", "module",
        "msecs", "message", "msg", "name", "pathname", "process",
        "processName", "relativeCreated", "stack_info", "thread", "threadName",
        "taskName", "operation_id",
    }

    def format(self, record: logging.LogRecord) -> str:
        """Formats the log record as a JSON string.

        Args:
           record (logging.LogRecord): The log record to format.

        Returns:
            str: The JSON-formatted log string.
        """
        log_record = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "name": record.name,
            "message": record.getMessage(),
        }

        if getattr(record, "operation_id", None):
            log_record["operation_id"] = record.operation_id

        if record.exc_info:
            log_record["exception"] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key not in self.standard_attrs and not key.startswith("_"):
                log_record[key] = value

        return json.dumps(log_record, default=str)


def configure_logging(level: str = "INFO", json_format: bool = False):
    """Configures the root logger.

    Args:
        level (str): The logging level (default: INFO).
        json_format (bool): Whether to use JSON formatting (default: False).
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(level.upper())

    # Remove existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.addFilter(OperationContextFilter())

    if json_format:
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s - [%(operation_id)s] - %(name)s - %(levelname)s - %(message)s")
        )

    root_logger.addHandler(handler)

    # Silence noisy libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)
    logging.getLogger("pymongo").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Gets a named logger.

    Args:
        name (str): The name of the logger.

    Returns:
        logging.Logger: The logger instance.
    """
    return logging.getLogger(name)
