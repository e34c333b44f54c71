"""Logging setup for the Homefence service.

``setup_logging()`` is called once from the application lifespan. It installs:

- a stdout handler, plain text or JSON (``LOG_FORMAT=json``)
- a size-rotated plain text file at ``LOG_FILE_PATH``

Every record carries the id of the HTTP request it was emitted under (see
``RequestIDMiddleware``), so one position update can be followed from the
request line to the notification it triggered.

Tracking tokens and admin keys are credentials. Log messages must never
contain them; ``sanitize_error`` strips them from exception text, which
may echo URLs and request bodies.
"""

import logging
import re
import sys
from contextvars import ContextVar
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

from pythonjsonlogger.json import JsonFormatter

from homefence.core.config import Settings, get_settings
from homefence.core.time_utils import utc_now

TEXT_FORMAT = "%(asctime)s | %(levelname)-8s | %(request_id)s | %(name)s | %(message)s"

# Libraries whose INFO output drowns out the service's own
_QUIET_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "httpx", "httpcore", "aiosqlite")

_BEARER = re.compile(r"Bearer\s+[\w.~+/=-]+", re.IGNORECASE)
_CREDENTIAL_VALUE = re.compile(
    r"\b(token|api[_-]?key|password|secret)(['\"]?\s*[=:]\s*['\"]?)[^\s&'\",}]+",
    re.IGNORECASE,
)
_REDACTIONS = (
    (_BEARER, "Bearer [REDACTED]"),
    (_CREDENTIAL_VALUE, r"\1\2[REDACTED]"),
)
_FILE_PATH = re.compile(r"(?:/[\w.-]+){2,}")

_request_id: ContextVar[str | None] = ContextVar("request_id", default=None)


def get_request_id() -> str | None:
    return _request_id.get()


def set_request_id(request_id: str | None) -> None:
    """Bind a request id to the current task's logging context."""
    _request_id.set(request_id)


class RequestContextFilter(logging.Filter):
    """Stamp records with the current request id ("-" outside a request)."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = get_request_id() or "-"  # type: ignore[attr-defined]
        return True


class HomefenceJsonFormatter(JsonFormatter):
    """One JSON object per line with a UTC timestamp and the service name."""

    def __init__(self, service: str) -> None:
        super().__init__("%(message)s")
        self._service = service

    def add_fields(
        self,
        log_record: dict[str, Any],
        record: logging.LogRecord,
        message_dict: dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = utc_now().isoformat()
        log_record["level"] = record.levelname
        log_record["logger"] = record.name
        log_record["service"] = self._service
        request_id = getattr(record, "request_id", "-")
        if request_id != "-":
            log_record["request_id"] = request_id


def _stdout_handler(settings: Settings, level: int) -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    if settings.log_format == "json":
        handler.setFormatter(HomefenceJsonFormatter(settings.app_name))
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT))
    return handler


def _file_handler(settings: Settings, level: int) -> logging.Handler:
    log_path = Path(settings.log_file_path)
    log_path.parent.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        filename=log_path,
        maxBytes=settings.log_file_max_bytes,
        backupCount=settings.log_file_backup_count,
        encoding="utf-8",
    )
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(TEXT_FORMAT))
    return handler


def setup_logging() -> None:
    """Configure the root logger from settings. Safe to call more than once."""
    settings = get_settings()
    level = logging.getLevelName(settings.log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    root = logging.getLogger()
    root.setLevel(level)
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    context_filter = RequestContextFilter()
    handlers = [_stdout_handler(settings, level)]
    file_error: OSError | None = None
    try:
        handlers.append(_file_handler(settings, level))
    except OSError as e:
        file_error = e

    for handler in handlers:
        handler.addFilter(context_filter)
        root.addHandler(handler)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    if file_error is not None:
        root.warning(f"File logging disabled: {sanitize_error(file_error)}")
    root.info(
        f"Logging configured (level={settings.log_level}, format={settings.log_format})"
    )


def sanitize_error(error: BaseException, max_length: int = 500) -> str:
    """Render an exception for the log without credentials or full paths.

    Bearer tokens and ``token=``/``api_key=``-style values are replaced with
    ``[REDACTED]``; absolute file paths are shortened to their file name.

    Args:
        error: The exception to render
        max_length: Longer messages are cut and marked ``...[truncated]``
    """
    message = str(error) or type(error).__name__
    for pattern, replacement in _REDACTIONS:
        message = pattern.sub(replacement, message)
    message = _FILE_PATH.sub(lambda m: ".../" + m.group(0).rsplit("/", 1)[-1], message)

    if len(message) > max_length:
        message = message[:max_length] + "...[truncated]"
    return message


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
