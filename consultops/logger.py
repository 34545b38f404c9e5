"""
Structured JSON Logging Module.

Provides a ``StructuredLogger`` wrapper around ``logging.Logger`` that
writes one JSON object per line to stdout and a rotating log file.
Credential-looking ``extra`` fields are masked before they are written.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import TYPE_CHECKING, Optional, TextIO, Union

if TYPE_CHECKING:
    from consultops.config import AppConfig

_REDACTED: str = "***"
_SENSITIVE_KEY_PARTS: tuple[str, ...] = ("password", "secret", "token")


class JSONFormatter(logging.Formatter):
    """Formats log records as structured JSON objects.

    Each log entry contains:
        - timestamp  (ISO-8601, UTC)
        - level
        - logger_name
        - message
        - extra      (structured fields passed via the ``extra`` kwarg)
        - exception  (formatted traceback, when present)
    """

    _STANDARD_ATTRS: frozenset[str] = frozenset(
        logging.LogRecord(
            name="", level=0, pathname="", lineno=0, msg="", args=(), exc_info=None
        ).__dict__.keys()
    ) | {"message", "asctime", "taskName"}

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Union[str, dict[str, str]]] = {
            "timestamp": datetime.fromtimestamp(
                record.created, tz=timezone.utc
            ).isoformat(),
            "level": record.levelname,
            "logger_name": record.name,
            "message": record.getMessage(),
        }

        extra_fields: dict[str, str] = {
            key: self._render_extra(key, value)
            for key, value in record.__dict__.items()
            if key not in self._STANDARD_ATTRS
        }
        if extra_fields:
            entry["extra"] = extra_fields

        if record.exc_info and not record.exc_text:
            record.exc_text = self.formatException(record.exc_info)
        if record.exc_text:
            entry["exception"] = record.exc_text

        return json.dumps(entry, ensure_ascii=False)

    @staticmethod
    def _render_extra(key: str, value: object) -> str:
        lowered = key.lower()
        if any(part in lowered for part in _SENSITIVE_KEY_PARTS):
            return _REDACTED
        return str(value)


class StructuredLogger:
    """Injectable logger.

    Usage::

        log = StructuredLogger(name="auth")
        log.info("Login started", extra={"event": "LOGIN_START"})

    Handlers are attached once per logger name, so constructing several
    ``StructuredLogger`` objects with the same name is cheap.
    """

    def __init__(
        self,
        name: str = "consultops",
        level: int = logging.INFO,
        stream: Union[TextIO, None] = None,
        log_file: Optional[str] = None,
        config: Optional["AppConfig"] = None,
    ) -> None:
        if config is None:
            # Lazy import to avoid a circular dependency at module level
            from consultops.config import get_config
            config = get_config()

        self._logger: logging.Logger = logging.getLogger(name)
        self._logger.setLevel(level)

        if not self._logger.handlers:
            formatter = JSONFormatter()

            stream_handler = logging.StreamHandler(stream or sys.stdout)
            stream_handler.setLevel(level)
            stream_handler.setFormatter(formatter)
            self._logger.addHandler(stream_handler)

            resolved_log_file: str = log_file or config.LOG_FILE
            try:
                log_path = Path(resolved_log_file)
                log_path.parent.mkdir(parents=True, exist_ok=True)
                file_handler = RotatingFileHandler(
                    filename=str(log_path),
                    maxBytes=config.LOG_MAX_BYTES,
                    backupCount=config.LOG_BACKUP_COUNT,
                    encoding="utf-8",
                )
                file_handler.setLevel(level)
                file_handler.setFormatter(formatter)
                self._logger.addHandler(file_handler)
            except OSError as exc:
                self._logger.warning(
                    "Could not create log file '%s': %s. "
                    "Continuing with console logging only.",
                    resolved_log_file,
                    exc,
                )

    @property
    def logger(self) -> logging.Logger:
        """Access the underlying ``logging.Logger`` directly."""
        return self._logger

    def debug(self, msg: str, *args: object, **kwargs: object) -> None:
        self._logger.debug(msg, *args, **kwargs)

    def info(self, msg: str, *args: object, **kwargs: object) -> None:
        self._logger.info(msg, *args, **kwargs)

    def warning(self, msg: str, *args: object, **kwargs: object) -> None:
        self._logger.warning(msg, *args, **kwargs)

    def error(self, msg: str, *args: object, **kwargs: object) -> None:
        self._logger.error(msg, *args, **kwargs)


def get_logger(name: str = "consultops") -> StructuredLogger:
    """Create a ``StructuredLogger`` with the given *name*."""
    return StructuredLogger(name=name)
