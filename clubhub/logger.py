"""
Structured JSON Logging Module.

One JSON object per line, on stdout and in a rotating log file, so every
reconciliation attempt and auth state change can be queried by
``subject_id``, ``attempt`` or ``event`` afterwards.

Loggers can carry bound context::

    log = StructuredLogger(name="clubhub.reconciler")
    cycle_log = log.bind(subject_id="abc-123", epoch=4)
    cycle_log.info("Attempt %d: fetching profile", 1, extra={"attempt": 1})
"""

import copy
import json
import logging
import sys
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Optional, TextIO, Union

from clubhub.config import get_config

# Values emitted as-is in the "extra" object; anything else is str()-ed.
_JSON_SCALARS = (str, int, float, bool, type(None))


class JSONFormatter(logging.Formatter):
    """Formats log records as structured JSON objects.

    Each log entry contains:
        - timestamp  (ISO-8601, UTC)
        - level
        - logger_name
        - message
        - extra      (bound context and ``extra=`` fields; scalars keep their type)
        - exception  (formatted traceback, when present)
    """

    # Attribute names every LogRecord has; computed once at import.
    _RESERVED: frozenset[str] = frozenset(
        vars(logging.LogRecord("", 0, "", 0, "", (), None))
    ) | {"message", "asctime", "taskName"}

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger_name": record.name,
            "message": record.getMessage(),
        }

        fields = {
            key: value if isinstance(value, _JSON_SCALARS) else str(value)
            for key, value in vars(record).items()
            if key not in self._RESERVED
        }
        if fields:
            entry["extra"] = fields

        if record.exc_info and not record.exc_text:
            record.exc_text = self.formatException(record.exc_info)
        if record.exc_text:
            entry["exception"] = record.exc_text

        return json.dumps(entry, ensure_ascii=False)


class StructuredLogger:
    """Injectable JSON logger.

    Handlers are attached once per logger *name*; building a second
    ``StructuredLogger`` with the same name reuses them.  Level, file
    name and rotation default to ``AppConfig``.
    """

    def __init__(
        self,
        name: str = "clubhub",
        level: Optional[int] = None,
        stream: Union[TextIO, None] = None,
        log_file: Optional[str] = None,
        max_bytes: Optional[int] = None,
        backup_count: Optional[int] = None,
    ) -> None:
        cfg = get_config()

        self._level: int = level if level is not None else cfg.log_level
        self._context: dict[str, Any] = {}
        self._logger: logging.Logger = logging.getLogger(name)
        self._logger.setLevel(self._level)

        if not self._logger.handlers:
            self._attach_handlers(
                stream or sys.stdout,
                log_file or cfg.LOG_FILE,
                max_bytes if max_bytes is not None else cfg.LOG_MAX_BYTES,
                backup_count if backup_count is not None else cfg.LOG_BACKUP_COUNT,
            )

    def _attach_handlers(
        self, stream: TextIO, log_file: str, max_bytes: int, backup_count: int,
    ) -> None:
        formatter = JSONFormatter()

        console = logging.StreamHandler(stream)
        console.setLevel(self._level)
        console.setFormatter(formatter)
        self._logger.addHandler(console)

        try:
            path = Path(log_file)
            path.parent.mkdir(parents=True, exist_ok=True)
            rotating = RotatingFileHandler(
                filename=str(path),
                maxBytes=max_bytes,
                backupCount=backup_count,
                encoding="utf-8",
            )
        except OSError as exc:
            self._logger.warning(
                "Could not open log file '%s': %s. Logging to the console only.",
                log_file,
                exc,
            )
            return
        rotating.setLevel(self._level)
        rotating.setFormatter(formatter)
        self._logger.addHandler(rotating)

    @property
    def logger(self) -> logging.Logger:
        return self._logger

    @property
    def context(self) -> dict[str, Any]:
        return dict(self._context)

    def bind(self, **fields: Any) -> "StructuredLogger":
        """Return a logger that adds *fields* to every record's ``extra``."""
        bound = copy.copy(self)
        bound._context = {**self._context, **fields}
        return bound

    # -- Level delegates ------------------------------------------------------

    def debug(self, msg: str, *args: object, **kwargs: Any) -> None:
        self._emit(logging.DEBUG, msg, args, kwargs)

    def info(self, msg: str, *args: object, **kwargs: Any) -> None:
        self._emit(logging.INFO, msg, args, kwargs)

    def warning(self, msg: str, *args: object, **kwargs: Any) -> None:
        self._emit(logging.WARNING, msg, args, kwargs)

    def error(self, msg: str, *args: object, **kwargs: Any) -> None:
        self._emit(logging.ERROR, msg, args, kwargs)

    def exception(self, msg: str, *args: object, **kwargs: Any) -> None:
        kwargs.setdefault("exc_info", True)
        self._emit(logging.ERROR, msg, args, kwargs)

    def _emit(self, level: int, msg: str, args: tuple, kwargs: dict[str, Any]) -> None:
        if not self._logger.isEnabledFor(level):
            return
        if self._context:
            kwargs["extra"] = {**self._context, **(kwargs.get("extra") or {})}
        # stacklevel 3 attributes the record to the caller, not this module.
        kwargs.setdefault("stacklevel", 3)
        self._logger.log(level, msg, *args, **kwargs)


def get_logger(name: str = "clubhub") -> StructuredLogger:
    """Shorthand for ``StructuredLogger(name=name)`` with config defaults."""
    return StructuredLogger(name=name)
