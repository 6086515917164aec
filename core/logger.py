"""Process-wide JSON logger for the transport and the webhook server.

Every record is one JSON line on stderr and, unless disabled, in
``<TELEWIRE_LOG_DIR>/telewire.log`` (5 MB per file, five backups).  Request
context travels in ``extra``::

    logger.warning("Rejected request on unexpected path", extra={"path": "/x", "client": "10.0.0.8"})

Environment:
    TELEWIRE_LOG_DIR: directory of the rotating file, ``logs`` by default;
        an empty value keeps output on the console only.
    TELEWIRE_LOG_LEVEL: level name such as ``DEBUG``; overrides the level
        passed to the first :meth:`TelewireLogger.get_logger` call.
"""

import json
import logging
import os
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from typing import Optional

# Attributes every LogRecord carries; anything else on a record came from ``extra``.
_RECORD_ATTRS: frozenset = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None))
) | {"message", "asctime"}


class _JsonFormatter(logging.Formatter):
    """One JSON object per record: fixed fields, then the ``extra`` context."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "func_name": record.funcName,
            "thread": record.threadName,
        }
        entry.update(
            (key, value) for key, value in record.__dict__.items()
            if key not in _RECORD_ATTRS and key not in entry
        )
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)


def _resolve_level(default: int) -> int:
    name = os.environ.get("TELEWIRE_LOG_LEVEL", "").strip().upper()
    level = logging.getLevelName(name) if name else default
    return level if isinstance(level, int) else default


class TelewireLogger:
    """Owner of the shared ``telewire`` logger.

    The first instantiation configures handlers; later ones return the same
    object.  Modules grab the logger once at import time::

        logger = TelewireLogger.get_logger()
    """

    _instance: Optional["TelewireLogger"] = None
    _logger: Optional[logging.Logger] = None

    LOGGER_NAME: str = "telewire"

    _DEFAULT_LOG_DIR: str = "logs"
    _LOG_FILE: str = "telewire.log"
    _MAX_BYTES: int = 5 * 1024 * 1024
    _BACKUP_COUNT: int = 5

    def __new__(cls, level: int = logging.INFO) -> "TelewireLogger":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._configure(_resolve_level(level))
        return cls._instance

    def _configure(self, level: int) -> None:
        self._logger = logging.getLogger(self.LOGGER_NAME)
        self._logger.setLevel(level)
        self._logger.propagate = False

        # Already configured by an earlier import of this module.
        if self._logger.handlers:
            return

        formatter = _JsonFormatter()
        handlers: list = [logging.StreamHandler()]

        log_dir = os.environ.get("TELEWIRE_LOG_DIR", self._DEFAULT_LOG_DIR)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
            handlers.append(RotatingFileHandler(
                os.path.join(log_dir, self._LOG_FILE),
                maxBytes=self._MAX_BYTES,
                backupCount=self._BACKUP_COUNT,
                encoding="utf-8",
            ))

        for handler in handlers:
            handler.setLevel(level)
            handler.setFormatter(formatter)
            self._logger.addHandler(handler)

    @staticmethod
    def get_logger(level: int = logging.INFO) -> logging.Logger:
        """Return the shared logger; *level* only matters on the very first call."""
        instance = TelewireLogger(level)
        assert instance._logger is not None
        return instance._logger

    def cleanup(self) -> None:
        """Flush, close and detach every handler, e.g. before process exit."""
        if self._logger is None:
            return
        for handler in list(self._logger.handlers):
            handler.flush()
            handler.close()
            self._logger.removeHandler(handler)
