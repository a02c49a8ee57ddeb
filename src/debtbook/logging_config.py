"""Logging for DebtBook: JSON lines on disk, readable lines on the console."""

from __future__ import annotations

import json
import logging
import logging.handlers
from datetime import datetime, timezone
from pathlib import Path

from .config import BaseConfig

ROOT_LOGGER_NAME = "debtbook"
LOG_FILENAME = "debtbook.log"
LOG_MAX_BYTES = 10 * 1024 * 1024
LOG_BACKUPS = 5

_DEV_CONSOLE_FORMAT = "[%(asctime)s] %(levelname)-8s [%(name)s.%(funcName)s:%(lineno)d] %(message)s"
_CONSOLE_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

# Attributes every LogRecord carries; anything else arrived through ``extra=``.
_RECORD_FIELDS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", (), None))
) | {"message", "asctime", "taskName"}


class JSONFormatter(logging.Formatter):
    """One JSON object per record; ledger ids passed as ``extra`` are kept."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, object] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            exc_type, exc_value, _ = record.exc_info
            payload["exception"] = {
                "type": exc_type.__name__ if exc_type else None,
                "message": str(exc_value) if exc_value else None,
                "traceback": self.formatException(record.exc_info),
            }

        extra = {k: v for k, v in vars(record).items() if k not in _RECORD_FIELDS}
        if extra:
            payload["extra"] = extra

        return json.dumps(payload, default=str)


def _console_handler(dev_mode: bool) -> logging.Handler:
    handler = logging.StreamHandler()
    handler.setLevel(logging.INFO if dev_mode else logging.WARNING)
    if dev_mode:
        handler.setFormatter(logging.Formatter(_DEV_CONSOLE_FORMAT, datefmt="%H:%M:%S"))
    else:
        handler.setFormatter(logging.Formatter(_CONSOLE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    return handler


def setup_logging(config: BaseConfig) -> logging.Logger:
    """Attach console and rotating JSON file handlers to the ``debtbook`` logger.

    Calling it again replaces the handlers, so the CLI and tests can each
    point logging at their own data directory.
    """
    log_file = Path(config.DATA_DIR) / "logs" / LOG_FILENAME
    log_file.parent.mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(logging.INFO)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    logger.addHandler(_console_handler(config.DEV_MODE))

    file_handler = logging.handlers.RotatingFileHandler(
        filename=log_file,
        maxBytes=LOG_MAX_BYTES,
        backupCount=LOG_BACKUPS,
        encoding="utf-8",
    )
    file_handler.setLevel(logging.INFO)
    file_handler.setFormatter(JSONFormatter())
    logger.addHandler(file_handler)

    logger.info(
        "Logging initialized",
        extra={"dev_mode": config.DEV_MODE, "log_file": str(log_file)},
    )
    return logger


def get_logger(name: str) -> logging.Logger:
    """Return a child of the ``debtbook`` logger; module paths pass through."""
    if name == ROOT_LOGGER_NAME or name.startswith(f"{ROOT_LOGGER_NAME}."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")
