"""Application configuration objects and helpers."""

from __future__ import annotations

import os
from datetime import time
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: bool = False) -> bool:
    """Interpret environment variable values as booleans."""

    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {value!r}") from exc


def parse_check_time(value: str) -> time:
    """Parse an ``HH:MM`` reminder time."""

    try:
        hours, minutes = (int(part) for part in value.strip().split(":"))
        return time(hour=hours, minute=minutes)
    except ValueError as exc:
        raise ValueError(f"Invalid reminder time {value!r}; expected HH:MM") from exc


class BaseConfig:
    """Base configuration shared across environments."""

    APP_NAME = "DebtBook"
    DB_FILENAME = "debtbook.db"
    SQLITE_PRAGMAS = {"journal_mode": "wal", "foreign_keys": "on"}

    def __init__(self, data_dir: Path | str | None = None) -> None:
        self.DATA_DIR = self._resolve_data_dir(data_dir)
        self.DEV_MODE = _env_bool("DEBTBOOK_DEV_MODE", default=True)
        self.DATABASE_URL = os.getenv("DEBTBOOK_DATABASE_URL", self._build_sqlite_url())
        self.DEFAULT_CURRENCY = os.getenv("DEBTBOOK_DEFAULT_CURRENCY", "IQD").strip().upper()
        self.DEBT_CHECK_TIME = parse_check_time(os.getenv("DEBTBOOK_DEBT_CHECK_TIME", "09:00"))
        self.EXPENSE_FLUSH_MINUTES = _env_int("DEBTBOOK_EXPENSE_FLUSH_MINUTES", 15)
        self.UPCOMING_WINDOW_DAYS = _env_int("DEBTBOOK_UPCOMING_WINDOW_DAYS", 7)
        if len(self.DEFAULT_CURRENCY) != 3:
            raise ValueError("DEBTBOOK_DEFAULT_CURRENCY must be an ISO-4217 code.")

    def _resolve_data_dir(self, data_dir: Path | str | None = None) -> Path:
        """Return the directory where the SQLite file and logs live."""

        data_root = data_dir or os.getenv("DEBTBOOK_DATA_DIR", "instance")
        base_path = Path(data_root).expanduser()
        try:
            path = base_path.resolve()
            path.mkdir(parents=True, exist_ok=True)
            return path
        except PermissionError:
            # Protected install locations fall back to user-local storage.
            fallback_path = Path.home() / ".local" / "share" / self.APP_NAME.lower()
            fallback_path.mkdir(parents=True, exist_ok=True)
            return fallback_path.resolve()

    def _build_sqlite_url(self) -> str:
        db_path = self.DATA_DIR / self.DB_FILENAME
        return f"sqlite:///{db_path}"

    def sqlalchemy_engine_options(self) -> dict[str, Any]:
        """Expose engine kwargs for SQLModel to consume."""

        if not self.DATABASE_URL.startswith("sqlite"):
            return {}
        return {"connect_args": {"check_same_thread": False}}


class DevConfig(BaseConfig):
    """Development configuration using local SQLite."""

    DEBUG = True
    TESTING = False

