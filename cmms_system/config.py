"""Centralized settings loaded from environment variables (+ optional .env)."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

ENV_PREFIX = "CMMS"

load_dotenv(override=False)


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str

    # ---- Web server ----
    host: str
    port: int

    # ---- Local data ----
    data_dir: Path
    database_path: Path
    seed_demo_data: bool

    # ---- Business rules ----
    due_window_days: int
    urgent_log_days: int
    safety_expiring_days: int
    tax_rate: float

    @staticmethod
    def from_env() -> "Settings":
        data_dir = _env_path(_k("DATA_DIR"), Path(".local/cmms"))
        return Settings(
            app_name=_env(_k("APP_NAME"), "CMMS Pro"),
            log_level=_env(_k("LOG_LEVEL"), "INFO"),
            host=_env(_k("HOST"), "127.0.0.1"),
            port=_env_int(_k("PORT"), 8000),
            data_dir=data_dir,
            database_path=_env_path(_k("DATABASE_PATH"), data_dir / "cmms.sqlite3"),
            seed_demo_data=_env_bool(_k("SEED_DEMO_DATA"), True),
            due_window_days=_env_int(_k("DUE_WINDOW_DAYS"), 7),
            urgent_log_days=_env_int(_k("URGENT_LOG_DAYS"), 3),
            safety_expiring_days=_env_int(_k("SAFETY_EXPIRING_DAYS"), 7),
            tax_rate=_env_float(_k("TAX_RATE"), 0.19),
        )


def get_settings() -> Settings:
    return Settings.from_env()
