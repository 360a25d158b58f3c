# src/tasklife/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app, injected into the composition root.
- Nothing required at import time: every key has a default.
- Local overrides via an optional, gitignored config_local.py.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

ENV_PREFIX = "TASKLIFE"

logger = logging.getLogger(__name__)


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _load_dotenv_if_available() -> None:
    """Load .env locally if python-dotenv is installed. Safe no-op otherwise."""
    try:
        from dotenv import load_dotenv  # type: ignore
    except Exception:
        return
    load_dotenv(override=False)


_load_dotenv_if_available()


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

    # ---- Front-end ----
    console_enabled: bool
    badge_enabled: bool

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    db_path: Path

    # ---- Lifecycle tuning ----
    retention_days: int
    maintenance_interval_seconds: float
    write_behind: bool

    @property
    def retention_seconds(self) -> float:
        return float(self.retention_days) * 86400.0

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "tasklife").strip() or "tasklife"
        log_level = _env(_k("LOG_LEVEL"), "INFO")

        console_enabled = _env_bool(_k("CONSOLE_ENABLED"), True)
        badge_enabled = _env_bool(_k("BADGE_ENABLED"), True)

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/tasklife"))
        db_path = _env_path(_k("DB_PATH"), data_dir / "tasklife.sqlite3")

        # A retention window below one day would evict tasks the user just ticked off.
        retention_days = max(1, _env_int(_k("RETENTION_DAYS"), 7))
        maintenance_interval_seconds = max(
            1.0, _env_float(_k("MAINTENANCE_INTERVAL_SECONDS"), 300.0)
        )
        write_behind = _env_bool(_k("WRITE_BEHIND"), True)

        return Settings(
            app_name=app_name,
            log_level=log_level,
            console_enabled=console_enabled,
            badge_enabled=badge_enabled,
            data_dir=data_dir,
            db_path=db_path,
            retention_days=retention_days,
            maintenance_interval_seconds=maintenance_interval_seconds,
            write_behind=write_behind,
        )


SETTINGS = Settings.from_env()

# ---- Optional local overrides (never committed) ----
# Prefer .env; use config_local.py only for safe overrides.
try:
    import config_local as _config_local  # type: ignore

    if hasattr(_config_local, "CONSOLE_ENABLED"):
        object.__setattr__(SETTINGS, "console_enabled", bool(_config_local.CONSOLE_ENABLED))  # type: ignore[misc]
    if hasattr(_config_local, "RETENTION_DAYS"):
        object.__setattr__(SETTINGS, "retention_days", max(1, int(_config_local.RETENTION_DAYS)))  # type: ignore[misc]
    if hasattr(_config_local, "DATA_DIR"):
        object.__setattr__(SETTINGS, "data_dir", Path(_config_local.DATA_DIR))  # type: ignore[misc]
except ImportError:
    pass
except Exception:
    logger.warning("config_local.py could not be applied; using environment settings.", exc_info=True)


def get_settings() -> Settings:
    return SETTINGS
