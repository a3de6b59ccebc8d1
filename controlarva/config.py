"""Runtime configuration for the dashboard."""
from __future__ import annotations

import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

APP_STORAGE_SUBDIR = "controlarva"
DEFAULT_LOGIN_DELAY_SECONDS = 0.8
DEFAULT_BACKUP_RETENTION = 12


@dataclass(frozen=True)
class AppConfig:
    """Hold runtime configuration options for the application."""

    data_dir: Path
    db_path: Path
    backup_retention: int
    backup_mirror_dir: Optional[Path]
    login_delay_seconds: float
    log_level: str

    @property
    def backup_dir(self) -> Path:
        return self.data_dir / "backups"


def default_data_dir() -> Path:
    """Return the platform data directory used when ``APP_STORAGE_DIR`` is unset."""

    if sys.platform.startswith("win"):
        root = Path(os.getenv("APPDATA") or Path.home())
    elif sys.platform == "darwin":
        root = Path.home() / "Library" / "Application Support"
    else:
        root = Path(os.getenv("XDG_DATA_HOME") or Path.home() / ".local" / "share")
    return root / APP_STORAGE_SUBDIR


def _int_env(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, ""))
    except ValueError:
        return default


def _float_env(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, ""))
    except ValueError:
        return default


def load_config() -> AppConfig:
    """Load settings from the environment (and a ``.env`` file) with sane defaults."""

    load_dotenv()
    data_dir = Path(os.getenv("APP_STORAGE_DIR") or default_data_dir()).expanduser()
    data_dir.mkdir(parents=True, exist_ok=True)

    db_path = Path(
        os.getenv("CONTROLARVA_DB_PATH") or data_dir / "controlarva.db"
    ).expanduser()

    mirror = os.getenv("CONTROLARVA_BACKUP_MIRROR_DIR")

    return AppConfig(
        data_dir=data_dir,
        db_path=db_path,
        backup_retention=_int_env("CONTROLARVA_BACKUP_RETENTION", DEFAULT_BACKUP_RETENTION),
        backup_mirror_dir=Path(mirror).expanduser() if mirror else None,
        login_delay_seconds=_float_env("CONTROLARVA_LOGIN_DELAY", DEFAULT_LOGIN_DELAY_SECONDS),
        log_level=(os.getenv("CONTROLARVA_LOG_LEVEL") or "INFO").upper(),
    )
