"""Core utilities for the Controlarva sales dashboard."""

from .config import AppConfig, load_config
from .errors import (
    ControlarvaError,
    RecordNotFoundError,
    ReportGenerationError,
    SnapshotError,
    ValidationError,
)
from .state import AppState, DashboardStats
from .storage import MemoryKeyValueStore, SqliteKeyValueStore

__all__ = [
    "AppConfig",
    "load_config",
    "ControlarvaError",
    "RecordNotFoundError",
    "ReportGenerationError",
    "SnapshotError",
    "ValidationError",
    "AppState",
    "DashboardStats",
    "MemoryKeyValueStore",
    "SqliteKeyValueStore",
]
