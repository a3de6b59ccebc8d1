"""Key-value persistence for the application snapshots.

Each collection is written as one JSON document under a fixed key, replacing
the previous document wholesale. ``SqliteKeyValueStore`` is the default
backend; ``MemoryKeyValueStore`` keeps the same contract without touching disk.
"""
from __future__ import annotations

import json
import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterator, Optional, Protocol, Tuple

from .config import AppConfig
from .errors import SnapshotError

logger = logging.getLogger(__name__)

KEY_CUSTOMERS = "customers"
KEY_SALES = "sales"
KEY_VISITS = "visits"
KEY_GOALS = "goals"
KEY_SETTINGS = "settings"
KEY_AUTH = "auth"

SNAPSHOT_KEYS: Tuple[str, ...] = (
    KEY_CUSTOMERS,
    KEY_SALES,
    KEY_VISITS,
    KEY_GOALS,
    KEY_SETTINGS,
    KEY_AUTH,
)


class KeyValueStore(Protocol):
    def read(self, key: str) -> Optional[Any]:
        ...

    def write(self, key: str, payload: Any) -> None:
        ...

    def read_raw(self, key: str) -> Optional[str]:
        ...


def _encode(payload: Any) -> str:
    return json.dumps(payload, ensure_ascii=False)


def _decode(key: str, raw: Optional[str]) -> Optional[Any]:
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except json.JSONDecodeError as exc:
        raise SnapshotError(f"Stored snapshot '{key}' is corrupted: {exc}") from exc


class MemoryKeyValueStore:
    """Hold encoded snapshots in a dictionary."""

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self._blobs: Dict[str, str] = {}
        for key, payload in (initial or {}).items():
            self.write(key, payload)

    def read_raw(self, key: str) -> Optional[str]:
        return self._blobs.get(key)

    def write_raw(self, key: str, raw: str) -> None:
        self._blobs[key] = raw

    def read(self, key: str) -> Optional[Any]:
        return _decode(key, self.read_raw(key))

    def write(self, key: str, payload: Any) -> None:
        self._blobs[key] = _encode(payload)


class SqliteKeyValueStore:
    """Persist snapshots in a single SQLite table."""

    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.init_schema()

    @classmethod
    def from_config(cls, config: AppConfig) -> "SqliteKeyValueStore":
        return cls(config.db_path)

    @contextmanager
    def connect(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(self.db_path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
        finally:
            conn.close()

    @contextmanager
    def begin(self) -> Iterator[sqlite3.Connection]:
        with self.connect() as conn:
            try:
                yield conn
                conn.commit()
            except Exception:
                conn.rollback()
                raise

    def init_schema(self) -> None:
        with self.begin() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS kv_store (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
                """
            )

    def read_raw(self, key: str) -> Optional[str]:
        with self.connect() as conn:
            row = conn.execute("SELECT value FROM kv_store WHERE key=?", (key,)).fetchone()
        return row["value"] if row else None

    def write_raw(self, key: str, raw: str) -> None:
        with self.begin() as conn:
            conn.execute(
                "REPLACE INTO kv_store(key, value, updated_at) VALUES (?, ?, ?)",
                (key, raw, datetime.now().isoformat(timespec="seconds")),
            )

    def read(self, key: str) -> Optional[Any]:
        return _decode(key, self.read_raw(key))

    def write(self, key: str, payload: Any) -> None:
        self.write_raw(key, _encode(payload))
        logger.debug("Saved snapshot %s to %s", key, self.db_path)


def export_snapshots(store: KeyValueStore) -> Dict[str, str]:
    """Return the raw JSON text of every snapshot currently stored."""

    snapshots: Dict[str, str] = {}
    for key in SNAPSHOT_KEYS:
        raw = store.read_raw(key)
        if raw is not None:
            snapshots[key] = raw
    return snapshots
