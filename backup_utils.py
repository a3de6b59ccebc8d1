"""Monthly zip backups of the stored snapshots."""

from __future__ import annotations

import io
import json
import logging
import shutil
import zipfile
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, Optional, Tuple

from controlarva.storage import KeyValueStore, export_snapshots

logger = logging.getLogger(__name__)

BACKUP_PREFIX = "controlarva_backup"
METADATA_FILENAME = "backup_metadata.json"
MANIFEST_FILENAME = "manifest.json"


def build_snapshot_archive(store: KeyValueStore, now: Optional[datetime] = None) -> bytes:
    """Zip every stored snapshot as ``<key>.json`` alongside a manifest."""

    snapshots = export_snapshots(store)
    if not snapshots:
        return b""
    created = (now or datetime.now()).isoformat(timespec="seconds")
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        for key, raw in snapshots.items():
            archive.writestr(f"{key}.json", raw)
        archive.writestr(
            MANIFEST_FILENAME,
            json.dumps({"created_at": created, "snapshots": sorted(snapshots)}, indent=2),
        )
    return buffer.getvalue()


def read_metadata(backup_dir: Path) -> Dict[str, str]:
    path = backup_dir / METADATA_FILENAME
    if not path.exists():
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError):
        logger.warning("Ignoring unreadable backup metadata at %s", path)
        return {}
    if not isinstance(data, dict):
        return {}
    return {str(key): str(value) for key, value in data.items()}


def prune_backups(backup_dir: Path, keep: int) -> list[Path]:
    """Delete all but the ``keep`` newest archives; returns what was removed."""

    if keep <= 0:
        return []
    # Timestamped names sort chronologically.
    archives = sorted(backup_dir.glob(f"{BACKUP_PREFIX}_*.zip"), reverse=True)
    removed = archives[keep:]
    for path in removed:
        path.unlink(missing_ok=True)
        logger.info("Pruned old backup %s", path.name)
    return removed


def _copy_to_mirror(source: Path, mirror_dir: Path) -> Optional[str]:
    try:
        mirror_dir.mkdir(parents=True, exist_ok=True)
        shutil.copy2(source, mirror_dir / source.name)
    except OSError as exc:
        logger.warning("Could not mirror backup to %s: %s", mirror_dir, exc)
        return str(exc)
    return None


def ensure_monthly_backup(
    backup_dir: Path,
    build_archive: Callable[[], bytes],
    retention: int,
    mirror_dir: Optional[Path] = None,
    now: Optional[datetime] = None,
) -> Tuple[Optional[Path], Optional[str]]:
    """Write this month's archive unless one already exists.

    Returns ``(path, error)``. ``path`` is ``None`` when nothing was written;
    ``error`` carries a message the settings page can display. Failures are
    reported instead of raised so a broken backup never blocks the app.
    """

    now = now or datetime.now()
    month = now.strftime("%Y-%m")
    metadata = read_metadata(backup_dir)
    if metadata.get("last_backup_month") == month:
        return None, None

    try:
        payload = build_archive()
        if not payload:
            logger.info("Nothing stored yet; skipping monthly backup")
            return None, None
        backup_dir.mkdir(parents=True, exist_ok=True)
        destination = backup_dir / f"{BACKUP_PREFIX}_{now:%Y_%m_%d_%H%M%S}.zip"
        staging = destination.with_name(f".{destination.name}.tmp")
        staging.write_bytes(payload)
        staging.replace(destination)

        mirror_error = _copy_to_mirror(destination, mirror_dir) if mirror_dir else None
        (backup_dir / METADATA_FILENAME).write_text(
            json.dumps(
                {
                    "last_backup_month": month,
                    "last_backup_at": now.isoformat(timespec="seconds"),
                    "last_backup_file": destination.name,
                    "mirror_dir": str(mirror_dir) if mirror_dir else "",
                    "mirror_error": mirror_error or "",
                },
                ensure_ascii=False,
                indent=2,
            ),
            encoding="utf-8",
        )
        logger.info("Monthly backup written to %s", destination)
        prune_backups(backup_dir, retention)
    except Exception as exc:
        logger.exception("Monthly backup failed")
        return None, f"Monthly backup failed: {exc}"

    if mirror_error:
        return destination, f"Mirror backup copy failed: {mirror_error}"
    return destination, None


def get_backup_status(backup_dir: Path) -> Dict[str, str]:
    metadata = read_metadata(backup_dir)
    if not metadata:
        return {}
    last_at = metadata.get("last_backup_at", "")
    if last_at:
        try:
            last_at = datetime.fromisoformat(last_at).strftime("%d/%m/%Y %H:%M")
        except ValueError:
            logger.debug("Unparseable backup timestamp %r", last_at)
    return {
        "last_backup_at": last_at,
        "last_backup_file": metadata.get("last_backup_file", ""),
        "backup_dir": str(backup_dir),
        "mirror_dir": metadata.get("mirror_dir", ""),
        "mirror_error": metadata.get("mirror_error", ""),
    }
