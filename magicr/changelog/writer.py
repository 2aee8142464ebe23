# (C) 2025 Rodrigo Rodrigues da Silva <rodrigopitanga@posteo.net>
# SPDX-License-Identifier: GPL-3.0-or-later

"""
Copy-then-replace writes: the current file is copied to a timestamped backup
before it is overwritten and restored from it if the write fails.
"""

from __future__ import annotations
import os, re, shutil
from datetime import datetime, timedelta
from pathlib import Path
from ..errors import ChangelogWriteError
from ..log import LOG as log
from ..metrics import inc as m_inc

_BACKUP_RE = re.compile(
    r"^(?P<stem>.+)\.backup\.(?P<ts>\d{4}-\d{2}-\d{2}T\d{2}-\d{2}-\d{2}(?:-\d+)?)\.md$"
)


def _stamp(now: datetime) -> str:
    return now.isoformat().replace(":", "-").replace(".", "-")


def backup_path_for(path: str | Path, now: datetime | None = None) -> Path:
    """CHANGELOG.md -> CHANGELOG.backup.2025-01-15T10-30-00-123456.md"""
    path = Path(path)
    return path.with_name(f"{path.stem}.backup.{_stamp(now or datetime.now())}.md")


def _backup_time(name: str) -> datetime | None:
    m = _BACKUP_RE.match(name)
    if not m:
        return None
    ts = m.group("ts")
    try:
        return datetime.strptime(ts[:19], "%Y-%m-%dT%H-%M-%S")
    except ValueError:
        return None


def create_backup(path: str | Path, now: datetime | None = None) -> Path | None:
    path = Path(path)
    if not path.is_file():
        return None
    target = backup_path_for(path, now)
    shutil.copy2(path, target)
    log.debug(f"Backed up {path.name} to {target.name}")
    return target


def restore(path: str | Path, backup: Path | None) -> None:
    """Put the backup back, or remove a partial file when there was none."""
    path = Path(path)
    if backup is not None:
        shutil.copy2(backup, path)
        log.warning(f"Restored {path.name} from {backup.name}")
    elif path.exists():
        os.remove(path)
        log.warning(f"Removed partially written {path.name}")


def prune_backups(path: str | Path, retention_days: int,
                  now: datetime | None = None) -> list[Path]:
    """Delete backups of `path` older than the retention window."""
    path = Path(path)
    now = now or datetime.now()
    cutoff = now - timedelta(days=max(0, int(retention_days)))
    removed: list[Path] = []
    if not path.parent.is_dir():
        return removed
    for candidate in sorted(path.parent.iterdir()):
        m = _BACKUP_RE.match(candidate.name)
        if not m or m.group("stem") != path.stem:
            continue
        when = _backup_time(candidate.name)
        if when is not None and when < cutoff:
            try:
                os.remove(candidate)
            except OSError as e:
                log.warning(f"Could not remove old backup {candidate.name}: {e}")
                continue
            removed.append(candidate)
    if removed:
        m_inc("backups_pruned_total", float(len(removed)))
        log.debug(f"Pruned {len(removed)} old backup(s)")
    return removed


def _write(path: Path, text: str) -> None:
    with open(path, "w", encoding="utf-8") as f:
        f.write(text)
        f.flush()


def write_changelog(path: str | Path, text: str, retention_days: int = 7,
                    now: datetime | None = None) -> Path | None:
    """
    Write `text` to `path` behind a backup. Returns the backup path (None when
    the file did not exist). A failed write is rolled back; if the rollback
    fails too, ChangelogWriteError carries both errors.
    """
    path = Path(path)
    try:
        backup = create_backup(path, now)
    except OSError as e:
        raise ChangelogWriteError(f"Could not back up {path}: {e}", {"path": str(path)}) from e

    try:
        _write(path, text)
    except OSError as e:
        context = {"path": str(path), "backup": str(backup) if backup else None}
        try:
            restore(path, backup)
        except OSError as restore_error:
            context["restore_error"] = str(restore_error)
            log.error(f"Restore of {path.name} failed: {restore_error}")
        raise ChangelogWriteError(f"Failed to write {path}: {e}", context) from e

    m_inc("changelog_writes_total")
    log.info(f"Wrote {path}")
    prune_backups(path, retention_days, now)
    return backup
