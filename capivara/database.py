"""SQLite catalogue of snapshots and the files they hold."""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from typing import Any, Optional

_SCHEMA = """
CREATE TABLE IF NOT EXISTS snapshot_files (
    original_path TEXT PRIMARY KEY,
    md5 TEXT NOT NULL,
    permission TEXT,
    snapshot_id INTEGER,
    remote_hash TEXT,
    status TEXT DEFAULT 'pending'
);
CREATE TABLE IF NOT EXISTS snapshots (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    date TEXT NOT NULL,
    status TEXT DEFAULT 'pending'
);
"""

_FILE_COLUMNS = "original_path, md5, permission, snapshot_id, remote_hash, status"

_UPDATABLE_FIELDS = frozenset(
    {"original_path", "md5", "permission", "snapshot_id", "remote_hash", "status"}
)


@dataclass(frozen=True)
class FileRecord:
    """A row of ``snapshot_files``."""

    path: str
    md5: str
    permission: Optional[str]
    snap_id: Optional[int]
    remote_hash: Optional[str]
    status: Optional[str]


@dataclass(frozen=True)
class SnapshotRecord:
    """A row of ``snapshots``."""

    id: int
    date: str
    status: Optional[str]


def init_db(filename: str) -> sqlite3.Connection:
    """Open the database at ``filename`` and create its tables if needed."""
    db = sqlite3.connect(filename)
    try:
        db.executescript(_SCHEMA)
    except sqlite3.Error:
        db.close()
        raise
    return db


def save_file_info(
    db: sqlite3.Connection,
    original_path: str,
    md5: str,
    permission: str,
    snapshot_id: int,
    remote_hash: str,
    status: str,
) -> None:
    """Insert or replace the record for ``original_path``."""
    with db:
        db.execute(
            f"INSERT OR REPLACE INTO snapshot_files ({_FILE_COLUMNS}) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            (original_path, md5, permission, snapshot_id, remote_hash, status),
        )


def list_files(db: sqlite3.Connection) -> list[FileRecord]:
    """Return every file record ordered by path."""
    rows = db.execute(
        f"SELECT {_FILE_COLUMNS} FROM snapshot_files ORDER BY original_path"
    )
    return [FileRecord(*row) for row in rows]


def get_file_by_hash(db: sqlite3.Connection, md5: str) -> Optional[FileRecord]:
    """Return a record with the given content hash, or None."""
    row = db.execute(
        f"SELECT {_FILE_COLUMNS} FROM snapshot_files WHERE md5 = ?", (md5,)
    ).fetchone()
    return FileRecord(*row) if row else None


def list_files_by_snapshot(db: sqlite3.Connection, snapshot_id: int) -> list[FileRecord]:
    """Return the records of one snapshot ordered by path."""
    rows = db.execute(
        f"SELECT {_FILE_COLUMNS} FROM snapshot_files "
        "WHERE snapshot_id = ? ORDER BY original_path",
        (snapshot_id,),
    )
    return [FileRecord(*row) for row in rows]


def save_snapshot(db: sqlite3.Connection) -> int:
    """Create a snapshot dated now and return its id."""
    with db:
        cursor = db.execute("INSERT INTO snapshots (date) VALUES (datetime('now'))")
    return cursor.lastrowid


def list_snapshots(db: sqlite3.Connection) -> list[SnapshotRecord]:
    """Return every snapshot ordered by date."""
    rows = db.execute("SELECT id, date, status FROM snapshots ORDER BY date")
    return [SnapshotRecord(*row) for row in rows]


def get_snap_by_date(db: sqlite3.Connection, date: str) -> Optional[SnapshotRecord]:
    """Return the snapshot taken at ``date``, or None."""
    row = db.execute(
        "SELECT id, date, status FROM snapshots WHERE date = ?", (date,)
    ).fetchone()
    return SnapshotRecord(*row) if row else None


def get_last_snap(db: sqlite3.Connection) -> Optional[SnapshotRecord]:
    """Return the most recent snapshot, or None when there is none."""
    row = db.execute(
        "SELECT id, date, status FROM snapshots ORDER BY date DESC LIMIT 1"
    ).fetchone()
    return SnapshotRecord(*row) if row else None


def update_snapshot_file_field(
    db: sqlite3.Connection, record_id: int, field_name: str, new_value: Any
) -> None:
    """Set one column of a file record; only known column names are accepted."""
    if field_name not in _UPDATABLE_FIELDS:
        raise ValueError(f"invalid field name: {field_name}")
    with db:
        db.execute(
            f"UPDATE snapshot_files SET {field_name} = ? WHERE id = ?",
            (new_value, record_id),
        )