from __future__ import annotations

import sqlite3
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import AsyncIterator, Iterable

import aiosqlite

from storyscan.errors import ConflictError, StorageError
from storyscan.models import Snapshot, TrackedPath


TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"

# SQLite INTEGER is a signed 64-bit value; larger ids cannot be bound.
SQLITE_MIN_INTEGER = -(2**63)
SQLITE_MAX_INTEGER = 2**63 - 1

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS tracked_paths (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    path TEXT NOT NULL UNIQUE,
    label TEXT NOT NULL,
    directory_config_id TEXT,
    created_at TEXT NOT NULL,
    is_active INTEGER NOT NULL DEFAULT 1
);
"""

SNAPSHOT_SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS history_snapshots (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    tracked_path_id INTEGER NOT NULL REFERENCES tracked_paths(id) ON DELETE CASCADE,
    size_bytes INTEGER NOT NULL,
    file_count INTEGER NOT NULL DEFAULT 0,
    folder_count INTEGER NOT NULL DEFAULT 0,
    recorded_at TEXT NOT NULL
);
"""

INDEX_SQL = (
    "CREATE INDEX IF NOT EXISTS idx_snapshots_tracked_path ON history_snapshots(tracked_path_id)",
    "CREATE INDEX IF NOT EXISTS idx_snapshots_recorded_at ON history_snapshots(recorded_at)",
)

TRACKED_PATH_COLUMNS = "id, path, label, directory_config_id, created_at, is_active"


def is_storable_integer(value: int) -> bool:
    return SQLITE_MIN_INTEGER <= value <= SQLITE_MAX_INTEGER


def format_timestamp(moment: datetime | None = None) -> str:
    moment = moment or datetime.now(timezone.utc)
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc)
    return moment.strftime(TIMESTAMP_FORMAT)


@asynccontextmanager
async def _connect(db_path: Path) -> AsyncIterator[aiosqlite.Connection]:
    try:
        async with aiosqlite.connect(db_path) as db:
            db.row_factory = aiosqlite.Row
            await db.execute("PRAGMA foreign_keys = ON")
            yield db
    except sqlite3.Error as exc:
        raise StorageError("Database operation failed", str(exc)) from exc


async def ensure_db(db_path: Path) -> None:
    try:
        db_path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise StorageError("Cannot create data directory", str(exc)) from exc
    async with _connect(db_path) as db:
        await db.execute("PRAGMA journal_mode = WAL")
        await db.execute(SCHEMA_SQL)
        await db.execute(SNAPSHOT_SCHEMA_SQL)
        for statement in INDEX_SQL:
            await db.execute(statement)
        await db.commit()


def _tracked_path_from_row(row: aiosqlite.Row) -> TrackedPath:
    return TrackedPath(
        id=int(row["id"]),
        path=str(row["path"]),
        label=str(row["label"]),
        directory_config_id=(
            None if row["directory_config_id"] is None else str(row["directory_config_id"])
        ),
        is_active=bool(row["is_active"]),
        created_at=str(row["created_at"]),
    )


async def _load_tracked_paths(db_path: Path, where: str = "") -> list[TrackedPath]:
    await ensure_db(db_path)
    async with _connect(db_path) as db:
        cursor = await db.execute(
            f"SELECT {TRACKED_PATH_COLUMNS} FROM tracked_paths {where} ORDER BY id"
        )
        rows = await cursor.fetchall()
        await cursor.close()
    return [_tracked_path_from_row(row) for row in rows]


async def load_tracked_paths(db_path: Path) -> list[TrackedPath]:
    return await _load_tracked_paths(db_path)


async def load_active_tracked_paths(db_path: Path) -> list[TrackedPath]:
    return await _load_tracked_paths(db_path, "WHERE is_active = 1")


async def load_tracked_path(db_path: Path, tracked_path_id: int) -> TrackedPath | None:
    await ensure_db(db_path)
    async with _connect(db_path) as db:
        cursor = await db.execute(
            f"SELECT {TRACKED_PATH_COLUMNS} FROM tracked_paths WHERE id = ?",
            (tracked_path_id,),
        )
        row = await cursor.fetchone()
        await cursor.close()
    if row is None:
        return None
    return _tracked_path_from_row(row)


async def insert_tracked_path(
    db_path: Path,
    path: str,
    label: str,
    directory_config_id: str | None = None,
) -> TrackedPath:
    await ensure_db(db_path)
    created_at = format_timestamp()
    async with _connect(db_path) as db:
        try:
            cursor = await db.execute(
                """
                INSERT INTO tracked_paths (path, label, directory_config_id, created_at, is_active)
                VALUES (?, ?, ?, ?, 1)
                """,
                (path, label, directory_config_id, created_at),
            )
        except sqlite3.IntegrityError as exc:
            if "UNIQUE" in str(exc):
                raise ConflictError("Path is already being tracked", path) from exc
            raise
        tracked_path_id = cursor.lastrowid
        await cursor.close()
        await db.commit()

    return TrackedPath(
        id=int(tracked_path_id),
        path=path,
        label=label,
        directory_config_id=directory_config_id,
        is_active=True,
        created_at=created_at,
    )


async def update_tracked_path(
    db_path: Path,
    tracked_path_id: int,
    *,
    label: str | None = None,
    is_active: bool | None = None,
) -> bool:
    """Apply a partial update. Returns False when no row has the given id."""
    set_clauses: list[str] = []
    params: list[object] = []
    if label is not None:
        set_clauses.append("label = ?")
        params.append(label)
    if is_active is not None:
        set_clauses.append("is_active = ?")
        params.append(1 if is_active else 0)

    if not set_clauses:
        return await load_tracked_path(db_path, tracked_path_id) is not None

    await ensure_db(db_path)
    async with _connect(db_path) as db:
        cursor = await db.execute(
            f"UPDATE tracked_paths SET {', '.join(set_clauses)} WHERE id = ?",
            (*params, tracked_path_id),
        )
        matched = cursor.rowcount
        await cursor.close()
        await db.commit()
    return matched > 0


async def delete_tracked_path(db_path: Path, tracked_path_id: int) -> bool:
    """Delete a tracked path and, through the foreign key, its snapshots."""
    await ensure_db(db_path)
    async with _connect(db_path) as db:
        cursor = await db.execute("DELETE FROM tracked_paths WHERE id = ?", (tracked_path_id,))
        deleted = cursor.rowcount
        await cursor.close()
        await db.commit()
    return deleted > 0


async def insert_snapshot(
    db_path: Path,
    tracked_path_id: int,
    size_bytes: int,
    file_count: int,
    folder_count: int,
    *,
    recorded_at: datetime | None = None,
) -> None:
    await ensure_db(db_path)
    async with _connect(db_path) as db:
        await db.execute(
            """
            INSERT INTO history_snapshots
                (tracked_path_id, size_bytes, file_count, folder_count, recorded_at)
            VALUES (?, ?, ?, ?, ?)
            """,
            (tracked_path_id, size_bytes, file_count, folder_count, format_timestamp(recorded_at)),
        )
        await db.commit()


async def load_snapshots(
    db_path: Path,
    path_ids: Iterable[int],
    cutoff_modifier: str | None = None,
    *,
    now: datetime | None = None,
) -> list[Snapshot]:
    """Load snapshots for ``path_ids`` ordered by time.

    ``cutoff_modifier`` is an SQLite date modifier such as ``-7 days``; rows
    older than ``now`` shifted by it are left out. ``None`` loads everything.
    """
    ids = list(path_ids)
    if not ids:
        return []

    placeholders = ", ".join("?" for _ in ids)
    params: list[object] = list(ids)
    date_filter = ""
    if cutoff_modifier is not None:
        date_filter = "AND recorded_at >= datetime(?, ?)"
        params.extend([format_timestamp(now), cutoff_modifier])

    await ensure_db(db_path)
    async with _connect(db_path) as db:
        cursor = await db.execute(
            f"""
            SELECT id, tracked_path_id, size_bytes, file_count, folder_count, recorded_at
            FROM history_snapshots
            WHERE tracked_path_id IN ({placeholders}) {date_filter}
            ORDER BY recorded_at ASC, id ASC
            """,
            params,
        )
        rows = await cursor.fetchall()
        await cursor.close()

    return [
        Snapshot(
            id=int(row["id"]),
            tracked_path_id=int(row["tracked_path_id"]),
            timestamp=str(row["recorded_at"]),
            size_bytes=int(row["size_bytes"]),
            file_count=int(row["file_count"]),
            folder_count=int(row["folder_count"]),
        )
        for row in rows
    ]
