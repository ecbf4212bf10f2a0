"""Key-value and file persistence backends used by the content store."""

from __future__ import annotations

import asyncio
import shutil
import sqlite3
from collections.abc import Callable
from datetime import UTC, datetime
from pathlib import Path
from typing import Protocol

from .errors import PersistenceError
from .models import now_millis

SCHEMA_VERSION = 1


class KeyValueStore(Protocol):
    """String key-value persistence; callers (de)serialize values themselves."""

    async def get_string(self, key: str) -> str | None: ...

    async def set_string(self, key: str, value: str) -> None: ...

    async def remove(self, key: str) -> None: ...


class FileStore(Protocol):
    """Copy-in and delete for files owned by a course."""

    async def copy_file(self, source: str, dest_dir: str) -> str: ...

    async def delete_file(self, path: str) -> None: ...


class MemoryKeyValueStore:
    """Dict-backed store for tests and throwaway sessions."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self.data: dict[str, str] = dict(initial or {})

    async def get_string(self, key: str) -> str | None:
        return self.data.get(key)

    async def set_string(self, key: str, value: str) -> None:
        self.data[key] = value

    async def remove(self, key: str) -> None:
        self.data.pop(key, None)


class SqliteKeyValueStore:
    """SQLite-backed key-value table with forward-only migrations."""

    def __init__(self, db_path: Path | str) -> None:
        """Open database and bring the schema up to date."""
        if isinstance(db_path, Path):
            db_path.parent.mkdir(parents=True, exist_ok=True)
            target = str(db_path)
        else:
            target = db_path
        try:
            self._conn = sqlite3.connect(target)
            self._conn.row_factory = sqlite3.Row
            self._apply_migrations()
        except sqlite3.Error as exc:
            raise PersistenceError(f"Could not open database {target}: {exc}") from exc

    def _apply_migrations(self) -> None:
        """Apply forward-only schema migrations to latest version."""
        current = int(self._conn.execute("PRAGMA user_version").fetchone()[0])
        if current > SCHEMA_VERSION:
            raise PersistenceError(f"Database schema version {current} is newer than supported {SCHEMA_VERSION}.")

        with self._conn:
            self._conn.execute("""
                CREATE TABLE IF NOT EXISTS schema_migrations (
                    version INTEGER PRIMARY KEY,
                    applied_at TEXT NOT NULL
                )
                """)

        for version in range(current + 1, SCHEMA_VERSION + 1):
            if version == 1:
                self._migrate_to_v1()
            with self._conn:
                self._conn.execute(f"PRAGMA user_version = {version}")
                self._conn.execute(
                    "INSERT OR REPLACE INTO schema_migrations (version, applied_at) VALUES (?, ?)",
                    (version, datetime.now(UTC).isoformat()),
                )

    def _migrate_to_v1(self) -> None:
        with self._conn:
            self._conn.execute("""
                CREATE TABLE IF NOT EXISTS kv_entries (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
                """)

    async def get_string(self, key: str) -> str | None:
        try:
            row = self._conn.execute("SELECT value FROM kv_entries WHERE key = ?", (key,)).fetchone()
        except sqlite3.Error as exc:
            raise PersistenceError(f"Could not read key {key!r}: {exc}") from exc
        if row is None:
            return None
        return str(row["value"])

    async def set_string(self, key: str, value: str) -> None:
        now = datetime.now(UTC).isoformat()
        try:
            with self._conn:
                self._conn.execute(
                    """
                    INSERT INTO kv_entries (key, value, updated_at) VALUES (?, ?, ?)
                    ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at
                    """,
                    (key, value, now),
                )
        except sqlite3.Error as exc:
            raise PersistenceError(f"Could not write key {key!r}: {exc}") from exc

    async def remove(self, key: str) -> None:
        try:
            with self._conn:
                self._conn.execute("DELETE FROM kv_entries WHERE key = ?", (key,))
        except sqlite3.Error as exc:
            raise PersistenceError(f"Could not remove key {key!r}: {exc}") from exc

    def close(self) -> None:
        """Close db connection."""
        self._conn.close()


class LocalFileStore:
    """Copies course files onto the local filesystem.

    Copies are named ``<millis>_<original name>``. A numeric suffix is added
    to the stem when two copies land in the same millisecond.
    """

    def __init__(self, clock: Callable[[], int] = now_millis) -> None:
        self._clock = clock

    async def copy_file(self, source: str, dest_dir: str) -> str:
        source_path = Path(source)
        if not source_path.is_file():
            raise PersistenceError(f"Source file does not exist: {source}")
        target_dir = Path(dest_dir)
        millis = self._clock()
        destination = target_dir / f"{millis}_{source_path.name}"
        counter = 1
        while destination.exists():
            destination = target_dir / f"{millis}_{source_path.stem}-{counter}{source_path.suffix}"
            counter += 1
        try:
            await asyncio.to_thread(self._copy, source_path, destination)
        except OSError as exc:
            raise PersistenceError(f"Could not copy {source} to {destination}: {exc}") from exc
        return str(destination)

    @staticmethod
    def _copy(source: Path, destination: Path) -> None:
        destination.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(source, destination)

    async def delete_file(self, path: str) -> None:
        try:
            await asyncio.to_thread(Path(path).unlink, missing_ok=True)
        except OSError as exc:
            raise PersistenceError(f"Could not delete {path}: {exc}") from exc
