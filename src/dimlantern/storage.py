"""Async SQLite keyed record store for sessions, locations and plot threads.

Wraps aiosqlite. Each collection stores whole records as JSON in a
``data`` column, keyed by ``id``, with a few plain columns mirrored out
for indexing. ``put`` is insert-or-replace and stamps ``modified``.

Each write commits immediately -- no transactions are held across
``await`` boundaries and there is no locking between writers: the system
assumes a single operator. Any sqlite error surfaces as StorageError.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from pathlib import Path
from typing import Any, Generic, TypeVar

import aiosqlite

from dimlantern.entities.models import Location, PlotThread, WikiEntityBase
from dimlantern.exceptions import StorageError
from dimlantern.models import ProcessingSession, generate_id, now_ms

logger = logging.getLogger(__name__)

SCHEMA_SQL = """
-- Processing sessions (one row per transcript)
CREATE TABLE IF NOT EXISTS sessions (
    id TEXT PRIMARY KEY,
    title TEXT NOT NULL,
    date TEXT,
    data TEXT NOT NULL,
    created INTEGER,
    modified INTEGER
);

CREATE INDEX IF NOT EXISTS idx_sessions_date ON sessions(date);
CREATE INDEX IF NOT EXISTS idx_sessions_modified ON sessions(modified);

-- Location wiki pages (name_key = casefolded name, the merge key)
CREATE TABLE IF NOT EXISTS locations (
    id TEXT PRIMARY KEY,
    name_key TEXT NOT NULL,
    type TEXT,
    data TEXT NOT NULL,
    modified INTEGER
);

CREATE UNIQUE INDEX IF NOT EXISTS idx_locations_name ON locations(name_key);
CREATE INDEX IF NOT EXISTS idx_locations_type ON locations(type);

-- Plot threads
CREATE TABLE IF NOT EXISTS plot_threads (
    id TEXT PRIMARY KEY,
    name_key TEXT NOT NULL,
    status TEXT,
    priority TEXT,
    data TEXT NOT NULL,
    modified INTEGER
);

CREATE UNIQUE INDEX IF NOT EXISTS idx_plot_threads_name ON plot_threads(name_key);
CREATE INDEX IF NOT EXISTS idx_plot_threads_status ON plot_threads(status);
CREATE INDEX IF NOT EXISTS idx_plot_threads_priority ON plot_threads(priority);
"""

T = TypeVar("T")
E = TypeVar("E", bound=WikiEntityBase)


class RecordCollection(Generic[T]):
    """One logical collection: put / get / get_all / delete by id."""

    table: str = ""
    order_by: str = "rowid"

    def __init__(self, store: KnowledgeStore) -> None:
        self._store = store

    def _columns(self, record: T) -> dict[str, Any]:
        raise NotImplementedError

    def _decode(self, data: str) -> T:
        raise NotImplementedError

    def _prepare(self, record: T) -> None:
        """Hook run before every put (id assignment, timestamps)."""

    async def put(self, record: T) -> T:
        """Insert or replace *record* by id, stamping its ``modified`` time.

        A different record already holding the same name key is a unique
        constraint violation (StorageError), never a silent replacement.
        """
        self._prepare(record)
        record.modified = now_ms()  # type: ignore[attr-defined]
        columns = self._columns(record)
        names = ", ".join(columns)
        placeholders = ", ".join("?" for _ in columns)
        updates = ", ".join(f"{col} = excluded.{col}" for col in columns if col != "id")
        await self._store.execute(
            f"INSERT INTO {self.table} ({names}) VALUES ({placeholders}) "
            f"ON CONFLICT(id) DO UPDATE SET {updates}",
            tuple(columns.values()),
            commit=True,
        )
        return record

    async def get(self, record_id: str) -> T | None:
        """Return the record with *record_id*, or None when absent."""
        row = await self._store.fetchone(
            f"SELECT data FROM {self.table} WHERE id = ?", (record_id,)
        )
        return self._decode(row["data"]) if row is not None else None

    async def get_all(self) -> list[T]:
        rows = await self._store.fetchall(
            f"SELECT data FROM {self.table} ORDER BY {self.order_by}"
        )
        return [self._decode(row["data"]) for row in rows]

    async def delete(self, record_id: str) -> None:
        await self._store.execute(
            f"DELETE FROM {self.table} WHERE id = ?", (record_id,), commit=True
        )

    async def count(self) -> int:
        row = await self._store.fetchone(f"SELECT COUNT(*) AS cnt FROM {self.table}")
        return row["cnt"] if row is not None else 0


class SessionCollection(RecordCollection[ProcessingSession]):
    """Processing sessions, listed newest date first."""

    table = "sessions"
    order_by = "date DESC, created DESC"

    def _columns(self, record: ProcessingSession) -> dict[str, Any]:
        return {
            "id": record.id,
            "title": record.title,
            "date": record.date,
            "data": json.dumps(record.to_dict()),
            "created": record.created,
            "modified": record.modified,
        }

    def _decode(self, data: str) -> ProcessingSession:
        return ProcessingSession.from_dict(json.loads(data))


class EntityCollection(RecordCollection[E]):
    """Entity collection with case-insensitive lookup by name."""

    model: type[E]

    def _prepare(self, record: E) -> None:
        if record.id is None:
            record.id = generate_id()
        if record.created is None:
            record.created = now_ms()

    def _decode(self, data: str) -> E:
        return self.model.model_validate_json(data)

    async def find_by_name(self, name: str) -> E | None:
        """Return the entity whose name matches *name* case-insensitively."""
        row = await self._store.fetchone(
            f"SELECT data FROM {self.table} WHERE name_key = ?", (name.casefold(),)
        )
        return self._decode(row["data"]) if row is not None else None


class LocationCollection(EntityCollection[Location]):
    table = "locations"
    model = Location

    def _columns(self, record: Location) -> dict[str, Any]:
        return {
            "id": record.id,
            "name_key": record.name_key,
            "type": record.type,
            "data": record.model_dump_json(),
            "modified": record.modified,
        }


class PlotThreadCollection(EntityCollection[PlotThread]):
    table = "plot_threads"
    model = PlotThread

    def _columns(self, record: PlotThread) -> dict[str, Any]:
        return {
            "id": record.id,
            "name_key": record.name_key,
            "status": record.status,
            "priority": record.priority,
            "data": record.model_dump_json(),
            "modified": record.modified,
        }


class KnowledgeStore:
    """Async SQLite store holding the three collections.

    Usage::

        async with KnowledgeStore("data/dimlantern.db") as store:
            await store.sessions.put(session)
            existing = await store.locations.find_by_name("the rusty dragon")
    """

    def __init__(self, db_path: str | Path) -> None:
        self.db_path = str(db_path)
        self._db: aiosqlite.Connection | None = None
        self.sessions = SessionCollection(self)
        self.locations = LocationCollection(self)
        self.plot_threads = PlotThreadCollection(self)

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------

    async def connect(self) -> None:
        """Open the connection, configure pragmas and create the schema."""
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        try:
            self._db = await aiosqlite.connect(self.db_path)
            self._db.row_factory = aiosqlite.Row
            await self._db.execute("PRAGMA journal_mode=WAL")
            await self._db.execute("PRAGMA synchronous=NORMAL")
            await self._db.execute("PRAGMA foreign_keys=ON")
            await self._db.executescript(SCHEMA_SQL)
            await self._db.commit()
        except sqlite3.Error as exc:
            raise StorageError(f"Cannot open database {self.db_path}: {exc}") from exc
        logger.debug("Opened knowledge store at %s", self.db_path)

    async def close(self) -> None:
        """Close the connection if open."""
        if self._db is not None:
            await self._db.close()
            self._db = None

    async def __aenter__(self) -> KnowledgeStore:
        await self.connect()
        return self

    async def __aexit__(
        self,
        exc_type: type | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _ensure_connected(self) -> aiosqlite.Connection:
        if self._db is None:
            raise RuntimeError("Not connected -- use 'async with' or call connect()")
        return self._db

    async def execute(
        self, sql: str, params: tuple[Any, ...] = (), *, commit: bool = False
    ) -> None:
        db = self._ensure_connected()
        try:
            await db.execute(sql, params)
            if commit:
                await db.commit()
        except sqlite3.Error as exc:
            logger.error("Storage write failed: %s", exc)
            raise StorageError(str(exc)) from exc

    async def fetchone(self, sql: str, params: tuple[Any, ...] = ()) -> aiosqlite.Row | None:
        db = self._ensure_connected()
        try:
            cursor = await db.execute(sql, params)
            return await cursor.fetchone()
        except sqlite3.Error as exc:
            logger.error("Storage read failed: %s", exc)
            raise StorageError(str(exc)) from exc

    async def fetchall(self, sql: str, params: tuple[Any, ...] = ()) -> list[aiosqlite.Row]:
        db = self._ensure_connected()
        try:
            cursor = await db.execute(sql, params)
            return list(await cursor.fetchall())
        except sqlite3.Error as exc:
            logger.error("Storage read failed: %s", exc)
            raise StorageError(str(exc)) from exc
