"""Async SQLite session store built on aiosqlite.

SQLite has no schemas, so the namespace is flattened into a single table
named ``"<schema>_<table>"``.  Expiry is stored as integer microseconds
since the Unix epoch (UTC).  Every ``datetime`` fits in a 64-bit INTEGER at
that scale, and comparisons stay exact and independent of any text
timestamp format.

Each operation opens its own connection; ``create`` runs its existence
check and insert under ``BEGIN IMMEDIATE`` so that concurrent creators
serialize on the database write lock.

Classes
-------
- SQLiteSessionStore  — aiosqlite-backed ``AsyncSessionStore``
"""
from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Iterator
from contextlib import asynccontextmanager, contextmanager
from pathlib import Path

import aiosqlite

from persistent_sessions.errors import BackendError
from persistent_sessions.session.codec import RecordCodec, datetime_to_micros
from persistent_sessions.session.identifier import SessionId
from persistent_sessions.session.record import SessionRecord, utc_now
from persistent_sessions.storage.base import AsyncSessionStore
from persistent_sessions.storage.namespace import Namespace

logger = logging.getLogger(__name__)

_DEFAULT_DB_PATH: Path = Path.home() / ".persistent-sessions" / "sessions.db"
_BUSY_TIMEOUT_SECONDS: float = 30.0


@contextmanager
def _translate_sqlite_errors(operation: str) -> Iterator[None]:
    try:
        yield
    except (aiosqlite.Error, OSError, OverflowError) as exc:
        raise BackendError(operation, f"{type(exc).__name__}: {exc}") from exc


class SQLiteSessionStore(AsyncSessionStore):
    """Persists session records in a local SQLite database file.

    Parameters
    ----------
    db_path:
        Path to the SQLite file.  Defaults to
        ``~/.persistent-sessions/sessions.db``.  ``provision`` creates the
        parent directory.
    namespace:
        Schema and table names, flattened to one table name.
    codec:
        Record serializer.  Defaults to MessagePack.
    """

    def __init__(
        self,
        db_path: str | Path | None = None,
        namespace: Namespace | None = None,
        codec: RecordCodec | None = None,
    ) -> None:
        super().__init__(codec)
        self._db_path: Path = Path(db_path) if db_path is not None else _DEFAULT_DB_PATH
        self._namespace = namespace or Namespace()

        table = self._namespace.flattened()
        self._create_table_sql = f"""
            CREATE TABLE IF NOT EXISTS {table} (
                id          TEXT PRIMARY KEY NOT NULL,
                data        BLOB NOT NULL,
                expiry_date INTEGER NOT NULL
            )
            """
        index = f'"{self._namespace.schema_name}_{self._namespace.table_name}_expiry_idx"'
        self._create_index_sql = (
            f"CREATE INDEX IF NOT EXISTS {index} ON {table} (expiry_date)"
        )
        self._exists_sql = f"SELECT 1 FROM {table} WHERE id = ?"
        self._insert_sql = (
            f"INSERT INTO {table} (id, data, expiry_date) VALUES (?, ?, ?)"
        )
        self._upsert_sql = f"""
            INSERT INTO {table} (id, data, expiry_date)
            VALUES (?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                data        = excluded.data,
                expiry_date = excluded.expiry_date
            """
        self._load_sql = f"SELECT data FROM {table} WHERE id = ? AND expiry_date > ?"
        self._delete_sql = f"DELETE FROM {table} WHERE id = ?"
        self._delete_expired_sql = f"DELETE FROM {table} WHERE expiry_date < ?"

    @property
    def db_path(self) -> Path:
        return self._db_path

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def _connect(self) -> AsyncIterator[aiosqlite.Connection]:
        # isolation_level=None: transactions are opened explicitly.
        async with aiosqlite.connect(
            str(self._db_path), timeout=_BUSY_TIMEOUT_SECONDS, isolation_level=None
        ) as conn:
            yield conn

    def _row_params(self, record: SessionRecord) -> tuple[str, bytes, int]:
        return (
            str(record.id),
            self._codec.encode(record),
            datetime_to_micros(record.expiry_date),
        )

    # ------------------------------------------------------------------
    # AsyncSessionStore interface
    # ------------------------------------------------------------------

    async def provision(self) -> None:
        """Create the database file, table, and expiry index if absent."""
        with _translate_sqlite_errors("provision"):
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
            async with self._connect() as conn:
                await conn.execute("PRAGMA journal_mode=WAL")
                await conn.execute(self._create_table_sql)
                await conn.execute(self._create_index_sql)
        logger.info(
            "Provisioned session table %s in %s",
            self._namespace.flattened(),
            self._db_path,
        )

    async def create(self, record: SessionRecord) -> None:
        """Insert ``record`` under a fresh id inside one write transaction."""
        with _translate_sqlite_errors("create"):
            async with self._connect() as conn:
                await conn.execute("BEGIN IMMEDIATE")
                try:
                    while True:
                        async with conn.execute(self._exists_sql, (str(record.id),)) as cursor:
                            if await cursor.fetchone() is None:
                                break
                        logger.debug("Session id collision; regenerating")
                        record.id = SessionId.generate()
                    await conn.execute(self._insert_sql, self._row_params(record))
                except BaseException:
                    await conn.execute("ROLLBACK")
                    raise
                await conn.execute("COMMIT")

    async def save(self, record: SessionRecord) -> None:
        """Upsert ``record`` in a single statement."""
        with _translate_sqlite_errors("save"):
            params = self._row_params(record)
            async with self._connect() as conn:
                await conn.execute(self._upsert_sql, params)

    async def load(self, session_id: SessionId) -> SessionRecord | None:
        """Return the live record for ``session_id`` or None."""
        now = datetime_to_micros(utc_now())
        with _translate_sqlite_errors("load"):
            async with self._connect() as conn:
                async with conn.execute(self._load_sql, (str(session_id), now)) as cursor:
                    row = await cursor.fetchone()
        if row is None:
            return None
        return self._codec.decode(row[0])

    async def delete(self, session_id: SessionId) -> None:
        """Delete ``session_id``; absent ids are ignored."""
        with _translate_sqlite_errors("delete"):
            async with self._connect() as conn:
                await conn.execute(self._delete_sql, (str(session_id),))

    async def delete_expired(self) -> int:
        """Delete all rows whose expiry is before the current time."""
        now = datetime_to_micros(utc_now())
        with _translate_sqlite_errors("delete_expired"):
            async with self._connect() as conn:
                cursor = await conn.execute(self._delete_expired_sql, (now,))
                removed = cursor.rowcount
        logger.debug("Removed %d expired sessions from %s", removed, self._db_path)
        return removed

    def __repr__(self) -> str:
        return (
            f"SQLiteSessionStore(db_path={str(self._db_path)!r}, "
            f"table={self._namespace.flattened()!r})"
        )


__all__ = ["SQLiteSessionStore"]
