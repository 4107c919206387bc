"""PostgreSQL session store built on an asyncpg connection pool.

Rows live in ``"<schema>"."<table>"`` with three columns: ``id text``
(primary key), ``data bytea`` (codec output), and ``expiry_date
timestamptz``.  Schema and table names are validated by ``Namespace``
before being interpolated into SQL; every value travels as a bind
parameter.

Classes
-------
- PostgresSessionStore  — asyncpg-backed ``AsyncSessionStore``
"""
from __future__ import annotations

import logging
from datetime import datetime

import asyncpg

from persistent_sessions.session.codec import RecordCodec
from persistent_sessions.session.identifier import SessionId
from persistent_sessions.session.record import SessionRecord, utc_now
from persistent_sessions.storage.base import AsyncSessionStore
from persistent_sessions.storage.namespace import Namespace
from persistent_sessions.storage.pool import translate_driver_errors
from persistent_sessions.storage.postgres_schema import PostgresSchemaManager

logger = logging.getLogger(__name__)


def _affected_rows(status: str) -> int:
    """Parse the row count from a command tag such as ``"DELETE 3"``."""
    tail = status.rsplit(" ", 1)[-1] if status else ""
    return int(tail) if tail.isdigit() else 0


class PostgresSessionStore(AsyncSessionStore):
    """Persists session records in a PostgreSQL table.

    Parameters
    ----------
    pool:
        asyncpg pool owned by the application.  Each operation acquires a
        connection and releases it before returning.
    namespace:
        Schema and table names.  Defaults to ``"tower_sessions"."session"``.
    codec:
        Record serializer.  Defaults to MessagePack.
    """

    def __init__(
        self,
        pool: asyncpg.Pool,
        namespace: Namespace | None = None,
        codec: RecordCodec | None = None,
    ) -> None:
        super().__init__(codec)
        self._pool = pool
        self._namespace = namespace or Namespace()
        self._schema = PostgresSchemaManager(pool, self._namespace)

        table = self._namespace.qualified()
        self._exists_sql = f"select exists(select 1 from {table} where id = $1)"
        self._insert_sql = f"""
            insert into {table} (id, data, expiry_date)
            values ($1, $2, $3)
            on conflict (id) do nothing
            """
        self._upsert_sql = f"""
            insert into {table} (id, data, expiry_date)
            values ($1, $2, $3)
            on conflict (id) do update
            set
              data = excluded.data,
              expiry_date = excluded.expiry_date
            """
        self._load_sql = f"select data from {table} where id = $1 and expiry_date > $2"
        self._delete_sql = f"delete from {table} where id = $1"
        # timestamptz against timestamptz: independent of the session TimeZone.
        self._delete_expired_sql = f"delete from {table} where expiry_date < now()"

    @property
    def namespace(self) -> Namespace:
        return self._namespace

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _id_exists(self, conn: asyncpg.Connection, session_id: SessionId) -> bool:
        return bool(await conn.fetchval(self._exists_sql, str(session_id)))

    def _row_params(self, record: SessionRecord) -> tuple[str, bytes, datetime]:
        return str(record.id), self._codec.encode(record), record.expiry_date

    # ------------------------------------------------------------------
    # AsyncSessionStore interface
    # ------------------------------------------------------------------

    async def provision(self) -> None:
        """Create the schema and table if absent (see ``PostgresSchemaManager``)."""
        await self._schema.provision()

    async def create(self, record: SessionRecord) -> None:
        """Insert ``record``, regenerating its id until it is unused."""
        with translate_driver_errors("create"):
            async with self._pool.acquire() as conn:
                async with conn.transaction():
                    while True:
                        while await self._id_exists(conn, record.id):
                            logger.debug("Session id collision; regenerating")
                            record.id = SessionId.generate()
                        status = await conn.execute(self._insert_sql, *self._row_params(record))
                        if _affected_rows(status) == 1:
                            break
                        # Inserted by a concurrent transaction after our existence check.
                        logger.debug("Session id taken concurrently; regenerating")
                        record.id = SessionId.generate()

    async def save(self, record: SessionRecord) -> None:
        """Upsert ``record`` in a single statement."""
        with translate_driver_errors("save"):
            async with self._pool.acquire() as conn:
                await conn.execute(self._upsert_sql, *self._row_params(record))

    async def load(self, session_id: SessionId) -> SessionRecord | None:
        """Return the live record for ``session_id`` or None."""
        with translate_driver_errors("load"):
            async with self._pool.acquire() as conn:
                data = await conn.fetchval(self._load_sql, str(session_id), utc_now())
        if data is None:
            return None
        return self._codec.decode(data)

    async def delete(self, session_id: SessionId) -> None:
        """Delete ``session_id``; absent ids are ignored."""
        with translate_driver_errors("delete"):
            async with self._pool.acquire() as conn:
                await conn.execute(self._delete_sql, str(session_id))

    async def delete_expired(self) -> int:
        """Delete all expired rows using the server's clock."""
        with translate_driver_errors("delete_expired"):
            async with self._pool.acquire() as conn:
                status = await conn.execute(self._delete_expired_sql)
        removed = _affected_rows(status)
        logger.debug("Removed %d expired sessions from %s", removed, self._namespace.qualified())
        return removed

    def __repr__(self) -> str:
        return f"PostgresSessionStore(namespace={self._namespace.qualified()!r})"


__all__ = ["PostgresSessionStore"]
