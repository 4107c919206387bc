"""Idempotent provisioning of the Postgres session schema and table.

Classes
-------
- PostgresSchemaManager  — creates the schema and table if absent
"""
from __future__ import annotations

import logging

import asyncpg

from persistent_sessions.storage.namespace import Namespace
from persistent_sessions.storage.pool import translate_driver_errors

logger = logging.getLogger(__name__)

# duplicate_schema, unique_violation: another process created the schema
# between our existence check and our insert into pg_namespace.
_CONCURRENT_SCHEMA_SQLSTATES: frozenset[str] = frozenset({"42P06", "23505"})


class PostgresSchemaManager:
    """Create the session schema and table once, tolerating concurrent callers.

    Parameters
    ----------
    pool:
        asyncpg pool to borrow a connection from.
    namespace:
        Validated schema and table names.
    """

    def __init__(self, pool: asyncpg.Pool, namespace: Namespace) -> None:
        self._pool = pool
        self._namespace = namespace

    def create_schema_sql(self) -> str:
        return f"create schema if not exists {self._namespace.quoted_schema()}"

    def create_table_sql(self) -> str:
        return f"""
            create table if not exists {self._namespace.qualified()}
            (
                id text primary key not null,
                data bytea not null,
                expiry_date timestamptz not null
            )
            """

    async def provision(self) -> None:
        """Create the schema and table if they do not exist.

        Raises
        ------
        BackendError
            For any failure other than a concurrent schema creation.  Not
            retried: provisioning errors indicate misconfiguration.
        """
        with translate_driver_errors("provision"):
            async with self._pool.acquire() as conn:
                async with conn.transaction():
                    await self._create_schema(conn)
                    await conn.execute(self.create_table_sql())
        logger.info("Provisioned session table %s", self._namespace.qualified())

    async def _create_schema(self, conn: asyncpg.Connection) -> None:
        # A savepoint keeps the outer transaction usable when the race is lost.
        try:
            async with conn.transaction():
                await conn.execute(self.create_schema_sql())
        except asyncpg.PostgresError as exc:
            if getattr(exc, "sqlstate", None) not in _CONCURRENT_SCHEMA_SQLSTATES:
                raise
            logger.debug(
                "Schema %s created concurrently (%s); continuing",
                self._namespace.schema_name,
                exc.sqlstate,
            )


__all__ = ["PostgresSchemaManager"]
