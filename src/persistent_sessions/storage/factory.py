"""Build the configured session store from ``StoreSettings``."""
from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from persistent_sessions.config import StoreSettings
from persistent_sessions.errors import ConfigurationError
from persistent_sessions.storage.base import AsyncSessionStore
from persistent_sessions.storage.memory import InMemorySessionStore
from persistent_sessions.storage.pool import create_pool
from persistent_sessions.storage.postgres import PostgresSessionStore
from persistent_sessions.storage.sqlite import SQLiteSessionStore

logger = logging.getLogger(__name__)


@asynccontextmanager
async def open_store(settings: StoreSettings) -> AsyncIterator[AsyncSessionStore]:
    """Yield the store named by ``settings.backend``.

    For ``postgres`` a pool is opened from ``settings.database_url`` and
    closed on exit.  The namespace is validated before any connection is
    attempted.

    Raises
    ------
    ConfigurationError
        If the namespace is invalid or ``postgres`` has no database URL.
    BackendError
        If the pool cannot be created.
    """
    namespace = settings.namespace()

    if settings.backend == "memory":
        yield InMemorySessionStore()
        return

    if settings.backend == "sqlite":
        yield SQLiteSessionStore(db_path=settings.sqlite_path, namespace=namespace)
        return

    if not settings.database_url:
        raise ConfigurationError(
            "The postgres backend requires a database URL "
            "(PERSISTENT_SESSIONS_DATABASE_URL or DATABASE_URL)."
        )
    pool = await create_pool(
        settings.database_url,
        min_size=settings.pool_min_size,
        max_size=settings.pool_max_size,
    )
    try:
        yield PostgresSessionStore(pool, namespace=namespace)
    finally:
        await pool.close()
        logger.debug("Postgres pool closed")


__all__ = ["open_store"]
