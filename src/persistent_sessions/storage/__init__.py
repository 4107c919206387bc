"""Storage backend subpackage.

All backends implement the ``AsyncSessionStore`` ABC.

Public surface
--------------
- AsyncSessionStore     — abstract base class
- PostgresSessionStore  — asyncpg-backed store (the production backend)
- PostgresSchemaManager — idempotent schema/table provisioning
- SQLiteSessionStore    — aiosqlite-backed store for single-host deployments
- InMemorySessionStore  — dict-backed store (useful for testing)
- Namespace             — validated schema/table names
- create_pool           — asyncpg pool factory
"""
from __future__ import annotations

from persistent_sessions.storage.base import AsyncSessionStore
from persistent_sessions.storage.memory import InMemorySessionStore
from persistent_sessions.storage.namespace import Namespace, is_valid_identifier
from persistent_sessions.storage.pool import create_pool
from persistent_sessions.storage.postgres import PostgresSessionStore
from persistent_sessions.storage.postgres_schema import PostgresSchemaManager
from persistent_sessions.storage.sqlite import SQLiteSessionStore

__all__ = [
    "AsyncSessionStore",
    "InMemorySessionStore",
    "Namespace",
    "PostgresSchemaManager",
    "PostgresSessionStore",
    "SQLiteSessionStore",
    "create_pool",
    "is_valid_identifier",
]
