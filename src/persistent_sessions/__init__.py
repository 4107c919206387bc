"""persistent-sessions — durable, expiring session records.

Public API
----------
The stable public surface is everything exported from this module.
Anything inside submodules not re-exported here is considered private
and may change without notice.

Example
-------
>>> import persistent_sessions
>>> persistent_sessions.__version__
'0.1.0'
"""
from __future__ import annotations

# Errors
from persistent_sessions.errors import (
    BackendError,
    ConfigurationError,
    DecodeError,
    EncodeError,
    SessionNotFoundError,
    SessionStoreError,
)

# Session core
from persistent_sessions.session.codec import RecordCodec
from persistent_sessions.session.identifier import SessionId
from persistent_sessions.session.manager import SessionManager
from persistent_sessions.session.record import SessionRecord

# Storage backends
from persistent_sessions.storage.base import AsyncSessionStore
from persistent_sessions.storage.memory import InMemorySessionStore
from persistent_sessions.storage.namespace import Namespace
from persistent_sessions.storage.pool import create_pool
from persistent_sessions.storage.postgres import PostgresSessionStore
from persistent_sessions.storage.postgres_schema import PostgresSchemaManager
from persistent_sessions.storage.sqlite import SQLiteSessionStore

# Eviction, configuration, logging
from persistent_sessions.scheduler import ExpiredRecordReaper
from persistent_sessions.config import StoreSettings, load_settings
from persistent_sessions.logging_setup import LoggingConfig, configure_logging
from persistent_sessions.storage.factory import open_store

__version__: str = "0.1.0"

__all__ = [
    "__version__",
    # Errors
    "BackendError",
    "ConfigurationError",
    "DecodeError",
    "EncodeError",
    "SessionNotFoundError",
    "SessionStoreError",
    # Session core
    "RecordCodec",
    "SessionId",
    "SessionManager",
    "SessionRecord",
    # Storage
    "AsyncSessionStore",
    "InMemorySessionStore",
    "Namespace",
    "PostgresSchemaManager",
    "PostgresSessionStore",
    "SQLiteSessionStore",
    "create_pool",
    "open_store",
    # Eviction / config / logging
    "ExpiredRecordReaper",
    "LoggingConfig",
    "StoreSettings",
    "configure_logging",
    "load_settings",
]
