#!/usr/bin/env python3
"""Example: Storage Backends

Demonstrates the same session lifecycle against the in-memory and SQLite
stores and, when ``DATABASE_URL`` is set, PostgreSQL.  A background reaper
evicts expired records while the demo runs.

Usage:
    python examples/02_storage_backends.py
    DATABASE_URL=postgres://localhost/app python examples/02_storage_backends.py

Requirements:
    pip install persistent-sessions
"""
from __future__ import annotations

import asyncio
import os
import tempfile
from datetime import timedelta
from pathlib import Path

import persistent_sessions
from persistent_sessions import (
    AsyncSessionStore,
    ExpiredRecordReaper,
    InMemorySessionStore,
    LoggingConfig,
    Namespace,
    PostgresSessionStore,
    SessionRecord,
    SQLiteSessionStore,
    configure_logging,
    create_pool,
)


async def demo_store(label: str, store: AsyncSessionStore) -> None:
    await store.provision()
    async with ExpiredRecordReaper(store, timedelta(milliseconds=50)) as reaper:
        live = SessionRecord.new({"who": label}, timedelta(minutes=5))
        await store.create(live)
        short = SessionRecord.new({"who": "short-lived"}, timedelta(milliseconds=10))
        await store.create(short)
        await asyncio.sleep(0.2)
        loaded = await store.load(live.id)
        print(f"  [{label}] live payload: {loaded.data if loaded else None}")
        print(f"  [{label}] short-lived visible: {await store.load(short.id) is not None}")
    print(f"  [{label}] reaper: {reaper.sweeps} sweeps, {reaper.removed_total} removed")
    await store.delete(live.id)


async def main() -> None:
    configure_logging(LoggingConfig(level="WARNING", rich=True))
    print(f"persistent-sessions version: {persistent_sessions.__version__}")

    print("\nIn-memory store:")
    await demo_store("memory", InMemorySessionStore())

    print("\nSQLite store:")
    with tempfile.TemporaryDirectory() as tmpdir:
        db_path = Path(tmpdir) / "sessions.db"
        await demo_store("sqlite", SQLiteSessionStore(db_path=db_path))
        print(f"  DB size: {db_path.stat().st_size} bytes")

    database_url = os.environ.get("DATABASE_URL")
    if not database_url:
        print("\nPostgreSQL store: skipped (DATABASE_URL not set)")
        return
    print("\nPostgreSQL store:")
    pool = await create_pool(database_url, max_size=4)
    try:
        store = PostgresSessionStore(pool, Namespace("example_sessions", "session"))
        await demo_store("postgres", store)
    finally:
        await pool.close()


if __name__ == "__main__":
    asyncio.run(main())
