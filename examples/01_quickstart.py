#!/usr/bin/env python3
"""Example: Quickstart — persistent-sessions

Minimal working example: create a session, refresh it, load it back,
rotate its id, and sweep expired records, all against the in-memory store.

Usage:
    python examples/01_quickstart.py

Requirements:
    pip install persistent-sessions
"""
from __future__ import annotations

import asyncio
from datetime import timedelta

import persistent_sessions
from persistent_sessions import (
    ExpiredRecordReaper,
    InMemorySessionStore,
    SessionManager,
    SessionRecord,
)
from persistent_sessions.session.record import utc_now


async def main() -> None:
    print(f"persistent-sessions version: {persistent_sessions.__version__}")

    # Step 1: Create a session under a fresh, collision-checked id
    store = InMemorySessionStore()
    manager = SessionManager(store, default_ttl=timedelta(hours=1))
    session = await manager.create_session({"user": "ada", "cart": [3, 7]})
    print(f"Created session {session.id} expiring {session.expiry_date:%H:%M:%S}")

    # Step 2: Change the payload and save it back
    session.data["cart"].append(11)
    await manager.save_session(session)
    loaded = await manager.load_session(str(session.id))
    print(f"Loaded cart: {loaded.data['cart']}")

    # Step 3: Rotate the id after a privilege change
    old_id = await manager.cycle_id(loaded)
    print(f"Rotated {old_id} -> {loaded.id}; old id live: "
          f"{await manager.get_session(old_id) is not None}")

    # Step 4: An expired record is invisible, then swept
    stale = SessionRecord(data={"old": True}, expiry_date=utc_now() - timedelta(minutes=1))
    await store.save(stale)
    print(f"Expired record visible: {await store.load(stale.id) is not None}")
    reaper = ExpiredRecordReaper(store, timedelta(seconds=30))
    removed = await reaper.sweep_once()
    print(f"Sweep removed {removed} record(s); {len(store)} remaining")


if __name__ == "__main__":
    asyncio.run(main())
