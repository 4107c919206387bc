"""Async in-memory session store.

Keeps encoded records in a plain Python dict guarded by ``asyncio.Lock``.
All data is lost when the process exits.  Records are stored in their
codec-encoded form so that encode and decode failures surface exactly as
they would with a durable backend.  Primarily useful for tests and local
prototyping.

Classes
-------
- InMemorySessionStore  — dict-backed ephemeral ``AsyncSessionStore``
"""

from __future__ import annotations

import asyncio
from datetime import datetime

from persistent_sessions.session.codec import RecordCodec
from persistent_sessions.session.identifier import SessionId
from persistent_sessions.session.record import SessionRecord, utc_now
from persistent_sessions.storage.base import AsyncSessionStore


class InMemorySessionStore(AsyncSessionStore):
    """Ephemeral in-process store backed by a Python dict.

    An ``asyncio.Lock`` guards every access so that ``create``'s
    check-then-insert is atomic with respect to other coroutines.

    Parameters
    ----------
    codec:
        Record serializer.  Defaults to MessagePack.
    """

    def __init__(self, codec: RecordCodec | None = None) -> None:
        super().__init__(codec)
        self._rows: dict[SessionId, tuple[bytes, datetime]] = {}
        self._lock: asyncio.Lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # AsyncSessionStore interface
    # ------------------------------------------------------------------

    async def provision(self) -> None:
        """Nothing to provision; present for interface symmetry."""

    async def create(self, record: SessionRecord) -> None:
        """Insert ``record`` under an id not present in the dict."""
        async with self._lock:
            while record.id in self._rows:
                record.id = SessionId.generate()
            self._rows[record.id] = (self._codec.encode(record), record.expiry_date)

    async def save(self, record: SessionRecord) -> None:
        """Store ``record``, overwriting any existing entry for its id."""
        encoded = self._codec.encode(record)
        async with self._lock:
            self._rows[record.id] = (encoded, record.expiry_date)

    async def load(self, session_id: SessionId) -> SessionRecord | None:
        """Return the live record for ``session_id`` or None."""
        now = utc_now()
        async with self._lock:
            row = self._rows.get(session_id)
        if row is None or row[1] <= now:
            return None
        return self._codec.decode(row[0])

    async def delete(self, session_id: SessionId) -> None:
        """Remove ``session_id`` if present."""
        async with self._lock:
            self._rows.pop(session_id, None)

    async def delete_expired(self) -> int:
        """Drop every entry whose expiry is before now."""
        now = utc_now()
        async with self._lock:
            expired = [sid for sid, (_, expiry) in self._rows.items() if expiry < now]
            for sid in expired:
                del self._rows[sid]
        return len(expired)

    # ------------------------------------------------------------------
    # Extras
    # ------------------------------------------------------------------

    async def clear(self) -> None:
        """Remove all stored records, live or expired."""
        async with self._lock:
            self._rows.clear()

    def __contains__(self, session_id: object) -> bool:
        """Physical presence, regardless of expiry."""
        return session_id in self._rows

    def __len__(self) -> int:
        return len(self._rows)

    def __repr__(self) -> str:
        return f"InMemorySessionStore(records={len(self._rows)})"


__all__ = ["InMemorySessionStore"]
