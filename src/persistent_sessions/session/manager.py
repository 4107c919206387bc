"""Session lifecycle management.

Provides ``SessionManager``, a facade over an ``AsyncSessionStore`` that
applies a default time-to-live and offers the handful of lifecycle moves
an application needs: create, refresh, look up, rotate, and discard.

Classes
-------
- SessionManager  — lifecycle facade over an AsyncSessionStore
"""
from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any

from persistent_sessions.errors import SessionNotFoundError
from persistent_sessions.session.identifier import SessionId
from persistent_sessions.session.record import SessionRecord, utc_now
from persistent_sessions.storage.base import AsyncSessionStore

logger = logging.getLogger(__name__)

DEFAULT_TTL: timedelta = timedelta(weeks=2)


class SessionManager:
    """Create, save, load, rotate, and delete session records.

    Parameters
    ----------
    store:
        The store all persistence is delegated to.
    default_ttl:
        Lifetime given to new sessions and to refreshed ones when no
        explicit ``ttl`` is passed.  Defaults to two weeks.
    """

    def __init__(
        self,
        store: AsyncSessionStore,
        default_ttl: timedelta = DEFAULT_TTL,
    ) -> None:
        if default_ttl <= timedelta(0):
            raise ValueError("default_ttl must be positive")
        self._store = store
        self._default_ttl = default_ttl

    @property
    def store(self) -> AsyncSessionStore:
        return self._store

    # ------------------------------------------------------------------
    # Factory
    # ------------------------------------------------------------------

    def new_session(
        self,
        data: dict[str, Any] | None = None,
        ttl: timedelta | None = None,
    ) -> SessionRecord:
        """Return a new, unpersisted record with a fresh identifier."""
        return SessionRecord.new(data, ttl if ttl is not None else self._default_ttl)

    async def create_session(
        self,
        data: dict[str, Any] | None = None,
        ttl: timedelta | None = None,
    ) -> SessionRecord:
        """Build and persist a new session; the returned record carries its final id."""
        record = self.new_session(data, ttl)
        await self._store.create(record)
        logger.debug("Created session %s", record.id)
        return record

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    async def save_session(self, record: SessionRecord) -> SessionId:
        """Persist ``record`` as-is (insert or replace) and return its id."""
        await self._store.save(record)
        return record.id

    async def touch_session(
        self, record: SessionRecord, ttl: timedelta | None = None
    ) -> SessionRecord:
        """Push ``record``'s expiry to ``ttl`` from now and persist it."""
        record.expiry_date = utc_now() + (ttl if ttl is not None else self._default_ttl)
        await self._store.save(record)
        return record

    async def get_session(self, session_id: SessionId | str) -> SessionRecord | None:
        """Return the live session or None if it is absent or expired."""
        if isinstance(session_id, str):
            try:
                session_id = SessionId.parse(session_id)
            except ValueError:
                return None
        return await self._store.load(session_id)

    async def load_session(self, session_id: SessionId | str) -> SessionRecord:
        """Return the live session.

        Raises
        ------
        SessionNotFoundError
            If the session is absent, expired, or ``session_id`` is malformed.
        """
        record = await self.get_session(session_id)
        if record is None:
            raise SessionNotFoundError(str(session_id))
        return record

    async def delete_session(self, session_id: SessionId) -> None:
        """Remove ``session_id``; absent sessions are ignored."""
        await self._store.delete(session_id)

    async def cycle_id(self, record: SessionRecord) -> SessionId:
        """Move ``record`` to a freshly issued id and delete the old row.

        Used after privilege changes so that a previously observed id no
        longer refers to the session.  Returns the old id.  If ``create``
        fails, ``record`` keeps its old id.
        """
        old_id = record.id
        moved = record.model_copy(update={"id": SessionId.generate()})
        await self._store.create(moved)
        record.id = moved.id
        await self._store.delete(old_id)
        logger.debug("Cycled session id %s -> %s", old_id, record.id)
        return old_id


__all__ = ["DEFAULT_TTL", "SessionManager"]
