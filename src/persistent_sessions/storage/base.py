"""Abstract base class for async session record stores.

All concrete stores implement the operations defined here.  Records cross
this boundary as ``SessionRecord`` objects; each backend serializes them with
a ``RecordCodec`` and stores the resulting bytes next to the id and expiry.

Classes
-------
- AsyncSessionStore  — abstract base for all backends
"""
from __future__ import annotations

from abc import ABC, abstractmethod

from persistent_sessions.session.codec import RecordCodec
from persistent_sessions.session.identifier import SessionId
from persistent_sessions.session.record import SessionRecord


class AsyncSessionStore(ABC):
    """Protocol for durable, expiring session records.

    The store is stateless between calls.  A record's lifecycle is
    ``absent -> live`` (``create``/``save``), ``live -> expired`` (time
    passes), and ``-> absent`` (``delete`` or ``delete_expired``).  Reads
    never change state.

    Parameters
    ----------
    codec:
        Serializer for record payloads.  Defaults to MessagePack.
    """

    def __init__(self, codec: RecordCodec | None = None) -> None:
        self._codec = codec or RecordCodec()

    @property
    def codec(self) -> RecordCodec:
        return self._codec

    @abstractmethod
    async def provision(self) -> None:
        """Idempotently create whatever storage the store needs.

        Called once at application startup.  Safe to call repeatedly and
        from concurrent processes.
        """

    @abstractmethod
    async def create(self, record: SessionRecord) -> None:
        """Insert ``record`` under an identifier not yet used in the store.

        While ``record.id`` is already taken (expired rows included) a new
        identifier is generated and assigned to ``record.id``.  The
        existence check and the insert run in one transaction.

        Raises
        ------
        EncodeError
            If the record cannot be serialized.
        BackendError
            For any driver, pool, or server failure.
        """

    @abstractmethod
    async def save(self, record: SessionRecord) -> None:
        """Insert ``record`` or replace the data and expiry of an existing id.

        Raises
        ------
        EncodeError
            If the record cannot be serialized.
        BackendError
            For any driver, pool, or server failure.
        """

    @abstractmethod
    async def load(self, session_id: SessionId) -> SessionRecord | None:
        """Return the record for ``session_id`` if it exists and has not expired.

        Absent and expired records are indistinguishable: both yield None.

        Raises
        ------
        DecodeError
            If the stored bytes cannot be deserialized.
        BackendError
            For any driver, pool, or server failure.
        """

    @abstractmethod
    async def delete(self, session_id: SessionId) -> None:
        """Remove ``session_id``.  Deleting an absent id is not an error."""

    @abstractmethod
    async def delete_expired(self) -> int:
        """Remove every record whose expiry is in the past.

        Returns
        -------
        int
            Number of records removed.
        """


__all__ = ["AsyncSessionStore"]
