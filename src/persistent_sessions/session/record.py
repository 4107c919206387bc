"""In-memory representation of a persisted session.

Classes
-------
- SessionRecord  — identifier, absolute UTC expiry, and arbitrary payload
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

from pydantic import BaseModel, Field, field_validator

from persistent_sessions.session.identifier import SessionId


def utc_now() -> datetime:
    """Return the current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


class SessionRecord(BaseModel):
    """A session as stored by an ``AsyncSessionStore``.

    The on-disk row is authoritative; a ``SessionRecord`` has no lifetime
    of its own beyond the call that produced it.

    Parameters
    ----------
    id:
        Opaque identifier, unique within the store's namespace.  ``create``
        may replace it when the initial value collides.
    data:
        Associative payload with string keys.  Opaque to the store, but
        values must survive the codec: ``None``, ``bool``, ``int``,
        ``float``, ``str``, ``list`` and nested ``dict``, plus ``bytes``
        with the MessagePack codec.  Tuples are rejected on encode because
        they would load back as lists.
    expiry_date:
        Absolute instant after which the record is no longer returned by
        ``load``.  Must be timezone-aware; it is normalised to UTC.
    """

    id: SessionId = Field(default_factory=SessionId.generate)
    data: dict[str, Any] = Field(default_factory=dict)
    expiry_date: datetime

    model_config = {"frozen": False, "validate_assignment": True}

    @field_validator("expiry_date")
    @classmethod
    def _require_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None or value.utcoffset() is None:
            raise ValueError("expiry_date must be timezone-aware")
        try:
            return value.astimezone(timezone.utc)
        except OverflowError as exc:
            raise ValueError("expiry_date is outside the UTC datetime range") from exc

    @classmethod
    def new(
        cls,
        data: dict[str, Any] | None = None,
        ttl: timedelta = timedelta(weeks=2),
        *,
        session_id: SessionId | None = None,
    ) -> SessionRecord:
        """Build a record expiring ``ttl`` from now with a fresh identifier."""
        return cls(
            id=session_id if session_id is not None else SessionId.generate(),
            data=dict(data or {}),
            expiry_date=utc_now() + ttl,
        )

    def is_expired(self, now: datetime | None = None) -> bool:
        """Return True once ``now`` (default: current UTC time) reaches the expiry."""
        return self.expiry_date <= (now or utc_now())


__all__ = ["SessionRecord", "utc_now"]
