"""Session domain: identifiers, records, codec, and the manager facade."""
from __future__ import annotations

from persistent_sessions.session.codec import RecordCodec
from persistent_sessions.session.identifier import SessionId
from persistent_sessions.session.manager import SessionManager
from persistent_sessions.session.record import SessionRecord

__all__ = ["RecordCodec", "SessionId", "SessionManager", "SessionRecord"]
