"""Error taxonomy shared by every session store backend.

Callers branch on these classes instead of on driver-specific exceptions.
The underlying driver error, when there is one, is chained as ``__cause__``.

Classes
-------
- SessionStoreError    — base class for every error raised by this package
- BackendError         — connectivity, query-execution, or pool failure
- EncodeError          — a record could not be serialized
- DecodeError          — stored bytes could not be deserialized
- ConfigurationError   — invalid schema/table name or settings value
- SessionNotFoundError — raised by ``SessionManager.load_session``
"""
from __future__ import annotations


class SessionStoreError(Exception):
    """Base class for all errors raised by persistent-sessions."""


class BackendError(SessionStoreError):
    """Raised when the storage backend (driver, pool, or server) fails.

    Parameters
    ----------
    operation:
        Name of the store operation that failed, e.g. ``"load"``.
    detail:
        Human-readable description of the underlying failure.
    """

    def __init__(self, operation: str, detail: str) -> None:
        self.operation = operation
        self.detail = detail
        super().__init__(f"Backend failure during {operation!r}: {detail}")


class EncodeError(SessionStoreError):
    """Raised when a record or payload cannot be serialized."""


class DecodeError(SessionStoreError):
    """Raised when stored bytes cannot be deserialized into a record."""


class ConfigurationError(SessionStoreError, ValueError):
    """Raised for invalid configuration, detected before any database access."""


class SessionNotFoundError(SessionStoreError, KeyError):
    """Raised when a requested session is absent or expired."""

    def __init__(self, session_id: str) -> None:
        self.session_id = session_id
        super().__init__(f"Session {session_id!r} not found.")

    def __str__(self) -> str:
        # KeyError quotes its argument; keep the plain message.
        return str(self.args[0])


__all__ = [
    "BackendError",
    "ConfigurationError",
    "DecodeError",
    "EncodeError",
    "SessionNotFoundError",
    "SessionStoreError",
]
