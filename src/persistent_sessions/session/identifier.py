"""Opaque session identifiers.

A ``SessionId`` wraps a random 128-bit value.  Its text form is the
URL-safe base64 encoding (no padding) of the 16 little-endian bytes, which
always yields 22 characters.

Generation only makes a collision statistically unlikely; stores still
verify uniqueness against their own namespace before inserting.

Classes
-------
- SessionId  — immutable, hashable identifier with text round-tripping
"""
from __future__ import annotations

import base64
import binascii
import secrets
from typing import Any

from pydantic_core import core_schema

_ID_BYTES: int = 16
_ID_TEXT_LENGTH: int = 22


class SessionId:
    """Immutable 128-bit session identifier.

    Parameters
    ----------
    value:
        Signed 128-bit integer backing the identifier.
    """

    __slots__ = ("_value",)

    def __init__(self, value: int) -> None:
        if not -(2**127) <= value < 2**127:
            raise ValueError(f"SessionId value {value!r} does not fit in 128 bits.")
        self._value = value

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def generate(cls) -> SessionId:
        """Return a fresh identifier drawn from the OS CSPRNG."""
        raw = secrets.token_bytes(_ID_BYTES)
        return cls(int.from_bytes(raw, "little", signed=True))

    @classmethod
    def parse(cls, text: str) -> SessionId:
        """Parse the 22-character text form produced by ``str()``.

        Raises
        ------
        ValueError
            If ``text`` is not a well-formed identifier.
        """
        if len(text) != _ID_TEXT_LENGTH:
            raise ValueError(
                f"Invalid session id {text!r}: expected {_ID_TEXT_LENGTH} characters."
            )
        try:
            raw = base64.urlsafe_b64decode(text + "==")
        except (binascii.Error, ValueError) as exc:
            raise ValueError(f"Invalid session id {text!r}: not base64url.") from exc
        # Reject non-canonical encodings so that text equality matches value equality.
        if len(raw) != _ID_BYTES or cls._encode(raw) != text:
            raise ValueError(f"Invalid session id {text!r}: not canonical.")
        return cls(int.from_bytes(raw, "little", signed=True))

    # ------------------------------------------------------------------
    # Value semantics
    # ------------------------------------------------------------------

    @property
    def value(self) -> int:
        return self._value

    @staticmethod
    def _encode(raw: bytes) -> str:
        return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")

    def __str__(self) -> str:
        return self._encode(self._value.to_bytes(_ID_BYTES, "little", signed=True))

    def __repr__(self) -> str:
        return f"SessionId({str(self)!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SessionId):
            return NotImplemented
        return self._value == other._value

    def __hash__(self) -> int:
        return hash(self._value)

    # ------------------------------------------------------------------
    # Pydantic integration
    # ------------------------------------------------------------------

    @classmethod
    def _coerce(cls, value: Any) -> SessionId:
        if isinstance(value, SessionId):
            return value
        if isinstance(value, str):
            return cls.parse(value)
        raise ValueError(f"Cannot build a SessionId from {type(value).__name__}.")

    @classmethod
    def __get_pydantic_core_schema__(
        cls, source_type: Any, handler: Any
    ) -> core_schema.CoreSchema:
        return core_schema.no_info_plain_validator_function(
            cls._coerce,
            serialization=core_schema.plain_serializer_function_ser_schema(
                str, when_used="json"
            ),
        )


__all__ = ["SessionId"]
