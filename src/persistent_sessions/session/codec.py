"""Binary serialization of session records.

MessagePack is the storage format: compact, schema-less, and able to carry
raw ``bytes`` values inside the payload.  A JSON format is available for
exports and debugging; it cannot represent ``bytes`` payload values.

Every encoded document is a map with three keys:

- ``id``          — text form of the ``SessionId``
- ``data``        — the payload map
- ``expiry_date`` — seconds and nanoseconds since the Unix epoch (UTC);
  a MessagePack timestamp extension for ``"msgpack"`` and a
  ``[seconds, nanoseconds]`` array for ``"json"``

Both expiry forms cover the whole ``datetime`` range (years 1 to 9999).

Payload values are restricted to types that survive a round trip:
``None``, ``bool``, ``int``, ``float``, ``str``, ``list`` and ``dict``, plus
``bytes`` in the MessagePack format.  Tuples are rejected because both
formats decode them as lists, and the JSON format rejects non-string keys.

Classes
-------
- RecordCodec  — encode/decode ``SessionRecord`` objects to bytes
"""
from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from typing import Any, Literal

import msgpack
from pydantic import ValidationError

from persistent_sessions.errors import DecodeError, EncodeError
from persistent_sessions.session.record import SessionRecord

CodecFormat = Literal["msgpack", "json"]

_EPOCH: datetime = datetime(1970, 1, 1, tzinfo=timezone.utc)
_MICROS_PER_SECOND: int = 1_000_000
_NANOS_PER_MICRO: int = 1_000
_NANOS_PER_SECOND: int = 1_000_000_000


def datetime_to_micros(value: datetime) -> int:
    """Return ``value`` as integer microseconds since the Unix epoch (UTC).

    Every aware ``datetime`` fits in a signed 64-bit integer at this scale.
    """
    return (value - _EPOCH) // timedelta(microseconds=1)


def micros_to_datetime(micros: int) -> datetime:
    """Inverse of ``datetime_to_micros``.

    Raises
    ------
    OverflowError
        If ``micros`` falls outside the ``datetime`` range.
    """
    return _EPOCH + timedelta(microseconds=micros)


def _expiry_parts(value: datetime) -> tuple[int, int]:
    seconds, micros = divmod(datetime_to_micros(value), _MICROS_PER_SECOND)
    return seconds, micros * _NANOS_PER_MICRO


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


class RecordCodec:
    """Serialize and deserialize ``SessionRecord`` objects.

    Parameters
    ----------
    format:
        ``"msgpack"`` (default) or ``"json"``.
    """

    def __init__(self, format: CodecFormat = "msgpack") -> None:
        if format not in ("msgpack", "json"):
            raise ValueError(f"Unsupported codec format {format!r}")
        self.format: CodecFormat = format

    # ------------------------------------------------------------------
    # Records
    # ------------------------------------------------------------------

    def encode(self, record: SessionRecord) -> bytes:
        """Serialize ``record`` to bytes.

        Raises
        ------
        EncodeError
            If the payload contains values the format cannot represent
            or would not decode back unchanged.
        """
        try:
            self._check_round_trip(record.data, "data")
        except RecursionError as exc:
            raise EncodeError("Payload is nested too deeply or is cyclic") from exc
        seconds, nanos = _expiry_parts(record.expiry_date)
        expiry: Any
        if self.format == "msgpack":
            expiry = msgpack.Timestamp(seconds, nanos)
        else:
            expiry = [seconds, nanos]
        document = {
            "id": str(record.id),
            "data": record.data,
            "expiry_date": expiry,
        }
        return self.encode_payload(document)

    def decode(self, raw: bytes) -> SessionRecord:
        """Deserialize bytes previously produced by ``encode``.

        Raises
        ------
        DecodeError
            If ``raw`` is malformed or does not describe a session record.
        """
        document = self.decode_payload(raw)
        if not isinstance(document, dict):
            raise DecodeError(
                f"Expected an encoded map, got {type(document).__name__}"
            )
        try:
            seconds, nanos = self._decode_expiry(document["expiry_date"])
            micros = seconds * _MICROS_PER_SECOND + nanos // _NANOS_PER_MICRO
            return SessionRecord(
                id=document["id"],
                data=document["data"],
                expiry_date=micros_to_datetime(micros),
            )
        except KeyError as exc:
            raise DecodeError(f"Encoded record is missing field {exc.args[0]!r}") from exc
        except (ValidationError, OverflowError) as exc:
            raise DecodeError(f"Encoded record failed validation: {exc}") from exc

    @staticmethod
    def _decode_expiry(value: Any) -> tuple[int, int]:
        if isinstance(value, msgpack.Timestamp):
            return value.seconds, value.nanoseconds
        if (
            isinstance(value, list)
            and len(value) == 2
            and _is_int(value[0])
            and _is_int(value[1])
            and 0 <= value[1] < _NANOS_PER_SECOND
        ):
            return value[0], value[1]
        raise DecodeError("expiry_date must be a (seconds, nanoseconds) timestamp")

    def _check_round_trip(self, value: Any, path: str) -> None:
        if isinstance(value, tuple):
            raise EncodeError(f"{path}: tuples decode as lists, store a list instead")
        if isinstance(value, list):
            for index, item in enumerate(value):
                self._check_round_trip(item, f"{path}[{index}]")
        elif isinstance(value, dict):
            for key, item in value.items():
                if isinstance(key, tuple) or (
                    self.format == "json" and not isinstance(key, str)
                ):
                    raise EncodeError(
                        f"{path}: key {key!r} is not supported by the {self.format} format"
                    )
                self._check_round_trip(item, f"{path}[{key!r}]")

    # ------------------------------------------------------------------
    # Bare payloads
    # ------------------------------------------------------------------

    def encode_payload(self, payload: Any) -> bytes:
        """Serialize an arbitrary payload with the configured format."""
        try:
            if self.format == "json":
                return json.dumps(
                    payload, separators=(",", ":"), allow_nan=False
                ).encode("utf-8")
            return msgpack.packb(payload, use_bin_type=True)
        except (TypeError, ValueError, OverflowError) as exc:
            raise EncodeError(f"Cannot encode payload as {self.format}: {exc}") from exc

    def decode_payload(self, raw: bytes) -> Any:
        """Deserialize a payload produced by ``encode_payload``."""
        try:
            if self.format == "json":
                return json.loads(bytes(raw).decode("utf-8"))
            return msgpack.unpackb(bytes(raw), raw=False, strict_map_key=False)
        except (TypeError, ValueError, msgpack.UnpackException) as exc:
            raise DecodeError(f"Cannot decode {self.format} payload: {exc}") from exc

    def __repr__(self) -> str:
        return f"RecordCodec(format={self.format!r})"


__all__ = ["CodecFormat", "RecordCodec", "datetime_to_micros", "micros_to_datetime"]
