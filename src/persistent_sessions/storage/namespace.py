"""Validated schema/table names for relational session stores.

Schema and table names cannot be bound as query parameters, so they are
interpolated into SQL text.  Names are validated once, at construction
time, before any connection is opened.

A valid identifier starts with a letter (any script, including letters
with diacritical marks) or an underscore; subsequent characters may be
letters, digits, underscores, or dollar signs.  See
https://www.postgresql.org/docs/current/sql-syntax-lexical.html#SQL-SYNTAX-IDENTIFIERS

Classes
-------
- Namespace  — immutable (schema_name, table_name) pair
"""
from __future__ import annotations

from dataclasses import dataclass

from persistent_sessions.errors import ConfigurationError

DEFAULT_SCHEMA_NAME: str = "tower_sessions"
DEFAULT_TABLE_NAME: str = "session"

_RULE = (
    "must start with a letter or underscore (including letters with "
    "diacritical marks and non-Latin letters); subsequent characters can be "
    "letters, underscores, digits (0-9), or dollar signs ($)"
)


def is_valid_identifier(name: str) -> bool:
    """Return True if ``name`` is usable as a schema or table identifier."""
    if not name:
        return False
    first = name[0]
    if not (first.isalpha() or first == "_"):
        return False
    return all(ch.isalnum() or ch in "_$" for ch in name)


def validate_identifier(name: str, kind: str) -> str:
    """Return ``name`` unchanged, or raise ``ConfigurationError``.

    Parameters
    ----------
    name:
        The identifier to check.
    kind:
        ``"schema"`` or ``"table"``; used in the error message.
    """
    if not isinstance(name, str) or not is_valid_identifier(name):
        raise ConfigurationError(
            f"Invalid {kind} name {name!r}. {kind.capitalize()} names {_RULE}."
        )
    return name


@dataclass(frozen=True)
class Namespace:
    """Physical location of the session table.

    Parameters
    ----------
    schema_name:
        Schema holding the table.  Defaults to ``"tower_sessions"``.
    table_name:
        Table name.  Defaults to ``"session"``.

    Raises
    ------
    ConfigurationError
        If either name fails identifier validation.
    """

    schema_name: str = DEFAULT_SCHEMA_NAME
    table_name: str = DEFAULT_TABLE_NAME

    def __post_init__(self) -> None:
        validate_identifier(self.schema_name, "schema")
        validate_identifier(self.table_name, "table")

    def with_schema_name(self, schema_name: str) -> Namespace:
        return Namespace(schema_name=schema_name, table_name=self.table_name)

    def with_table_name(self, table_name: str) -> Namespace:
        return Namespace(schema_name=self.schema_name, table_name=table_name)

    def quoted_schema(self) -> str:
        return f'"{self.schema_name}"'

    def qualified(self) -> str:
        """Return ``"schema"."table"`` ready for interpolation into SQL."""
        return f'"{self.schema_name}"."{self.table_name}"'

    def flattened(self) -> str:
        """Return ``schema_table`` for engines without schemas (SQLite)."""
        return f'"{self.schema_name}_{self.table_name}"'


__all__ = [
    "DEFAULT_SCHEMA_NAME",
    "DEFAULT_TABLE_NAME",
    "Namespace",
    "is_valid_identifier",
    "validate_identifier",
]
