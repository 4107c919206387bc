"""Unit tests for persistent_sessions.storage.postgres and postgres_schema.

A small fake stands in for the asyncpg pool so no PostgreSQL server is
required.  The fake records every statement, its bind parameters, and the
transaction boundaries around it.
"""
from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from typing import Any, AsyncIterator

import asyncpg
import pytest

from persistent_sessions.errors import BackendError, ConfigurationError, DecodeError, EncodeError
from persistent_sessions.session.codec import RecordCodec
from persistent_sessions.session.identifier import SessionId
from persistent_sessions.session.record import SessionRecord
from persistent_sessions.storage.namespace import Namespace
from persistent_sessions.storage.postgres import PostgresSessionStore, _affected_rows
from persistent_sessions.storage.postgres_schema import PostgresSchemaManager


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakeTransaction:
    def __init__(self, conn: FakeConnection) -> None:
        self._conn = conn

    async def __aenter__(self) -> FakeTransaction:
        self._conn.events.append("begin")
        return self

    async def __aexit__(self, exc_type: Any, exc: Any, tb: Any) -> bool:
        self._conn.events.append("rollback" if exc_type else "commit")
        return False


class FakeConnection:
    """Records statements; answers ``select exists`` and inserts from queues."""

    def __init__(
        self,
        exists_answers: list[bool] | None = None,
        load_result: bytes | None = None,
        execute_status: str = "INSERT 0 1",
        insert_statuses: list[str] | None = None,
        errors: dict[str, BaseException] | None = None,
    ) -> None:
        self.exists_answers = list(exists_answers or [])
        self.load_result = load_result
        self.execute_status = execute_status
        self.insert_statuses = list(insert_statuses or [])
        self.errors = dict(errors or {})
        self.events: list[str] = []
        self.statements: list[tuple[str, tuple[Any, ...]]] = []

    def transaction(self) -> FakeTransaction:
        return FakeTransaction(self)

    def _maybe_fail(self, sql: str) -> None:
        for fragment, error in list(self.errors.items()):
            if fragment in sql:
                del self.errors[fragment]
                raise error

    async def fetchval(self, sql: str, *args: Any) -> Any:
        self.statements.append((sql, args))
        self.events.append("fetchval")
        self._maybe_fail(sql)
        if "select exists" in sql:
            return self.exists_answers.pop(0) if self.exists_answers else False
        return self.load_result

    async def execute(self, sql: str, *args: Any) -> str:
        self.statements.append((sql, args))
        self.events.append("execute")
        self._maybe_fail(sql)
        if "do nothing" in sql and self.insert_statuses:
            return self.insert_statuses.pop(0)
        return self.execute_status


class FakePool:
    def __init__(self, conn: FakeConnection, acquire_error: BaseException | None = None) -> None:
        self.conn = conn
        self.acquire_error = acquire_error
        self.acquired = 0
        self.released = 0

    @asynccontextmanager
    async def acquire(self) -> AsyncIterator[FakeConnection]:
        if self.acquire_error is not None:
            raise self.acquire_error
        self.acquired += 1
        try:
            yield self.conn
        finally:
            self.released += 1


def _record(**kwargs: Any) -> SessionRecord:
    return SessionRecord.new(kwargs.get("data", {"x": 1}), kwargs.get("ttl", timedelta(hours=1)))


def _store(conn: FakeConnection, **kwargs: Any) -> tuple[PostgresSessionStore, FakePool]:
    pool = FakePool(conn, **kwargs)
    return PostgresSessionStore(pool, Namespace("app_sessions", "session")), pool  # type: ignore[arg-type]


# ---------------------------------------------------------------------------
# Construction
# ---------------------------------------------------------------------------


class TestConstruction:
    def test_default_namespace(self) -> None:
        store = PostgresSessionStore(FakePool(FakeConnection()))  # type: ignore[arg-type]
        assert store.namespace == Namespace("tower_sessions", "session")

    def test_invalid_namespace_rejected_before_any_connection(self) -> None:
        pool = FakePool(FakeConnection())
        with pytest.raises(ConfigurationError):
            PostgresSessionStore(pool, Namespace("bad-schema", "session"))  # type: ignore[arg-type]
        assert pool.acquired == 0

    def test_sql_uses_quoted_qualified_table(self) -> None:
        conn = FakeConnection()
        store, _ = _store(conn)
        assert '"app_sessions"."session"' in repr(store)


# ---------------------------------------------------------------------------
# create
# ---------------------------------------------------------------------------


class TestCreate:
    @pytest.mark.asyncio
    async def test_create_inserts_within_one_transaction(self) -> None:
        conn = FakeConnection(exists_answers=[False])
        store, pool = _store(conn)
        record = _record()
        original_id = record.id

        await store.create(record)

        assert record.id == original_id
        assert conn.events == ["begin", "fetchval", "execute", "commit"]
        assert pool.acquired == 1 and pool.released == 1
        sql, args = conn.statements[-1]
        assert "on conflict (id) do nothing" in sql
        assert args[0] == str(original_id)
        assert store.codec.decode(args[1]) == record
        assert args[2] == record.expiry_date

    @pytest.mark.asyncio
    async def test_create_regenerates_id_until_free(self) -> None:
        conn = FakeConnection(exists_answers=[True, True, False])
        store, _ = _store(conn)
        record = _record()
        original_id = record.id

        await store.create(record)

        assert record.id != original_id
        exists_checks = [args for sql, args in conn.statements if "select exists" in sql]
        assert len(exists_checks) == 3
        assert exists_checks[0] == (str(original_id),)
        # Each retry checks the newly generated id.
        assert len({args[0] for args in exists_checks}) == 3
        assert conn.statements[-1][1][0] == str(record.id)
        assert conn.events[0] == "begin" and conn.events[-1] == "commit"

    @pytest.mark.asyncio
    async def test_create_regenerates_id_when_concurrent_insert_wins(self) -> None:
        conn = FakeConnection(insert_statuses=["INSERT 0 0", "INSERT 0 1"])
        store, _ = _store(conn)
        record = _record()
        original_id = record.id

        await store.create(record)

        assert record.id != original_id
        assert conn.events == [
            "begin", "fetchval", "execute", "fetchval", "execute", "commit",
        ]
        inserts = [args for sql, args in conn.statements if "insert into" in sql]
        assert [args[0] for args in inserts] == [str(original_id), str(record.id)]
        assert store.codec.decode(inserts[-1][1]).id == record.id

    @pytest.mark.asyncio
    async def test_create_encode_error_rolls_back(self) -> None:
        conn = FakeConnection()
        store, _ = _store(conn)
        record = _record(data={"bad": object()})

        with pytest.raises(EncodeError):
            await store.create(record)

        assert conn.events[-1] == "rollback"
        assert not any("insert into" in sql for sql, _ in conn.statements)

    @pytest.mark.asyncio
    async def test_create_unique_violation_surfaces_as_backend_error(self) -> None:
        conn = FakeConnection(errors={"insert into": asyncpg.exceptions.UniqueViolationError("dup")})
        store, _ = _store(conn)

        with pytest.raises(BackendError) as excinfo:
            await store.create(_record())

        assert excinfo.value.operation == "create"
        assert isinstance(excinfo.value.__cause__, asyncpg.PostgresError)
        assert conn.events[-1] == "rollback"


# ---------------------------------------------------------------------------
# save / load / delete / delete_expired
# ---------------------------------------------------------------------------


class TestSave:
    @pytest.mark.asyncio
    async def test_save_is_single_upsert_without_existence_check(self) -> None:
        conn = FakeConnection()
        store, _ = _store(conn)
        await store.save(_record())
        assert len(conn.statements) == 1
        assert "on conflict (id) do update" in conn.statements[0][0]
        assert "begin" not in conn.events

    @pytest.mark.asyncio
    async def test_save_encode_error_issues_no_statement(self) -> None:
        conn = FakeConnection()
        store, _ = _store(conn)
        with pytest.raises(EncodeError):
            await store.save(_record(data={"bad": {1, 2}}))
        assert conn.statements == []


class TestLoad:
    @pytest.mark.asyncio
    async def test_load_decodes_stored_payload(self) -> None:
        record = _record(data={"x": 1})
        conn = FakeConnection(load_result=RecordCodec().encode(record))
        store, _ = _store(conn)

        loaded = await store.load(record.id)

        assert loaded == record

    @pytest.mark.asyncio
    async def test_load_passes_current_utc_time_as_parameter(self) -> None:
        conn = FakeConnection(load_result=None)
        store, _ = _store(conn)
        session_id = SessionId.generate()
        before = datetime.now(timezone.utc)

        assert await store.load(session_id) is None

        sql, args = conn.statements[0]
        assert "expiry_date > $2" in sql
        assert args[0] == str(session_id)
        assert args[1].tzinfo is not None
        assert before <= args[1] <= datetime.now(timezone.utc)

    @pytest.mark.asyncio
    async def test_load_corrupt_payload_raises_decode_error(self) -> None:
        conn = FakeConnection(load_result=b"\xc1garbage")
        store, _ = _store(conn)
        with pytest.raises(DecodeError):
            await store.load(SessionId.generate())


class TestDelete:
    @pytest.mark.asyncio
    async def test_delete_of_absent_id_succeeds(self) -> None:
        conn = FakeConnection(execute_status="DELETE 0")
        store, _ = _store(conn)
        await store.delete(SessionId.generate())
        assert conn.statements[0][0].startswith('delete from "app_sessions"."session"')

    @pytest.mark.asyncio
    async def test_delete_expired_returns_row_count(self) -> None:
        conn = FakeConnection(execute_status="DELETE 3")
        store, _ = _store(conn)
        assert await store.delete_expired() == 3
        sql, args = conn.statements[0]
        assert "expiry_date < now()" in sql
        assert args == ()

    def test_affected_rows_parsing(self) -> None:
        assert _affected_rows("DELETE 12") == 12
        assert _affected_rows("") == 0
        assert _affected_rows("SELECT") == 0


class TestBackendErrors:
    @pytest.mark.asyncio
    async def test_pool_exhaustion_maps_to_backend_error(self) -> None:
        store, _ = _store(FakeConnection(), acquire_error=TimeoutError("pool exhausted"))
        with pytest.raises(BackendError) as excinfo:
            await store.load(SessionId.generate())
        assert excinfo.value.operation == "load"

    @pytest.mark.asyncio
    async def test_connection_loss_maps_to_backend_error(self) -> None:
        store, _ = _store(FakeConnection(), acquire_error=ConnectionRefusedError("refused"))
        with pytest.raises(BackendError):
            await store.delete_expired()

    @pytest.mark.asyncio
    async def test_interface_error_maps_to_backend_error(self) -> None:
        conn = FakeConnection(errors={"delete from": asyncpg.InterfaceError("pool is closed")})
        store, _ = _store(conn)
        with pytest.raises(BackendError):
            await store.delete(SessionId.generate())


# ---------------------------------------------------------------------------
# PostgresSchemaManager
# ---------------------------------------------------------------------------


class TestSchemaManager:
    @pytest.mark.asyncio
    async def test_provision_creates_schema_then_table(self) -> None:
        conn = FakeConnection()
        manager = PostgresSchemaManager(FakePool(conn), Namespace("app_sessions", "session"))  # type: ignore[arg-type]

        await manager.provision()

        statements = [sql for sql, _ in conn.statements]
        assert statements[0] == 'create schema if not exists "app_sessions"'
        assert 'create table if not exists "app_sessions"."session"' in statements[1]
        for column in ("id text primary key not null", "data bytea not null",
                       "expiry_date timestamptz not null"):
            assert column in statements[1]
        # Outer transaction plus a savepoint around the schema statement.
        assert conn.events == ["begin", "begin", "execute", "commit", "execute", "commit"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error",
        [
            asyncpg.exceptions.DuplicateSchemaError("schema exists"),
            asyncpg.exceptions.UniqueViolationError("pg_namespace_nspname_index"),
        ],
    )
    async def test_concurrent_schema_creation_is_tolerated(self, error: Exception) -> None:
        conn = FakeConnection(errors={"create schema": error})
        manager = PostgresSchemaManager(FakePool(conn), Namespace())  # type: ignore[arg-type]

        await manager.provision()

        assert any("create table" in sql for sql, _ in conn.statements)
        assert conn.events[-1] == "commit"

    @pytest.mark.asyncio
    async def test_other_schema_errors_propagate(self) -> None:
        conn = FakeConnection(
            errors={"create schema": asyncpg.exceptions.InsufficientPrivilegeError("denied")}
        )
        manager = PostgresSchemaManager(FakePool(conn), Namespace())  # type: ignore[arg-type]

        with pytest.raises(BackendError) as excinfo:
            await manager.provision()

        assert excinfo.value.operation == "provision"
        assert not any("create table" in sql for sql, _ in conn.statements)

    @pytest.mark.asyncio
    async def test_provision_twice_is_idempotent(self) -> None:
        conn = FakeConnection()
        store, _ = _store(conn)
        await store.provision()
        await store.provision()
        creates = [sql for sql, _ in conn.statements if "if not exists" in sql]
        assert len(creates) == 4
