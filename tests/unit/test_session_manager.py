"""Unit tests for persistent_sessions.session.manager.

Tests cover SessionManager lifecycle operations and error paths, all using
InMemorySessionStore so no I/O is needed.
"""
from __future__ import annotations

from datetime import timedelta

import pytest

from persistent_sessions.errors import BackendError, SessionNotFoundError
from persistent_sessions.session.identifier import SessionId
from persistent_sessions.session.manager import DEFAULT_TTL, SessionManager
from persistent_sessions.session.record import SessionRecord, utc_now
from persistent_sessions.storage.memory import InMemorySessionStore


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def store() -> InMemorySessionStore:
    return InMemorySessionStore()


@pytest.fixture()
def manager(store: InMemorySessionStore) -> SessionManager:
    return SessionManager(store, default_ttl=timedelta(hours=1))


class _FailingCreateStore(InMemorySessionStore):
    async def create(self, record: SessionRecord) -> None:
        raise BackendError("create", "connection reset")


# ---------------------------------------------------------------------------
# SessionNotFoundError
# ---------------------------------------------------------------------------


class TestSessionNotFoundError:
    def test_message_contains_id(self) -> None:
        assert "abc-123" in str(SessionNotFoundError("abc-123"))

    def test_session_id_attribute(self) -> None:
        assert SessionNotFoundError("xyz").session_id == "xyz"

    def test_is_key_error_subclass(self) -> None:
        assert isinstance(SessionNotFoundError("s1"), KeyError)


# ---------------------------------------------------------------------------
# Construction / factory
# ---------------------------------------------------------------------------


class TestConstruction:
    def test_default_ttl_is_two_weeks(self, store: InMemorySessionStore) -> None:
        assert DEFAULT_TTL == timedelta(weeks=2)
        record = SessionManager(store).new_session()
        assert record.expiry_date > utc_now() + timedelta(days=13)

    @pytest.mark.parametrize("ttl", [timedelta(0), timedelta(seconds=-1)])
    def test_non_positive_ttl_rejected(self, store: InMemorySessionStore, ttl: timedelta) -> None:
        with pytest.raises(ValueError):
            SessionManager(store, default_ttl=ttl)

    def test_store_property(self, manager: SessionManager, store: InMemorySessionStore) -> None:
        assert manager.store is store

    def test_new_session_is_not_persisted(
        self, manager: SessionManager, store: InMemorySessionStore
    ) -> None:
        record = manager.new_session({"a": 1})
        assert record.data == {"a": 1}
        assert len(store) == 0


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_create_then_load(self, manager: SessionManager) -> None:
        record = await manager.create_session({"user": "ada"})
        loaded = await manager.load_session(record.id)
        assert loaded == record

    @pytest.mark.asyncio
    async def test_create_with_explicit_ttl(self, manager: SessionManager) -> None:
        record = await manager.create_session(ttl=timedelta(days=3))
        assert record.expiry_date > utc_now() + timedelta(days=2)

    @pytest.mark.asyncio
    async def test_save_session_returns_id(self, manager: SessionManager) -> None:
        record = manager.new_session({"k": "v"})
        assert await manager.save_session(record) == record.id
        assert await manager.get_session(record.id) == record

    @pytest.mark.asyncio
    async def test_get_session_accepts_text(self, manager: SessionManager) -> None:
        record = await manager.create_session()
        assert await manager.get_session(str(record.id)) == record

    @pytest.mark.asyncio
    async def test_get_session_malformed_text_returns_none(
        self, manager: SessionManager
    ) -> None:
        assert await manager.get_session("definitely not an id") is None

    @pytest.mark.asyncio
    async def test_load_session_missing_raises(self, manager: SessionManager) -> None:
        with pytest.raises(SessionNotFoundError):
            await manager.load_session(SessionId.generate())

    @pytest.mark.asyncio
    async def test_load_session_expired_raises(
        self, manager: SessionManager, store: InMemorySessionStore
    ) -> None:
        record = SessionRecord(expiry_date=utc_now() - timedelta(seconds=1))
        await store.save(record)
        with pytest.raises(SessionNotFoundError):
            await manager.load_session(record.id)

    @pytest.mark.asyncio
    async def test_touch_session_extends_expiry(self, manager: SessionManager) -> None:
        record = await manager.create_session(ttl=timedelta(minutes=1))
        await manager.touch_session(record, timedelta(days=1))
        loaded = await manager.load_session(record.id)
        assert loaded.expiry_date > utc_now() + timedelta(hours=23)

    @pytest.mark.asyncio
    async def test_touch_revives_expired_session(
        self, manager: SessionManager, store: InMemorySessionStore
    ) -> None:
        record = SessionRecord(expiry_date=utc_now() - timedelta(seconds=1))
        await store.save(record)
        await manager.touch_session(record)
        assert await manager.get_session(record.id) is not None

    @pytest.mark.asyncio
    async def test_delete_session(self, manager: SessionManager) -> None:
        record = await manager.create_session()
        await manager.delete_session(record.id)
        await manager.delete_session(record.id)
        assert await manager.get_session(record.id) is None

    @pytest.mark.asyncio
    async def test_cycle_id_moves_record(
        self, manager: SessionManager, store: InMemorySessionStore
    ) -> None:
        record = await manager.create_session({"role": "user"})
        old_id = await manager.cycle_id(record)
        assert old_id != record.id
        assert await manager.get_session(old_id) is None
        loaded = await manager.load_session(record.id)
        assert loaded.data == {"role": "user"}
        assert len(store) == 1

    @pytest.mark.asyncio
    async def test_cycle_id_failure_keeps_old_id(self) -> None:
        failing = _FailingCreateStore()
        failing_manager = SessionManager(failing, default_ttl=timedelta(hours=1))
        record = failing_manager.new_session({"role": "user"})
        await failing.save(record)
        old_id = record.id

        with pytest.raises(BackendError):
            await failing_manager.cycle_id(record)

        assert record.id == old_id
        loaded = await failing_manager.load_session(old_id)
        assert loaded.data == {"role": "user"}
        assert len(failing) == 1


class TestZeroTtl:
    def test_new_session_honours_zero_ttl(self, manager: SessionManager) -> None:
        before = utc_now()
        record = manager.new_session(ttl=timedelta(0))
        assert before <= record.expiry_date <= utc_now()

    @pytest.mark.asyncio
    async def test_touch_session_with_zero_ttl_expires_now(
        self, manager: SessionManager
    ) -> None:
        record = await manager.create_session()
        await manager.touch_session(record, timedelta(0))
        assert record.expiry_date <= utc_now()
        assert await manager.get_session(record.id) is None

