"""Tests for the conversation context manager."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from src.errors import ConcurrentModification, ContextExpired, RecordNotFound, ValidationError
from src.models.conversation import ExtractedIntent
from src.models.enums import ContextState, LanguageCode, MessageRole, QueryIntent
from src.services.conversation import ConversationContextManager
from src.services.store import VersionedStore

T0 = datetime(2025, 6, 1, 9, 0, tzinfo=UTC)


class FakeClock:
    def __init__(self, now: datetime = T0) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> VersionedStore:
    return VersionedStore(namespace="conversation:")


@pytest.fixture
def manager(store: VersionedStore, clock: FakeClock) -> ConversationContextManager:
    return ConversationContextManager(store, clock=clock, max_messages=3)


# -----------------------------------------------------------------------
# Creation and reads
# -----------------------------------------------------------------------


class TestCreateAndRead:
    async def test_create_sets_fixed_expiry(self, manager: ConversationContextManager) -> None:
        context = await manager.create(user_id="u1", language=LanguageCode.ta)
        assert context.created_at == T0
        assert context.expires_at == T0 + timedelta(hours=24)
        assert context.language == LanguageCode.ta
        assert context.version == 1

    async def test_read_round_trip(self, manager: ConversationContextManager) -> None:
        created = await manager.create(user_id="u1")
        read = await manager.read(created.id)
        assert read == created

    async def test_unknown_id(self, manager: ConversationContextManager) -> None:
        with pytest.raises(RecordNotFound):
            await manager.read("missing")

    async def test_ids_are_unique(self, manager: ConversationContextManager) -> None:
        a = await manager.create()
        b = await manager.create()
        assert a.id != b.id

    def test_rejects_non_positive_bound(self, store: VersionedStore) -> None:
        with pytest.raises(ValueError):
            ConversationContextManager(store, max_messages=0)


# -----------------------------------------------------------------------
# Expiry
# -----------------------------------------------------------------------


class TestExpiry:
    async def test_read_after_25_hours_fails(
        self, manager: ConversationContextManager, clock: FakeClock
    ) -> None:
        context = await manager.create()
        clock.advance(hours=25)
        with pytest.raises(ContextExpired):
            await manager.read(context.id)

    async def test_active_exactly_at_expiry(
        self, manager: ConversationContextManager, clock: FakeClock
    ) -> None:
        context = await manager.create()
        clock.advance(hours=24)
        assert await manager.status(context.id) == ContextState.ACTIVE
        clock.advance(microseconds=1)
        assert await manager.status(context.id) == ContextState.EXPIRED

    async def test_append_does_not_extend_expiry(
        self, manager: ConversationContextManager, clock: FakeClock
    ) -> None:
        context = await manager.create()
        clock.advance(hours=23)
        updated = await manager.append_message(context.id, MessageRole.USER, "namaste")
        assert updated.expires_at == context.expires_at
        clock.advance(hours=2)
        with pytest.raises(ContextExpired):
            await manager.append_message(context.id, MessageRole.USER, "still there?")

    async def test_expired_context_cannot_take_intent(
        self, manager: ConversationContextManager, clock: FakeClock
    ) -> None:
        context = await manager.create()
        clock.advance(days=2)
        with pytest.raises(ContextExpired):
            await manager.set_intent(context.id, ExtractedIntent())


# -----------------------------------------------------------------------
# Messages
# -----------------------------------------------------------------------


class TestMessages:
    async def test_append_records_message(self, manager: ConversationContextManager) -> None:
        context = await manager.create()
        updated = await manager.append_message(context.id, MessageRole.USER, "PM-KISAN ke baare mein")
        assert [m.content for m in updated.messages] == ["PM-KISAN ke baare mein"]
        assert updated.messages[0].timestamp == T0
        assert updated.version == 2

    async def test_oldest_messages_dropped_beyond_bound(
        self, manager: ConversationContextManager
    ) -> None:
        context = await manager.create()
        for i in range(5):
            context = await manager.append_message(context.id, MessageRole.USER, f"m{i}")
        assert [m.content for m in context.messages] == ["m2", "m3", "m4"]

    async def test_empty_content_rejected(self, manager: ConversationContextManager) -> None:
        context = await manager.create()
        with pytest.raises(ValidationError):
            await manager.append_message(context.id, MessageRole.USER, "   ")

    async def test_set_intent(self, manager: ConversationContextManager) -> None:
        context = await manager.create()
        intent = ExtractedIntent(
            intent=QueryIntent.ELIGIBILITY_CHECK,
            demographics={"age": 45},
            language=LanguageCode.hi,
        )
        updated = await manager.set_intent(context.id, intent)
        assert updated.extracted_intent == intent
        assert (await manager.read(context.id)).extracted_intent == intent

    async def test_stale_write_conflicts(
        self, manager: ConversationContextManager, store: VersionedStore
    ) -> None:
        context = await manager.create()
        await manager.append_message(context.id, MessageRole.USER, "first")
        # ``context`` still carries version 1
        with pytest.raises(ConcurrentModification):
            await store.save(context.id, context)
