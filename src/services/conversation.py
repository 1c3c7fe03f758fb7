"""Conversation context manager: bounded dialogue state with fixed expiry.

Per conversation id the state machine is::

    create() --> ACTIVE --(now > expires_at)--> EXPIRED

``append_message`` and ``read`` are only valid while ACTIVE and neither
extends the expiry.  There is no way back from EXPIRED: the caller must
create a new context under a new id.  Removing dead contexts is left to
the store (entries are written with a TTL well past expiry so that late
readers still get :class:`~src.errors.ContextExpired` rather than "not
found").
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

import structlog

from src.errors import ContextExpired, ValidationError
from src.models.conversation import ConversationContext, ExtractedIntent, Message
from src.models.enums import ContextState, LanguageCode, MessageRole

if TYPE_CHECKING:
    from src.services.store import VersionedStore

logger = structlog.get_logger(__name__)

Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(UTC)


class ConversationContextManager:
    """Create, extend and read conversation contexts.

    Parameters
    ----------
    store:
        Versioned store scoped to conversation records.
    clock:
        Returns the current UTC time; injectable for tests.
    ttl:
        Lifetime of a context from creation (24 hours by default).
    max_messages:
        Upper bound on retained messages; the oldest are dropped first.
    """

    __slots__ = ("_clock", "_max_messages", "_store", "_ttl")

    def __init__(
        self,
        store: VersionedStore,
        *,
        clock: Clock = _utcnow,
        ttl: timedelta = timedelta(hours=24),
        max_messages: int = 50,
    ) -> None:
        if max_messages < 1:
            raise ValueError("max_messages must be positive")
        self._store = store
        self._clock = clock
        self._ttl = ttl
        self._max_messages = max_messages

    @property
    def _retention_seconds(self) -> int:
        return int(self._ttl.total_seconds() * 2)

    # -- state machine ------------------------------------------------------

    async def create(
        self,
        user_id: str | None = None,
        language: LanguageCode = LanguageCode.hi,
    ) -> ConversationContext:
        now = self._clock()
        context = ConversationContext(
            user_id=user_id,
            language=language,
            created_at=now,
            expires_at=now + self._ttl,
        )
        context = await self._store.create(context.id, context, ttl_seconds=self._retention_seconds)
        logger.info(
            "conversation.created",
            context_id=context.id,
            language=context.language.value,
            expires_at=context.expires_at.isoformat(),
        )
        return context

    async def status(self, context_id: str) -> ContextState:
        context = await self._store.require(context_id, ConversationContext)
        return ContextState.ACTIVE if context.is_active(self._clock()) else ContextState.EXPIRED

    async def read(self, context_id: str) -> ConversationContext:
        """Return the active context; raise :class:`ContextExpired` once it has expired."""
        context = await self._store.require(context_id, ConversationContext)
        self._ensure_active(context)
        return context

    async def append_message(
        self,
        context_id: str,
        role: MessageRole,
        content: str,
    ) -> ConversationContext:
        if not content.strip():
            raise ValidationError("message content must not be empty")

        context = await self.read(context_id)
        messages = [*context.messages, Message(role=role, content=content, timestamp=self._clock())]
        dropped = max(len(messages) - self._max_messages, 0)
        if dropped:
            messages = messages[dropped:]

        updated = context.model_copy(update={"messages": messages})
        updated = await self._store.save(context_id, updated, ttl_seconds=self._retention_seconds)
        logger.info(
            "conversation.message_appended",
            context_id=context_id,
            role=role.value,
            messages=len(messages),
            dropped=dropped,
        )
        return updated

    async def set_intent(self, context_id: str, intent: ExtractedIntent) -> ConversationContext:
        context = await self.read(context_id)
        updated = context.model_copy(update={"extracted_intent": intent})
        updated = await self._store.save(context_id, updated, ttl_seconds=self._retention_seconds)
        logger.info("conversation.intent_set", context_id=context_id, intent=intent.intent.value)
        return updated

    # -- helpers ------------------------------------------------------------

    def _ensure_active(self, context: ConversationContext) -> None:
        now = self._clock()
        if not context.is_active(now):
            logger.info(
                "conversation.expired_access",
                context_id=context.id,
                expired_at=context.expires_at.isoformat(),
            )
            raise ContextExpired(f"conversation {context.id} expired at {context.expires_at.isoformat()}")
