from __future__ import annotations

from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, Field

from src.models.enums import LanguageCode, MessageRole, QueryIntent


class Message(BaseModel):
    """A single turn in a conversation."""

    role: MessageRole
    content: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))


class ExtractedIntent(BaseModel):
    """Intent and demographics pulled out of free text by the reasoning service."""

    intent: QueryIntent = QueryIntent.GENERAL_INFO
    demographics: dict[str, Any] = Field(default_factory=dict)
    language: LanguageCode = LanguageCode.hi


class ConversationContext(BaseModel):
    """Bounded multi-turn dialogue state for one user session.

    Active while ``now <= expires_at``.  Expiry is fixed at creation and
    never extended; an expired context is dead and a new one must be
    created under a new id.
    """

    id: str = Field(default_factory=lambda: uuid4().hex)
    user_id: str | None = None
    language: LanguageCode = LanguageCode.hi
    messages: list[Message] = Field(default_factory=list)
    extracted_intent: ExtractedIntent | None = None
    created_at: datetime
    expires_at: datetime
    version: int = 0

    def is_active(self, now: datetime) -> bool:
        return now <= self.expires_at
