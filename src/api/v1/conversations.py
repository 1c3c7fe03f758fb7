"""Conversation API endpoints.

A conversation lives for a fixed window from creation.  Once expired,
reads and appends answer 410 and the client must start a new one.
User messages are passed to the reasoning collaborator for intent
extraction when it is configured; if it is unavailable the message is
still recorded.
"""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Request
from pydantic import BaseModel, Field

from src.api.dependencies import get_conversations
from src.errors import UpstreamUnavailable
from src.models.conversation import ConversationContext
from src.models.enums import ContextState, LanguageCode, MessageRole

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

router = APIRouter(prefix="/conversations", tags=["conversations"])


class CreateConversationRequest(BaseModel):
    user_id: str | None = None
    language: LanguageCode = LanguageCode.hi


class AppendMessageRequest(BaseModel):
    content: str = Field(..., min_length=1, max_length=5000)
    role: MessageRole = MessageRole.USER


class ConversationResponse(BaseModel):
    context: ConversationContext
    status: ContextState


@router.post("", response_model=ConversationContext, status_code=201)
async def create_conversation(
    body: CreateConversationRequest,
    request: Request,
) -> ConversationContext:
    return await get_conversations(request).create(user_id=body.user_id, language=body.language)


@router.post("/{context_id}/messages", response_model=ConversationContext)
async def append_message(
    context_id: str,
    body: AppendMessageRequest,
    request: Request,
) -> ConversationContext:
    manager = get_conversations(request)
    context = await manager.append_message(context_id, body.role, body.content)

    reasoning = getattr(request.app.state, "reasoning", None)
    if reasoning is not None and body.role is MessageRole.USER:
        try:
            intent = await reasoning.extract_intent(body.content, context.language)
        except UpstreamUnavailable:
            logger.warning("conversation.intent_unavailable", context_id=context_id)
        else:
            context = await manager.set_intent(context_id, intent)

    return context


@router.get("/{context_id}", response_model=ConversationResponse)
async def get_conversation(context_id: str, request: Request) -> ConversationResponse:
    context = await get_conversations(request).read(context_id)
    return ConversationResponse(context=context, status=ContextState.ACTIVE)
