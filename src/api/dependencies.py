"""Accessors for the services the lifespan stores on ``app.state``."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from fastapi import HTTPException, Request

if TYPE_CHECKING:
    from src.models.user_profile import UserProfile
    from src.pipeline.orchestrator import MatchingOrchestrator
    from src.services.catalog import SchemeCatalog
    from src.services.conversation import ConversationContextManager
    from src.services.profiles import ProfileRepository


def _service(request: Request, name: str) -> Any:
    service = getattr(request.app.state, name, None)
    if service is None:
        raise HTTPException(status_code=503, detail=f"{name} is not initialised")
    return service


def get_orchestrator(request: Request) -> MatchingOrchestrator:
    return _service(request, "orchestrator")


def get_catalog(request: Request) -> SchemeCatalog:
    return _service(request, "catalog")


def get_profiles(request: Request) -> ProfileRepository:
    return _service(request, "profiles")


def get_conversations(request: Request) -> ConversationContextManager:
    return _service(request, "conversations")


async def resolve_profile(
    request: Request,
    profile: UserProfile | None,
    profile_id: str | None,
) -> UserProfile:
    """Use the inline *profile*, or load the stored one by *profile_id*."""
    if profile is not None:
        return profile
    if profile_id:
        return await get_profiles(request).get(profile_id)
    raise HTTPException(status_code=422, detail="either profile or profile_id is required")
