"""User profile API endpoints.

Profiles are the input to every eligibility check.  Updates are
versioned: pass ``expected_version`` to fail with 409 if the profile
changed since it was read.
"""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import APIRouter, Request
from pydantic import BaseModel, Field

from src.api.dependencies import get_profiles
from src.models.enums import Gender, IncomeBand, LanguageCode, SocialCategory
from src.models.user_profile import Location, UserProfile

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

router = APIRouter(prefix="/profile", tags=["profile"])


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class CreateProfileRequest(BaseModel):
    """All fields optional: missing facts make decisions partial, not negative."""

    age: int | None = Field(default=None, ge=0, le=130)
    gender: Gender | None = None
    category: SocialCategory | None = None
    disability: bool | None = None
    location: Location | None = None
    occupation: str | None = None
    income_band: IncomeBand | None = None
    annual_income: float | None = Field(default=None, ge=0)
    attributes: dict[str, bool | int | float | str] = Field(default_factory=dict)
    preferred_language: LanguageCode = LanguageCode.hi


class UpdateProfileRequest(BaseModel):
    changes: dict[str, Any]
    expected_version: int | None = None


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@router.post("", response_model=UserProfile, status_code=201)
async def create_profile(body: CreateProfileRequest, request: Request) -> UserProfile:
    profile = UserProfile(**body.model_dump())
    return await get_profiles(request).create(profile)


@router.get("/{profile_id}", response_model=UserProfile)
async def get_profile(profile_id: str, request: Request) -> UserProfile:
    return await get_profiles(request).get(profile_id)


@router.patch("/{profile_id}", response_model=UserProfile)
async def update_profile(
    profile_id: str,
    body: UpdateProfileRequest,
    request: Request,
) -> UserProfile:
    """Apply a partial update; unknown or invalid values are rejected with 422."""
    return await get_profiles(request).update(
        profile_id,
        body.changes,
        expected_version=body.expected_version,
    )
