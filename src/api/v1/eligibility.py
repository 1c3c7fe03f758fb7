"""Eligibility API endpoints.

* ``POST /eligibility/check``    -- one scheme, one profile; alternatives on rejection
* ``POST /eligibility/rank``     -- order caller-supplied candidates
* ``POST /eligibility/discover`` -- evaluate and rank the whole catalog
"""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Request
from pydantic import BaseModel, Field

from src.api.dependencies import get_orchestrator, resolve_profile
from src.models.decision import EligibilityDecision, RankedScheme
from src.models.enums import EligibilityOutcome, LanguageCode
from src.models.scheme import SchemeCategory
from src.models.user_profile import UserProfile
from src.services.catalog import CatalogFilters

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

router = APIRouter(prefix="/eligibility", tags=["eligibility"])


# ---------------------------------------------------------------------------
# Request / Response schemas
# ---------------------------------------------------------------------------


class CheckRequest(BaseModel):
    scheme_id: str = Field(..., min_length=1)
    profile: UserProfile | None = None
    profile_id: str | None = None
    explain: bool = False
    language: LanguageCode = LanguageCode.hi


class CheckResponse(BaseModel):
    scheme_id: str
    decision: EligibilityDecision
    explanation: str
    alternatives: list[RankedScheme] = Field(default_factory=list)


class RankRequest(BaseModel):
    candidates: list[RankedScheme]


class RankResponse(BaseModel):
    ranked: list[RankedScheme]


class DiscoverRequest(BaseModel):
    profile: UserProfile | None = None
    profile_id: str | None = None
    query: str | None = Field(default=None, max_length=1000)
    category: SchemeCategory | None = None
    state: str | None = None
    occupation: str | None = None
    include_inactive: bool = False
    limit: int | None = Field(default=None, ge=1, le=100)


class DiscoverResponse(BaseModel):
    ranked: list[RankedScheme]
    total: int
    relevance_source: str
    processing_time_ms: float


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@router.post("/check", response_model=CheckResponse)
async def check_eligibility(body: CheckRequest, request: Request) -> CheckResponse:
    """Decide one profile against one scheme.

    On ``not_eligible`` the response also carries up to three schemes the
    citizen is eligible or partially eligible for instead.
    """
    orchestrator = get_orchestrator(request)
    profile = await resolve_profile(request, body.profile, body.profile_id)

    decision = orchestrator.check_eligibility(body.scheme_id, profile)
    explanation = (
        await orchestrator.explain(decision, body.language) if body.explain else decision.explanation
    )

    alternatives: list[RankedScheme] = []
    if decision.outcome is EligibilityOutcome.NOT_ELIGIBLE:
        alternatives = await orchestrator.suggest_alternatives(profile, exclude_scheme_id=body.scheme_id)

    return CheckResponse(
        scheme_id=body.scheme_id,
        decision=decision,
        explanation=explanation,
        alternatives=alternatives,
    )


@router.post("/rank", response_model=RankResponse)
async def rank_schemes(body: RankRequest, request: Request) -> RankResponse:
    return RankResponse(ranked=get_orchestrator(request).rank_schemes(body.candidates))


@router.post("/discover", response_model=DiscoverResponse)
async def discover_schemes(body: DiscoverRequest, request: Request) -> DiscoverResponse:
    """Evaluate and rank every candidate scheme for a profile."""
    orchestrator = get_orchestrator(request)
    profile = await resolve_profile(request, body.profile, body.profile_id)

    result = await orchestrator.discover_schemes(
        profile,
        query=body.query,
        filters=CatalogFilters(
            category=body.category,
            state=body.state,
            occupation=body.occupation,
            include_inactive=body.include_inactive,
        ),
        limit=body.limit,
    )
    return DiscoverResponse(
        ranked=result.ranked,
        total=len(result.ranked),
        relevance_source=result.relevance_source,
        processing_time_ms=result.processing_time_ms,
    )
