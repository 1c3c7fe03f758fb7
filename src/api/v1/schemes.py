"""Scheme catalog API endpoints.

Provides listing (with AND-combined filters and pagination) and full
detail of the government schemes loaded into the catalog.
"""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Query, Request
from pydantic import BaseModel

from src.api.dependencies import get_catalog
from src.models.enums import LanguageCode
from src.models.scheme import SchemeCategory, SchemeDocument
from src.services.catalog import CatalogFilters

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

router = APIRouter(prefix="/schemes", tags=["schemes"])


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class SchemeSummary(BaseModel):
    scheme_id: str
    name: str
    category: SchemeCategory
    ministry: str
    state: str | None
    benefits: str
    is_active: bool


class SchemeListResponse(BaseModel):
    """Paginated list of schemes."""

    schemes: list[SchemeSummary]
    total: int
    page: int
    page_size: int


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@router.get("", response_model=SchemeListResponse)
async def list_schemes(
    request: Request,
    category: SchemeCategory | None = Query(default=None, description="Filter by scheme category"),
    state: str | None = Query(default=None, description="Filter by state; central schemes always match"),
    occupation: str | None = Query(default=None, description="Filter by occupation"),
    include_inactive: bool = Query(default=False),
    lang: LanguageCode = Query(default=LanguageCode.en, description="Language for scheme names"),
    page: int = Query(default=1, ge=1, description="Page number"),
    page_size: int = Query(default=20, ge=1, le=100, description="Results per page"),
) -> SchemeListResponse:
    catalog = get_catalog(request)
    scheme_ids = catalog.list_candidates(
        CatalogFilters(
            category=category,
            state=state,
            occupation=occupation,
            include_inactive=include_inactive,
        )
    )

    start = (page - 1) * page_size
    page_ids = scheme_ids[start : start + page_size]

    schemes_out = []
    for scheme_id in page_ids:
        s = catalog.get_scheme(scheme_id)
        schemes_out.append(
            SchemeSummary(
                scheme_id=s.scheme_id,
                name=s.localized_name(lang.value),
                category=s.category,
                ministry=s.ministry,
                state=s.state,
                benefits=s.benefits[:200],
                is_active=s.is_active,
            )
        )

    return SchemeListResponse(
        schemes=schemes_out,
        total=len(scheme_ids),
        page=page,
        page_size=page_size,
    )


@router.get("/{scheme_id}", response_model=SchemeDocument)
async def get_scheme(scheme_id: str, request: Request) -> SchemeDocument:
    """Full scheme detail, including its structured eligibility criteria."""
    return get_catalog(request).get_scheme(scheme_id)
