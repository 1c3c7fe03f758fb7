"""Main API router combining all v1 route modules.

Aggregates all routers under the ``/api/v1`` prefix so the
FastAPI application only needs to include a single router.

Includes:
    * Eligibility: check, rank, discover
    * Catalog: scheme listing and detail
    * Profiles and conversations
    * Applications: submission and status transitions
    * Health: liveness and readiness probes
"""

from __future__ import annotations

from fastapi import APIRouter

from src.api.v1 import (
    applications,
    conversations,
    eligibility,
    health,
    profile,
    schemes,
)

api_router = APIRouter(prefix="/api/v1")

api_router.include_router(eligibility.router)
api_router.include_router(schemes.router)
api_router.include_router(profile.router)
api_router.include_router(conversations.router)
api_router.include_router(applications.router)
api_router.include_router(health.router)
