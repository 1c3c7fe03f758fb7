"""Scheme application endpoints.

Submissions start in ``submitted``; status changes go through
``POST /applications/{id}/transitions`` and are checked against the
lifecycle state machine (409 for an illegal edge, 422 for a terminal
status without a decision explanation).
"""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import APIRouter, Request
from pydantic import BaseModel, Field

from src.api.dependencies import get_orchestrator, get_profiles
from src.models.application import ApplicationRecord, DocumentRef
from src.models.enums import ApplicationStatus

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

router = APIRouter(prefix="/applications", tags=["applications"])


class SubmitApplicationRequest(BaseModel):
    scheme_id: str = Field(..., min_length=1)
    user_id: str = Field(..., min_length=1)
    form_data: dict[str, Any]
    documents: list[DocumentRef] = Field(default_factory=list)
    profile_id: str | None = None


class TransitionRequest(BaseModel):
    status: ApplicationStatus
    notes: str | None = Field(default=None, max_length=2000)
    decision_explanation: str | None = Field(default=None, max_length=5000)


@router.post("", response_model=ApplicationRecord, status_code=201)
async def submit_application(body: SubmitApplicationRequest, request: Request) -> ApplicationRecord:
    """Create an application; with ``profile_id`` missing data is flagged."""
    profile = await get_profiles(request).get(body.profile_id) if body.profile_id else None
    return await get_orchestrator(request).submit_application(
        scheme_id=body.scheme_id,
        user_id=body.user_id,
        form_data=body.form_data,
        documents=body.documents,
        profile=profile,
    )


@router.get("/{application_id}", response_model=ApplicationRecord)
async def get_application(application_id: str, request: Request) -> ApplicationRecord:
    return await get_orchestrator(request).get_application(application_id)


@router.post("/{application_id}/transitions", response_model=ApplicationRecord)
async def advance_application(
    application_id: str,
    body: TransitionRequest,
    request: Request,
) -> ApplicationRecord:
    return await get_orchestrator(request).advance_application(
        application_id,
        body.status,
        notes=body.notes,
        decision_explanation=body.decision_explanation,
    )
