"""Scheme application records and their auditable status history."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from src.models.enums import ApplicationStatus


class DocumentRef(BaseModel):
    """A supporting document, either supplied or flagged as still missing."""

    model_config = ConfigDict(frozen=True)

    document_type: str
    reference: str | None = None  # opaque pointer into document storage
    provided: bool = True


class StatusHistoryEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: ApplicationStatus
    timestamp: datetime
    notes: str | None = None


class ApplicationRecord(BaseModel):
    """One user's application to one scheme.

    ``status_history`` is append-only and ``status`` always mirrors its
    last entry.  Records are frozen; every lifecycle step produces a new
    record (see :mod:`src.services.lifecycle`).
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: uuid4().hex)
    user_id: str
    scheme_id: str
    status: ApplicationStatus
    form_data: dict[str, Any]
    documents: tuple[DocumentRef, ...] = ()
    status_history: tuple[StatusHistoryEntry, ...]
    flags: tuple[str, ...] = ()
    submitted_at: datetime
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    decision_explanation: str | None = None
    version: int = 0

    @property
    def missing_documents(self) -> list[str]:
        return [d.document_type for d in self.documents if not d.provided]
