"""Application lifecycle: status state machine with an auditable history.

::

    SUBMITTED ──> UNDER_REVIEW ───────> APPROVED | REJECTED
        │              ^
        v              │
    PENDING_DOCUMENTS ─┴──────────────> APPROVED | REJECTED

APPROVED and REJECTED are terminal and require a decision explanation,
set in the same step as the transition.

:class:`ApplicationLifecycleTracker` is pure: it validates fully and then
returns a *new* frozen record, so a rejected transition can never leave a
half-written record behind.  :class:`ApplicationRepository` adds
persistence with optimistic concurrency on top.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any, Final

import structlog

from src.errors import InvalidTransition, MissingExplanation, ValidationError
from src.models.application import ApplicationRecord, DocumentRef, StatusHistoryEntry
from src.models.enums import ApplicationStatus

if TYPE_CHECKING:
    from src.models.decision import EligibilityDecision
    from src.services.store import VersionedStore

logger = structlog.get_logger(__name__)

Clock = Callable[[], datetime]

TRANSITIONS: Final[dict[ApplicationStatus, frozenset[ApplicationStatus]]] = {
    ApplicationStatus.SUBMITTED: frozenset(
        {ApplicationStatus.UNDER_REVIEW, ApplicationStatus.PENDING_DOCUMENTS}
    ),
    ApplicationStatus.UNDER_REVIEW: frozenset(
        {ApplicationStatus.APPROVED, ApplicationStatus.REJECTED}
    ),
    ApplicationStatus.PENDING_DOCUMENTS: frozenset(
        {ApplicationStatus.UNDER_REVIEW, ApplicationStatus.APPROVED, ApplicationStatus.REJECTED}
    ),
    ApplicationStatus.APPROVED: frozenset(),
    ApplicationStatus.REJECTED: frozenset(),
}

TERMINAL_STATUSES: Final[frozenset[ApplicationStatus]] = frozenset(
    {ApplicationStatus.APPROVED, ApplicationStatus.REJECTED}
)


def _utcnow() -> datetime:
    return datetime.now(UTC)


def current_status(record: ApplicationRecord) -> ApplicationStatus:
    """Status of the last history entry -- the single source of truth."""
    return record.status_history[-1].status


def can_transition(current: ApplicationStatus, target: ApplicationStatus) -> bool:
    return target in TRANSITIONS[current]


class ApplicationLifecycleTracker:
    """Issue application records and advance them along legal edges."""

    __slots__ = ("_clock",)

    def __init__(self, clock: Clock = _utcnow) -> None:
        self._clock = clock

    def create(
        self,
        scheme_id: str,
        user_id: str,
        form_data: Mapping[str, Any],
        documents: Iterable[DocumentRef],
        required_documents: Iterable[str] = (),
        decision: EligibilityDecision | None = None,
    ) -> ApplicationRecord:
        """Build a new record in ``SUBMITTED`` with a one-entry history.

        Every required document type must appear in *documents*, either
        supplied or flagged ``provided=False``.  Missing documents, and
        the missing fields of *decision* when given, are recorded as
        flags for the reviewer.
        """
        if not scheme_id or not user_id:
            raise ValidationError("scheme_id and user_id are required")
        if not form_data:
            raise ValidationError("form_data must not be empty")

        docs = tuple(documents)
        declared = {d.document_type.strip().casefold() for d in docs}
        unaccounted = sorted(
            doc for doc in required_documents if doc.strip().casefold() not in declared
        )
        if unaccounted:
            raise ValidationError(
                f"required documents not accounted for: {', '.join(unaccounted)}"
            )

        now = self._clock()
        record = ApplicationRecord(
            user_id=user_id,
            scheme_id=scheme_id,
            status=ApplicationStatus.SUBMITTED,
            form_data=dict(form_data),
            documents=docs,
            status_history=(StatusHistoryEntry(status=ApplicationStatus.SUBMITTED, timestamp=now),),
            submitted_at=now,
            updated_at=now,
        )
        flags = [f"missing_document:{doc}" for doc in record.missing_documents]
        if decision is not None:
            flags.extend(f"missing_data:{field}" for field in sorted(decision.missing_fields))
        record = record.model_copy(update={"flags": tuple(flags)})
        logger.info(
            "lifecycle.created",
            application_id=record.id,
            scheme_id=scheme_id,
            documents=len(docs),
            flags=len(flags),
        )
        return record

    def transition(
        self,
        record: ApplicationRecord,
        new_status: ApplicationStatus,
        notes: str | None = None,
        decision_explanation: str | None = None,
    ) -> ApplicationRecord:
        """Return a copy of *record* advanced to *new_status*.

        Raises :class:`InvalidTransition` for an edge not in
        :data:`TRANSITIONS` and :class:`MissingExplanation` for a terminal
        target without a non-empty explanation.  *record* is never
        modified.
        """
        current = current_status(record)
        if not can_transition(current, new_status):
            logger.warning(
                "lifecycle.invalid_transition",
                application_id=record.id,
                current=current.value,
                requested=new_status.value,
            )
            raise InvalidTransition(current.value, new_status.value)

        explanation = decision_explanation.strip() if decision_explanation else ""
        if new_status in TERMINAL_STATUSES and not explanation:
            raise MissingExplanation(
                f"transition to {new_status.value} requires a decision explanation"
            )

        # History must move strictly forward even if the clock does not.
        last = record.status_history[-1].timestamp
        now = self._clock()
        if now <= last:
            now = last + timedelta(microseconds=1)

        entry = StatusHistoryEntry(status=new_status, timestamp=now, notes=notes)
        update: dict[str, Any] = {
            "status": new_status,
            "status_history": (*record.status_history, entry),
            "updated_at": now,
        }
        if explanation:
            update["decision_explanation"] = explanation

        advanced = record.model_copy(update=update)
        logger.info(
            "lifecycle.transitioned",
            application_id=record.id,
            from_status=current.value,
            to_status=new_status.value,
        )
        return advanced


class ApplicationRepository:
    """Persist application records through a versioned store."""

    __slots__ = ("_store",)

    def __init__(self, store: VersionedStore) -> None:
        self._store = store

    async def add(self, record: ApplicationRecord) -> ApplicationRecord:
        return await self._store.create(record.id, record)

    async def get(self, application_id: str) -> ApplicationRecord:
        return await self._store.require(application_id, ApplicationRecord)

    async def save(self, record: ApplicationRecord) -> ApplicationRecord:
        """Write *record* back; fails if its version is stale."""
        return await self._store.save(record.id, record)
