"""Matching orchestrator: the caller-facing API of the engine.

Coordinates the deterministic core with the reasoning collaborator:

1. Candidate schemes from the catalog (AND-combined filters)
2. Rule evaluation and decision synthesis per candidate
3. Relevance from the collaborator, or a fallback strategy if it is
   unavailable or no query was given
4. Stable ranking

and drives application records through the lifecycle tracker with
optimistic-concurrency retries.  The collaborator is only ever consulted
for relevance and prose; it never decides eligibility.
"""

from __future__ import annotations

import time
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Final

import structlog
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt

from src.errors import ConcurrentModification, UpstreamUnavailable
from src.models.decision import EligibilityDecision, RankedScheme, RelevanceScore
from src.models.enums import EligibilityOutcome, LanguageCode
from src.services.ranker import rank
from src.services.relevance import RelevanceStrategy, uniform_relevance
from src.services.rule_evaluator import evaluate
from src.services.synthesizer import synthesize

if TYPE_CHECKING:
    from src.models.application import ApplicationRecord, DocumentRef
    from src.models.enums import ApplicationStatus
    from src.models.user_profile import UserProfile
    from src.services.catalog import CatalogFilters, SchemeCatalog
    from src.services.lifecycle import ApplicationLifecycleTracker, ApplicationRepository
    from src.services.reasoning import ReasoningService

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

RELEVANCE_COLLABORATOR: Final[str] = "collaborator"
RELEVANCE_FALLBACK: Final[str] = "fallback"

_WRITE_ATTEMPTS: Final[int] = 3


@dataclass(slots=True)
class DiscoveryResult:
    """Ranked candidates plus where their relevance scores came from."""

    ranked: list[RankedScheme] = field(default_factory=list)
    relevance_source: str = RELEVANCE_FALLBACK
    processing_time_ms: float = 0.0


# ---------------------------------------------------------------------------
# MatchingOrchestrator
# ---------------------------------------------------------------------------


class MatchingOrchestrator:
    """Eligibility checks, scheme discovery and application tracking.

    Parameters
    ----------
    catalog:
        Validated scheme catalog.
    tracker / applications:
        Lifecycle state machine and its persistence.
    reasoning:
        Optional reasoning collaborator.  When ``None`` every relevance
        request uses *fallback*.
    fallback:
        Relevance strategy used when the collaborator is unavailable.
    """

    __slots__ = ("_applications", "_catalog", "_fallback", "_reasoning", "_tracker")

    def __init__(
        self,
        catalog: SchemeCatalog,
        tracker: ApplicationLifecycleTracker,
        applications: ApplicationRepository,
        reasoning: ReasoningService | None = None,
        fallback: RelevanceStrategy = uniform_relevance,
    ) -> None:
        self._catalog = catalog
        self._tracker = tracker
        self._applications = applications
        self._reasoning = reasoning
        self._fallback = fallback

    # ------------------------------------------------------------------
    # Eligibility
    # ------------------------------------------------------------------

    def check_eligibility(self, scheme_id: str, profile: UserProfile) -> EligibilityDecision:
        """Decide *profile* against one scheme; ``SchemeNotFound`` if unknown."""
        criteria = self._catalog.get_criteria(scheme_id)
        decision = synthesize(evaluate(criteria, profile))
        logger.info(
            "pipeline.eligibility_checked",
            scheme_id=scheme_id,
            outcome=decision.outcome.value,
            confidence=decision.confidence,
        )
        return decision

    def rank_schemes(self, candidates: Iterable[RankedScheme]) -> list[RankedScheme]:
        return rank(candidates)

    async def explain(
        self, decision: EligibilityDecision, language: LanguageCode = LanguageCode.hi
    ) -> str:
        """Plain-language explanation, falling back to the deterministic text."""
        if self._reasoning is None:
            return decision.explanation
        try:
            return await self._reasoning.explain_eligibility(decision, language)
        except UpstreamUnavailable:
            logger.warning("pipeline.explanation_fallback", outcome=decision.outcome.value)
            return decision.explanation

    # ------------------------------------------------------------------
    # Discovery
    # ------------------------------------------------------------------

    async def discover_schemes(
        self,
        profile: UserProfile,
        query: str | None = None,
        filters: CatalogFilters | None = None,
        limit: int | None = None,
    ) -> DiscoveryResult:
        """Evaluate every candidate scheme for *profile* and rank them.

        Relevance comes from the collaborator when a *query* is given and
        the collaborator answers; otherwise from the fallback strategy.
        Scheme ids the collaborator left unscored get fallback scores.
        """
        start = time.perf_counter()
        log = logger.bind(profile_id=profile.profile_id)

        scheme_ids = self._catalog.list_candidates(filters)
        decisions = {sid: self.check_eligibility(sid, profile) for sid in scheme_ids}

        scores, source = await self._relevance(query, profile, scheme_ids, decisions)
        ranked = rank(
            RankedScheme(
                scheme_id=sid,
                relevance_score=scores[sid].score,
                decision=decisions[sid],
                relevance_reason=scores[sid].reason or None,
            )
            for sid in scheme_ids
        )
        if limit is not None:
            ranked = ranked[:limit]

        elapsed = _elapsed_ms(start)
        log.info(
            "pipeline.schemes_discovered",
            candidates=len(scheme_ids),
            returned=len(ranked),
            relevance_source=source,
            processing_time_ms=elapsed,
        )
        return DiscoveryResult(ranked=ranked, relevance_source=source, processing_time_ms=elapsed)

    async def suggest_alternatives(
        self,
        profile: UserProfile,
        exclude_scheme_id: str,
        filters: CatalogFilters | None = None,
        limit: int = 3,
    ) -> list[RankedScheme]:
        """Schemes the citizen might qualify for instead of *exclude_scheme_id*."""
        result = await self.discover_schemes(profile, filters=filters)
        return [
            r
            for r in result.ranked
            if r.scheme_id != exclude_scheme_id
            and r.decision is not None
            and r.decision.outcome is not EligibilityOutcome.NOT_ELIGIBLE
        ][:limit]

    async def _relevance(
        self,
        query: str | None,
        profile: UserProfile,
        scheme_ids: Sequence[str],
        decisions: Mapping[str, EligibilityDecision],
    ) -> tuple[dict[str, RelevanceScore], str]:
        fallback = {s.scheme_id: s for s in self._fallback(scheme_ids, decisions)}
        if not query or self._reasoning is None or not scheme_ids:
            return fallback, RELEVANCE_FALLBACK

        try:
            scored = await self._reasoning.score_relevance(query, profile, scheme_ids)
        except UpstreamUnavailable:
            logger.warning("pipeline.relevance_fallback", candidates=len(scheme_ids))
            return fallback, RELEVANCE_FALLBACK

        merged = {**fallback, **{s.scheme_id: s for s in scored}}
        if len(scored) < len(scheme_ids):
            logger.info(
                "pipeline.relevance_partial",
                scored=len(scored),
                candidates=len(scheme_ids),
            )
        return merged, RELEVANCE_COLLABORATOR

    # ------------------------------------------------------------------
    # Applications
    # ------------------------------------------------------------------

    async def submit_application(
        self,
        scheme_id: str,
        user_id: str,
        form_data: Mapping[str, Any],
        documents: Iterable[DocumentRef],
        profile: UserProfile | None = None,
    ) -> ApplicationRecord:
        """Create and persist a record in ``SUBMITTED``.

        The scheme's required documents must all be accounted for.  When
        *profile* is given its eligibility decision is attached so that
        missing data is flagged for the reviewer.
        """
        scheme = self._catalog.get_scheme(scheme_id)
        decision = self.check_eligibility(scheme_id, profile) if profile is not None else None
        record = self._tracker.create(
            scheme_id=scheme_id,
            user_id=user_id,
            form_data=form_data,
            documents=documents,
            required_documents=scheme.documents_required,
            decision=decision,
        )
        return await self._applications.add(record)

    async def advance_application(
        self,
        application_id: str,
        status: ApplicationStatus,
        notes: str | None = None,
        decision_explanation: str | None = None,
    ) -> ApplicationRecord:
        """Transition a stored record, re-reading on version conflicts.

        Each attempt re-validates the edge against the freshly read
        status, so a concurrent writer can turn a legal request into an
        ``InvalidTransition``.
        """
        retrying = AsyncRetrying(
            retry=retry_if_exception_type(ConcurrentModification),
            stop=stop_after_attempt(_WRITE_ATTEMPTS),
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                record = await self._applications.get(application_id)
                advanced = self._tracker.transition(
                    record, status, notes=notes, decision_explanation=decision_explanation
                )
                saved = await self._applications.save(advanced)
        return saved

    async def get_application(self, application_id: str) -> ApplicationRecord:
        return await self._applications.get(application_id)


# ---------------------------------------------------------------------------
# Utility
# ---------------------------------------------------------------------------


def _elapsed_ms(start: float) -> float:
    """Return milliseconds elapsed since *start* (a ``perf_counter`` value)."""
    return round((time.perf_counter() - start) * 1000, 2)
