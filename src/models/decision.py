"""Eligibility verdicts, decisions and ranked results.

These are ephemeral value objects produced per evaluation or per query;
they are frozen so they can be shared across concurrent requests.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from src.models.enums import EligibilityOutcome


class CriterionVerdict(BaseModel):
    """Tri-state result of evaluating one criterion.

    ``met`` is ``True``, ``False``, or ``None`` for *unknown* (the profile
    lacks the data, or the data cannot be compared).  ``field`` names the
    profile field the verdict depends on.
    """

    model_config = ConfigDict(frozen=True)

    criterion: str
    met: bool | None
    reason: str
    field: str | None = None
    related_fields: tuple[str, ...] = ()  # further fields an unknown verdict is waiting on

    @property
    def is_unknown(self) -> bool:
        return self.met is None

    @property
    def fields(self) -> tuple[str, ...]:
        return ((self.field,) if self.field else ()) + self.related_fields


class EligibilityDecision(BaseModel):
    model_config = ConfigDict(frozen=True)

    outcome: EligibilityOutcome
    confidence: float = Field(ge=0, le=100)
    explanation: str
    verdicts: tuple[CriterionVerdict, ...] = ()
    missing_fields: frozenset[str] = frozenset()


class RelevanceScore(BaseModel):
    """A validated relevance score from the reasoning collaborator."""

    model_config = ConfigDict(frozen=True)

    scheme_id: str
    score: float = Field(ge=0, le=100)
    reason: str = ""


class RankedScheme(BaseModel):
    model_config = ConfigDict(frozen=True)

    scheme_id: str
    relevance_score: float = Field(ge=0, le=100)
    decision: EligibilityDecision | None = None
    relevance_reason: str | None = None
