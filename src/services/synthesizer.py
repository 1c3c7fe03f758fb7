"""Combine per-criterion verdicts into one explainable eligibility decision.

Outcome follows the tri-state rule:

* any verdict ``False``                 -> ``NOT_ELIGIBLE``
* no ``False`` but some ``None``        -> ``PARTIALLY_ELIGIBLE``
* every verdict ``True`` (or no rules)  -> ``ELIGIBLE``

The explanation is built only from the verdicts, in verdict order, so the
same inputs always produce the same text.  Suggesting alternative schemes
for a rejected citizen is the caller's job (the orchestrator re-ranks the
catalog); this module only decides.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Final

from src.models.decision import CriterionVerdict, EligibilityDecision
from src.models.enums import EligibilityOutcome

ALL_SATISFIED: Final[str] = "All eligibility criteria satisfied."

_NOT_MET_TEMPLATE: Final[str] = "Criterion '{name}' not met: {reason}"
_UNKNOWN_TEMPLATE: Final[str] = "Criterion '{name}' could not be verified: {reason}"


def _outcome(verdicts: Sequence[CriterionVerdict]) -> EligibilityOutcome:
    if any(v.met is False for v in verdicts):
        return EligibilityOutcome.NOT_ELIGIBLE
    if any(v.met is None for v in verdicts):
        return EligibilityOutcome.PARTIALLY_ELIGIBLE
    return EligibilityOutcome.ELIGIBLE


def _explanation(verdicts: Sequence[CriterionVerdict]) -> str:
    parts = [
        (_NOT_MET_TEMPLATE if v.met is False else _UNKNOWN_TEMPLATE).format(
            name=v.criterion, reason=v.reason
        )
        for v in verdicts
        if v.met is not True
    ]
    return "; ".join(parts) if parts else ALL_SATISFIED


def confidence_for(verdicts: Sequence[CriterionVerdict]) -> float:
    """``100 - unknown/total * 100``, clamped to [0, 100]; 100 with no verdicts."""
    if not verdicts:
        return 100.0
    unknown = sum(v.met is None for v in verdicts)
    value = 100.0 - (unknown / len(verdicts)) * 100.0
    return round(min(max(value, 0.0), 100.0), 2)


def synthesize(
    verdicts: Sequence[CriterionVerdict],
    external_confidence: float | None = None,
) -> EligibilityDecision:
    """Build an :class:`EligibilityDecision` from evaluator verdicts.

    Parameters
    ----------
    verdicts:
        Output of :func:`src.services.rule_evaluator.evaluate`.
    external_confidence:
        Optional confidence (0-100) attached by the reasoning service.
        When given, the lower of it and the computed value is kept.
    """
    confidence = confidence_for(verdicts)
    if external_confidence is not None:
        confidence = min(confidence, min(max(external_confidence, 0.0), 100.0))

    missing = frozenset(f for v in verdicts if v.met is None for f in v.fields)

    return EligibilityDecision(
        outcome=_outcome(verdicts),
        confidence=confidence,
        explanation=_explanation(verdicts),
        verdicts=tuple(verdicts),
        missing_fields=missing,
    )
