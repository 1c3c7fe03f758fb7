"""Relevance strategies used when the reasoning collaborator is unavailable.

* ``uniform``  -- every candidate gets the same score, so ranking falls
  through to eligibility outcome and then scheme id.
* ``criteria`` -- score derived from the eligibility decision alone:
  eligible schemes score highest, weighted by decision confidence.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from typing import Final

from src.models.decision import EligibilityDecision, RelevanceScore
from src.models.enums import EligibilityOutcome

RelevanceStrategy = Callable[
    [Sequence[str], Mapping[str, EligibilityDecision]], list[RelevanceScore]
]

UNIFORM_SCORE: Final[float] = 50.0

# (base, weight applied to confidence)
_OUTCOME_WEIGHTS: Final[dict[EligibilityOutcome, tuple[float, float]]] = {
    EligibilityOutcome.ELIGIBLE: (50.0, 0.5),
    EligibilityOutcome.PARTIALLY_ELIGIBLE: (0.0, 0.5),
    EligibilityOutcome.NOT_ELIGIBLE: (0.0, 0.0),
}


def uniform_relevance(
    scheme_ids: Sequence[str],
    decisions: Mapping[str, EligibilityDecision],
) -> list[RelevanceScore]:
    return [
        RelevanceScore(scheme_id=sid, score=UNIFORM_SCORE, reason="relevance unavailable")
        for sid in scheme_ids
    ]


def criteria_relevance(
    scheme_ids: Sequence[str],
    decisions: Mapping[str, EligibilityDecision],
) -> list[RelevanceScore]:
    scores: list[RelevanceScore] = []
    for sid in scheme_ids:
        decision = decisions.get(sid)
        if decision is None:
            scores.append(RelevanceScore(scheme_id=sid, score=0.0, reason="no decision"))
            continue
        base, weight = _OUTCOME_WEIGHTS[decision.outcome]
        score = round(min(base + weight * decision.confidence, 100.0), 2)
        scores.append(
            RelevanceScore(scheme_id=sid, score=score, reason=f"based on {decision.outcome.value}")
        )
    return scores


FALLBACK_STRATEGIES: Final[dict[str, RelevanceStrategy]] = {
    "uniform": uniform_relevance,
    "criteria": criteria_relevance,
}


def get_strategy(name: str) -> RelevanceStrategy:
    try:
        return FALLBACK_STRATEGIES[name]
    except KeyError:
        raise ValueError(
            f"unknown relevance strategy {name!r}; expected one of {sorted(FALLBACK_STRATEGIES)}"
        ) from None
