"""Stable, deterministic ordering of candidate schemes.

Sort keys, in priority order:

1. ``relevance_score`` descending (externally supplied, already validated)
2. eligibility outcome: eligible, then partially eligible, then not
   eligible, then candidates with no decision at all
3. ``scheme_id`` ascending

Python's ``sorted`` is stable, so candidates equal on all three keys keep
their input order.  The input is never mutated.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Final

from src.models.decision import RankedScheme
from src.models.enums import EligibilityOutcome

_OUTCOME_ORDER: Final[dict[EligibilityOutcome, int]] = {
    EligibilityOutcome.ELIGIBLE: 0,
    EligibilityOutcome.PARTIALLY_ELIGIBLE: 1,
    EligibilityOutcome.NOT_ELIGIBLE: 2,
}
_NO_DECISION: Final[int] = 3


def _sort_key(candidate: RankedScheme) -> tuple[float, int, str]:
    outcome = (
        _OUTCOME_ORDER[candidate.decision.outcome]
        if candidate.decision is not None
        else _NO_DECISION
    )
    return (-candidate.relevance_score, outcome, candidate.scheme_id)


def rank(candidates: Iterable[RankedScheme]) -> list[RankedScheme]:
    """Return a new list of *candidates* in ranked order."""
    return sorted(candidates, key=_sort_key)
