"""Tests for stable, deterministic scheme ranking."""

from __future__ import annotations

from src.models.decision import EligibilityDecision, RankedScheme
from src.models.enums import EligibilityOutcome
from src.services.ranker import rank


def _decision(outcome: EligibilityOutcome) -> EligibilityDecision:
    return EligibilityDecision(outcome=outcome, confidence=100.0, explanation="")


def _ranked(
    scheme_id: str,
    score: float,
    outcome: EligibilityOutcome | None = None,
    reason: str | None = None,
) -> RankedScheme:
    return RankedScheme(
        scheme_id=scheme_id,
        relevance_score=score,
        decision=_decision(outcome) if outcome is not None else None,
        relevance_reason=reason,
    )


# -----------------------------------------------------------------------
# Sort keys
# -----------------------------------------------------------------------


class TestOrdering:
    def test_relevance_descending(self) -> None:
        ranked = rank([_ranked("a", 10), _ranked("b", 90), _ranked("c", 50)])
        assert [r.scheme_id for r in ranked] == ["b", "c", "a"]

    def test_outcome_breaks_relevance_ties(self) -> None:
        ranked = rank(
            [
                _ranked("x", 80, EligibilityOutcome.PARTIALLY_ELIGIBLE),
                _ranked("y", 80, EligibilityOutcome.ELIGIBLE),
            ]
        )
        assert [r.scheme_id for r in ranked] == ["y", "x"]

    def test_full_outcome_order(self) -> None:
        ranked = rank(
            [
                _ranked("d", 50),
                _ranked("c", 50, EligibilityOutcome.NOT_ELIGIBLE),
                _ranked("b", 50, EligibilityOutcome.PARTIALLY_ELIGIBLE),
                _ranked("a", 50, EligibilityOutcome.ELIGIBLE),
            ]
        )
        assert [r.scheme_id for r in ranked] == ["a", "b", "c", "d"]

    def test_scheme_id_breaks_remaining_ties(self) -> None:
        ranked = rank(
            [
                _ranked("zeta", 70, EligibilityOutcome.ELIGIBLE),
                _ranked("alpha", 70, EligibilityOutcome.ELIGIBLE),
            ]
        )
        assert [r.scheme_id for r in ranked] == ["alpha", "zeta"]

    def test_relevance_outranks_eligibility(self) -> None:
        ranked = rank(
            [
                _ranked("eligible", 20, EligibilityOutcome.ELIGIBLE),
                _ranked("rejected", 95, EligibilityOutcome.NOT_ELIGIBLE),
            ]
        )
        assert ranked[0].scheme_id == "rejected"


# -----------------------------------------------------------------------
# Stability, purity, idempotence
# -----------------------------------------------------------------------


class TestStability:
    def test_equal_keys_keep_input_order(self) -> None:
        first = _ranked("same", 60, EligibilityOutcome.ELIGIBLE, reason="first")
        second = _ranked("same", 60, EligibilityOutcome.ELIGIBLE, reason="second")
        assert rank([first, second]) == [first, second]
        assert rank([second, first]) == [second, first]

    def test_empty_input(self) -> None:
        assert rank([]) == []

    def test_input_not_mutated(self) -> None:
        candidates = [_ranked("a", 10), _ranked("b", 90)]
        snapshot = list(candidates)
        result = rank(candidates)
        assert candidates == snapshot
        assert result is not candidates

    def test_idempotent(self) -> None:
        candidates = [
            _ranked("c", 50, EligibilityOutcome.NOT_ELIGIBLE),
            _ranked("a", 50, EligibilityOutcome.ELIGIBLE),
            _ranked("b", 90),
            _ranked("d", 50, EligibilityOutcome.ELIGIBLE),
        ]
        once = rank(candidates)
        assert rank(once) == once

    def test_accepts_generator(self) -> None:
        ranked = rank(_ranked(sid, score) for sid, score in [("a", 1), ("b", 2)])
        assert [r.scheme_id for r in ranked] == ["b", "a"]


class TestRankingExample:
    def test_equal_relevance_broken_by_eligibility(self) -> None:
        ranked = rank(
            [
                _ranked("S1", 80, EligibilityOutcome.NOT_ELIGIBLE),
                _ranked("S2", 80, EligibilityOutcome.ELIGIBLE),
            ]
        )
        assert [r.scheme_id for r in ranked] == ["S2", "S1"]

    def test_relevance_then_outcome(self) -> None:
        """S1 (80, eligible), S2 (80, partial), S3 (95, not eligible) -> S3, S1, S2."""
        ranked = rank(
            [
                _ranked("S1", 80, EligibilityOutcome.ELIGIBLE),
                _ranked("S2", 80, EligibilityOutcome.PARTIALLY_ELIGIBLE),
                _ranked("S3", 95, EligibilityOutcome.NOT_ELIGIBLE),
            ]
        )
        assert [r.scheme_id for r in ranked] == ["S3", "S1", "S2"]
