"""Tests for the reasoning collaborator client (Vertex AI calls mocked)."""

from __future__ import annotations

import asyncio
import time
from unittest.mock import AsyncMock

import orjson
import pytest

from src.errors import MalformedResponse, UpstreamUnavailable
from src.models.decision import EligibilityDecision
from src.models.enums import EligibilityOutcome, LanguageCode, QueryIntent
from src.models.user_profile import UserProfile
from src.services.reasoning import (
    ReasoningService,
    parse_explanation,
    parse_intent,
    parse_relevance,
)


@pytest.fixture
def service() -> ReasoningService:
    return ReasoningService(
        project_id="test-project",
        timeout_seconds=0.5,
        max_attempts=3,
        backoff_seconds=0,
    )


def _json(data: object) -> str:
    return orjson.dumps(data).decode()


# -----------------------------------------------------------------------
# Response parsing
# -----------------------------------------------------------------------


class TestParseIntent:
    def test_valid(self) -> None:
        intent = parse_intent(
            _json({"intent": "eligibility_check", "demographics": {"age": 45}, "language": "ta"}),
            LanguageCode.hi,
        )
        assert intent.intent == QueryIntent.ELIGIBILITY_CHECK
        assert intent.demographics == {"age": 45}
        assert intent.language == LanguageCode.ta

    def test_unknown_intent_and_language_fall_back(self) -> None:
        intent = parse_intent(_json({"intent": "chitchat", "language": "xx"}), LanguageCode.bn)
        assert intent.intent == QueryIntent.GENERAL_INFO
        assert intent.language == LanguageCode.bn

    def test_strips_markdown_fence(self) -> None:
        raw = '```json\n{"intent": "greeting"}\n```'
        assert parse_intent(raw, LanguageCode.hi).intent == QueryIntent.GREETING

    def test_non_json(self) -> None:
        with pytest.raises(MalformedResponse):
            parse_intent("I think you want PM-KISAN", LanguageCode.hi)

    def test_demographics_must_be_object(self) -> None:
        with pytest.raises(MalformedResponse):
            parse_intent(_json({"intent": "greeting", "demographics": [1, 2]}), LanguageCode.hi)


class TestParseRelevance:
    def test_valid(self) -> None:
        scores = parse_relevance(
            _json({"scores": [{"scheme_id": "a", "score": 90, "reason": "farmer"}]}), ["a", "b"]
        )
        assert scores[0].scheme_id == "a"
        assert scores[0].score == 90

    def test_bare_list_accepted(self) -> None:
        assert len(parse_relevance(_json([{"scheme_id": "a", "score": 10}]), ["a"])) == 1

    @pytest.mark.parametrize("score", [-1, 101, "high"])
    def test_out_of_range_score(self, score: object) -> None:
        with pytest.raises(MalformedResponse):
            parse_relevance(_json({"scores": [{"scheme_id": "a", "score": score}]}), ["a"])

    def test_unknown_scheme_id(self) -> None:
        with pytest.raises(MalformedResponse, match="unexpected"):
            parse_relevance(_json({"scores": [{"scheme_id": "zzz", "score": 5}]}), ["a"])

    def test_duplicate_scheme_id(self) -> None:
        raw = _json({"scores": [{"scheme_id": "a", "score": 5}, {"scheme_id": "a", "score": 6}]})
        with pytest.raises(MalformedResponse, match="duplicate"):
            parse_relevance(raw, ["a"])

    def test_missing_scores(self) -> None:
        with pytest.raises(MalformedResponse):
            parse_relevance(_json({"result": "ok"}), ["a"])


class TestParseExplanation:
    def test_valid(self) -> None:
        assert parse_explanation(_json({"explanation": " Aap patra hain. "})) == "Aap patra hain."

    def test_empty(self) -> None:
        with pytest.raises(MalformedResponse):
            parse_explanation(_json({"explanation": ""}))


# -----------------------------------------------------------------------
# Retry, timeout and failure surfacing
# -----------------------------------------------------------------------


class TestRetries:
    async def test_success_first_attempt(self, service: ReasoningService) -> None:
        service._generate = AsyncMock(return_value=_json({"intent": "scheme_search"}))  # type: ignore[method-assign]
        intent = await service.extract_intent("kisan yojana", LanguageCode.hi)
        assert intent.intent == QueryIntent.SCHEME_SEARCH
        assert service._generate.await_count == 1

    async def test_recovers_after_transient_failure(self, service: ReasoningService) -> None:
        service._generate = AsyncMock(  # type: ignore[method-assign]
            side_effect=[RuntimeError("503"), _json({"intent": "greeting"})]
        )
        intent = await service.extract_intent("namaste")
        assert intent.intent == QueryIntent.GREETING
        assert service._generate.await_count == 2

    async def test_gives_up_after_three_attempts(self, service: ReasoningService) -> None:
        service._generate = AsyncMock(side_effect=RuntimeError("boom"))  # type: ignore[method-assign]
        with pytest.raises(UpstreamUnavailable):
            await service.extract_intent("hello")
        assert service._generate.await_count == 3

    async def test_malformed_response_retried_then_raised(self, service: ReasoningService) -> None:
        service._generate = AsyncMock(return_value="not json")  # type: ignore[method-assign]
        with pytest.raises(MalformedResponse):
            await service.explain_eligibility(
                EligibilityDecision(
                    outcome=EligibilityOutcome.ELIGIBLE, confidence=100, explanation="ok"
                )
            )
        assert service._generate.await_count == 3

    async def test_timeout_counts_as_failure(self) -> None:
        service = ReasoningService("p", timeout_seconds=0.01, max_attempts=2, backoff_seconds=0)

        async def _slow(prompt: str, max_output_tokens: int = 512) -> str:
            await asyncio.sleep(1)
            return "{}"

        service._generate = _slow  # type: ignore[method-assign]
        with pytest.raises(UpstreamUnavailable):
            await service.extract_intent("hello")

    async def test_deadline_covers_all_attempts_and_backoff(self) -> None:
        service = ReasoningService("p", timeout_seconds=0.3, max_attempts=3, backoff_seconds=0.1)
        calls = 0

        async def _hang(prompt: str, max_output_tokens: int = 512) -> str:
            nonlocal calls
            calls += 1
            await asyncio.sleep(5)
            return "{}"

        service._generate = _hang  # type: ignore[method-assign]
        start = time.perf_counter()
        with pytest.raises(UpstreamUnavailable):
            await service.score_relevance("kheti", UserProfile(), ["pm-kisan"])
        elapsed = time.perf_counter() - start
        assert elapsed < 0.6, f"call took {elapsed:.2f}s against a 0.3s deadline"
        assert calls == 1, "a hung attempt must not be retried past the deadline"

    async def test_deadline_cuts_backoff_between_failures(self) -> None:
        service = ReasoningService("p", timeout_seconds=0.2, max_attempts=3, backoff_seconds=1)
        service._generate = AsyncMock(side_effect=RuntimeError("503"))  # type: ignore[method-assign]
        start = time.perf_counter()
        with pytest.raises(UpstreamUnavailable):
            await service.extract_intent("hello")
        assert time.perf_counter() - start < 0.6
        assert service._generate.await_count == 1

    @pytest.mark.parametrize("attempts", [0, 4])
    def test_attempts_capped_at_three(self, attempts: int) -> None:
        with pytest.raises(ValueError, match="max_attempts"):
            ReasoningService("p", max_attempts=attempts)


# -----------------------------------------------------------------------
# score_relevance
# -----------------------------------------------------------------------


class TestScoreRelevance:
    async def test_empty_ids_skip_call(self, service: ReasoningService) -> None:
        service._generate = AsyncMock()  # type: ignore[method-assign]
        assert await service.score_relevance("q", UserProfile(), []) == []
        service._generate.assert_not_awaited()

    async def test_prompt_lists_scheme_ids(self, service: ReasoningService) -> None:
        service._generate = AsyncMock(  # type: ignore[method-assign]
            return_value=_json({"scores": [{"scheme_id": "pm-kisan", "score": 88}]})
        )
        scores = await service.score_relevance(
            "farm income support", UserProfile(age=40, occupation="farmer"), ["pm-kisan", "pmay-g"]
        )
        prompt = service._generate.await_args.args[0]
        assert "pm-kisan, pmay-g" in prompt
        assert "farmer" in prompt
        assert [s.scheme_id for s in scores] == ["pm-kisan"]
