"""Vertex AI Gemini reasoning collaborator.

The engine treats the language model as a black box with three
operations:

* **extract_intent** -- intent and demographics from free text
* **score_relevance** -- 0-100 relevance of candidate schemes to a query
* **explain_eligibility** -- plain-language prose for a decision

Every call, retries and backoff included, is bounded by one hard
timeout and makes at most ``max_attempts`` attempts with exponential
backoff.  Responses are parsed
and validated here; anything malformed (non-JSON, out-of-range scores,
scheme ids that were not asked about) is rejected before it can reach the
ranker.  After the last attempt the failure surfaces as
:class:`~src.errors.UpstreamUnavailable` so the caller can fall back.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable, Sequence
from typing import TYPE_CHECKING, Any, Final, TypeVar

import orjson
import structlog
from pydantic import ValidationError as PydanticValidationError
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from src.errors import MalformedResponse, UpstreamUnavailable
from src.models.conversation import ExtractedIntent
from src.models.decision import EligibilityDecision, RelevanceScore
from src.models.enums import LanguageCode, QueryIntent

if TYPE_CHECKING:
    from vertexai.generative_models import GenerativeModel

    from src.models.user_profile import UserProfile

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

T = TypeVar("T")

MAX_ATTEMPTS: Final[int] = 3

# ---------------------------------------------------------------------------
# Prompts
# ---------------------------------------------------------------------------

SYSTEM_PROMPT: Final[str] = """\
You assist Indian citizens in discovering government welfare schemes. \
You never decide eligibility yourself: a deterministic rules engine does \
that. Your job is to understand what the citizen is asking, judge how \
relevant each scheme is to their need, and restate decisions in simple, \
respectful language. Never invent scheme names or criteria. Never ask for \
Aadhaar numbers, bank account numbers or passwords. Always answer with the \
exact JSON shape requested when JSON is requested.\
"""

_INTENT_PROMPT: Final[str] = """\
Classify the citizen's message and extract any demographic facts it states.
Return ONLY a JSON object with keys:
- "intent": one of scheme_search, eligibility_check, application_guidance, \
status_inquiry, document_help, general_info, greeting
- "demographics": object with any of age, gender, state, district, \
occupation, category, annual_income, disability (omit unknown facts)
- "language": ISO 639-1 code of the message

Message language hint: {lang}
Message: {text}

JSON response:\
"""

_RELEVANCE_PROMPT: Final[str] = """\
Rate how relevant each scheme is to the citizen's need on a 0-100 scale. \
Relevance is about the need expressed, NOT about eligibility.

Citizen need: {query}
Citizen profile: {profile}
Scheme ids: {scheme_ids}

Return ONLY a JSON object: {{"scores": [{{"scheme_id": "...", "score": 0-100, \
"reason": "one short sentence"}}]}} with one entry per scheme id listed above.

JSON response:\
"""

_EXPLAIN_PROMPT: Final[str] = """\
Explain this eligibility decision to the citizen in {lang}, in at most four \
short sentences, without markdown. Mention every unmet or unverified \
criterion and what the citizen can do next.

Outcome: {outcome}
Reasons: {explanation}
Missing information: {missing}

Return ONLY a JSON object: {{"explanation": "..."}}

JSON response:\
"""


def _strip_fences(text: str) -> str:
    """Remove a surrounding ```json fence if the model added one."""
    stripped = text.strip()
    if stripped.startswith("```"):
        stripped = stripped.split("\n", 1)[1] if "\n" in stripped else ""
        if stripped.rstrip().endswith("```"):
            stripped = stripped.rstrip()[:-3]
    return stripped.strip()


def _loads(raw: str) -> Any:
    try:
        return orjson.loads(_strip_fences(raw))
    except orjson.JSONDecodeError as exc:
        raise MalformedResponse(f"response is not JSON: {raw[:80]!r}") from exc


# ---------------------------------------------------------------------------
# Response parsers
# ---------------------------------------------------------------------------


def parse_intent(raw: str, fallback_language: LanguageCode) -> ExtractedIntent:
    data = _loads(raw)
    if not isinstance(data, dict):
        raise MalformedResponse("intent response must be a JSON object")

    try:
        intent = QueryIntent(data.get("intent", QueryIntent.GENERAL_INFO.value))
    except ValueError:
        logger.warning("reasoning.intent_unknown", raw_intent=data.get("intent"))
        intent = QueryIntent.GENERAL_INFO

    try:
        language = LanguageCode(data.get("language", fallback_language.value))
    except ValueError:
        language = fallback_language

    demographics = data.get("demographics") or {}
    if not isinstance(demographics, dict):
        raise MalformedResponse("demographics must be a JSON object")

    return ExtractedIntent(intent=intent, demographics=demographics, language=language)


def parse_relevance(raw: str, scheme_ids: Sequence[str]) -> list[RelevanceScore]:
    """Validate a relevance response against the ids that were asked about."""
    data = _loads(raw)
    entries = data.get("scores") if isinstance(data, dict) else data
    if not isinstance(entries, list):
        raise MalformedResponse("relevance response must contain a list of scores")

    requested = set(scheme_ids)
    seen: set[str] = set()
    scores: list[RelevanceScore] = []
    for entry in entries:
        try:
            score = RelevanceScore.model_validate(entry)
        except PydanticValidationError as exc:
            raise MalformedResponse(f"invalid relevance entry: {entry!r}") from exc
        if score.scheme_id not in requested:
            raise MalformedResponse(f"unexpected scheme id {score.scheme_id!r}")
        if score.scheme_id in seen:
            raise MalformedResponse(f"duplicate scheme id {score.scheme_id!r}")
        seen.add(score.scheme_id)
        scores.append(score)
    return scores


def parse_explanation(raw: str) -> str:
    data = _loads(raw)
    text = data.get("explanation") if isinstance(data, dict) else None
    if not isinstance(text, str) or not text.strip():
        raise MalformedResponse("explanation response must contain non-empty text")
    return text.strip()


# ---------------------------------------------------------------------------
# ReasoningService
# ---------------------------------------------------------------------------


class ReasoningService:
    """Async client for the reasoning collaborator (Gemini on Vertex AI).

    Parameters
    ----------
    project_id / region / model_name:
        Vertex AI coordinates.
    timeout_seconds:
        Hard deadline for a whole call, across all attempts.
    max_attempts:
        Attempts per call before giving up (3 by default).
    backoff_seconds:
        Base delay for exponential backoff between attempts.
    """

    def __init__(
        self,
        project_id: str,
        region: str = "asia-south1",
        model_name: str = "gemini-2.0-flash",
        *,
        timeout_seconds: float = 25.0,
        max_attempts: int = 3,
        backoff_seconds: float = 1.0,
    ) -> None:
        if not 1 <= max_attempts <= MAX_ATTEMPTS:
            raise ValueError(f"max_attempts must be between 1 and {MAX_ATTEMPTS}")
        if timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be positive")
        self._project_id = project_id
        self._region = region
        self._model_name = model_name
        self._timeout = timeout_seconds
        self._max_attempts = max_attempts
        self._backoff = backoff_seconds
        self._model: GenerativeModel | None = None
        self._initialized = False

    # -- lifecycle ----------------------------------------------------------

    def _initialize(self) -> None:
        """Lazily initialize the Vertex AI SDK and model handle."""
        if self._initialized:
            return
        import vertexai
        from vertexai.generative_models import GenerativeModel, Part

        vertexai.init(project=self._project_id, location=self._region)
        self._model = GenerativeModel(
            model_name=self._model_name,
            system_instruction=[Part.from_text(SYSTEM_PROMPT)],
        )
        self._initialized = True
        logger.info(
            "reasoning.initialized",
            project=self._project_id,
            region=self._region,
            model=self._model_name,
        )

    async def _generate(self, prompt: str, max_output_tokens: int = 512) -> str:
        """Single model round trip returning the raw response text."""
        from vertexai.generative_models import Content, GenerationConfig, Part

        self._initialize()
        assert self._model is not None  # noqa: S101

        response = await self._model.generate_content_async(
            contents=[Content(role="user", parts=[Part.from_text(prompt)])],
            generation_config=GenerationConfig(
                temperature=0.1,
                top_p=0.8,
                max_output_tokens=max_output_tokens,
                response_mime_type="application/json",
            ),
        )
        return response.text or ""

    # -- retry / timeout wrapper ------------------------------------------------

    async def _call(
        self,
        operation: str,
        prompt: str,
        parse: Callable[[str], T],
        max_output_tokens: int = 512,
    ) -> T:
        start = time.perf_counter()
        retrying = AsyncRetrying(
            retry=retry_if_exception_type(Exception),
            stop=stop_after_attempt(self._max_attempts),
            wait=wait_exponential(
                multiplier=self._backoff, min=self._backoff, max=self._backoff * 8
            ),
            reraise=True,
        )
        try:
            async with asyncio.timeout(self._timeout):
                async for attempt in retrying:
                    with attempt:
                        if attempt.retry_state.attempt_number > 1:
                            logger.info(
                                "reasoning.retry",
                                operation=operation,
                                attempt=attempt.retry_state.attempt_number,
                            )
                        raw = await self._generate(prompt, max_output_tokens)
                        result = parse(raw)
        except MalformedResponse:
            logger.warning("reasoning.malformed_response", operation=operation, exc_info=True)
            raise
        except Exception as exc:
            logger.warning("reasoning.unavailable", operation=operation, exc_info=True)
            raise UpstreamUnavailable(f"{operation} failed: {exc!s}") from exc

        logger.info(
            "reasoning.call_ok",
            operation=operation,
            processing_time_ms=round((time.perf_counter() - start) * 1000, 2),
        )
        return result

    # -- public API ---------------------------------------------------------

    async def extract_intent(
        self, text: str, lang: LanguageCode = LanguageCode.hi
    ) -> ExtractedIntent:
        prompt = _INTENT_PROMPT.format(text=text, lang=lang.value)
        return await self._call(
            "extract_intent", prompt, lambda raw: parse_intent(raw, lang), max_output_tokens=256
        )

    async def score_relevance(
        self,
        query: str,
        profile: UserProfile,
        scheme_ids: Sequence[str],
    ) -> list[RelevanceScore]:
        if not scheme_ids:
            return []
        profile_json = orjson.dumps(
            profile.model_dump(
                mode="json",
                exclude={"profile_id", "version", "created_at", "updated_at"},
                exclude_none=True,
            )
        ).decode()
        prompt = _RELEVANCE_PROMPT.format(
            query=query, profile=profile_json, scheme_ids=", ".join(scheme_ids)
        )
        return await self._call(
            "score_relevance", prompt, lambda raw: parse_relevance(raw, scheme_ids)
        )

    async def explain_eligibility(
        self,
        decision: EligibilityDecision,
        language: LanguageCode = LanguageCode.hi,
    ) -> str:
        prompt = _EXPLAIN_PROMPT.format(
            lang=language.value,
            outcome=decision.outcome.value,
            explanation=decision.explanation,
            missing=", ".join(sorted(decision.missing_fields)) or "none",
        )
        return await self._call("explain_eligibility", prompt, parse_explanation)
