"""Typed error taxonomy for the eligibility and matching engine.

Every failure the engine can report to a caller is one of these classes.
The HTTP layer maps them to status codes in :mod:`src.main`; services
raise them and never swallow them, except :class:`UpstreamUnavailable`
which the orchestrator degrades to a fallback relevance strategy.
"""

from __future__ import annotations


class EngineError(Exception):
    """Base class for all engine errors."""

    code: str = "engine_error"

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.code)
        self.message = message or self.code


class ValidationError(EngineError):
    """Malformed caller input (negative age, empty form data, ...)."""

    code = "validation_error"


class InvalidCriteria(EngineError):
    """Scheme eligibility criteria failed validation at ingestion."""

    code = "invalid_criteria"


class InvalidTransition(EngineError):
    """Application status change not permitted by the lifecycle."""

    code = "invalid_transition"

    def __init__(self, current: str, requested: str) -> None:
        super().__init__(f"cannot transition from {current} to {requested}")
        self.current = current
        self.requested = requested


class MissingExplanation(EngineError):
    """Terminal application transition attempted without a decision explanation."""

    code = "missing_explanation"


class ConcurrentModification(EngineError):
    """Optimistic-lock conflict: the stored version moved on."""

    code = "concurrent_modification"

    def __init__(self, key: str, expected: int | None, actual: int | None) -> None:
        super().__init__(f"version conflict on {key}: expected {expected}, found {actual}")
        self.key = key
        self.expected = expected
        self.actual = actual


class ContextExpired(EngineError):
    """Conversation context is past its expiry; start a new one."""

    code = "context_expired"


class RecordNotFound(EngineError):
    """No stored entity under the requested id."""

    code = "not_found"


class SchemeNotFound(RecordNotFound):
    code = "scheme_not_found"


class UpstreamUnavailable(EngineError):
    """The reasoning collaborator failed, timed out, or answered garbage."""

    code = "upstream_unavailable"


class MalformedResponse(UpstreamUnavailable):
    """Collaborator response was not valid JSON or failed validation."""

    code = "malformed_response"
