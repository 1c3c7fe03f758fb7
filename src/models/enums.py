from __future__ import annotations

from enum import StrEnum
from typing import Final


class QueryIntent(StrEnum):
    __slots__ = ()

    SCHEME_SEARCH = "scheme_search"
    ELIGIBILITY_CHECK = "eligibility_check"
    APPLICATION_GUIDANCE = "application_guidance"
    STATUS_INQUIRY = "status_inquiry"
    DOCUMENT_HELP = "document_help"
    GENERAL_INFO = "general_info"
    GREETING = "greeting"


class LanguageCode(StrEnum):
    """ISO 639-1 codes for 22 scheduled languages of India + English."""

    __slots__ = ()

    hi = "hi"       # Hindi
    bn = "bn"       # Bengali
    te = "te"       # Telugu
    mr = "mr"       # Marathi
    ta = "ta"       # Tamil
    ur = "ur"       # Urdu
    gu = "gu"       # Gujarati
    kn = "kn"       # Kannada
    or_lang = "or"  # Odia; 'or' is a Python keyword
    ml = "ml"       # Malayalam
    pa = "pa"       # Punjabi
    as_lang = "as"  # Assamese; 'as' is a Python keyword
    mai = "mai"     # Maithili
    sat = "sat"     # Santali
    ks = "ks"       # Kashmiri
    ne = "ne"       # Nepali
    sd = "sd"       # Sindhi
    kok = "kok"     # Konkani
    doi = "doi"     # Dogri
    mni = "mni"     # Manipuri
    brx = "brx"     # Bodo
    sa = "sa"       # Sanskrit
    en = "en"       # English


class SocialCategory(StrEnum):
    __slots__ = ()

    SC = "SC"
    ST = "ST"
    OBC = "OBC"
    GENERAL = "General"


class Gender(StrEnum):
    __slots__ = ()

    MALE = "male"
    FEMALE = "female"
    OTHER = "other"


class GenderRequirement(StrEnum):
    __slots__ = ()

    MALE = "male"
    FEMALE = "female"
    OTHER = "other"
    ANY = "any"


class IncomeBand(StrEnum):
    """Annual household income bands in INR, lowest first."""

    __slots__ = ()

    UP_TO_50K = "0-50000"
    FROM_50K_TO_1L = "50000-100000"
    FROM_1L_TO_2_5L = "100000-250000"
    FROM_2_5L_TO_5L = "250000-500000"
    FROM_5L_TO_10L = "500000-1000000"
    ABOVE_10L = "1000000+"

    @property
    def lower(self) -> float:
        return _BAND_BOUNDS[self][0]

    @property
    def upper(self) -> float | None:
        """Upper bound of the band, ``None`` for the open-ended top band."""
        return _BAND_BOUNDS[self][1]


_BAND_BOUNDS: Final[dict[IncomeBand, tuple[float, float | None]]] = {
    IncomeBand.UP_TO_50K: (0, 50_000),
    IncomeBand.FROM_50K_TO_1L: (50_000, 100_000),
    IncomeBand.FROM_1L_TO_2_5L: (100_000, 250_000),
    IncomeBand.FROM_2_5L_TO_5L: (250_000, 500_000),
    IncomeBand.FROM_5L_TO_10L: (500_000, 1_000_000),
    IncomeBand.ABOVE_10L: (1_000_000, None),
}


class CustomOperator(StrEnum):
    __slots__ = ()

    EQ = "eq"
    GT = "gt"
    LT = "lt"
    GTE = "gte"
    LTE = "lte"
    IN = "in"


class EligibilityOutcome(StrEnum):
    __slots__ = ()

    ELIGIBLE = "eligible"
    PARTIALLY_ELIGIBLE = "partially_eligible"
    NOT_ELIGIBLE = "not_eligible"


class ApplicationStatus(StrEnum):
    __slots__ = ()

    SUBMITTED = "submitted"
    UNDER_REVIEW = "under_review"
    PENDING_DOCUMENTS = "pending_documents"
    APPROVED = "approved"
    REJECTED = "rejected"


class ContextState(StrEnum):
    __slots__ = ()

    ACTIVE = "active"
    EXPIRED = "expired"


class MessageRole(StrEnum):
    __slots__ = ()

    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"
