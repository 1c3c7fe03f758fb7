"""Government welfare scheme as held in the catalog.

A scheme owns exactly one :class:`EligibilityCriteria`; changing the
criteria means publishing a new scheme version, so documents are frozen.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field

from src.models.criteria import EligibilityCriteria


class SchemeCategory(StrEnum):
    __slots__ = ()

    AGRICULTURE = "agriculture"
    HEALTH = "health"
    EDUCATION = "education"
    HOUSING = "housing"
    EMPLOYMENT = "employment"
    SOCIAL_SECURITY = "social_security"
    FINANCIAL_INCLUSION = "financial_inclusion"
    WOMEN_CHILD = "women_child"
    TRIBAL = "tribal"
    DISABILITY = "disability"
    SENIOR_CITIZEN = "senior_citizen"
    SKILL_DEVELOPMENT = "skill_development"
    OTHER = "other"


def _fold(value: str) -> str:
    return value.strip().casefold()


class SchemeDocument(BaseModel):
    model_config = ConfigDict(frozen=True)

    scheme_id: str
    name: str
    name_translations: dict[str, str] = Field(default_factory=dict)
    description: str
    description_translations: dict[str, str] = Field(default_factory=dict)
    category: SchemeCategory
    ministry: str
    state: str | None = None  # None for central schemes
    eligibility: EligibilityCriteria
    benefits: str
    documents_required: list[str] = Field(default_factory=list)
    helpline: str | None = None
    website: str | None = None
    is_active: bool = True
    last_updated: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @property
    def is_central(self) -> bool:
        return self.state is None

    def serves_state(self, state: str) -> bool:
        """Central schemes serve every state."""
        return self.is_central or _fold(self.state or "") == _fold(state)

    def open_to_occupation(self, occupation: str) -> bool:
        """True unless the criteria restrict occupations and *occupation* is not listed."""
        allowed = self.eligibility.occupations
        return allowed is None or _fold(occupation) in {_fold(o) for o in allowed}

    def localized_name(self, language: str) -> str:
        return self.name_translations.get(language, self.name)

    def localized_description(self, language: str) -> str:
        return self.description_translations.get(language, self.description)
