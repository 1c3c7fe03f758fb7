"""Citizen profile used for scheme eligibility evaluation.

Every field an eligibility criterion can reference is optional: a citizen
who has not told us their income is *unknown* on an income rule, which is
a different answer from "earns too much".  The evaluator relies on that
distinction to produce ``PartiallyEligible`` decisions instead of false
rejections.

Profiles change only through :meth:`UserProfile.update`, which validates
the merged result and returns a new instance; persistence adds the
version check (see :mod:`src.services.store`).
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from src.errors import ValidationError
from src.models.enums import Gender, IncomeBand, LanguageCode, SocialCategory

AttributeValue = bool | int | float | str


class Location(BaseModel):
    model_config = ConfigDict(frozen=True)

    state: str | None = None
    district: str | None = None
    village: str | None = None


class UserProfile(BaseModel):
    """Demographic and economic facts about one citizen."""

    model_config = ConfigDict(frozen=True)

    profile_id: str = Field(default_factory=lambda: uuid4().hex)

    # ----------------------------------------------------------------
    # Demographics
    # ----------------------------------------------------------------
    age: int | None = Field(default=None, ge=0, le=130)
    gender: Gender | None = None
    category: SocialCategory | None = None
    disability: bool | None = None
    location: Location | None = None

    # ----------------------------------------------------------------
    # Economic
    # ----------------------------------------------------------------
    occupation: str | None = None
    income_band: IncomeBand | None = None
    annual_income: float | None = Field(default=None, ge=0)  # exact figure in INR, when known

    # Extra facts addressable by custom criteria, e.g. {"land_holding_acres": 2.0}
    attributes: dict[str, AttributeValue] = Field(default_factory=dict)

    preferred_language: LanguageCode = LanguageCode.hi

    version: int = 0
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @property
    def state(self) -> str | None:
        return self.location.state if self.location else None

    @property
    def district(self) -> str | None:
        return self.location.district if self.location else None

    def lookup(self, field: str) -> Any:
        """Resolve a custom-criterion field name to a profile value.

        ``attributes`` win over top-level fields; location parts are
        reachable as ``state``, ``district`` and ``village``.
        """
        if field in self.attributes:
            return self.attributes[field]
        if field in ("state", "district", "village"):
            return getattr(self.location, field) if self.location else None
        if field in _LOOKUP_FIELDS:
            return getattr(self, field)
        return None

    def update(self, changes: dict[str, Any]) -> UserProfile:
        """Return a validated copy with *changes* applied.

        Identity and bookkeeping fields cannot be changed this way.
        """
        forbidden = set(changes) & {"profile_id", "version", "created_at", "updated_at"}
        if forbidden:
            raise ValidationError(f"cannot update {', '.join(sorted(forbidden))}")
        unknown = set(changes) - set(UserProfile.model_fields)
        if unknown:
            raise ValidationError(f"unknown profile fields: {', '.join(sorted(unknown))}")
        merged = self.model_dump()
        merged.update(changes)
        merged["updated_at"] = datetime.now(UTC)
        try:
            return UserProfile.model_validate(merged)
        except PydanticValidationError as exc:
            raise ValidationError(str(exc)) from exc


_LOOKUP_FIELDS = frozenset(
    {"age", "gender", "category", "disability", "occupation", "income_band", "annual_income"}
)
