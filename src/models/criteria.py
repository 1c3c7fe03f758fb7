"""Structured, machine-evaluable scheme eligibility criteria.

A scheme's criteria are a pure conjunction: every sub-rule that is present
must hold, and each one is evaluable without looking at any other.  The
models are frozen so one scheme version always evaluates the same way.

Malformed criteria are rejected when a scheme is ingested into the
catalog (see :meth:`EligibilityCriteria.validate`), never at evaluation
time.
"""

from __future__ import annotations

from typing import Final

from pydantic import BaseModel, ConfigDict, Field

from src.errors import InvalidCriteria
from src.models.enums import CustomOperator, GenderRequirement, SocialCategory

CustomValue = bool | int | float | str | frozenset[str]

_NUMERIC_OPERATORS: Final[frozenset[CustomOperator]] = frozenset(
    {CustomOperator.GT, CustomOperator.LT, CustomOperator.GTE, CustomOperator.LTE}
)


def is_number(value: object) -> bool:
    return isinstance(value, int | float) and not isinstance(value, bool)


class AgeRange(BaseModel):
    """Closed age interval; either bound may be open."""

    model_config = ConfigDict(frozen=True)

    min: int | None = None
    max: int | None = None


class CustomRule(BaseModel):
    """Ad-hoc ``field <operator> value`` rule for facts not covered above."""

    model_config = ConfigDict(frozen=True)

    field: str
    operator: CustomOperator
    value: CustomValue

    def validate_rule(self) -> None:
        if not self.field.strip():
            raise InvalidCriteria("custom rule field must not be empty")
        if self.operator in _NUMERIC_OPERATORS and not is_number(self.value):
            raise InvalidCriteria(
                f"custom rule '{self.field}': operator {self.operator} needs a numeric value"
            )
        if self.operator == CustomOperator.IN:
            if not isinstance(self.value, frozenset) or not self.value:
                raise InvalidCriteria(
                    f"custom rule '{self.field}': operator in needs a non-empty set"
                )
        elif isinstance(self.value, frozenset):
            raise InvalidCriteria(
                f"custom rule '{self.field}': operator {self.operator} needs a scalar value"
            )


class EligibilityCriteria(BaseModel):
    """Eligibility rules for one scheme version.

    ``None`` means the sub-rule is absent.  ``custom`` rules are evaluated
    in declaration order after all the built-in sub-rules.
    """

    model_config = ConfigDict(frozen=True)

    age_range: AgeRange | None = None
    income_max: float | None = None
    allowed_states: frozenset[str] | None = None
    allowed_districts: frozenset[str] | None = None
    categories: frozenset[SocialCategory] | None = None
    occupations: frozenset[str] | None = None
    requires_disability: bool | None = None
    gender: GenderRequirement | None = None
    custom: tuple[CustomRule, ...] = Field(default_factory=tuple)

    def validate(self) -> None:  # type: ignore[override]
        """Raise :class:`InvalidCriteria` if any present sub-rule is malformed."""
        if self.age_range is not None:
            low, high = self.age_range.min, self.age_range.max
            if low is None and high is None:
                raise InvalidCriteria("age range needs at least one bound")
            if (low is not None and low < 0) or (high is not None and high < 0):
                raise InvalidCriteria("age bounds must be non-negative")
            if low is not None and high is not None and low > high:
                raise InvalidCriteria(f"age range min {low} exceeds max {high}")

        if self.income_max is not None and self.income_max < 0:
            raise InvalidCriteria("income_max must be non-negative")

        for name in ("allowed_states", "allowed_districts", "categories", "occupations"):
            values = getattr(self, name)
            if values is not None and not values:
                raise InvalidCriteria(f"{name} must not be empty when present")
            if values is not None and any(not str(v).strip() for v in values):
                raise InvalidCriteria(f"{name} contains a blank entry")

        for rule in self.custom:
            rule.validate_rule()

    @property
    def rule_count(self) -> int:
        """Number of verdicts an evaluation of these criteria produces."""
        count = sum(
            value is not None
            for value in (
                self.age_range,
                self.income_max,
                self.categories,
                self.occupations,
                self.requires_disability,
                self.gender,
            )
        )
        if self.allowed_states is not None or self.allowed_districts is not None:
            count += 1
        return count + len(self.custom)
