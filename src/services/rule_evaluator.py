"""Deterministic rules engine: criteria x profile -> per-criterion verdicts.

Evaluation order is fixed and documented because explanations cite
verdicts positionally:

    1. age
    2. income
    3. location (state, then district)
    4. category
    5. occupation
    6. disability
    7. gender
    8. custom rules, in declaration order

Every present sub-rule yields exactly one verdict and evaluation never
short-circuits, so a rejected citizen learns *every* reason at once.  A
sub-rule whose profile field is absent yields ``met=None`` with reason
``missing:<field>``.  Nothing here raises on odd data: incomparable
values also come back as *unknown*.

The module holds no state and is safe to call concurrently.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import structlog

from src.models.criteria import CustomRule, EligibilityCriteria, is_number
from src.models.decision import CriterionVerdict
from src.models.enums import CustomOperator, GenderRequirement
from src.models.user_profile import UserProfile

logger = structlog.get_logger(__name__)


def _missing(criterion: str, field: str) -> CriterionVerdict:
    return CriterionVerdict(criterion=criterion, met=None, reason=f"missing:{field}", field=field)


def _norm(value: str) -> str:
    return value.strip().casefold()


def _fmt_inr(amount: float) -> str:
    return f"Rs {amount:,.0f}"


# ---------------------------------------------------------------------------
# Built-in sub-rules
# ---------------------------------------------------------------------------


def _check_age(criteria: EligibilityCriteria, profile: UserProfile) -> CriterionVerdict:
    age_range = criteria.age_range
    assert age_range is not None  # noqa: S101
    if profile.age is None:
        return _missing("age", "age")

    age = profile.age
    if age_range.min is not None and age < age_range.min:
        return CriterionVerdict(
            criterion="age", met=False, field="age",
            reason=f"age {age} is below the minimum of {age_range.min}",
        )
    if age_range.max is not None and age > age_range.max:
        return CriterionVerdict(
            criterion="age", met=False, field="age",
            reason=f"age {age} is above the maximum of {age_range.max}",
        )
    low = age_range.min if age_range.min is not None else 0
    high = age_range.max if age_range.max is not None else "any"
    return CriterionVerdict(
        criterion="age", met=True, field="age", reason=f"age {age} is within {low}-{high}",
    )


def _check_income(criteria: EligibilityCriteria, profile: UserProfile) -> CriterionVerdict:
    limit = criteria.income_max
    assert limit is not None  # noqa: S101

    if profile.annual_income is not None:
        income = profile.annual_income
        if income <= limit:
            return CriterionVerdict(
                criterion="income", met=True, field="annual_income",
                reason=f"annual income {_fmt_inr(income)} is within the limit of {_fmt_inr(limit)}",
            )
        return CriterionVerdict(
            criterion="income", met=False, field="annual_income",
            reason=f"annual income {_fmt_inr(income)} exceeds the limit of {_fmt_inr(limit)}",
        )

    band = profile.income_band
    if band is None:
        return _missing("income", "income_band")

    # Band edges are shared by neighbouring bands, so a threshold sitting
    # on an edge cannot be decided from the band alone.
    if band.upper is not None and band.upper < limit:
        return CriterionVerdict(
            criterion="income", met=True, field="income_band",
            reason=f"income band {band.value} is below the limit of {_fmt_inr(limit)}",
        )
    if band.lower > limit:
        return CriterionVerdict(
            criterion="income", met=False, field="income_band",
            reason=f"income band {band.value} is above the limit of {_fmt_inr(limit)}",
        )
    return _missing("income", "annual_income")


def _check_location(criteria: EligibilityCriteria, profile: UserProfile) -> CriterionVerdict:
    failures: list[CriterionVerdict] = []
    unknowns: list[CriterionVerdict] = []
    matched: list[str] = []

    if criteria.allowed_states is not None:
        state = profile.state
        if state is None:
            unknowns.append(_missing("location", "state"))
        elif _norm(state) in {_norm(s) for s in criteria.allowed_states}:
            matched.append(f"state {state}")
        else:
            failures.append(CriterionVerdict(
                criterion="location", met=False, field="state",
                reason=f"state {state} is not among {', '.join(sorted(criteria.allowed_states))}",
            ))

    if criteria.allowed_districts is not None:
        district = profile.district
        if district is None:
            unknowns.append(_missing("location", "district"))
        elif _norm(district) in {_norm(d) for d in criteria.allowed_districts}:
            matched.append(f"district {district}")
        else:
            failures.append(CriterionVerdict(
                criterion="location", met=False, field="district",
                reason=(
                    f"district {district} is not among "
                    f"{', '.join(sorted(criteria.allowed_districts))}"
                ),
            ))

    if failures:
        return failures[0]
    if len(unknowns) == 1:
        return unknowns[0]
    if unknowns:
        fields = [v.field for v in unknowns if v.field]
        return CriterionVerdict(
            criterion="location", met=None, field=fields[0], related_fields=tuple(fields[1:]),
            reason=f"missing:{','.join(fields)}",
        )
    field = "district" if criteria.allowed_districts is not None else "state"
    return CriterionVerdict(
        criterion="location", met=True, field=field, reason=f"{' and '.join(matched)} is covered",
    )


def _check_category(criteria: EligibilityCriteria, profile: UserProfile) -> CriterionVerdict:
    assert criteria.categories is not None  # noqa: S101
    if profile.category is None:
        return _missing("category", "category")
    allowed = ", ".join(sorted(c.value for c in criteria.categories))
    if profile.category in criteria.categories:
        return CriterionVerdict(
            criterion="category", met=True, field="category",
            reason=f"category {profile.category.value} is among {allowed}",
        )
    return CriterionVerdict(
        criterion="category", met=False, field="category",
        reason=f"category {profile.category.value} is not among {allowed}",
    )


def _check_occupation(criteria: EligibilityCriteria, profile: UserProfile) -> CriterionVerdict:
    assert criteria.occupations is not None  # noqa: S101
    if profile.occupation is None:
        return _missing("occupation", "occupation")
    allowed = ", ".join(sorted(criteria.occupations))
    if _norm(profile.occupation) in {_norm(o) for o in criteria.occupations}:
        return CriterionVerdict(
            criterion="occupation", met=True, field="occupation",
            reason=f"occupation {profile.occupation} is among {allowed}",
        )
    return CriterionVerdict(
        criterion="occupation", met=False, field="occupation",
        reason=f"occupation {profile.occupation} is not among {allowed}",
    )


def _check_disability(criteria: EligibilityCriteria, profile: UserProfile) -> CriterionVerdict:
    if not criteria.requires_disability:
        return CriterionVerdict(
            criterion="disability", met=True, field="disability",
            reason="no disability requirement",
        )
    if profile.disability is None:
        return _missing("disability", "disability")
    if profile.disability:
        return CriterionVerdict(
            criterion="disability", met=True, field="disability",
            reason="person with disability",
        )
    return CriterionVerdict(
        criterion="disability", met=False, field="disability",
        reason="scheme is reserved for persons with disability",
    )


def _check_gender(criteria: EligibilityCriteria, profile: UserProfile) -> CriterionVerdict:
    required = criteria.gender
    assert required is not None  # noqa: S101
    if required == GenderRequirement.ANY:
        return CriterionVerdict(
            criterion="gender", met=True, field="gender", reason="open to all genders",
        )
    if profile.gender is None:
        return _missing("gender", "gender")
    if profile.gender.value == required.value:
        return CriterionVerdict(
            criterion="gender", met=True, field="gender", reason=f"gender is {required.value}",
        )
    return CriterionVerdict(
        criterion="gender", met=False, field="gender",
        reason=f"gender must be {required.value}, profile is {profile.gender.value}",
    )


# ---------------------------------------------------------------------------
# Custom rules
# ---------------------------------------------------------------------------


def _compare(operator: CustomOperator, actual: Any, expected: Any) -> bool | None:
    """Apply *operator*; ``None`` when the operand types do not fit."""
    if operator == CustomOperator.IN:
        if not isinstance(actual, str):
            return None
        return _norm(actual) in {_norm(v) for v in expected}

    if operator == CustomOperator.EQ:
        if isinstance(expected, bool) or isinstance(actual, bool):
            if isinstance(expected, bool) and isinstance(actual, bool):
                return actual is expected
            return None
        if is_number(expected):
            return actual == expected if is_number(actual) else None
        if isinstance(expected, str):
            return _norm(actual) == _norm(expected) if isinstance(actual, str) else None
        return None

    if not (is_number(actual) and is_number(expected)):
        return None
    if operator == CustomOperator.GT:
        return actual > expected
    if operator == CustomOperator.LT:
        return actual < expected
    if operator == CustomOperator.GTE:
        return actual >= expected
    if operator == CustomOperator.LTE:
        return actual <= expected
    return None


def _describe(value: Any) -> str:
    if isinstance(value, frozenset):
        return "{" + ", ".join(sorted(value)) + "}"
    return str(value)


def _check_custom(rule: CustomRule, profile: UserProfile) -> CriterionVerdict:
    name = f"custom:{rule.field}"
    actual = profile.lookup(rule.field)
    if actual is None:
        return _missing(name, rule.field)

    result = _compare(rule.operator, actual, rule.value)
    if result is None:
        return CriterionVerdict(
            criterion=name, met=None, field=rule.field, reason=f"incompatible:{rule.field}",
        )
    relation = "satisfies" if result else "does not satisfy"
    return CriterionVerdict(
        criterion=name, met=result, field=rule.field,
        reason=f"{rule.field}={_describe(actual)} {relation} {rule.operator.value} {_describe(rule.value)}",
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

_Check = Callable[[EligibilityCriteria, UserProfile], CriterionVerdict]

# (is-present predicate, check) in evaluation order.
_BUILTIN_RULES: tuple[tuple[Callable[[EligibilityCriteria], bool], _Check], ...] = (
    (lambda c: c.age_range is not None, _check_age),
    (lambda c: c.income_max is not None, _check_income),
    (lambda c: c.allowed_states is not None or c.allowed_districts is not None, _check_location),
    (lambda c: c.categories is not None, _check_category),
    (lambda c: c.occupations is not None, _check_occupation),
    (lambda c: c.requires_disability is not None, _check_disability),
    (lambda c: c.gender is not None, _check_gender),
)


def evaluate(criteria: EligibilityCriteria, profile: UserProfile) -> list[CriterionVerdict]:
    """Evaluate *profile* against every present sub-rule of *criteria*.

    Returns exactly one verdict per present sub-rule, in the documented
    order.  Never raises for missing or mistyped profile data.
    """
    verdicts = [check(criteria, profile) for present, check in _BUILTIN_RULES if present(criteria)]
    verdicts.extend(_check_custom(rule, profile) for rule in criteria.custom)

    logger.debug(
        "rule_evaluator.evaluated",
        profile_id=profile.profile_id,
        verdicts=len(verdicts),
        failed=sum(v.met is False for v in verdicts),
        unknown=sum(v.met is None for v in verdicts),
    )
    return verdicts
