"""Eligibility evaluator — scores a resource's criteria against a user's context.

Pure and stateless: safe to call concurrently. Each specified criterion is
scored independently as pass (1.0), partial (0.5) or fail (0.0). Criteria
the context cannot answer are reported as missing information and left out
of the average, never counted as failures.
"""

import logging
from typing import Any, Callable

from navigator.domain.entities import (
    AgeCriterion,
    Criterion,
    Demographics,
    DocumentationCriterion,
    EligibilityCriteria,
    EligibilityResult,
    EligibilityStatus,
    IncomeCriterion,
    PredicateCriterion,
    ResidencyCriterion,
    UserContext,
)
from navigator.domain.entities.eligibility import PREDICATE_OPERATORS

logger = logging.getLogger(__name__)

PASS = 1.0
PARTIAL = 0.5
FAIL = 0.0
NEUTRAL_MATCH = 0.5

LIKELY_THRESHOLD = 0.8
MAY_QUALIFY_THRESHOLD = 0.4


class InvalidCriterion(ValueError):
    """A criterion that cannot be evaluated as written; treated as no constraint."""


# Sentinel: the context lacks the information needed for a criterion.
_MISSING = object()


class EligibilityEvaluator:
    """Evaluates ``EligibilityCriteria`` against a ``UserContext``."""

    def __init__(self, *, income_tolerance: float = 0.10, age_tolerance_years: int = 2):
        self._income_tolerance = income_tolerance
        self._age_tolerance = age_tolerance_years
        self._handlers: dict[type, Callable[[Any, Demographics], Any]] = {
            IncomeCriterion: self._income,
            AgeCriterion: self._age,
            ResidencyCriterion: self._residency,
            DocumentationCriterion: self._documentation,
            PredicateCriterion: self._predicate,
        }

    def evaluate(self, criteria: EligibilityCriteria | None, context: UserContext | None) -> EligibilityResult:
        criteria = criteria or EligibilityCriteria()
        demographics = (context.demographics if context else None) or Demographics()

        scores: list[float] = []
        details: list[tuple[str, float]] = []
        missing: list[str] = []

        for criterion in criteria.criteria():
            try:
                outcome = self._handlers[type(criterion)](criterion, demographics)
            except InvalidCriterion as exc:
                logger.warning("Ignoring invalid %s criterion: %s", criterion.name, exc)
                continue
            if outcome is _MISSING:
                if criterion.name not in missing:
                    missing.append(criterion.name)
                continue
            scores.append(outcome)
            details.append((criterion.name, outcome))

        if not scores:
            match, status = NEUTRAL_MATCH, EligibilityStatus.UNKNOWN
        else:
            match = sum(scores) / len(scores)
            status = status_for(match)

        return EligibilityResult(
            eligibility_match=match,
            status=status,
            missing_info=tuple(missing),
            required_documents=criteria.required_documents,
            details=tuple(details),
        )

    # ── Criterion handlers ───────────────────────────────────────────

    def _income(self, criterion: IncomeCriterion, demographics: Demographics):
        low, high = criterion.minimum, criterion.maximum
        if low is None and high is None:
            raise InvalidCriterion("income criterion without bounds")
        if low is not None and high is not None and low > high:
            raise InvalidCriterion(f"income minimum {low} exceeds maximum {high}")
        income = demographics.household_income
        if income is None:
            return _MISSING
        return _range_score(income, low, high, slack_low=_pct(low, self._income_tolerance), slack_high=_pct(high, self._income_tolerance))

    def _age(self, criterion: AgeCriterion, demographics: Demographics):
        low, high = criterion.minimum, criterion.maximum
        if low is None and high is None:
            raise InvalidCriterion("age criterion without bounds")
        if low is not None and high is not None and low > high:
            raise InvalidCriterion(f"age minimum {low} exceeds maximum {high}")
        if demographics.age is None:
            return _MISSING
        return _range_score(demographics.age, low, high, slack_low=self._age_tolerance, slack_high=self._age_tolerance)

    def _residency(self, criterion: ResidencyCriterion, demographics: Demographics):
        if not criterion.regions:
            raise InvalidCriterion("residency criterion without regions")
        if not demographics.residency:
            return _MISSING
        region = demographics.residency.strip().upper()
        for allowed in criterion.regions:
            allowed = allowed.strip().upper()
            if region == allowed or region.startswith(allowed + "-"):
                return PASS
        return FAIL

    def _documentation(self, criterion: DocumentationCriterion, demographics: Demographics):
        if not criterion.documents:
            raise InvalidCriterion("documentation criterion without documents")
        if demographics.documents is None:
            return _MISSING
        held = {d.strip().lower() for d in demographics.documents}
        have = sum(1 for d in criterion.documents if d.strip().lower() in held)
        if have == len(criterion.documents):
            return PASS
        return PARTIAL if have else FAIL

    def _predicate(self, criterion: PredicateCriterion, demographics: Demographics):
        if criterion.operator not in PREDICATE_OPERATORS:
            raise InvalidCriterion(f"unknown operator {criterion.operator!r}")
        if criterion.attribute not in demographics.attributes:
            return _MISSING
        actual = demographics.attributes[criterion.attribute]
        expected = criterion.value
        op = criterion.operator
        try:
            if op == "eq":
                ok = actual == expected
            elif op == "ne":
                ok = actual != expected
            elif op == "in":
                ok = actual in (expected or ())
            elif op == "not_in":
                ok = actual not in (expected or ())
            elif op == "gte":
                ok = float(actual) >= float(expected)
            elif op == "lte":
                ok = float(actual) <= float(expected)
            elif op == "true":
                ok = bool(actual) is True
            else:  # "false"
                ok = bool(actual) is False
        except (TypeError, ValueError) as exc:
            raise InvalidCriterion(f"{criterion.name}: cannot compare {actual!r} with {expected!r}") from exc
        return PASS if ok else FAIL


def status_for(match: float) -> EligibilityStatus:
    """Map a match score to its status band."""
    if match >= LIKELY_THRESHOLD:
        return EligibilityStatus.LIKELY_ELIGIBLE
    if match >= MAY_QUALIFY_THRESHOLD:
        return EligibilityStatus.MAY_QUALIFY
    return EligibilityStatus.UNLIKELY


def _pct(bound: float | None, tolerance: float) -> float:
    return abs(bound) * tolerance if bound is not None else 0.0


def _range_score(value: float, low: float | None, high: float | None, *, slack_low: float, slack_high: float) -> float:
    """Pass inside [low, high], partial within the slack outside it, fail beyond."""
    if (low is None or value >= low) and (high is None or value <= high):
        return PASS
    if low is not None and value < low:
        return PARTIAL if value >= low - slack_low else FAIL
    return PARTIAL if value <= high + slack_high else FAIL
