"""Domain entities for eligibility rules and their evaluation result.

Criteria form a closed set of kinds (income, age, residency, documentation)
plus one generic predicate kind for program-specific rules. An absent
criterion means "no constraint".
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union


class EligibilityStatus(str, Enum):
    """Coarse eligibility verdict shown to the user."""

    LIKELY_ELIGIBLE = "likely_eligible"
    MAY_QUALIFY = "may_qualify"
    UNLIKELY = "unlikely"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class IncomeCriterion:
    """Annual household income bounds (either side may be open)."""

    minimum: float | None = None
    maximum: float | None = None

    name = "income"


@dataclass(frozen=True)
class AgeCriterion:
    minimum: int | None = None
    maximum: int | None = None

    name = "age"


@dataclass(frozen=True)
class ResidencyCriterion:
    """Allowed residency regions; nested region codes are covered by their parent."""

    regions: tuple[str, ...] = ()

    name = "residency"


@dataclass(frozen=True)
class DocumentationCriterion:
    documents: tuple[str, ...] = ()

    name = "documentation"


PREDICATE_OPERATORS = frozenset({"eq", "ne", "in", "not_in", "gte", "lte", "true", "false"})


@dataclass(frozen=True)
class PredicateCriterion:
    """Program-specific rule over a named context attribute.

    Example: ``PredicateCriterion("veteran", "Open to veterans", "veteran", "true")``
    """

    name: str
    description: str
    attribute: str
    operator: str
    value: Any = None


Criterion = Union[
    IncomeCriterion,
    AgeCriterion,
    ResidencyCriterion,
    DocumentationCriterion,
    PredicateCriterion,
]


@dataclass(frozen=True)
class EligibilityCriteria:
    """All eligibility rules attached to a resource."""

    income: IncomeCriterion | None = None
    age: AgeCriterion | None = None
    residency: ResidencyCriterion | None = None
    documentation: DocumentationCriterion | None = None
    other: tuple[PredicateCriterion, ...] = ()

    def criteria(self) -> list[Criterion]:
        """Specified criteria in evaluation order."""
        items: list[Criterion] = [
            c for c in (self.income, self.age, self.residency, self.documentation) if c is not None
        ]
        items.extend(self.other)
        return items

    @property
    def required_documents(self) -> tuple[str, ...]:
        return self.documentation.documents if self.documentation else ()


@dataclass(frozen=True)
class EligibilityResult:
    """Outcome of evaluating one resource's criteria against a user's context."""

    eligibility_match: float
    status: EligibilityStatus
    missing_info: tuple[str, ...] = ()
    required_documents: tuple[str, ...] = ()
    details: tuple[tuple[str, float], ...] = field(default_factory=tuple)  # (criterion, satisfaction)
