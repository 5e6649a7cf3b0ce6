"""Domain entities for match scoring and explanations.

``MatchScores`` is the single source both the ranking engine and the
explanation generator read from; explanations can always be reproduced from
stored scores alone.
"""

from dataclasses import dataclass

from .eligibility import EligibilityResult, EligibilityStatus
from .resource import Resource

# Fixed weights of the multi-factor model. Order is also the tie order for
# explanation factors with equal contribution.
SCORE_WEIGHTS: dict[str, float] = {
    "semantic_similarity": 0.50,
    "eligibility_match": 0.20,
    "geographic_proximity": 0.15,
    "availability": 0.10,
    "historical_success": 0.05,
}


@dataclass(frozen=True)
class MatchScores:
    """The five normalized sub-scores and the weighted final score."""

    semantic_similarity: float
    eligibility_match: float
    geographic_proximity: float
    availability: float
    historical_success: float
    final: float

    @classmethod
    def combine(
        cls,
        *,
        semantic_similarity: float,
        eligibility_match: float,
        geographic_proximity: float,
        availability: float,
        historical_success: float,
    ) -> "MatchScores":
        """Clip each sub-score to [0,1] and compute the weighted final score."""
        parts = {
            "semantic_similarity": _clip(semantic_similarity),
            "eligibility_match": _clip(eligibility_match),
            "geographic_proximity": _clip(geographic_proximity),
            "availability": _clip(availability),
            "historical_success": _clip(historical_success),
        }
        final = sum(SCORE_WEIGHTS[name] * value for name, value in parts.items())
        return cls(final=_clip(final), **parts)

    def contributions(self) -> dict[str, float]:
        """Weighted contribution of each sub-score to ``final``."""
        return {name: weight * getattr(self, name) for name, weight in SCORE_WEIGHTS.items()}


@dataclass(frozen=True)
class KeyFactor:
    factor: str            # one of SCORE_WEIGHTS keys
    contribution: float    # weighted contribution to the final score
    description: str


@dataclass(frozen=True)
class Explanation:
    """Plain-language account of why a resource was recommended."""

    summary: str
    key_factors: tuple[KeyFactor, ...]
    eligibility_status: EligibilityStatus
    missing_info: tuple[str, ...] = ()
    required_documents: tuple[str, ...] = ()


@dataclass(frozen=True)
class ScoredResource:
    """A candidate resource with its scores.

    ``score`` is the externally visible relevance after renormalization
    (top result = 1.0); ``scores.final`` is the raw weighted value.
    """

    resource: Resource
    scores: MatchScores
    eligibility: EligibilityResult
    score: float = 0.0
    distance_miles: float | None = None
    explanation: Explanation | None = None


def _clip(value: float) -> float:
    value = float(value)
    if value < 0.0:
        return 0.0
    if value > 1.0:
        return 1.0
    return value
