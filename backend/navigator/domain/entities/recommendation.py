"""Domain entities returned by the recommendation pipeline."""

from dataclasses import dataclass, field
from enum import Enum

from .query import QueryIntent, Urgency, UserContext
from .scoring import Explanation, MatchScores


class RecommendationStatus(str, Enum):
    OK = "ok"
    DEGRADED = "degraded"
    NEEDS_CLARIFICATION = "needs_clarification"


@dataclass(frozen=True)
class RecommendationRequest:
    """Everything the pipeline needs for one query."""

    intent: QueryIntent
    embedding: tuple[float, ...] | None
    context: UserContext = field(default_factory=UserContext)
    query_id: str | None = None
    top_k: int | None = None
    max_results: int | None = None


@dataclass(frozen=True)
class QueryInterpretation:
    """How the engine understood the request — echoed back to the user."""

    primary_need: str
    secondary_needs: tuple[str, ...]
    urgency: Urgency
    confidence: float
    language: str
    category_hint: str | None = None


@dataclass(frozen=True)
class Recommendation:
    resource_id: str
    name: str
    provider: str
    category: str
    capacity_status: str
    score: float
    scores: MatchScores
    explanation: Explanation
    distance_miles: float | None = None
    flagged: bool = False


@dataclass(frozen=True)
class RecommendationSet:
    """Result of one query. ``degraded`` marks partial or fallback results."""

    query_id: str
    recommendations: tuple[Recommendation, ...]
    total_found: int
    query_interpretation: QueryInterpretation
    suggestions_for_refinement: tuple[str, ...] = ()
    status: RecommendationStatus = RecommendationStatus.OK
    degraded: bool = False
    degraded_reason: str | None = None
    snapshot_version: int = 0
    clarifying_questions: tuple[str, ...] = ()
