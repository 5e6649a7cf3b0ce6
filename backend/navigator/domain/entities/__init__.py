from .geo import GeoPoint, ServiceArea
from .query import (
    Demographics,
    ExtractedEntity,
    QueryIntent,
    QueryRecord,
    QueryStage,
    QueryTrace,
    Urgency,
    UserContext,
)
from .eligibility import (
    AgeCriterion,
    Criterion,
    DocumentationCriterion,
    EligibilityCriteria,
    EligibilityResult,
    EligibilityStatus,
    IncomeCriterion,
    PredicateCriterion,
    ResidencyCriterion,
)
from .resource import CapacityStatus, Resource, ResourceFlag
from .scoring import SCORE_WEIGHTS, Explanation, KeyFactor, MatchScores, ScoredResource
from .feedback import Feedback, FeedbackReceipt, IssueType
from .insight import (
    ClusterTally,
    EmbeddingUpdate,
    Pattern,
    QueryCluster,
    ScoringSnapshot,
)
from .recommendation import (
    QueryInterpretation,
    Recommendation,
    RecommendationRequest,
    RecommendationSet,
    RecommendationStatus,
)

__all__ = [
    "GeoPoint",
    "ServiceArea",
    "Demographics",
    "ExtractedEntity",
    "QueryIntent",
    "QueryRecord",
    "QueryStage",
    "QueryTrace",
    "Urgency",
    "UserContext",
    "AgeCriterion",
    "Criterion",
    "DocumentationCriterion",
    "EligibilityCriteria",
    "EligibilityResult",
    "EligibilityStatus",
    "IncomeCriterion",
    "PredicateCriterion",
    "ResidencyCriterion",
    "CapacityStatus",
    "Resource",
    "ResourceFlag",
    "SCORE_WEIGHTS",
    "Explanation",
    "KeyFactor",
    "MatchScores",
    "ScoredResource",
    "Feedback",
    "FeedbackReceipt",
    "IssueType",
    "ClusterTally",
    "EmbeddingUpdate",
    "Pattern",
    "QueryCluster",
    "ScoringSnapshot",
    "QueryInterpretation",
    "Recommendation",
    "RecommendationRequest",
    "RecommendationSet",
    "RecommendationStatus",
]
