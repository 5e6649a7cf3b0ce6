from .resource_index import ResourceIndex
from .eligibility_evaluator import EligibilityEvaluator
from .ranking_engine import RankingEngine, RankingResult
from .explanation_generator import ExplanationGenerator
from .feedback_store import FeedbackStore
from .snapshot_store import SnapshotStore
from .learning_service import LearningService
from .learning_scheduler import LearningScheduler
from .recommendation_service import RecommendationService
from .resource_catalog import ResourceCatalogLoader
from .resource_admin_service import ResourceAdminService

__all__ = [
    "ResourceIndex",
    "EligibilityEvaluator",
    "RankingEngine",
    "RankingResult",
    "ExplanationGenerator",
    "FeedbackStore",
    "SnapshotStore",
    "LearningService",
    "LearningScheduler",
    "RecommendationService",
    "ResourceCatalogLoader",
    "ResourceAdminService",
]
