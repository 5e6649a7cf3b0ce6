from .resource_repository import SQLAlchemyResourceRepository
from .feedback_repository import SQLAlchemyFeedbackRepository
from .query_log_repository import SQLAlchemyQueryLogRepository
from .snapshot_repository import SQLAlchemySnapshotRepository

__all__ = [
    "SQLAlchemyResourceRepository",
    "SQLAlchemyFeedbackRepository",
    "SQLAlchemyQueryLogRepository",
    "SQLAlchemySnapshotRepository",
]
