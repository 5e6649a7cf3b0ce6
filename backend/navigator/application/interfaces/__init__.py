from .resource_repository import ResourceRepository
from .feedback_repository import FeedbackRepository
from .query_log_repository import QueryLogRepository
from .snapshot_repository import SnapshotRepository

__all__ = [
    "ResourceRepository",
    "FeedbackRepository",
    "QueryLogRepository",
    "SnapshotRepository",
]
