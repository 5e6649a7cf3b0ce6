from .resource_models import ResourceFlagModel, ResourceModel
from .feedback_models import FeedbackModel, QueryRecordModel
from .snapshot_models import ScoringSnapshotModel

__all__ = [
    "ResourceModel",
    "ResourceFlagModel",
    "FeedbackModel",
    "QueryRecordModel",
    "ScoringSnapshotModel",
]
