from .base import Base
from .session import engine, async_session_factory, get_db_session
from .models import (
    FeedbackModel,
    QueryRecordModel,
    ResourceFlagModel,
    ResourceModel,
    ScoringSnapshotModel,
)

__all__ = [
    "Base",
    "engine",
    "async_session_factory",
    "get_db_session",
    "FeedbackModel",
    "QueryRecordModel",
    "ResourceFlagModel",
    "ResourceModel",
    "ScoringSnapshotModel",
]
