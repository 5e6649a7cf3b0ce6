"""Pydantic DTOs for outcome feedback."""

from datetime import datetime, timezone

from pydantic import BaseModel, Field

from navigator.domain.entities import Feedback, IssueType


class FeedbackCreate(BaseModel):
    """Feedback on one recommended resource. No identity fields are accepted."""

    query_id: str = Field(..., min_length=1, max_length=64)
    resource_id: str = Field(..., min_length=1, max_length=128)
    helpful: bool
    rating: int | None = Field(None, examples=[4])
    comment: str | None = None
    issue_type: IssueType | None = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = {"extra": "forbid"}

    def to_entity(self) -> Feedback:
        return Feedback(
            query_id=self.query_id,
            resource_id=self.resource_id,
            helpful=self.helpful,
            timestamp=self.timestamp,
            rating=self.rating,
            comment=self.comment,
            issue_type=self.issue_type,
        )


class FeedbackReceiptResponse(BaseModel):
    feedback_id: int
    message: str
    usage: list[str]
    flagged_for_review: bool

    model_config = {"from_attributes": True}


class FeedbackResponse(BaseModel):
    id: int
    query_id: str
    resource_id: str
    helpful: bool
    rating: int | None = None
    issue_type: IssueType | None = None
    timestamp: datetime

    model_config = {"from_attributes": True}
