"""Domain entities for outcome feedback — anonymous by construction."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class IssueType(str, Enum):
    """Problem categories a user can report about a recommendation."""

    WRONG_INFORMATION = "wrong_information"
    CLOSED = "closed"
    NOT_ELIGIBLE = "not_eligible"
    NO_RESPONSE = "no_response"
    LANGUAGE_BARRIER = "language_barrier"
    ACCESSIBILITY = "accessibility"
    OTHER = "other"


@dataclass(frozen=True)
class Feedback:
    """Outcome of a recommendation, keyed by (query, resource).

    Carries no user-identifying fields; free text is screened before storage.
    """

    query_id: str
    resource_id: str
    helpful: bool
    timestamp: datetime | None
    rating: int | None = None
    comment: str | None = None
    issue_type: IssueType | None = None
    id: int | None = None

    @property
    def reports_issue(self) -> bool:
        return not self.helpful and self.issue_type is not None


@dataclass(frozen=True)
class FeedbackReceipt:
    """Acknowledgment returned for every accepted feedback submission."""

    feedback_id: int
    message: str
    usage: tuple[str, ...] = field(default_factory=tuple)
    flagged_for_review: bool = False
