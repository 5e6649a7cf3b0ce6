"""Feedback store — append-only ledger of recommendation outcomes."""

import logging

from navigator.application.interfaces import FeedbackRepository, QueryLogRepository, ResourceRepository
from navigator.application.services.pii_guard import find_pii
from navigator.application.services.resource_index import ResourceIndex
from navigator.domain.entities import Feedback, FeedbackReceipt, ResourceFlag
from navigator.domain.exceptions import EntityNotFoundError, InvalidFeedbackError

logger = logging.getLogger(__name__)

MAX_COMMENT_LENGTH = 2000

_USAGE = (
    "Combined anonymously with feedback on similar requests to improve future rankings.",
    "Never linked to your identity or your original question.",
)


class FeedbackStore:
    """Validates and records feedback; flags resources reported as wrong.

    Records are immutable once appended. Identity-bearing text is rejected
    before anything is written.
    """

    def __init__(
        self,
        repository: FeedbackRepository,
        resource_repository: ResourceRepository | None = None,
        index: ResourceIndex | None = None,
        query_log: QueryLogRepository | None = None,
    ):
        self._repository = repository
        self._resources = resource_repository
        self._index = index
        self._query_log = query_log

    async def append(self, feedback: Feedback) -> int:
        """Validate and persist one record; returns its sequence id."""
        self.validate(feedback)
        stored = await self._repository.append(feedback)
        logger.debug("Feedback %s stored for resource %s", stored.id, stored.resource_id)
        return stored.id

    async def submit(self, feedback: Feedback) -> FeedbackReceipt:
        """Append, advance the query to feedback-received, flag reported problems, and acknowledge."""
        feedback_id = await self.append(feedback)
        if self._query_log is not None and not await self._query_log.mark_feedback_received(feedback.query_id):
            logger.debug("Feedback %s refers to unlogged query %s", feedback_id, feedback.query_id)

        flagged = False
        if feedback.reports_issue:
            flagged = await self._flag(feedback.resource_id, f"user reported: {feedback.issue_type.value}")

        usage = _USAGE
        if flagged:
            usage = (*usage, "The resource has been queued for a record review.")
        return FeedbackReceipt(
            feedback_id=feedback_id,
            message="Thank you. Your feedback was recorded.",
            usage=usage,
            flagged_for_review=flagged,
        )

    async def by_query(self, query_id: str) -> list[Feedback]:
        return await self._repository.get_by_query(query_id)

    async def by_resource(self, resource_id: str) -> list[Feedback]:
        return await self._repository.get_by_resource(resource_id)

    async def since(self, after_id: int = 0, limit: int | None = None) -> list[Feedback]:
        return await self._repository.get_since(after_id, limit)

    @staticmethod
    def validate(feedback: Feedback) -> None:
        if not feedback.query_id or not feedback.query_id.strip():
            raise InvalidFeedbackError("query id is required", field="query_id")
        if not feedback.resource_id or not feedback.resource_id.strip():
            raise InvalidFeedbackError("resource id is required", field="resource_id")
        if feedback.timestamp is None:
            raise InvalidFeedbackError("timestamp is required", field="timestamp")
        if feedback.rating is not None and not 1 <= feedback.rating <= 5:
            raise InvalidFeedbackError(f"rating must be between 1 and 5, got {feedback.rating}", field="rating")
        if feedback.comment is not None:
            if len(feedback.comment) > MAX_COMMENT_LENGTH:
                raise InvalidFeedbackError(f"comment longer than {MAX_COMMENT_LENGTH} characters", field="comment")
            kind = find_pii(feedback.comment)
            if kind:
                raise InvalidFeedbackError(f"comment appears to contain a {kind}", field="comment")

    async def _flag(self, resource_id: str, reason: str) -> bool:
        flagged = False
        if self._index is not None:
            try:
                self._index.flag(resource_id, reason)
                flagged = True
            except EntityNotFoundError:
                logger.warning("Feedback flagged unknown or retired resource %s", resource_id)
        if self._resources is not None and await self._resources.get_by_id(resource_id) is not None:
            await self._resources.add_flag(ResourceFlag(resource_id=resource_id, reason=reason))
            flagged = True
        if flagged:
            logger.info("Resource %s flagged for review: %s", resource_id, reason)
        return flagged
