"""Abstract repository interface (port) for delivered-query records."""

from abc import ABC, abstractmethod

from navigator.domain.entities import QueryRecord


class QueryLogRepository(ABC):
    """Port for anonymous query records used by the learning loop."""

    @abstractmethod
    async def record(self, record: QueryRecord) -> None:
        ...

    @abstractmethod
    async def get_many(self, query_ids: list[str]) -> dict[str, QueryRecord]:
        """Records keyed by query id; unknown ids are omitted."""
        ...

    @abstractmethod
    async def mark_feedback_received(self, query_id: str) -> bool:
        """Advance the record's stage; False when the query is unknown."""
        ...
