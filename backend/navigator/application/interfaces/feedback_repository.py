"""Abstract repository interface (port) for the append-only feedback ledger."""

from abc import ABC, abstractmethod

from navigator.domain.entities import Feedback


class FeedbackRepository(ABC):
    """Port for feedback persistence. Records are never updated or deleted."""

    @abstractmethod
    async def append(self, feedback: Feedback) -> Feedback:
        """Persist a record and return it with its monotonic sequence id."""
        ...

    @abstractmethod
    async def get_by_query(self, query_id: str) -> list[Feedback]:
        ...

    @abstractmethod
    async def get_by_resource(self, resource_id: str) -> list[Feedback]:
        ...

    @abstractmethod
    async def get_since(self, after_id: int, limit: int | None = None) -> list[Feedback]:
        """Records with id > after_id in ascending id order."""
        ...
