"""Abstract repository interface (port) for resource records and review flags."""

from abc import ABC, abstractmethod

from navigator.domain.entities import Resource, ResourceFlag


class ResourceRepository(ABC):
    """Port for resource persistence — implemented in the infrastructure layer."""

    @abstractmethod
    async def get_by_id(self, resource_id: str) -> Resource | None:
        """Retrieve a single resource by its ID."""
        ...

    @abstractmethod
    async def get_active(self) -> list[Resource]:
        """All resources that are not retired."""
        ...

    @abstractmethod
    async def save(self, resource: Resource) -> Resource:
        """Insert or replace a resource record."""
        ...

    @abstractmethod
    async def update_embedding(self, resource_id: str, embedding: tuple[float, ...]) -> bool:
        """Replace a resource's embedding. Returns False if the resource is unknown."""
        ...

    @abstractmethod
    async def add_flag(self, flag: ResourceFlag) -> ResourceFlag:
        """Record a review flag and mark the resource as flagged."""
        ...

    @abstractmethod
    async def get_flags(self, resource_id: str | None = None) -> list[ResourceFlag]:
        """Review flags, newest first, optionally for a single resource."""
        ...
