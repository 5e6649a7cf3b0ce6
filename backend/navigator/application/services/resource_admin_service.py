"""Application service (use case) for resource ingestion, flagging and retirement."""

import logging
from dataclasses import replace
from datetime import datetime, timezone

from navigator.application.interfaces import ResourceRepository
from navigator.application.services.resource_index import ResourceIndex
from navigator.domain.entities import CapacityStatus, Resource, ResourceFlag
from navigator.domain.exceptions import EntityNotFoundError

logger = logging.getLogger(__name__)


class ResourceAdminService:
    """Keeps the repository and the in-memory index in step for resource writes."""

    def __init__(self, repository: ResourceRepository, index: ResourceIndex):
        self._repository = repository
        self._index = index

    async def get_resource(self, resource_id: str) -> Resource:
        resource = await self._repository.get_by_id(resource_id)
        if resource is None:
            raise EntityNotFoundError("Resource", resource_id)
        return resource

    async def upsert(self, resource: Resource) -> Resource:
        """Ingestion handoff. Embedding dimension is checked before anything is written."""
        if not resource.retired:
            self._index.validate(resource)
        existing = await self._repository.get_by_id(resource.id)
        if existing is not None and existing.flagged:
            resource = replace(resource, flagged=True, flag_reasons=existing.flag_reasons)
        saved = await self._repository.save(resource)
        self._index.upsert(saved)
        logger.info("Resource %s %s", saved.id, "retired" if saved.retired else "upserted")
        return saved

    async def flag(self, resource_id: str, reason: str, source: str = "admin") -> ResourceFlag:
        await self.get_resource(resource_id)
        flag = await self._repository.add_flag(ResourceFlag(resource_id=resource_id, reason=reason, source=source))
        if self._index.get(resource_id) is not None:
            self._index.flag(resource_id, reason)
        return flag

    async def list_flags(self, resource_id: str | None = None) -> list[ResourceFlag]:
        return await self._repository.get_flags(resource_id)

    async def retire(self, resource_id: str) -> Resource:
        resource = await self.get_resource(resource_id)
        retired = replace(
            resource,
            capacity_status=CapacityStatus.CLOSED,
            last_verified_at=datetime.now(timezone.utc),
        )
        await self._repository.save(retired)
        self._index.retire(resource_id)
        return retired
