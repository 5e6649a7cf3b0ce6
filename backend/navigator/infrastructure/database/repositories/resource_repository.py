"""Concrete resource repository implementation backed by SQLAlchemy."""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from navigator.application.interfaces import ResourceRepository
from navigator.application.schemas.resources import ResourceCreate, resource_to_payload
from navigator.domain.entities import CapacityStatus, Resource, ResourceFlag
from navigator.infrastructure.database.models import ResourceFlagModel, ResourceModel
from navigator.infrastructure.database.repositories._time import as_utc


class SQLAlchemyResourceRepository(ResourceRepository):
    """Implements the ResourceRepository port using SQLAlchemy async sessions."""

    def __init__(self, session: AsyncSession):
        self._session = session

    def _to_entity(self, model: ResourceModel) -> Resource:
        """Map ORM model → domain entity."""
        payload = dict(model.payload)
        payload["embedding"] = list(model.embedding or [])
        entity = ResourceCreate.model_validate(payload).to_entity(
            flagged=model.flagged,
            flag_reasons=tuple(model.flag_reasons or ()),
        )
        return entity

    def _apply(self, model: ResourceModel, entity: Resource) -> None:
        model.name = entity.name
        model.category = entity.category
        model.capacity_status = entity.capacity_status.value
        model.payload = resource_to_payload(entity)
        model.embedding = [float(x) for x in entity.embedding]
        model.flagged = entity.flagged
        model.flag_reasons = list(entity.flag_reasons)
        model.last_verified_at = as_utc(entity.last_verified_at)

    @staticmethod
    def _flag_to_entity(model: ResourceFlagModel) -> ResourceFlag:
        return ResourceFlag(
            id=model.id,
            resource_id=model.resource_id,
            reason=model.reason,
            source=model.source,
            created_at=as_utc(model.created_at),
        )

    async def get_by_id(self, resource_id: str) -> Resource | None:
        result = await self._session.get(ResourceModel, resource_id)
        return self._to_entity(result) if result else None

    async def get_active(self) -> list[Resource]:
        stmt = (
            select(ResourceModel)
            .where(ResourceModel.capacity_status != CapacityStatus.CLOSED.value)
            .order_by(ResourceModel.id)
        )
        result = await self._session.execute(stmt)
        return [self._to_entity(row) for row in result.scalars().all()]

    async def save(self, resource: Resource) -> Resource:
        model = await self._session.get(ResourceModel, resource.id)
        if model is None:
            model = ResourceModel(id=resource.id)
            self._apply(model, resource)
            self._session.add(model)
        else:
            self._apply(model, resource)
        await self._session.flush()
        return self._to_entity(model)

    async def update_embedding(self, resource_id: str, embedding: tuple[float, ...]) -> bool:
        model = await self._session.get(ResourceModel, resource_id)
        if model is None:
            return False
        model.embedding = [float(x) for x in embedding]
        await self._session.flush()
        return True

    async def add_flag(self, flag: ResourceFlag) -> ResourceFlag:
        model = await self._session.get(ResourceModel, flag.resource_id)
        if model is None:
            raise ValueError(f"Resource {flag.resource_id} not found in database")
        model.flagged = True
        model.flag_reasons = [*(model.flag_reasons or []), flag.reason]

        flag_model = ResourceFlagModel(
            resource_id=flag.resource_id,
            reason=flag.reason,
            source=flag.source,
            created_at=as_utc(flag.created_at),
        )
        self._session.add(flag_model)
        await self._session.flush()
        return self._flag_to_entity(flag_model)

    async def get_flags(self, resource_id: str | None = None) -> list[ResourceFlag]:
        stmt = select(ResourceFlagModel).order_by(ResourceFlagModel.created_at.desc(), ResourceFlagModel.id.desc())
        if resource_id is not None:
            stmt = stmt.where(ResourceFlagModel.resource_id == resource_id)
        result = await self._session.execute(stmt)
        return [self._flag_to_entity(row) for row in result.scalars().all()]
