"""Concrete delivered-query log implementation backed by SQLAlchemy."""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from navigator.application.interfaces import QueryLogRepository
from navigator.domain.entities import QueryRecord, QueryStage, Urgency
from navigator.infrastructure.database.models import QueryRecordModel
from navigator.infrastructure.database.repositories._time import as_utc


class SQLAlchemyQueryLogRepository(QueryLogRepository):
    def __init__(self, session: AsyncSession):
        self._session = session

    def _to_entity(self, model: QueryRecordModel) -> QueryRecord:
        return QueryRecord(
            query_id=model.query_id,
            primary_need=model.primary_need,
            urgency=Urgency(model.urgency),
            category=model.category,
            embedding=tuple(model.embedding or ()),
            snapshot_version=model.snapshot_version,
            resource_ids=tuple(model.resource_ids or ()),
            stage=QueryStage(model.stage),
            created_at=as_utc(model.created_at),
        )

    async def record(self, record: QueryRecord) -> None:
        """Insert or replace; runs in a savepoint so a failure leaves the request session usable."""
        async with self._session.begin_nested():
            model = await self._session.get(QueryRecordModel, record.query_id)
            if model is None:
                model = QueryRecordModel(query_id=record.query_id)
                self._session.add(model)
            model.primary_need = record.primary_need
            model.urgency = record.urgency.value
            model.category = record.category
            model.embedding = [float(x) for x in record.embedding]
            model.snapshot_version = record.snapshot_version
            model.resource_ids = list(record.resource_ids)
            model.stage = record.stage.value
            model.created_at = as_utc(record.created_at)

    async def get_many(self, query_ids: list[str]) -> dict[str, QueryRecord]:
        if not query_ids:
            return {}
        stmt = select(QueryRecordModel).where(QueryRecordModel.query_id.in_(query_ids))
        result = await self._session.execute(stmt)
        return {row.query_id: self._to_entity(row) for row in result.scalars().all()}

    async def mark_feedback_received(self, query_id: str) -> bool:
        async with self._session.begin_nested():
            model = await self._session.get(QueryRecordModel, query_id)
            if model is None:
                return False
            model.stage = QueryStage.FEEDBACK_RECEIVED.value
        return True
