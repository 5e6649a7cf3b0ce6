"""Concrete feedback ledger implementation backed by SQLAlchemy."""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from navigator.application.interfaces import FeedbackRepository
from navigator.domain.entities import Feedback, IssueType
from navigator.infrastructure.database.models import FeedbackModel
from navigator.infrastructure.database.repositories._time import as_utc


class SQLAlchemyFeedbackRepository(FeedbackRepository):
    """Append-only: rows are inserted, never updated or deleted."""

    def __init__(self, session: AsyncSession):
        self._session = session

    def _to_entity(self, model: FeedbackModel) -> Feedback:
        return Feedback(
            id=model.id,
            query_id=model.query_id,
            resource_id=model.resource_id,
            helpful=model.helpful,
            rating=model.rating,
            comment=model.comment,
            issue_type=IssueType(model.issue_type) if model.issue_type else None,
            timestamp=as_utc(model.timestamp),
        )

    def _to_model(self, entity: Feedback) -> FeedbackModel:
        return FeedbackModel(
            query_id=entity.query_id,
            resource_id=entity.resource_id,
            helpful=entity.helpful,
            rating=entity.rating,
            comment=entity.comment,
            issue_type=entity.issue_type.value if entity.issue_type else None,
            timestamp=as_utc(entity.timestamp),
        )

    async def append(self, feedback: Feedback) -> Feedback:
        model = self._to_model(feedback)
        self._session.add(model)
        await self._session.flush()
        return self._to_entity(model)

    async def get_by_query(self, query_id: str) -> list[Feedback]:
        stmt = select(FeedbackModel).where(FeedbackModel.query_id == query_id).order_by(FeedbackModel.id)
        result = await self._session.execute(stmt)
        return [self._to_entity(row) for row in result.scalars().all()]

    async def get_by_resource(self, resource_id: str) -> list[Feedback]:
        stmt = select(FeedbackModel).where(FeedbackModel.resource_id == resource_id).order_by(FeedbackModel.id)
        result = await self._session.execute(stmt)
        return [self._to_entity(row) for row in result.scalars().all()]

    async def get_since(self, after_id: int, limit: int | None = None) -> list[Feedback]:
        stmt = select(FeedbackModel).where(FeedbackModel.id > after_id).order_by(FeedbackModel.id)
        if limit is not None:
            stmt = stmt.limit(limit)
        result = await self._session.execute(stmt)
        return [self._to_entity(row) for row in result.scalars().all()]
