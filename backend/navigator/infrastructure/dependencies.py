"""FastAPI dependency injection — wires infrastructure to application layer."""

from collections.abc import AsyncGenerator
from functools import lru_cache

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from navigator.config import get_settings
from navigator.application.services import (
    FeedbackStore,
    LearningService,
    RecommendationService,
    ResourceAdminService,
    ResourceIndex,
    SnapshotStore,
)
from navigator.infrastructure.database.session import get_db_session
from navigator.infrastructure.database.repositories import (
    SQLAlchemyFeedbackRepository,
    SQLAlchemyQueryLogRepository,
    SQLAlchemyResourceRepository,
    SQLAlchemySnapshotRepository,
)


@lru_cache
def get_resource_index() -> ResourceIndex:
    """Process-wide resource index, warmed in the lifespan."""
    return ResourceIndex.from_settings(get_settings())


@lru_cache
def get_snapshot_store() -> SnapshotStore:
    """Process-wide holder of the last published scoring snapshot."""
    return SnapshotStore()


def build_learning_service(session: AsyncSession) -> LearningService:
    """LearningService bound to one session; shared by the API and the scheduler."""
    settings = get_settings()
    return LearningService(
        feedback_repository=SQLAlchemyFeedbackRepository(session),
        query_log_repository=SQLAlchemyQueryLogRepository(session),
        snapshot_repository=SQLAlchemySnapshotRepository(session),
        snapshot_store=get_snapshot_store(),
        index=get_resource_index(),
        resource_repository=SQLAlchemyResourceRepository(session),
        min_samples=settings.learning_min_samples,
        smoothing=settings.learning_smoothing,
        rating_weight=settings.learning_rating_weight,
        embedding_learning_rate=settings.embedding_learning_rate,
        embedding_max_displacement=settings.embedding_max_displacement,
        watermark_overlap=settings.learning_watermark_overlap,
    )


async def get_recommendation_service(
    session: AsyncSession = Depends(get_db_session),
) -> AsyncGenerator[RecommendationService, None]:
    """Provides the pipeline orchestrator with the query log bound to this request."""
    yield RecommendationService.from_settings(
        get_settings(),
        index=get_resource_index(),
        snapshots=get_snapshot_store(),
        query_log=SQLAlchemyQueryLogRepository(session),
    )


async def get_feedback_store(
    session: AsyncSession = Depends(get_db_session),
) -> AsyncGenerator[FeedbackStore, None]:
    """Provides a FeedbackStore that can flag resources in the index and repository."""
    yield FeedbackStore(
        repository=SQLAlchemyFeedbackRepository(session),
        resource_repository=SQLAlchemyResourceRepository(session),
        index=get_resource_index(),
        query_log=SQLAlchemyQueryLogRepository(session),
    )


async def get_resource_admin_service(
    session: AsyncSession = Depends(get_db_session),
) -> AsyncGenerator[ResourceAdminService, None]:
    yield ResourceAdminService(SQLAlchemyResourceRepository(session), get_resource_index())


async def get_learning_service(
    session: AsyncSession = Depends(get_db_session),
) -> AsyncGenerator[LearningService, None]:
    yield build_learning_service(session)


async def get_snapshot_repository(
    session: AsyncSession = Depends(get_db_session),
) -> AsyncGenerator[SQLAlchemySnapshotRepository, None]:
    yield SQLAlchemySnapshotRepository(session)
