"""Insights API controller — scoring snapshots and on-demand learning runs."""

import logging

from fastapi import APIRouter, Depends, HTTPException, status

from navigator.application.schemas import (
    EmbeddingRunResponse,
    EmbeddingUpdateSchema,
    SnapshotResponse,
    SnapshotVersionSchema,
)
from navigator.application.services import LearningService, SnapshotStore
from navigator.infrastructure.database.repositories import SQLAlchemySnapshotRepository
from navigator.infrastructure.dependencies import (
    get_learning_service,
    get_snapshot_repository,
    get_snapshot_store,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/insights", tags=["insights"])


@router.get("/latest", response_model=SnapshotResponse)
async def latest_snapshot(store: SnapshotStore = Depends(get_snapshot_store)) -> SnapshotResponse:
    """The snapshot ranking currently reads from."""
    return SnapshotResponse.from_entity(store.current())


@router.get("/versions", response_model=list[SnapshotVersionSchema])
async def list_versions(
    limit: int = 20,
    repository: SQLAlchemySnapshotRepository = Depends(get_snapshot_repository),
) -> list[SnapshotVersionSchema]:
    versions = await repository.list_versions(limit=limit)
    return [SnapshotVersionSchema(version=v, created_at=created) for v, created in versions]


@router.get("/{version}", response_model=SnapshotResponse)
async def get_snapshot(
    version: int,
    repository: SQLAlchemySnapshotRepository = Depends(get_snapshot_repository),
) -> SnapshotResponse:
    """A retained snapshot, for audit."""
    snapshot = await repository.get_by_version(version)
    if snapshot is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Snapshot version {version} not found")
    return SnapshotResponse.from_entity(snapshot)


@router.post("/run", response_model=SnapshotResponse)
async def run_learning_cycle(service: LearningService = Depends(get_learning_service)) -> SnapshotResponse:
    """Run a scoring cycle now instead of waiting for the scheduler."""
    try:
        snapshot = await service.run_cycle()
    except ValueError as e:
        # Another cycle published first
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    return SnapshotResponse.from_entity(snapshot)


@router.post("/embeddings/run", response_model=EmbeddingRunResponse)
async def run_embedding_cycle(
    service: LearningService = Depends(get_learning_service),
    store: SnapshotStore = Depends(get_snapshot_store),
) -> EmbeddingRunResponse:
    try:
        updates = await service.run_embedding_cycle()
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    return EmbeddingRunResponse(
        snapshot_version=store.version,
        updates=[EmbeddingUpdateSchema.from_entity(u) for u in updates],
    )
