"""Health check endpoint — no database dependency, always available."""

from fastapi import APIRouter

from navigator.config import get_settings
from navigator.infrastructure.dependencies import get_resource_index, get_snapshot_store

router = APIRouter(tags=["Health"])


@router.get("/health")
async def health_check() -> dict:
    """Returns the current application health status."""
    settings = get_settings()
    index = get_resource_index()
    return {
        "status": "degraded" if index.degraded else "healthy",
        "version": settings.app_version,
        "environment": settings.app_env,
        "index": index.stats(),
        "snapshot_version": get_snapshot_store().version,
    }
