"""V1 API router — aggregates all v1 endpoint routers."""

from fastapi import APIRouter

from navigator.presentation.api.v1.endpoints.health import router as health_router
from navigator.presentation.api.v1.recommendations_controller import router as recommendations_router
from navigator.presentation.api.v1.feedback_controller import router as feedback_router
from navigator.presentation.api.v1.resources_controller import router as resources_router
from navigator.presentation.api.v1.insights_controller import router as insights_router

router = APIRouter(prefix="/v1")
router.include_router(health_router)
router.include_router(recommendations_router)
router.include_router(feedback_router)
router.include_router(resources_router)
router.include_router(insights_router)
