"""Recommendations API controller — runs the matching pipeline for one query."""

import logging

from fastapi import APIRouter, Depends, HTTPException, status

from navigator.application.schemas import RecommendationRequestSchema, RecommendationSetResponse
from navigator.application.services import RecommendationService
from navigator.config import get_settings
from navigator.domain.exceptions import RecommendationError
from navigator.infrastructure.dependencies import get_recommendation_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/recommendations", tags=["recommendations"])

_ERROR_STATUS = {
    "invalid_embedding": status.HTTP_422_UNPROCESSABLE_ENTITY,
    "invalid_request": status.HTTP_422_UNPROCESSABLE_ENTITY,
}


@router.post("", response_model=RecommendationSetResponse)
async def recommend(
    data: RecommendationRequestSchema,
    service: RecommendationService = Depends(get_recommendation_service),
) -> RecommendationSetResponse:
    """Match a structured query against the resource index.

    Clarification and degraded results are successful responses; only
    structured pipeline errors map to 4xx/5xx.
    """
    request = data.to_entity(history_limit=get_settings().context_history_limit)
    try:
        result = await service.recommend(request)
    except RecommendationError as e:
        code = _ERROR_STATUS.get(e.code, status.HTTP_500_INTERNAL_SERVER_ERROR)
        raise HTTPException(status_code=code, detail=e.as_dict())
    return RecommendationSetResponse.model_validate(result, from_attributes=True)
