"""Resources API controller — ingestion handoff, review flags and retirement."""

import logging

from fastapi import APIRouter, Depends, HTTPException, status

from navigator.application.schemas import (
    FlagRequest,
    FlagResponse,
    ResourceCreate,
    ResourceResponse,
    flag_response,
    resource_response,
)
from navigator.application.services import ResourceAdminService
from navigator.domain.exceptions import EntityNotFoundError, InvalidEmbeddingError
from navigator.infrastructure.dependencies import get_resource_admin_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/resources", tags=["resources"])


@router.post("", response_model=ResourceResponse)
async def upsert_resource(
    data: ResourceCreate,
    service: ResourceAdminService = Depends(get_resource_admin_service),
) -> ResourceResponse:
    """Create or replace a resource handed over by the ingestion service."""
    try:
        resource = await service.upsert(data.to_entity())
    except InvalidEmbeddingError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
    return resource_response(resource)


@router.get("/{resource_id}", response_model=ResourceResponse)
async def get_resource(
    resource_id: str,
    service: ResourceAdminService = Depends(get_resource_admin_service),
) -> ResourceResponse:
    try:
        resource = await service.get_resource(resource_id)
    except EntityNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    return resource_response(resource)


@router.post("/{resource_id}/flag", response_model=FlagResponse, status_code=status.HTTP_201_CREATED)
async def flag_resource(
    resource_id: str,
    data: FlagRequest,
    service: ResourceAdminService = Depends(get_resource_admin_service),
) -> FlagResponse:
    """Queue a resource record for administrative review."""
    try:
        flag = await service.flag(resource_id, data.reason)
    except EntityNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    return flag_response(flag)


@router.get("/{resource_id}/flags", response_model=list[FlagResponse])
async def list_flags(
    resource_id: str,
    service: ResourceAdminService = Depends(get_resource_admin_service),
) -> list[FlagResponse]:
    return [flag_response(f) for f in await service.list_flags(resource_id)]


@router.post("/{resource_id}/retire", response_model=ResourceResponse)
async def retire_resource(
    resource_id: str,
    service: ResourceAdminService = Depends(get_resource_admin_service),
) -> ResourceResponse:
    """Permanently close a resource; it disappears from results immediately."""
    try:
        resource = await service.retire(resource_id)
    except EntityNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    return resource_response(resource)
