"""Feedback API controller — outcome submissions and ledger lookups."""

from fastapi import APIRouter, Depends, HTTPException, Query, status

from navigator.application.schemas import FeedbackCreate, FeedbackReceiptResponse, FeedbackResponse
from navigator.application.services import FeedbackStore
from navigator.domain.exceptions import InvalidFeedbackError
from navigator.infrastructure.dependencies import get_feedback_store

router = APIRouter(prefix="/feedback", tags=["feedback"])


@router.post("", response_model=FeedbackReceiptResponse, status_code=status.HTTP_201_CREATED)
async def submit_feedback(
    data: FeedbackCreate,
    store: FeedbackStore = Depends(get_feedback_store),
) -> FeedbackReceiptResponse:
    """Record feedback on a recommendation. Personal data in comments is rejected."""
    try:
        receipt = await store.submit(data.to_entity())
    except InvalidFeedbackError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"field": e.field, "reason": e.reason},
        )
    return FeedbackReceiptResponse.model_validate(receipt, from_attributes=True)


@router.get("", response_model=list[FeedbackResponse])
async def list_feedback(
    query_id: str | None = Query(None),
    resource_id: str | None = Query(None),
    store: FeedbackStore = Depends(get_feedback_store),
) -> list[FeedbackResponse]:
    """Feedback for one query or one resource. Comments are not returned."""
    if (query_id is None) == (resource_id is None):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Provide exactly one of query_id or resource_id",
        )
    if query_id is not None:
        records = await store.by_query(query_id)
    else:
        records = await store.by_resource(resource_id)
    return [FeedbackResponse.model_validate(f, from_attributes=True) for f in records]
