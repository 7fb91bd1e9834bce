"""
History API - browse and prune recorded feedback.

Routes
------
GET    /history              - all records, newest first
DELETE /history/{record_id}  - delete one record
DELETE /history              - delete every record
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from api.dependencies import get_feedback_service
from models.observation import DeleteAllResponse, HistoryResponse, ObservationRecord
from services.feedback_service import FeedbackService

router = APIRouter(prefix="/history", tags=["History"])


@router.get("", response_model=HistoryResponse)
async def list_history(
    owner: Optional[str] = Query(default=None, min_length=1, description="Only this owner's records"),
    service: FeedbackService = Depends(get_feedback_service),
):
    records = await service.list_history(owner)
    return HistoryResponse(
        records=[ObservationRecord.from_observation(o) for o in records],
        total=len(records),
    )


@router.delete("/{record_id}")
async def delete_record(
    record_id: str,
    service: FeedbackService = Depends(get_feedback_service),
):
    """Delete one record. Responds 404 when the id is unknown."""
    await service.delete_record(record_id)
    return {"deleted": record_id}


@router.delete("", response_model=DeleteAllResponse)
async def clear_history(
    service: FeedbackService = Depends(get_feedback_service),
):
    deleted = await service.clear_history()
    return DeleteAllResponse(deleted=deleted)
