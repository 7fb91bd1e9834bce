"""
Heating API - heating-time recommendations and post-shower feedback.

Routes
------
POST /heating/calculate  - recommended heating time for a shower
POST /heating/feedback   - record how the last shower felt
"""

from fastapi import APIRouter, Depends, status

from api.dependencies import get_feedback_service, get_prediction_service
from models.observation import FeedbackCreate, HeatingRequest, HeatingResponse, ObservationRecord
from services.feedback_service import FeedbackService
from services.prediction_service import PredictionService

router = APIRouter(prefix="/heating", tags=["Heating"])


# =============================================================================
# POST /heating/calculate
# =============================================================================


@router.post("/calculate", response_model=HeatingResponse)
async def calculate_heating_time(
    request: HeatingRequest,
    service: PredictionService = Depends(get_prediction_service),
):
    """
    Recommend how long to heat the water before a shower.

    Response fields:
    - **heating_time**: rounded recommendation in minutes
    - **raw_value**: estimate before rounding
    - **uncertainty**: spread of comparable past showers (null without history)
    - **source**: which history produced the value (user, global, blended, default, strategic_override)
    - **user_weight**: share given to the owner's own history
    """
    prediction = await service.calculate(request)
    return HeatingResponse.from_prediction(prediction)


# =============================================================================
# POST /heating/feedback
# =============================================================================


@router.post(
    "/feedback",
    response_model=ObservationRecord,
    status_code=status.HTTP_201_CREATED,
)
async def submit_feedback(
    feedback: FeedbackCreate,
    service: FeedbackService = Depends(get_feedback_service),
):
    """Record satisfaction for a heating time that was actually used."""
    stored = await service.record_feedback(feedback)
    return ObservationRecord.from_observation(stored)
