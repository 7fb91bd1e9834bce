"""
Business Logic Services

Service layer for the Heat Logger API.
"""

from services.feedback_service import FeedbackService, FeedbackValidationError
from services.prediction_service import PredictionService

__all__ = [
    "FeedbackService",
    "FeedbackValidationError",
    "PredictionService",
]
