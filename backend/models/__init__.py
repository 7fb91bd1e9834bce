"""
Data Models

Pydantic models for the Heat Logger API.
"""

from models.observation import (
    HeatingRequest,
    HeatingResponse,
    FeedbackCreate,
    ObservationRecord,
    HistoryResponse,
    DeleteAllResponse,
)

__all__ = [
    "HeatingRequest",
    "HeatingResponse",
    "FeedbackCreate",
    "ObservationRecord",
    "HistoryResponse",
    "DeleteAllResponse",
]
