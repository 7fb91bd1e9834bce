"""
Observation Models

Pydantic models for heating requests, feedback submissions and the
daily_records history they produce.
"""

from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ml.inference.records import HeatingPrediction, Observation


class HeatingRequest(BaseModel):
    """
    Conditions for which a heating time is requested.

    Duration and temperature ranges are engine settings, checked by the
    predictor (QueryValidationError, mapped to 422).
    """
    owner: str = Field(..., min_length=1, max_length=100)
    duration: float = Field(..., description="Shower length in minutes")
    temperature: float = Field(..., description="Ambient temperature in degrees C")

    @field_validator("owner")
    @classmethod
    def strip_owner(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("owner must not be blank")
        return v


class HeatingResponse(BaseModel):
    """Recommended heating time."""
    heating_time: float
    raw_value: float
    uncertainty: Optional[float] = None
    source: str
    user_weight: float = Field(..., ge=0, le=1)
    neighbors: int = 0

    @classmethod
    def from_prediction(cls, prediction: HeatingPrediction) -> "HeatingResponse":
        return cls(**prediction.to_dict())


class FeedbackCreate(BaseModel):
    """
    Feedback after a shower.

    Ranges (satisfaction scale, shower length, temperature, heating time)
    are deployment settings and are checked by the service.
    """
    owner: str = Field(..., min_length=1, max_length=100)
    duration: float = Field(..., gt=0)
    temperature: float
    heating_time: float = Field(..., gt=0)
    satisfaction: float
    occurred_at: Optional[datetime] = None

    @field_validator("owner")
    @classmethod
    def strip_owner(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("owner must not be blank")
        return v

    @field_validator("occurred_at")
    @classmethod
    def validate_timestamp_has_timezone(cls, v: Optional[datetime]) -> Optional[datetime]:
        """Ensure timestamps have timezone info"""
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v


class ObservationRecord(BaseModel):
    """A stored observation as returned by the history endpoints."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    owner: str
    occurred_at: datetime
    duration: float
    temperature: float
    heating_time: float
    satisfaction: float

    @classmethod
    def from_observation(cls, observation: Observation) -> "ObservationRecord":
        return cls.model_validate(observation)


class HistoryResponse(BaseModel):
    """Observation history, newest first."""
    records: List[ObservationRecord]
    total: int


class DeleteAllResponse(BaseModel):
    deleted: int = Field(..., ge=0)
