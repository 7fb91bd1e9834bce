"""
Feedback Service

Records satisfaction feedback after a shower and manages the history it
builds up. Every prediction is recomputed from this history, so feedback
is validated strictly before it is appended.
"""

from datetime import datetime, timedelta, timezone
from typing import List, Optional

import structlog

from ml.inference.config import PredictorConfig
from ml.inference.records import Observation
from models.observation import FeedbackCreate
from repositories.base import NotFoundError, ObservationStore, ValidationError

logger = structlog.get_logger()

# Client clocks drift; anything further ahead than this is rejected
FUTURE_TOLERANCE = timedelta(minutes=5)


class FeedbackValidationError(ValidationError):
    """Raised when a feedback field is invalid"""

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"{field}: {reason}")


class FeedbackService:
    """Service for recording feedback and managing observation history."""

    def __init__(self, store: ObservationStore, config: Optional[PredictorConfig] = None) -> None:
        self._store = store
        self._config = config or PredictorConfig()
        self._scale = self._config.scale

    def _validate(self, feedback: FeedbackCreate, now: datetime) -> datetime:
        if not feedback.owner or not feedback.owner.strip():
            raise FeedbackValidationError("owner", "must not be empty")
        config = self._config
        if not config.min_duration <= feedback.duration <= config.max_duration:
            raise FeedbackValidationError(
                "duration",
                f"must be between {config.min_duration:g} and {config.max_duration:g} minutes",
            )
        if not config.min_temperature <= feedback.temperature <= config.max_temperature:
            raise FeedbackValidationError(
                "temperature",
                f"must be between {config.min_temperature:g} and {config.max_temperature:g} degrees",
            )
        if not 0 < feedback.heating_time <= config.max_minutes:
            raise FeedbackValidationError(
                "heating_time", f"must be positive and at most {config.max_minutes:g} minutes"
            )
        if not self._scale.contains(feedback.satisfaction):
            raise FeedbackValidationError(
                "satisfaction",
                f"must be between {self._scale.minimum:g} and {self._scale.maximum:g}",
            )

        occurred_at = feedback.occurred_at or now
        if occurred_at.tzinfo is None:
            occurred_at = occurred_at.replace(tzinfo=timezone.utc)
        if occurred_at > now + FUTURE_TOLERANCE:
            raise FeedbackValidationError("occurred_at", "must not be in the future")
        return occurred_at

    async def record_feedback(
        self,
        feedback: FeedbackCreate,
        now: Optional[datetime] = None,
    ) -> Observation:
        """
        Validate feedback and append it to the store.

        Args:
            feedback: The submitted feedback
            now: Current time (defaults to UTC now)

        Returns:
            The stored observation

        Raises:
            FeedbackValidationError: if a field is out of range
        """
        now = now or datetime.now(timezone.utc)
        occurred_at = self._validate(feedback, now)

        stored = await self._store.create(Observation(
            owner=feedback.owner.strip(),
            occurred_at=occurred_at,
            duration=feedback.duration,
            temperature=feedback.temperature,
            heating_time=feedback.heating_time,
            satisfaction=feedback.satisfaction,
        ))

        logger.info(
            "feedback_recorded",
            record_id=stored.id,
            owner=stored.owner,
            heating_time=stored.heating_time,
            satisfaction=stored.satisfaction,
        )
        return stored

    async def list_history(self, owner: Optional[str] = None) -> List[Observation]:
        """Observations, newest first, optionally for one owner."""
        return await self._store.list_all(owner)

    async def delete_record(self, record_id: str) -> None:
        """
        Delete one observation.

        Raises:
            NotFoundError: if no observation has this id
        """
        if not await self._store.delete(record_id):
            raise NotFoundError(f"Record {record_id} not found")
        logger.info("record_deleted", record_id=record_id)

    async def clear_history(self) -> int:
        """Delete every observation."""
        deleted = await self._store.delete_all()
        logger.info("history_cleared", deleted=deleted)
        return deleted
