"""
Prediction Service

Turns a heating request into a query for the configured predictor.
"""

import structlog
from prometheus_client import Counter

from ml.inference.predictor import Predictor
from ml.inference.records import HeatingPrediction, HeatingQuery, PredictionSource
from models.observation import HeatingRequest

logger = structlog.get_logger()

PREDICTIONS_SERVED = Counter(
    "heating_predictions_total",
    "Heating-time predictions served",
    ["predictor", "source"],
)


class PredictionService:
    """Service for heating-time recommendations."""

    def __init__(self, predictor: Predictor) -> None:
        self._predictor = predictor

    @property
    def predictor_name(self) -> str:
        return self._predictor.name

    async def calculate(self, request: HeatingRequest) -> HeatingPrediction:
        """
        Recommend a heating time for the request.

        Raises:
            QueryValidationError: if the request is out of range
            RepositoryError: if history cannot be read
        """
        query = HeatingQuery(
            owner=request.owner,
            duration=request.duration,
            temperature=request.temperature,
        )
        prediction = await self._predictor.predict(query)
        PREDICTIONS_SERVED.labels(
            predictor=self.predictor_name, source=prediction.source.value
        ).inc()

        if prediction.source == PredictionSource.DEFAULT:
            logger.info(
                "prediction_fallback_default",
                owner=query.owner,
                predictor=self.predictor_name,
            )

        logger.info(
            "prediction_served",
            owner=query.owner,
            predictor=self.predictor_name,
            source=prediction.source.value,
            user_weight=round(prediction.user_weight, 3),
            raw_value=round(prediction.raw_value, 2),
            heating_time=prediction.heating_time,
        )
        return prediction
