"""
Heating Time Engine

Pure, stateless orchestration of the prediction stages:

    validate -> weigh -> targets/anchors -> pattern guard
             -> blend -> safety & rounding

The engine recomputes everything from the observation snapshot it is
handed; it never reads a store and keeps no state between calls.
"""

import logging
from datetime import datetime
from typing import Optional, Sequence

from ml.inference.blender import blend, default_heating_time, estimate_sources
from ml.inference.config import PredictorConfig
from ml.inference.errors import QueryValidationError
from ml.inference.pattern_guard import detect_stuck_pattern
from ml.inference.records import HeatingPrediction, HeatingQuery, Observation, PredictionSource
from ml.inference.safety import (
    clamp_absolute,
    clamp_step,
    feedback_trend,
    finalize,
    step_reference,
)
from ml.inference.similarity import as_utc, bucket_counts, reference_time
from ml.inference.targets import context_history, streak_amplifications

logger = logging.getLogger(__name__)


def validate_query(query: HeatingQuery, config: PredictorConfig) -> None:
    """
    Reject out-of-range queries before any work is done.

    Raises:
        QueryValidationError: if owner, duration or temperature is invalid
    """
    if not query.owner or not str(query.owner).strip():
        raise QueryValidationError("owner", "must not be empty")
    if not config.min_duration <= query.duration <= config.max_duration:
        raise QueryValidationError(
            "duration",
            f"must be between {config.min_duration:g} and {config.max_duration:g} minutes",
        )
    if not config.min_temperature <= query.temperature <= config.max_temperature:
        raise QueryValidationError(
            "temperature",
            f"must be between {config.min_temperature:g} and {config.max_temperature:g} degrees",
        )


class HeatingTimeEngine:
    """
    Memory-based heating-time estimator.

    Args:
        config: Engine configuration (defaults to PredictorConfig())

    Example:
        engine = HeatingTimeEngine()
        prediction = engine.estimate(query, user_observations, global_observations)
    """

    def __init__(self, config: Optional[PredictorConfig] = None):
        self.config = config or PredictorConfig()

    def default_prediction(self, query: HeatingQuery) -> HeatingPrediction:
        """Cold-start prediction, returned exactly as the formula gives it."""
        value = default_heating_time(query.duration, query.temperature, self.config)
        return HeatingPrediction(heating_time=value, raw_value=value, source=PredictionSource.DEFAULT)

    def estimate(
        self,
        query: HeatingQuery,
        user_observations: Sequence[Observation],
        global_observations: Sequence[Observation],
        now: Optional[datetime] = None,
    ) -> HeatingPrediction:
        """
        Recommend a heating time for query.

        Args:
            query: Owner and conditions to predict for
            user_observations: The owner's own history
            global_observations: History of every other owner
            now: Instant recency is measured from; defaults to the newest
                observation so repeated calls on one snapshot agree

        Returns:
            HeatingPrediction within [min_minutes, max_minutes]

        Raises:
            QueryValidationError: if the query is out of range
        """
        config = self.config
        validate_query(query, config)

        user_observations = [o for o in user_observations if o.owner == query.owner]
        global_observations = [o for o in global_observations if o.owner != query.owner]
        snapshot = user_observations + global_observations

        if not snapshot:
            logger.info("No history for owner %s, using default formula", query.owner)
            return self.default_prediction(query)

        reference = as_utc(now) if now is not None else reference_time(snapshot)
        context = context_history(query, user_observations, config)
        trend = feedback_trend(context, user_observations, config)

        override = detect_stuck_pattern(context, config)
        if override is not None:
            raw = clamp_absolute(override.heating_time, config)
            return HeatingPrediction(
                heating_time=finalize(raw, trend, config),
                raw_value=raw,
                source=PredictionSource.STRATEGIC_OVERRIDE,
                user_weight=1.0,
                neighbors=override.window,
            )

        user, global_, weight = estimate_sources(
            query,
            user_observations,
            global_observations,
            config,
            reference=reference,
            counts=bucket_counts(snapshot, config),
            amplifications=streak_amplifications(query, user_observations, config),
        )
        blended = blend(user, global_, weight)
        if blended is None:
            logger.info("No usable weight for owner %s, using default formula", query.owner)
            return self.default_prediction(query)

        raw = clamp_absolute(blended.value, config)
        step = step_reference(query, user_observations, config)
        raw = clamp_absolute(clamp_step(raw, step, config), config)

        prediction = HeatingPrediction(
            heating_time=finalize(raw, trend, config),
            raw_value=raw,
            uncertainty=blended.uncertainty,
            source=blended.source,
            user_weight=blended.user_weight,
            neighbors=blended.neighbors,
        )
        logger.debug(
            "Estimated %.2f min (%s, user weight %.2f) for owner %s",
            prediction.raw_value, prediction.source.value, prediction.user_weight, query.owner,
        )
        return prediction
