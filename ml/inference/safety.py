"""
Safety & Rounding

Final guard rails applied to every estimate: an absolute clamp, a step
clamp toward the owner's newest observation that fades out with
distance from it, and a rounding policy that never silently snaps toward
the side the owner has been complaining about.
"""

import math
from dataclasses import dataclass
from typing import Optional, Sequence

from ml.inference.config import PredictorConfig, RoundingPolicy
from ml.inference.numeric import clamp, round_half_up
from ml.inference.records import HeatingQuery, Observation
from ml.inference.similarity import as_utc, distance_weights
from ml.inference.targets import carry_to_query


def clamp_absolute(value: float, config: PredictorConfig) -> float:
    return clamp(value, config.min_minutes, config.max_minutes)


@dataclass(frozen=True)
class StepReference:
    """
    What the step clamp holds an estimate to.

    Attributes:
        heating_time: The owner's newest heating time, carried to the query
        strength: Distance kernel between that observation and the query,
            1.0 under identical conditions and fading toward 0 with distance
    """
    heating_time: float
    strength: float


def step_reference(
    query: HeatingQuery, user_observations: Sequence[Observation], config: PredictorConfig
) -> Optional[StepReference]:
    """
    The owner's newest observation as seen from the query.

    Args:
        query: Conditions being predicted
        user_observations: The owner's history, in any order

    Returns:
        StepReference, or None without history
    """
    if not user_observations:
        return None
    latest = max(user_observations, key=lambda o: as_utc(o.occurred_at))
    return StepReference(
        heating_time=carry_to_query(latest.heating_time, latest, query, config),
        strength=float(distance_weights(query, [latest], config)[0]),
    )


def clamp_step(value: float, reference: Optional[StepReference], config: PredictorConfig) -> float:
    """
    Pull value toward ±step_cap_fraction of the reference.

    The pull is scaled by the reference's strength: full under the
    reference's own conditions, fading continuously as the query moves away.
    """
    if reference is None or reference.heating_time <= 0:
        return value
    low = reference.heating_time * (1.0 - config.step_cap_fraction)
    high = reference.heating_time * (1.0 + config.step_cap_fraction)
    return value + reference.strength * (clamp(value, low, high) - value)


def feedback_trend(
    context: Sequence[Observation],
    user_observations: Sequence[Observation],
    config: PredictorConfig,
) -> Optional[float]:
    """
    Mean normalized error of the owner's latest feedback.

    Prefers the latest rounding_trend_window in-context observations and
    falls back to the owner's latest observations overall.
    """
    recent = list(context[:config.rounding_trend_window])
    if not recent:
        newest_first = sorted(user_observations, key=lambda o: as_utc(o.occurred_at), reverse=True)
        recent = newest_first[:config.rounding_trend_window]
    if not recent:
        return None
    return sum(config.scale.normalized_error(o.satisfaction) for o in recent) / len(recent)


def round_estimate(value: float, trend: Optional[float], config: PredictorConfig) -> float:
    """
    Round value to rounding_increment under the configured policy.

    risk_averse rounds up after cold feedback, and after hot feedback rounds
    down only when the fractional part is at most hot_snap_fraction.
    Neutral or missing feedback rounds to nearest.
    """
    increment = config.rounding_increment
    if config.rounding_policy == RoundingPolicy.NEAREST or trend is None:
        return round_half_up(value, increment)

    # absorb float noise so whole values are not pushed a full step
    units = round(value / increment, 9)
    fraction = units - math.floor(units)

    if trend < -config.deadband:
        return math.ceil(units) * increment
    if trend > config.deadband:
        if fraction <= config.hot_snap_fraction:
            return math.floor(units) * increment
        return math.ceil(units) * increment
    return round_half_up(value, increment)


def finalize(value: float, trend: Optional[float], config: PredictorConfig) -> float:
    """Round, then clamp back into the absolute bounds."""
    return clamp_absolute(round_estimate(value, trend, config), config)
