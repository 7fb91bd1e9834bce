"""
Similarity Weighting

Assigns each historical observation a relevance weight for a query:

- Gaussian distance kernel on duration and temperature
- Exponential recency decay (half-life in days)
- Soft reliability penalty for ratings far from perfect
- Frequency dampening for over-represented (duration, temperature) buckets
- Source boost for the querying user's own observations
- Anchor boost for near-perfect ratings

Weights are combined in log space and normalized against the largest one,
so observations far from the query never underflow to exactly zero.
"""

import logging
import math
from collections import Counter
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Sequence, Tuple

import numpy as np

from ml.inference.config import PredictorConfig
from ml.inference.numeric import (
    LN2,
    LOG_WEIGHT_EPSILON,
    gaussian,
    log_gaussian,
    normalize_log_weights,
)
from ml.inference.records import HeatingQuery, Observation, WeightedObservation

logger = logging.getLogger(__name__)

BucketKey = Tuple[int, int]


def as_utc(moment: datetime) -> datetime:
    """Treat naive datetimes as UTC so mixed sources compare cleanly."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def reference_time(observations: Iterable[Observation]) -> Optional[datetime]:
    """Newest occurred_at in the snapshot, or None when it is empty."""
    newest = None
    for obs in observations:
        moment = as_utc(obs.occurred_at)
        if newest is None or moment > newest:
            newest = moment
    return newest


def bucket_key(obs: Observation, config: PredictorConfig) -> BucketKey:
    return (
        int(round(obs.duration / config.duration_bucket)),
        int(round(obs.temperature / config.temperature_bucket)),
    )


def bucket_counts(observations: Iterable[Observation], config: PredictorConfig) -> Counter:
    """Count observations per coarse (duration, temperature) bucket."""
    return Counter(bucket_key(obs, config) for obs in observations)


def is_anchor(obs: Observation, config: PredictorConfig) -> bool:
    """True when the rating is within anchor_epsilon of perfect."""
    return abs(config.scale.normalized_error(obs.satisfaction)) <= config.anchor_epsilon


def in_context(obs: Observation, duration: float, temperature: float, config: PredictorConfig) -> bool:
    """True when obs was recorded under conditions close to (duration, temperature)."""
    return (
        abs(obs.duration - duration) <= config.context_duration
        and abs(obs.temperature - temperature) <= config.context_temperature
    )


def distance_weights(
    query: HeatingQuery, observations: Sequence[Observation], config: PredictorConfig
) -> np.ndarray:
    """Plain Gaussian distance kernel, used for relevance counting."""
    if not observations:
        return np.zeros(0)
    durations = np.array([o.duration for o in observations], dtype=float)
    temperatures = np.array([o.temperature for o in observations], dtype=float)
    return (
        gaussian(query.duration - durations, config.sigma_duration)
        * gaussian(query.temperature - temperatures, config.sigma_temperature)
    )


def weigh_observations(
    query: HeatingQuery,
    observations: Sequence[Observation],
    config: PredictorConfig,
    *,
    is_user: bool,
    reference: datetime,
    counts: Counter,
) -> List[WeightedObservation]:
    """
    Compute relevance weights for one source (user or global).

    Args:
        query: The conditions being predicted
        observations: Observations from a single source
        config: Engine configuration
        is_user: Whether these belong to the querying user (source boost)
        reference: Instant recency is measured back from
        counts: Bucket counts over the whole snapshot

    Returns:
        One WeightedObservation per input, weights normalized so the largest
        is 1.0. All weights are zero when even the strongest raw weight is
        below WEIGHT_EPSILON, i.e. nothing lies within useful range.
    """
    if not observations:
        return []

    durations = np.array([o.duration for o in observations], dtype=float)
    temperatures = np.array([o.temperature for o in observations], dtype=float)
    errors = np.array(
        [config.scale.normalized_error(o.satisfaction) for o in observations], dtype=float
    )
    ages = np.array(
        [max(0.0, (reference - as_utc(o.occurred_at)).total_seconds() / 86400.0) for o in observations],
        dtype=float,
    )
    anchors = np.abs(errors) <= config.anchor_epsilon
    dampening = np.array(
        [counts.get(bucket_key(o, config), 1) for o in observations], dtype=float
    )

    log_w = (
        log_gaussian(query.duration - durations, config.sigma_duration)
        + log_gaussian(query.temperature - temperatures, config.sigma_temperature)
        - LN2 * ages / config.recency_half_life_days
        + log_gaussian(errors, config.reliability_sigma)
        - 0.5 * np.log(np.maximum(dampening, 1.0))
    )
    log_w = log_w + np.where(anchors, _safe_log(config.anchor_boost), 0.0)
    if is_user:
        log_w = log_w + _safe_log(config.user_boost)

    weights = normalize_log_weights(log_w, floor=LOG_WEIGHT_EPSILON)
    kernel = distance_weights(query, observations, config)

    weighted = [
        WeightedObservation(
            observation=obs,
            is_user=is_user,
            weight=float(weights[i]),
            distance_weight=float(kernel[i]),
            anchor=bool(anchors[i]),
        )
        for i, obs in enumerate(observations)
    ]
    logger.debug(
        "Weighted %d %s observations (%d anchors)",
        len(weighted), "user" if is_user else "global", int(anchors.sum()),
    )
    return weighted


def top_neighbors(weighted: Sequence[WeightedObservation], k: int) -> List[WeightedObservation]:
    """Keep the k highest-weighted observations with non-zero weight."""
    ranked = sorted(
        (w for w in weighted if w.weight > 0),
        key=lambda w: w.weight,
        reverse=True,
    )
    return ranked[:k]


def _safe_log(value: float) -> float:
    return math.log(value) if value > 0 else -math.inf
