"""
Source Blender

Builds one estimate per source (the querying owner's history and the global
pool), then combines them with a smooth user weight that grows with the
amount of relevant personal history.
"""

import logging
import math
from collections import Counter
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Tuple

from ml.inference.anchors import apply_contradiction_decay, blend_toward_anchors
from ml.inference.config import PredictorConfig
from ml.inference.numeric import weighted_mean_std
from ml.inference.records import HeatingQuery, Observation, PredictionSource
from ml.inference.similarity import distance_weights, top_neighbors, weigh_observations
from ml.inference.targets import carry_to_query, implied_target, observation_key

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SourceEstimate:
    """
    Weighted estimate from one source.

    Attributes:
        value: Estimate in minutes after the anchor blend
        uncertainty: Weighted std-dev of the contributing targets
        neighbors: Number of contributing observations
        anchor_alpha: How far the estimate was pulled toward anchors
    """
    value: float
    uncertainty: Optional[float]
    neighbors: int
    anchor_alpha: float = 0.0


@dataclass(frozen=True)
class BlendResult:
    value: float
    source: PredictionSource
    user_weight: float
    uncertainty: Optional[float]
    neighbors: int


def default_heating_time(duration: float, temperature: float, config: PredictorConfig) -> float:
    """Cold-start formula: base + factor*duration + factor*temperature, floored."""
    value = (
        config.default_base_minutes
        + config.default_duration_factor * duration
        + config.default_temperature_factor * temperature
    )
    return max(config.min_minutes, value)


def source_estimate(
    query: HeatingQuery,
    observations: Sequence[Observation],
    config: PredictorConfig,
    *,
    is_user: bool,
    reference: datetime,
    counts: Counter,
    amplifications: Optional[Dict[object, float]] = None,
) -> Optional[SourceEstimate]:
    """
    Estimate the heating time from a single source.

    Args:
        query: Conditions being predicted
        observations: Observations from one source
        config: Engine configuration
        is_user: True for the querying owner's own history
        reference: Instant recency is measured back from
        counts: Bucket counts over the whole snapshot
        amplifications: Streak multipliers keyed by observation identity

    Returns:
        SourceEstimate, or None when the source carries no usable weight
    """
    if not observations:
        return None

    weighted = weigh_observations(
        query, observations, config, is_user=is_user, reference=reference, counts=counts
    )
    apply_contradiction_decay(weighted, observations, config)

    neighbours = top_neighbors(weighted, config.neighbors)
    if not neighbours:
        return None

    amplifications = amplifications or {}
    targets = []
    for item in neighbours:
        item.amplification = amplifications.get(observation_key(item.observation), 1.0)
        target = implied_target(item.observation, config, item.amplification)
        targets.append(carry_to_query(target, item.observation, query, config))

    weights = [w.weight for w in neighbours]
    overall, spread = weighted_mean_std(targets, weights)
    if overall is None:
        return None

    anchored = blend_toward_anchors(overall, targets, neighbours, config)
    logger.debug(
        "%s estimate %.2f from %d neighbours (anchor alpha %.2f)",
        "User" if is_user else "Global", anchored.estimate, len(neighbours), anchored.alpha,
    )
    return SourceEstimate(
        value=anchored.estimate,
        uncertainty=spread,
        neighbors=len(neighbours),
        anchor_alpha=anchored.alpha,
    )


def user_weight(query: HeatingQuery, user_observations: Sequence[Observation], config: PredictorConfig) -> float:
    """
    Share of the final estimate given to the owner's own history.

    1 - exp(-user_boost * sum(distance kernel) / saturation): zero without
    history, rising smoothly toward one as relevant history accumulates.
    """
    if not user_observations:
        return 0.0
    relevance = config.user_boost * float(distance_weights(query, user_observations, config).sum())
    return 1.0 - math.exp(-relevance / config.user_weight_saturation)


def blend(
    user: Optional[SourceEstimate],
    global_: Optional[SourceEstimate],
    weight: float,
) -> Optional[BlendResult]:
    """
    Combine the two source estimates.

    Falls back to whichever source exists; returns None when neither does.
    """
    if user is None and global_ is None:
        return None
    if user is None:
        return BlendResult(global_.value, PredictionSource.GLOBAL, 0.0, global_.uncertainty, global_.neighbors)
    if global_ is None:
        return BlendResult(user.value, PredictionSource.USER, 1.0, user.uncertainty, user.neighbors)

    value = weight * user.value + (1.0 - weight) * global_.value
    return BlendResult(
        value=value,
        source=PredictionSource.BLENDED,
        user_weight=weight,
        uncertainty=_blend_uncertainty(user.uncertainty, global_.uncertainty, weight),
        neighbors=user.neighbors + global_.neighbors,
    )


def estimate_sources(
    query: HeatingQuery,
    user_observations: Sequence[Observation],
    global_observations: Sequence[Observation],
    config: PredictorConfig,
    *,
    reference: datetime,
    counts: Counter,
    amplifications: Dict[object, float],
) -> Tuple[Optional[SourceEstimate], Optional[SourceEstimate], float]:
    """Per-source estimates plus the user weight for one query."""
    user = source_estimate(
        query, user_observations, config,
        is_user=True, reference=reference, counts=counts, amplifications=amplifications,
    )
    global_ = source_estimate(
        query, global_observations, config,
        is_user=False, reference=reference, counts=counts,
    )
    return user, global_, user_weight(query, user_observations, config)


def _blend_uncertainty(user: Optional[float], global_: Optional[float], weight: float) -> Optional[float]:
    parts: List[Tuple[float, float]] = []
    if user is not None:
        parts.append((weight, user))
    if global_ is not None:
        parts.append((1.0 - weight, global_))
    total = sum(w for w, _ in parts)
    if not parts or total <= 0:
        return None
    return math.sqrt(sum(w * s * s for w, s in parts) / total)
