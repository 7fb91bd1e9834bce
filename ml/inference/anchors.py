"""
Anchor Reinforcement

Anchors are observations rated (near-)perfect. They are confirmed-good
settings, so their implied targets pull the final estimate toward them
even when noisier evidence disagrees. An anchor that was re-attempted and
then rated cold loses weight, down to a floor.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

from ml.inference.config import PredictorConfig
from ml.inference.numeric import clamp, weighted_mean
from ml.inference.records import Observation, WeightedObservation
from ml.inference.similarity import as_utc, in_context

logger = logging.getLogger(__name__)

DECAY_BASE = 0.5
DECAY_PER_RETRY = 0.1
DECAY_FLOOR = 0.1
DECAY_CEILING = 1.0


@dataclass(frozen=True)
class AnchorBlend:
    """Result of blending an overall estimate toward the anchor-only mean."""
    estimate: float
    anchor_mean: Optional[float]
    alpha: float
    anchor_share: float


def retries_of(anchor: Observation, history: Sequence[Observation], config: PredictorConfig):
    """Later attempts by the same owner, same context and same heating time."""
    anchor_time = as_utc(anchor.occurred_at)
    return [
        obs for obs in history
        if obs.owner == anchor.owner
        and obs is not anchor
        and as_utc(obs.occurred_at) > anchor_time
        and abs(obs.heating_time - anchor.heating_time) <= config.anchor_retry_tolerance
        and in_context(obs, anchor.duration, anchor.temperature, config)
    ]


def contradiction_decay(
    anchor: Observation, history: Sequence[Observation], config: PredictorConfig
) -> float:
    """
    Weight multiplier for an anchor given what happened when it was retried.

    With at least anchor_min_retries later attempts rated cold on average,
    the multiplier is 0.5 - 0.5*drop - 0.1*count, clamped to [0.1, 1.0],
    where drop is the mean normalized shortfall. Otherwise 1.0.
    """
    retries = retries_of(anchor, history, config)
    if len(retries) < config.anchor_min_retries:
        return DECAY_CEILING

    mean_error = sum(config.scale.normalized_error(r.satisfaction) for r in retries) / len(retries)
    if mean_error >= 0:
        return DECAY_CEILING

    drop = -mean_error
    decay = DECAY_BASE - DECAY_BASE * drop - DECAY_PER_RETRY * len(retries)
    return clamp(decay, DECAY_FLOOR, DECAY_CEILING)


def apply_contradiction_decay(
    weighted: Sequence[WeightedObservation],
    history: Sequence[Observation],
    config: PredictorConfig,
) -> None:
    """Scale every anchor's weight in place by its contradiction decay."""
    for item in weighted:
        if not item.anchor:
            continue
        decay = contradiction_decay(item.observation, history, config)
        if decay < DECAY_CEILING:
            logger.debug(
                "Anchor %s contradicted by later attempts, decay=%.2f",
                item.observation.id, decay,
            )
        item.weight *= decay


def blend_toward_anchors(
    overall: float,
    targets: Sequence[float],
    weighted: Sequence[WeightedObservation],
    config: PredictorConfig,
) -> AnchorBlend:
    """
    Pull an overall estimate toward the anchor-only weighted mean.

    Args:
        overall: Weighted mean of all implied targets
        targets: Implied target per entry of weighted
        weighted: The neighbourhood, aligned with targets
        config: Engine configuration

    Returns:
        AnchorBlend with alpha = min(anchor_max_influence, anchor_blend * share)
    """
    total = sum(w.weight for w in weighted)
    anchor_weights = [w.weight if w.anchor else 0.0 for w in weighted]
    anchor_total = sum(anchor_weights)
    anchor_mean = weighted_mean(targets, anchor_weights)

    if anchor_mean is None or total <= 0:
        return AnchorBlend(estimate=overall, anchor_mean=None, alpha=0.0, anchor_share=0.0)

    share = anchor_total / total
    alpha = min(config.anchor_max_influence, config.anchor_blend * share)
    return AnchorBlend(
        estimate=(1.0 - alpha) * overall + alpha * anchor_mean,
        anchor_mean=anchor_mean,
        alpha=alpha,
        anchor_share=share,
    )
