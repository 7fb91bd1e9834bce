"""
Pattern Guard

Detects a stuck pattern: the owner keeps using roughly the same heating
time under the same conditions and keeps rating it poorly on the same side.
Small incremental corrections can oscillate around such a value forever,
so a detected pattern is answered with a deliberate larger jump from the
recent mean instead of the blended estimate.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np

from ml.inference.config import PredictorConfig
from ml.inference.records import Observation

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StrategicOverride:
    """
    A corrective jump issued in place of the blended estimate.

    Attributes:
        heating_time: Recent mean heating time times the jump factor
        recent_mean: Mean heating time of the inspected window
        mean_error: Mean normalized satisfaction error of the window
        jump: Signed fractional jump that was applied (+0.5 = 50% longer)
        window: Number of observations inspected
    """
    heating_time: float
    recent_mean: float
    mean_error: float
    jump: float
    window: int

    @property
    def direction(self) -> str:
        return "increase" if self.jump > 0 else "decrease"


def jump_for(side: int, mean_error: float, config: PredictorConfig) -> float:
    """Signed jump for a stuck window, larger when the mean error is severe."""
    if side < 0:
        if mean_error <= -config.pattern_severe_error:
            return config.pattern_severe_cold_jump
        return config.pattern_cold_jump
    if mean_error >= config.pattern_severe_error:
        return -config.pattern_severe_hot_jump
    return -config.pattern_hot_jump


def detect_stuck_pattern(
    recent: Sequence[Observation], config: PredictorConfig
) -> Optional[StrategicOverride]:
    """
    Inspect the owner's most recent in-context observations for a stuck pattern.

    Args:
        recent: Observations in the query context, newest first
        config: Engine configuration

    Returns:
        StrategicOverride when the window is clustered and persistently poor
        on one side, otherwise None
    """
    window = list(recent[:config.pattern_window])
    if len(window) < config.pattern_min_observations:
        return None

    heating = np.array([o.heating_time for o in window], dtype=float)
    errors = np.array([config.scale.normalized_error(o.satisfaction) for o in window], dtype=float)

    mean_heating = float(heating.mean())
    spread = float(np.sqrt(heating.var()))
    if mean_heating <= 0 or spread > config.pattern_max_spread * mean_heating:
        return None

    if np.any(np.abs(errors) <= config.anchor_epsilon):
        return None

    cold = int(np.sum(errors <= -config.pattern_poor_error))
    hot = int(np.sum(errors >= config.pattern_poor_error))
    if cold and hot:
        return None

    poor = cold or hot
    if poor / len(window) < config.pattern_poor_share:
        return None

    side = -1 if cold else 1
    mean_error = float(errors.mean())
    jump = jump_for(side, mean_error, config)

    override = StrategicOverride(
        heating_time=mean_heating * (1.0 + jump),
        recent_mean=mean_heating,
        mean_error=mean_error,
        jump=jump,
        window=len(window),
    )
    logger.info(
        "Stuck pattern over %d observations (mean %.1f min, error %.2f), jumping %+.0f%%",
        override.window, mean_heating, mean_error, jump * 100,
    )
    return override
