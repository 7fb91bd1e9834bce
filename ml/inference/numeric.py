"""
Numeric helpers shared by the engine stages.
"""

import math
from typing import Optional, Sequence, Tuple

import numpy as np

LN2 = math.log(2.0)

# Weights at or below this are treated as no evidence at all
WEIGHT_EPSILON = 1e-12
LOG_WEIGHT_EPSILON = math.log(WEIGHT_EPSILON)


def gaussian(delta, sigma: float):
    """Unnormalized Gaussian falloff exp(-0.5 * (delta/sigma)^2)."""
    if sigma <= 0:
        return np.zeros_like(np.asarray(delta, dtype=float))
    x = np.asarray(delta, dtype=float) / sigma
    return np.exp(-0.5 * x * x)


def log_gaussian(delta, sigma: float):
    """Log of gaussian(); stays finite where gaussian() underflows."""
    x = np.asarray(delta, dtype=float) / sigma
    return -0.5 * x * x


def half_life_decay(days, half_life: float):
    """exp(-ln2 * days / half_life); 1.0 everywhere when half_life <= 0."""
    days = np.asarray(days, dtype=float)
    if half_life <= 0:
        return np.ones_like(days)
    return np.exp(-LN2 * days / half_life)


def clamp(value: float, lo: float, hi: float) -> float:
    if value < lo:
        return lo
    if value > hi:
        return hi
    return value


def weighted_mean(values: Sequence[float], weights: Sequence[float]) -> Optional[float]:
    """Weighted mean, or None when the weights carry no evidence."""
    v = np.asarray(values, dtype=float)
    w = np.asarray(weights, dtype=float)
    if v.size == 0:
        return None
    total = float(np.sum(w))
    if not math.isfinite(total) or total <= WEIGHT_EPSILON:
        return None
    return float(np.dot(v, w) / total)


def weighted_mean_std(
    values: Sequence[float], weights: Sequence[float]
) -> Tuple[Optional[float], Optional[float]]:
    """Weighted mean and weighted population standard deviation."""
    mean = weighted_mean(values, weights)
    if mean is None:
        return None, None
    v = np.asarray(values, dtype=float)
    w = np.asarray(weights, dtype=float)
    variance = float(np.dot(w, (v - mean) ** 2) / np.sum(w))
    return mean, math.sqrt(max(variance, 0.0))


def normalize_log_weights(
    log_weights: Sequence[float], floor: Optional[float] = None
) -> np.ndarray:
    """
    Exponentiate log-weights relative to the largest one.

    The largest weight becomes 1.0, so weights far below it keep their
    relative shape instead of underflowing to zeros. When even the largest
    log-weight is below floor the set carries no evidence and every weight
    is zero.
    """
    lw = np.asarray(log_weights, dtype=float)
    if lw.size == 0:
        return lw
    finite = np.isfinite(lw)
    if not finite.any():
        return np.zeros_like(lw)
    peak = np.max(lw[finite])
    if floor is not None and peak < floor:
        return np.zeros_like(lw)
    out = np.zeros_like(lw)
    out[finite] = np.exp(lw[finite] - peak)
    return out


def round_half_up(value: float, increment: float = 1.0) -> float:
    """Round to the nearest increment, halves away from zero for positives."""
    return math.floor(value / increment + 0.5) * increment
