"""
Predictor Configuration

Every kernel width, boost, cap and threshold used by the heating-time engine
lives in one PredictorConfig value, including the satisfaction scale.
"""

from dataclasses import asdict, dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Tuple

from ml.inference.errors import ConfigurationError


class RoundingPolicy(str, Enum):
    """How the final estimate is rounded for display."""
    NEAREST = "nearest"
    RISK_AVERSE = "risk_averse"


@dataclass(frozen=True)
class SatisfactionScale:
    """
    Satisfaction rating scale.

    Attributes:
        minimum: Lowest allowed score ("much too cold")
        maximum: Highest allowed score ("much too hot")
        perfect: The score meaning "exactly right"
    """
    minimum: float = 1.0
    maximum: float = 100.0
    perfect: float = 50.0

    def __post_init__(self):
        if self.minimum >= self.maximum:
            raise ConfigurationError("Satisfaction minimum must be below maximum")
        if not self.minimum <= self.perfect <= self.maximum:
            raise ConfigurationError("Perfect satisfaction must lie within the scale")

    @property
    def half_range(self) -> float:
        """Largest distance between perfect and either end of the scale."""
        return max(self.perfect - self.minimum, self.maximum - self.perfect)

    def contains(self, score: float) -> bool:
        return self.minimum <= score <= self.maximum

    def normalized_error(self, score: float) -> float:
        """
        Signed distance from perfect, scaled so the farther end is ±1.

        Negative means the user was cold, positive means too hot.
        """
        return (score - self.perfect) / self.half_range


@dataclass(frozen=True)
class PredictorConfig:
    """
    Tunables for the heating-time engine.

    Satisfaction thresholds (epsilons, deadbands, error cut-offs) are in
    normalized units, see SatisfactionScale.normalized_error.
    """

    scale: SatisfactionScale = field(default_factory=SatisfactionScale)

    # Similarity kernel
    sigma_duration: float = 4.0       # minutes
    sigma_temperature: float = 3.0    # degrees C
    recency_half_life_days: float = 5.0
    reliability_sigma: float = 0.44
    duration_bucket: float = 1.0
    temperature_bucket: float = 1.0
    neighbors: int = 25

    # Source balance
    user_boost: float = 2.0
    user_weight_saturation: float = 5.0

    # Anchors
    anchor_epsilon: float = 0.04
    anchor_boost: float = 2.0
    anchor_blend: float = 1.0
    anchor_max_influence: float = 0.7
    anchor_retry_tolerance: float = 0.2   # minutes
    anchor_min_retries: int = 2

    # Implied targets
    deadband: float = 0.02
    # (|error| reached, fraction) steps, ascending; 25% cut at satisfaction 85
    correction_ladder: Tuple[Tuple[float, float], ...] = (
        (0.1, 0.03),
        (0.2, 0.08),
        (0.3, 0.13),
        (0.5, 0.17),
        (0.6, 0.20),
        (0.7, 0.25),
    )
    min_correction: float = 0.01
    overshoot_threshold: float = 0.6
    overshoot_rate: float = 0.05
    overshoot_cap: float = 0.05
    amplify_min_streak: int = 2
    amplify_max: float = 3.0
    max_amplified_correction: float = 0.6

    # Context radius, in sigmas, for "same conditions" lookups
    context_sigmas: float = 2.0

    # Pattern guard
    pattern_window: int = 4
    pattern_min_observations: int = 3
    pattern_max_spread: float = 0.15
    pattern_poor_error: float = 0.1
    pattern_poor_share: float = 0.75
    pattern_severe_error: float = 0.5
    pattern_cold_jump: float = 0.30
    pattern_severe_cold_jump: float = 0.50
    pattern_hot_jump: float = 0.15
    pattern_severe_hot_jump: float = 0.25

    # Trend used to carry a neighbour's target over to the query conditions
    duration_slope: float = 0.3
    temperature_slope: float = -0.1

    # Default formula (cold start)
    default_base_minutes: float = 8.0
    default_duration_factor: float = 0.3
    default_temperature_factor: float = -0.1

    # Safety
    min_minutes: float = 5.0
    max_minutes: float = 120.0
    step_cap_fraction: float = 0.35

    # Rounding
    rounding_policy: RoundingPolicy = RoundingPolicy.RISK_AVERSE
    rounding_increment: float = 1.0
    rounding_trend_window: int = 3
    hot_snap_fraction: float = 0.25

    # Query bounds
    min_duration: float = 1.0
    max_duration: float = 60.0
    min_temperature: float = -50.0
    max_temperature: float = 50.0

    def __post_init__(self):
        """Validate configuration."""
        try:
            object.__setattr__(self, "rounding_policy", RoundingPolicy(self.rounding_policy))
        except ValueError:
            raise ConfigurationError(f"Unknown rounding policy: {self.rounding_policy}")

        if self.sigma_duration <= 0 or self.sigma_temperature <= 0:
            raise ConfigurationError("Kernel sigmas must be positive")
        if self.recency_half_life_days <= 0:
            raise ConfigurationError("Recency half-life must be positive")
        if self.reliability_sigma <= 0:
            raise ConfigurationError("Reliability sigma must be positive")
        if self.duration_bucket <= 0 or self.temperature_bucket <= 0:
            raise ConfigurationError("Frequency buckets must be positive")
        if self.neighbors < 1:
            raise ConfigurationError("Must use at least 1 neighbour")
        if self.user_boost < 0 or self.anchor_boost < 0:
            raise ConfigurationError("Boosts must not be negative")
        if self.user_weight_saturation <= 0:
            raise ConfigurationError("User weight saturation must be positive")
        if not 0 <= self.anchor_max_influence <= 1:
            raise ConfigurationError("Anchor influence must be between 0 and 1")
        if not 0 < self.step_cap_fraction < 1:
            raise ConfigurationError("Step cap fraction must be between 0 and 1")
        if not 0 < self.min_minutes < self.max_minutes:
            raise ConfigurationError("Heating bounds must satisfy 0 < min < max")
        if self.rounding_increment <= 0:
            raise ConfigurationError("Rounding increment must be positive")
        self._validate_ladder()
        if self.max_amplified_correction >= 1:
            raise ConfigurationError("Amplified correction must stay below 100%")
        if self.pattern_min_observations < 2 or self.pattern_window < self.pattern_min_observations:
            raise ConfigurationError("Pattern window must hold at least the minimum observations")
        if self.duration_slope < 0 or self.temperature_slope > 0:
            raise ConfigurationError("Trend slopes must rise with duration and fall with temperature")
        if self.min_duration >= self.max_duration or self.min_temperature >= self.max_temperature:
            raise ConfigurationError("Query bounds must satisfy min < max")

    def _validate_ladder(self) -> None:
        try:
            ladder = tuple((float(t), float(f)) for t, f in self.correction_ladder)
        except (TypeError, ValueError):
            raise ConfigurationError("Correction ladder must hold (error, fraction) pairs")
        if not ladder:
            raise ConfigurationError("Correction ladder must not be empty")
        thresholds = [t for t, _ in ladder]
        fractions = [f for _, f in ladder]
        if thresholds[0] <= self.deadband or any(b <= a for a, b in zip(thresholds, thresholds[1:])):
            raise ConfigurationError("Ladder errors must rise strictly from above the deadband")
        if any(b < a for a, b in zip(fractions, fractions[1:])):
            raise ConfigurationError("Ladder fractions must not decrease")
        if not 0 <= self.min_correction <= fractions[0] or fractions[-1] >= 1:
            raise ConfigurationError("Correction fractions must satisfy 0 <= min <= ladder < 1")
        object.__setattr__(self, "correction_ladder", ladder)

    @property
    def max_correction(self) -> float:
        """Largest single-observation correction the ladder allows."""
        return self.correction_ladder[-1][1]

    @property
    def context_duration(self) -> float:
        """Largest duration difference that still counts as the same context."""
        return self.sigma_duration * self.context_sigmas

    @property
    def context_temperature(self) -> float:
        """Largest temperature difference that still counts as the same context."""
        return self.sigma_temperature * self.context_sigmas

    def with_overrides(self, **overrides: Any) -> "PredictorConfig":
        """Return a copy with the given fields replaced (None values ignored)."""
        values = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **values)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        data = asdict(self)
        data["rounding_policy"] = self.rounding_policy.value
        return data
