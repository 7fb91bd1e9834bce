"""
Walk-forward Replay

Evaluates heating-time engines offline against a recorded history.

Each observation is replayed in time order: the engine predicts for its
owner and conditions using only what was recorded before it, and the
prediction is scored against the observation's implied target (the time
that, in hindsight, should have been used). Several engine configurations
can be replayed over the same history to compare variants before routing
real owners to them.
"""

import logging
import math
from dataclasses import asdict, dataclass, field
from typing import Dict, List, Mapping, Sequence

import numpy as np

from ml.inference.engine import HeatingTimeEngine
from ml.inference.errors import QueryValidationError
from ml.inference.records import HeatingQuery, Observation
from ml.inference.similarity import as_utc
from ml.inference.targets import implied_target

logger = logging.getLogger(__name__)


@dataclass
class ReplayConfig:
    """Configuration for a walk-forward replay."""

    # Observations recorded before the first scored one
    warmup: int = 3

    # A prediction this close to the implied target counts as a hit
    tolerance_minutes: float = 1.0

    def __post_init__(self):
        if self.warmup < 0:
            raise ValueError("warmup must not be negative")
        if self.tolerance_minutes < 0:
            raise ValueError("tolerance_minutes must not be negative")


@dataclass
class ReplayResult:
    """Scores for one engine over one history."""

    name: str
    n_samples: int = 0
    mae: float = float("nan")
    rmse: float = float("nan")
    bias: float = float("nan")
    hit_rate: float = float("nan")
    sources: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> Dict:
        return asdict(self)

    def __str__(self) -> str:
        return (
            f"{self.name}: n={self.n_samples} MAE={self.mae:.2f} RMSE={self.rmse:.2f} "
            f"bias={self.bias:+.2f} hits={self.hit_rate:.1%}"
        )


def replay_engine(
    engine: HeatingTimeEngine,
    observations: Sequence[Observation],
    config: ReplayConfig = None,
    name: str = "engine",
) -> ReplayResult:
    """
    Replay one engine over a history.

    Args:
        engine: Engine to evaluate
        observations: Recorded history, any order
        config: Replay configuration
        name: Label for the result

    Returns:
        ReplayResult; metrics are NaN when nothing was scored
    """
    config = config or ReplayConfig()
    ordered = sorted(observations, key=lambda o: as_utc(o.occurred_at))

    predicted: List[float] = []
    targets: List[float] = []
    sources: Dict[str, int] = {}

    for i in range(config.warmup, len(ordered)):
        current = ordered[i]
        past = ordered[:i]
        query = HeatingQuery(current.owner, current.duration, current.temperature)
        try:
            prediction = engine.estimate(
                query,
                [o for o in past if o.owner == current.owner],
                [o for o in past if o.owner != current.owner],
            )
        except QueryValidationError as e:
            logger.debug("Skipping observation %s: %s", current.id, e)
            continue

        predicted.append(prediction.heating_time)
        targets.append(implied_target(current, engine.config))
        sources[prediction.source.value] = sources.get(prediction.source.value, 0) + 1

    result = ReplayResult(name=name, n_samples=len(predicted), sources=sources)
    if not predicted:
        logger.warning("Replay of %s scored no observations", name)
        return result

    errors = np.asarray(predicted, dtype=float) - np.asarray(targets, dtype=float)
    result.mae = float(np.mean(np.abs(errors)))
    result.rmse = float(math.sqrt(np.mean(errors ** 2)))
    result.bias = float(np.mean(errors))
    result.hit_rate = float(np.mean(np.abs(errors) <= config.tolerance_minutes))

    logger.info("Replay %s", result)
    return result


def compare_engines(
    engines: Mapping[str, HeatingTimeEngine],
    observations: Sequence[Observation],
    config: ReplayConfig = None,
) -> List[ReplayResult]:
    """Replay several engines over the same history, best MAE first."""
    results = [
        replay_engine(engine, observations, config, name=name)
        for name, engine in engines.items()
    ]
    return sorted(results, key=lambda r: (math.isnan(r.mae), r.mae))
