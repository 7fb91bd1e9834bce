"""
Heating-time prediction package.

Inference:
- Kernel-weighted nearest-neighbour engine over satisfaction feedback
- Interchangeable predictor strategies (kernel, baseline, A/B split)

Evaluation:
- Walk-forward replay of engine variants over recorded history
"""

__version__ = "0.1.0"

from .inference import (
    HeatingPrediction,
    HeatingQuery,
    HeatingTimeEngine,
    Observation,
    PredictorConfig,
    build_predictor,
)

__all__ = [
    'HeatingPrediction',
    'HeatingQuery',
    'HeatingTimeEngine',
    'Observation',
    'PredictorConfig',
    'build_predictor',
]
