"""
Heating Time Inference

Memory-based prediction of how long to pre-heat a water heater:
- Kernel-weighted nearest neighbours with recency decay
- Success-anchor reinforcement and stuck-pattern detection
- Per-user/global blending with safety-bounded rounding

Usage:
    from ml.inference import HeatingQuery, PredictorConfig, build_predictor

    predictor = build_predictor("kernel", store, PredictorConfig())
    prediction = await predictor.predict(HeatingQuery("alice", 15, 22))
"""

from ml.inference.config import PredictorConfig, RoundingPolicy, SatisfactionScale
from ml.inference.engine import HeatingTimeEngine, validate_query
from ml.inference.errors import ConfigurationError, PredictionError, QueryValidationError
from ml.inference.pattern_guard import StrategicOverride, detect_stuck_pattern
from ml.inference.predictor import (
    BaselinePredictor,
    KernelPredictor,
    Predictor,
    SplitPredictor,
    build_predictor,
)
from ml.inference.records import HeatingPrediction, HeatingQuery, Observation, PredictionSource

__all__ = [
    "PredictorConfig",
    "RoundingPolicy",
    "SatisfactionScale",
    "HeatingTimeEngine",
    "validate_query",
    "ConfigurationError",
    "PredictionError",
    "QueryValidationError",
    "StrategicOverride",
    "detect_stuck_pattern",
    "BaselinePredictor",
    "KernelPredictor",
    "Predictor",
    "SplitPredictor",
    "build_predictor",
    "HeatingPrediction",
    "HeatingQuery",
    "Observation",
    "PredictionSource",
]
