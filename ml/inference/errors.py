"""
Prediction Errors

Exceptions raised by the heating-time prediction engine.

Sparse or degenerate data is never an error here: the engine falls back to
the default formula instead. Store failures are raised by the repository
layer and propagate through the predictors untouched.
"""

from typing import Optional


class PredictionError(Exception):
    """Base exception for the prediction engine"""

    def __init__(self, message: str, original_error: Optional[Exception] = None):
        self.message = message
        self.original_error = original_error
        super().__init__(self.message)


class QueryValidationError(PredictionError, ValueError):
    """Raised when a query field is missing or outside its physical bounds"""

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"{field}: {reason}")


class ConfigurationError(PredictionError, ValueError):
    """Raised when a PredictorConfig holds inconsistent values"""
    pass
