"""
Heating Records

Plain data types shared by the engine stages and the predictor strategies.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class Observation:
    """
    One recorded shower: conditions, the heating time used, and how it felt.

    Attributes:
        owner: User who produced the observation
        occurred_at: When the shower happened (timezone-aware)
        duration: Shower length in minutes
        temperature: Ambient temperature in degrees C
        heating_time: Minutes the heater actually ran
        satisfaction: Rating on the configured SatisfactionScale
        id: Store identifier, if persisted
    """
    owner: str
    occurred_at: datetime
    duration: float
    temperature: float
    heating_time: float
    satisfaction: float
    id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-friendly dictionary."""
        return {
            "id": self.id,
            "owner": self.owner,
            "occurred_at": self.occurred_at.isoformat(),
            "duration": self.duration,
            "temperature": self.temperature,
            "heating_time": self.heating_time,
            "satisfaction": self.satisfaction,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Observation":
        occurred_at = data["occurred_at"]
        if isinstance(occurred_at, str):
            occurred_at = datetime.fromisoformat(occurred_at)
        return cls(
            id=data.get("id"),
            owner=data["owner"],
            occurred_at=occurred_at,
            duration=float(data["duration"]),
            temperature=float(data["temperature"]),
            heating_time=float(data["heating_time"]),
            satisfaction=float(data["satisfaction"]),
        )


@dataclass(frozen=True)
class HeatingQuery:
    """Conditions for which a heating time is requested."""
    owner: str
    duration: float
    temperature: float


class PredictionSource(str, Enum):
    """Which path produced a prediction."""
    BLENDED = "blended"
    USER = "user"
    GLOBAL = "global"
    STRATEGIC_OVERRIDE = "strategic_override"
    DEFAULT = "default"


@dataclass(frozen=True)
class HeatingPrediction:
    """
    Recommended heating time.

    Attributes:
        heating_time: Rounded recommendation shown to the user
        raw_value: Estimate before rounding (after clamping)
        uncertainty: Weighted std-dev of the neighbourhood's implied targets
        source: Which path produced the value
        user_weight: Share given to the owner's own history
        neighbors: Number of observations that contributed
    """
    heating_time: float
    raw_value: float
    uncertainty: Optional[float] = None
    source: PredictionSource = PredictionSource.DEFAULT
    user_weight: float = 0.0
    neighbors: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "heating_time": self.heating_time,
            "raw_value": self.raw_value,
            "uncertainty": self.uncertainty,
            "source": self.source.value,
            "user_weight": self.user_weight,
            "neighbors": self.neighbors,
        }


@dataclass
class WeightedObservation:
    """An observation together with its relevance weight for one query."""
    observation: Observation
    is_user: bool
    weight: float = 0.0
    distance_weight: float = 0.0
    anchor: bool = False
    amplification: float = 1.0
