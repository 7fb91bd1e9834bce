"""
Heating Time Predictors

Interchangeable strategies behind one capability, predict(query):

- KernelPredictor: the full kernel-weighted engine
- BaselinePredictor: the cold-start formula only, a control arm
- SplitPredictor: deterministic A/B routing by owner

Usage:
    predictor = build_predictor("kernel", store, PredictorConfig())
    prediction = await predictor.predict(HeatingQuery("alice", 15, 22))
"""

import hashlib
import logging
from abc import ABC, abstractmethod
from typing import List, Optional, Protocol

from ml.inference.config import PredictorConfig
from ml.inference.engine import HeatingTimeEngine, validate_query
from ml.inference.errors import ConfigurationError
from ml.inference.records import HeatingPrediction, HeatingQuery, Observation

logger = logging.getLogger(__name__)

DEFAULT_USER_LIMIT = 400
DEFAULT_GLOBAL_LIMIT = 1200


class ObservationSource(Protocol):
    """Read side of an observation store, as the predictors need it."""

    async def get_by_owner(self, owner: str, limit: int) -> List[Observation]:
        ...

    async def get_global_excluding(self, owner: str, limit: int) -> List[Observation]:
        ...


class Predictor(ABC):
    """Base class for heating-time prediction strategies."""

    name: str = "predictor"

    def __init__(self, config: Optional[PredictorConfig] = None):
        self.config = config or PredictorConfig()

    @abstractmethod
    async def predict(self, query: HeatingQuery) -> HeatingPrediction:
        """
        Recommend a heating time.

        Raises:
            QueryValidationError: if the query is out of range
            RepositoryError: if the observation store fails
        """
        pass


class KernelPredictor(Predictor):
    """
    Full engine over the owner's history and the global pool.

    Args:
        store: Observation source to fetch history from
        config: Engine configuration
        user_limit: Most recent owner observations to fetch
        global_limit: Most recent global observations to fetch
    """

    name = "kernel"

    def __init__(
        self,
        store: ObservationSource,
        config: Optional[PredictorConfig] = None,
        user_limit: int = DEFAULT_USER_LIMIT,
        global_limit: int = DEFAULT_GLOBAL_LIMIT,
    ):
        super().__init__(config)
        self.store = store
        self.user_limit = user_limit
        self.global_limit = global_limit
        self.engine = HeatingTimeEngine(self.config)

    async def predict(self, query: HeatingQuery) -> HeatingPrediction:
        validate_query(query, self.config)

        user_observations = await self.store.get_by_owner(query.owner, self.user_limit)
        global_observations = await self.store.get_global_excluding(query.owner, self.global_limit)
        logger.debug(
            "Fetched %d user and %d global observations for %s",
            len(user_observations), len(global_observations), query.owner,
        )
        return self.engine.estimate(query, user_observations, global_observations)


class BaselinePredictor(Predictor):
    """Cold-start formula for every query, ignoring history."""

    name = "baseline"

    async def predict(self, query: HeatingQuery) -> HeatingPrediction:
        validate_query(query, self.config)
        return HeatingTimeEngine(self.config).default_prediction(query)


class SplitPredictor(Predictor):
    """
    Route each owner to one of two predictors by a stable hash.

    The same owner always lands in the same arm, so a comparison between
    variants is a configuration choice rather than a code fork.

    Args:
        arm_a: Predictor for owners outside the share
        arm_b: Predictor for owners inside the share
        share_b: Fraction of owners routed to arm_b, in [0, 1]
    """

    name = "split"

    def __init__(self, arm_a: Predictor, arm_b: Predictor, share_b: float = 0.5):
        if not 0.0 <= share_b <= 1.0:
            raise ConfigurationError("Split share must be between 0 and 1")
        super().__init__(arm_a.config)
        self.arm_a = arm_a
        self.arm_b = arm_b
        self.share_b = share_b

    @staticmethod
    def owner_bucket(owner: str) -> float:
        """Stable position of owner in [0, 1)."""
        digest = hashlib.sha256(owner.encode("utf-8")).digest()
        return int.from_bytes(digest[:8], "big") / 2 ** 64

    def arm_for(self, owner: str) -> Predictor:
        return self.arm_b if self.owner_bucket(owner) < self.share_b else self.arm_a

    async def predict(self, query: HeatingQuery) -> HeatingPrediction:
        arm = self.arm_for(query.owner)
        logger.debug("Owner %s routed to %s", query.owner, arm.name)
        return await arm.predict(query)


PREDICTOR_NAMES = ("kernel", "baseline", "split")


def build_predictor(
    name: str,
    store: ObservationSource,
    config: Optional[PredictorConfig] = None,
    split_share: float = 0.5,
    user_limit: int = DEFAULT_USER_LIMIT,
    global_limit: int = DEFAULT_GLOBAL_LIMIT,
) -> Predictor:
    """
    Create a predictor by name.

    Args:
        name: "kernel", "baseline" or "split" (kernel vs baseline)
        store: Observation source for history-based predictors
        config: Engine configuration
        split_share: Share of owners sent to the baseline arm when splitting

    Raises:
        ConfigurationError: for an unknown name
    """
    config = config or PredictorConfig()
    key = name.strip().lower()

    if key == "kernel":
        return KernelPredictor(store, config, user_limit=user_limit, global_limit=global_limit)
    if key == "baseline":
        return BaselinePredictor(config)
    if key == "split":
        return SplitPredictor(
            KernelPredictor(store, config, user_limit=user_limit, global_limit=global_limit),
            BaselinePredictor(config),
            share_b=split_share,
        )
    raise ConfigurationError(
        f"Unknown predictor '{name}', expected one of {', '.join(PREDICTOR_NAMES)}"
    )
