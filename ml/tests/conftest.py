"""
Pytest Configuration and Fixtures for Heating-Time Engine Tests

Provides shared fixtures for:
- Engine configuration
- Observation factories
- An in-memory observation source for predictor tests
"""

import os
import sys
from datetime import datetime, timedelta, timezone
from typing import List

import pytest

# Add repository root to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))

from ml.inference.config import PredictorConfig
from ml.inference.records import HeatingQuery, Observation


BASE_TIME = datetime(2024, 6, 1, 7, 0, tzinfo=timezone.utc)


# ============================================================================
# Configuration Fixtures
# ============================================================================


@pytest.fixture
def config() -> PredictorConfig:
    """Default engine configuration."""
    return PredictorConfig()


@pytest.fixture
def nearest_config() -> PredictorConfig:
    """Configuration that rounds to nearest regardless of feedback."""
    return PredictorConfig(rounding_policy="nearest")


# ============================================================================
# Observation Fixtures
# ============================================================================


def make_observation(
    heating_time: float,
    satisfaction: float,
    owner: str = "alice",
    duration: float = 15.0,
    temperature: float = 22.0,
    day: float = 0.0,
    id: str = None,
) -> Observation:
    """Build an observation `day` days after BASE_TIME."""
    return Observation(
        id=id,
        owner=owner,
        occurred_at=BASE_TIME + timedelta(days=day),
        duration=duration,
        temperature=temperature,
        heating_time=heating_time,
        satisfaction=satisfaction,
    )


def make_series(
    heating_times: List[float],
    satisfactions: List[float],
    owner: str = "alice",
    duration: float = 15.0,
    temperature: float = 22.0,
) -> List[Observation]:
    """One observation per day, oldest first, with ids owner-0, owner-1, ..."""
    return [
        make_observation(
            h, s, owner=owner, duration=duration, temperature=temperature,
            day=float(i), id=f"{owner}-{i}",
        )
        for i, (h, s) in enumerate(zip(heating_times, satisfactions))
    ]


@pytest.fixture
def observation_factory():
    """Factory fixture returning make_observation."""
    return make_observation


@pytest.fixture
def series_factory():
    """Factory fixture returning make_series."""
    return make_series


@pytest.fixture
def query() -> HeatingQuery:
    """Query matching the default observation conditions."""
    return HeatingQuery(owner="alice", duration=15.0, temperature=22.0)


@pytest.fixture
def global_pool() -> List[Observation]:
    """Observations from other owners spread over a range of conditions."""
    pool = []
    for i, (duration, temperature, heating) in enumerate([
        (10.0, 20.0, 12.0),
        (12.0, 18.0, 14.0),
        (15.0, 22.0, 13.0),
        (18.0, 15.0, 16.0),
        (20.0, 10.0, 18.0),
        (25.0, 5.0, 22.0),
    ]):
        pool.append(make_observation(
            heating, 50.0, owner=f"user-{i}", duration=duration,
            temperature=temperature, day=float(i), id=f"g-{i}",
        ))
    return pool


# ============================================================================
# Store Fixtures
# ============================================================================


class FakeObservationSource:
    """Minimal async observation source backed by a list."""

    def __init__(self, observations: List[Observation] = None):
        self.observations = list(observations or [])
        self.calls = []

    async def get_by_owner(self, owner: str, limit: int) -> List[Observation]:
        self.calls.append(("get_by_owner", owner, limit))
        rows = [o for o in self.observations if o.owner == owner]
        return sorted(rows, key=lambda o: o.occurred_at, reverse=True)[:limit]

    async def get_global_excluding(self, owner: str, limit: int) -> List[Observation]:
        self.calls.append(("get_global_excluding", owner, limit))
        rows = [o for o in self.observations if o.owner != owner]
        return sorted(rows, key=lambda o: o.occurred_at, reverse=True)[:limit]


@pytest.fixture
def fake_source():
    """Empty fake observation source."""
    return FakeObservationSource()
