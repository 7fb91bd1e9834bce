"""
Pytest Configuration and Shared Fixtures

This module provides common fixtures and configuration for all backend tests.
"""

import os
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

# Add backend directory (and the repo root, for the ml package) to path for imports
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir.parent))
sys.path.insert(0, str(backend_dir))

# Tests never talk to a real database or Redis
os.environ["ENVIRONMENT"] = "test"
for _name in ("DATABASE_URL", "REDIS_URL", "DATA_FILE", "PREDICTOR_VERSION"):
    os.environ.pop(_name, None)


BASE_TIME = datetime(2024, 6, 1, 7, 0, tzinfo=timezone.utc)


# =============================================================================
# SAMPLE DATA FIXTURES
# =============================================================================


@pytest.fixture
def observation_factory():
    """Factory fixture for creating observations"""
    from ml.inference.records import Observation

    def _create(
        owner: str = "alice",
        heating_time: float = 12.0,
        satisfaction: float = 50.0,
        duration: float = 15.0,
        temperature: float = 22.0,
        days_ago: float = 0.0,
        id: str = None,
    ):
        return Observation(
            owner=owner,
            occurred_at=BASE_TIME - timedelta(days=days_ago),
            duration=duration,
            temperature=temperature,
            heating_time=heating_time,
            satisfaction=satisfaction,
            id=id,
        )

    return _create


@pytest.fixture
def feedback_payload():
    """Valid feedback request body"""
    return {
        "owner": "alice",
        "duration": 15,
        "temperature": 22,
        "heating_time": 12,
        "satisfaction": 50,
    }


# =============================================================================
# STORE FIXTURES
# =============================================================================


@pytest.fixture
def memory_store():
    """Empty in-memory observation store"""
    from repositories.memory_repository import InMemoryObservationRepository

    return InMemoryObservationRepository()


@pytest.fixture
def mock_redis():
    """Mock Redis client covering the commands the cached store uses"""
    redis = AsyncMock()
    redis.get = AsyncMock(return_value=None)
    redis.set = AsyncMock(return_value=True)
    redis.sadd = AsyncMock(return_value=1)
    redis.smembers = AsyncMock(return_value=set())
    redis.delete = AsyncMock(return_value=1)
    redis.ping = AsyncMock(return_value=True)
    return redis


# =============================================================================
# API CLIENT FIXTURES
# =============================================================================


@pytest.fixture
def client(memory_store):
    """TestClient whose requests share one in-memory store"""
    from fastapi.testclient import TestClient

    from main import app
    from api.dependencies import get_observation_store

    app.dependency_overrides[get_observation_store] = lambda: memory_store
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.pop(get_observation_store, None)
