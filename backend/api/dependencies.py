"""
API Dependencies

FastAPI dependency injection for the observation store, predictor and services.
"""

from typing import AsyncGenerator, Optional

from fastapi import Depends

from config.settings import settings
from config.database import db_manager
from ml.inference.predictor import Predictor, build_predictor
from repositories.base import CachedObservationStore, ObservationStore
from repositories.memory_repository import InMemoryObservationRepository
from repositories.observation_repository import ObservationRepository
from services.feedback_service import FeedbackService
from services.prediction_service import PredictionService

_memory_store: Optional[InMemoryObservationRepository] = None


# =============================================================================
# Database Dependencies
# =============================================================================


async def get_db_session() -> AsyncGenerator:
    """
    Get async database session.

    Yields:
        AsyncSession for database operations (None if DB not available)
    """
    async with db_manager.get_session() as session:
        yield session


async def get_redis():
    """
    Get Redis client.

    Returns:
        Redis client instance (None if not available)
    """
    return await db_manager.get_redis_client()


def get_memory_store() -> InMemoryObservationRepository:
    """Process-wide in-memory store used when no database is configured."""
    global _memory_store
    if _memory_store is None:
        _memory_store = InMemoryObservationRepository(settings.data_file)
    return _memory_store


# =============================================================================
# Store Dependencies
# =============================================================================


async def get_observation_store(
    db=Depends(get_db_session),
    redis=Depends(get_redis),
) -> ObservationStore:
    """
    Observation store for this request.

    PostgreSQL when a database is configured, otherwise the in-memory store.
    Either way the global pool is cached in Redis when available.
    """
    store: ObservationStore
    if db is not None:
        store = ObservationRepository(db)
    else:
        store = get_memory_store()
    return CachedObservationStore(store, redis, ttl=settings.global_pool_cache_ttl)


# =============================================================================
# Service Dependencies
# =============================================================================


async def get_predictor(
    store: ObservationStore = Depends(get_observation_store),
) -> Predictor:
    """Predictor selected by PREDICTOR_VERSION."""
    return build_predictor(
        settings.predictor_version,
        store,
        config=settings.predictor_config(),
        split_share=settings.predictor_split_share,
        user_limit=settings.user_history_limit,
        global_limit=settings.global_history_limit,
    )


async def get_prediction_service(
    predictor: Predictor = Depends(get_predictor),
) -> PredictionService:
    return PredictionService(predictor)


async def get_feedback_service(
    store: ObservationStore = Depends(get_observation_store),
) -> FeedbackService:
    return FeedbackService(store, settings.predictor_config())
