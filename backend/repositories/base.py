"""
Base Repository

Provides the abstract observation store and common functionality for all
store implementations. Implements the Repository pattern for data access
abstraction.
"""

import json
from abc import ABC, abstractmethod
from typing import Any, List, Optional

import structlog
from redis.exceptions import RedisError

from ml.inference.records import Observation

logger = structlog.get_logger(__name__)


class RepositoryError(Exception):
    """Base exception for repository errors"""

    def __init__(self, message: str, original_error: Optional[Exception] = None):
        self.message = message
        self.original_error = original_error
        super().__init__(self.message)


class NotFoundError(RepositoryError):
    """Raised when an entity is not found"""
    pass


class DuplicateError(RepositoryError):
    """Raised when a duplicate entity is detected"""
    pass


class ValidationError(RepositoryError):
    """Raised when validation fails"""
    pass


class ObservationStoreError(RepositoryError):
    """Raised when the underlying storage fails"""
    pass


class ObservationStore(ABC):
    """
    Abstract append-only store of heating observations.

    Every listing is newest first.
    """

    @abstractmethod
    async def get_by_owner(self, owner: str, limit: int) -> List[Observation]:
        """
        Retrieve an owner's most recent observations.

        Args:
            owner: The owner whose history is wanted
            limit: Maximum number of observations

        Returns:
            Observations, newest first
        """
        pass

    @abstractmethod
    async def get_global_excluding(self, owner: str, limit: int) -> List[Observation]:
        """
        Retrieve the most recent observations of every other owner.

        Args:
            owner: The owner to exclude
            limit: Maximum number of observations

        Returns:
            Observations, newest first
        """
        pass

    @abstractmethod
    async def create(self, observation: Observation) -> Observation:
        """
        Append an observation.

        Returns:
            The stored observation with its id populated
        """
        pass

    @abstractmethod
    async def list_all(self, owner: Optional[str] = None) -> List[Observation]:
        """List every observation (optionally one owner's), newest first."""
        pass

    @abstractmethod
    async def delete(self, observation_id: str) -> bool:
        """
        Delete an observation by its ID.

        Returns:
            True if deleted successfully, False if not found
        """
        pass

    @abstractmethod
    async def delete_all(self) -> int:
        """Delete every observation and return how many were removed."""
        pass


class CachedObservationStore(ObservationStore):
    """
    Store with a Redis cache for the global pool.

    Wraps another store. The global pool is the expensive read on every
    prediction, so it is cached per (owner, limit) and every cached pool is
    dropped on any write. Cache failures are logged and bypassed.
    """

    def __init__(self, store: ObservationStore, cache: Any, ttl: int = 60):
        """
        Initialize cached store.

        Args:
            store: The underlying store
            cache: Redis client (decode_responses=True), or None
            ttl: Cache time-to-live in seconds
        """
        self._store = store
        self._cache = cache
        self._ttl = ttl

    def _cache_key(self, *args: Any) -> str:
        """Generate a cache key from arguments"""
        return f"{self.__class__.__name__}:{':'.join(str(a) for a in args)}"

    @property
    def _index_key(self) -> str:
        return self._cache_key("index")

    async def _get_from_cache(self, key: str) -> Optional[List[Observation]]:
        """Get a cached pool"""
        if not self._cache or self._ttl <= 0:
            return None
        try:
            cached = await self._cache.get(key)
            if cached is None:
                return None
            return [Observation.from_dict(item) for item in json.loads(cached)]
        except (RedisError, ValueError, KeyError) as e:
            logger.warning("cache_read_failed", key=key, error=str(e))
            return None

    async def _set_in_cache(self, key: str, observations: List[Observation]) -> None:
        """Cache a pool and remember its key for invalidation"""
        if not self._cache or self._ttl <= 0:
            return
        try:
            payload = json.dumps([o.to_dict() for o in observations])
            await self._cache.set(key, payload, ex=self._ttl)
            await self._cache.sadd(self._index_key, key)
        except RedisError as e:
            logger.warning("cache_write_failed", key=key, error=str(e))

    async def _invalidate_cache(self) -> None:
        """Drop every cached pool"""
        if not self._cache:
            return
        try:
            keys = await self._cache.smembers(self._index_key)
            await self._cache.delete(*keys, self._index_key)
        except RedisError as e:
            logger.warning("cache_invalidate_failed", error=str(e))

    async def get_by_owner(self, owner: str, limit: int) -> List[Observation]:
        """Owner history (not cached)"""
        return await self._store.get_by_owner(owner, limit)

    async def get_global_excluding(self, owner: str, limit: int) -> List[Observation]:
        """Get the global pool with caching"""
        cache_key = self._cache_key("global", owner, limit)

        # Try cache first
        cached = await self._get_from_cache(cache_key)
        if cached is not None:
            return cached

        # Fall back to store
        observations = await self._store.get_global_excluding(owner, limit)

        # Cache the result
        await self._set_in_cache(cache_key, observations)

        return observations

    async def create(self, observation: Observation) -> Observation:
        """Create observation and invalidate cache"""
        created = await self._store.create(observation)
        await self._invalidate_cache()
        return created

    async def list_all(self, owner: Optional[str] = None) -> List[Observation]:
        """List observations (not cached)"""
        return await self._store.list_all(owner)

    async def delete(self, observation_id: str) -> bool:
        """Delete observation and invalidate cache"""
        result = await self._store.delete(observation_id)
        if result:
            await self._invalidate_cache()
        return result

    async def delete_all(self) -> int:
        """Delete everything and invalidate cache"""
        deleted = await self._store.delete_all()
        await self._invalidate_cache()
        return deleted
