"""
Repository Pattern Implementations

Data access layer for the Heat Logger API.
"""

from repositories.base import (
    ObservationStore,
    CachedObservationStore,
    RepositoryError,
    NotFoundError,
    DuplicateError,
    ValidationError,
    ObservationStoreError,
)

from repositories.observation_repository import ObservationRepository
from repositories.memory_repository import InMemoryObservationRepository

__all__ = [
    # Base classes and exceptions
    "ObservationStore",
    "CachedObservationStore",
    "RepositoryError",
    "NotFoundError",
    "DuplicateError",
    "ValidationError",
    "ObservationStoreError",
    # Repository implementations
    "ObservationRepository",
    "InMemoryObservationRepository",
]
