"""
In-Memory Observation Repository

Keeps observations in process memory, optionally mirrored to a JSON file.
Used when no database is configured and in tests.
"""

import asyncio
import json
import os
from dataclasses import replace
from typing import List, Optional
from uuid import uuid4

import structlog

from ml.inference.records import Observation
from ml.inference.similarity import as_utc
from repositories.base import DuplicateError, ObservationStore, ObservationStoreError

logger = structlog.get_logger(__name__)


class InMemoryObservationRepository(ObservationStore):
    """
    Observation store backed by a list.

    Args:
        data_file: Optional JSON file to load from and persist to
    """

    def __init__(self, data_file: Optional[str] = None):
        self._data_file = data_file
        self._records: List[Observation] = []
        self._lock = asyncio.Lock()
        if data_file:
            self._records = self._load(data_file)

    @staticmethod
    def _load(path: str) -> List[Observation]:
        if not os.path.exists(path):
            return []
        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
            records = [Observation.from_dict(item) for item in data]
        except (OSError, ValueError, KeyError) as e:
            raise ObservationStoreError(f"Failed to load {path}: {str(e)}", e)
        logger.info("observations_loaded", path=path, count=len(records))
        return records

    def _persist(self, records: List[Observation]) -> None:
        """Write records to the data file; callers adopt them only on success."""
        if not self._data_file:
            return
        tmp_path = f"{self._data_file}.tmp"
        try:
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump([o.to_dict() for o in records], f, indent=2)
            os.replace(tmp_path, self._data_file)
        except OSError as e:
            raise ObservationStoreError(f"Failed to write {self._data_file}: {str(e)}", e)

    @staticmethod
    def _newest_first(records: List[Observation]) -> List[Observation]:
        return sorted(records, key=lambda o: as_utc(o.occurred_at), reverse=True)

    async def get_by_owner(self, owner: str, limit: int) -> List[Observation]:
        async with self._lock:
            rows = [o for o in self._records if o.owner == owner]
        return self._newest_first(rows)[:limit]

    async def get_global_excluding(self, owner: str, limit: int) -> List[Observation]:
        async with self._lock:
            rows = [o for o in self._records if o.owner != owner]
        return self._newest_first(rows)[:limit]

    async def list_all(self, owner: Optional[str] = None) -> List[Observation]:
        async with self._lock:
            rows = [o for o in self._records if owner is None or o.owner == owner]
        return self._newest_first(rows)

    async def create(self, observation: Observation) -> Observation:
        async with self._lock:
            if observation.id is not None and any(o.id == observation.id for o in self._records):
                raise DuplicateError(f"Observation {observation.id} already exists")
            stored = observation if observation.id else replace(observation, id=str(uuid4()))
            records = self._records + [stored]
            self._persist(records)
            self._records = records
        return stored

    async def delete(self, observation_id: str) -> bool:
        async with self._lock:
            remaining = [o for o in self._records if o.id != observation_id]
            if len(remaining) == len(self._records):
                return False
            self._persist(remaining)
            self._records = remaining
        return True

    async def delete_all(self) -> int:
        async with self._lock:
            deleted = len(self._records)
            self._persist([])
            self._records = []
        return deleted
