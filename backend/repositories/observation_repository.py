"""
Observation Repository

Raw SQL data access for the daily_records table, one row per shower with
its conditions, the heating time used and the satisfaction rating.
"""

from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from uuid import uuid4

import structlog
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ml.inference.records import Observation
from repositories.base import ObservationStore, ObservationStoreError

logger = structlog.get_logger(__name__)

_COLUMNS = "id, owner, occurred_at, duration, temperature, heating_time, satisfaction"

_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS daily_records (
        id TEXT PRIMARY KEY,
        owner TEXT NOT NULL,
        occurred_at TIMESTAMPTZ NOT NULL,
        duration DOUBLE PRECISION NOT NULL,
        temperature DOUBLE PRECISION NOT NULL,
        heating_time DOUBLE PRECISION NOT NULL,
        satisfaction DOUBLE PRECISION NOT NULL,
        created_at TIMESTAMPTZ NOT NULL DEFAULT now()
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_daily_records_owner_occurred
        ON daily_records (owner, occurred_at DESC)
    """,
)


def _to_observation(row: Any) -> Observation:
    occurred_at = row.occurred_at
    if occurred_at.tzinfo is None:
        occurred_at = occurred_at.replace(tzinfo=timezone.utc)
    return Observation(
        id=str(row.id),
        owner=row.owner,
        occurred_at=occurred_at,
        duration=float(row.duration),
        temperature=float(row.temperature),
        heating_time=float(row.heating_time),
        satisfaction=float(row.satisfaction),
    )


class ObservationRepository(ObservationStore):
    """Raw SQL data access for heating observations."""

    def __init__(self, db: AsyncSession):
        self._db = db

    async def _fetch(self, query: str, params: Dict[str, Any]) -> List[Observation]:
        try:
            result = await self._db.execute(text(query), params)
            return [_to_observation(row) for row in result.fetchall()]
        except SQLAlchemyError as e:
            raise ObservationStoreError(f"Failed to read observations: {str(e)}", e)

    async def ensure_schema(self) -> None:
        """Create the daily_records table and its index if missing."""
        try:
            for statement in _SCHEMA:
                await self._db.execute(text(statement))
            await self._db.commit()
            logger.info("daily_records_schema_ready")
        except SQLAlchemyError as e:
            raise ObservationStoreError(f"Failed to create schema: {str(e)}", e)

    async def get_by_owner(self, owner: str, limit: int) -> List[Observation]:
        """Most recent observations of one owner."""
        return await self._fetch(
            f"""
            SELECT {_COLUMNS}
            FROM daily_records
            WHERE owner = :owner
            ORDER BY occurred_at DESC
            LIMIT :limit
            """,
            {"owner": owner, "limit": limit},
        )

    async def get_global_excluding(self, owner: str, limit: int) -> List[Observation]:
        """Most recent observations of every other owner."""
        return await self._fetch(
            f"""
            SELECT {_COLUMNS}
            FROM daily_records
            WHERE owner <> :owner
            ORDER BY occurred_at DESC
            LIMIT :limit
            """,
            {"owner": owner, "limit": limit},
        )

    async def list_all(self, owner: Optional[str] = None) -> List[Observation]:
        if owner is not None:
            return await self._fetch(
                f"SELECT {_COLUMNS} FROM daily_records WHERE owner = :owner ORDER BY occurred_at DESC",
                {"owner": owner},
            )
        return await self._fetch(
            f"SELECT {_COLUMNS} FROM daily_records ORDER BY occurred_at DESC",
            {},
        )

    async def create(self, observation: Observation) -> Observation:
        """INSERT one observation, assigning an id when it has none."""
        record_id = observation.id or str(uuid4())
        occurred_at: datetime = observation.occurred_at

        query = text("""
            INSERT INTO daily_records
                (id, owner, occurred_at, duration, temperature, heating_time, satisfaction)
            VALUES
                (:id, :owner, :occurred_at, :duration, :temperature, :heating_time, :satisfaction)
        """)

        try:
            await self._db.execute(query, {
                "id": record_id,
                "owner": observation.owner,
                "occurred_at": occurred_at,
                "duration": observation.duration,
                "temperature": observation.temperature,
                "heating_time": observation.heating_time,
                "satisfaction": observation.satisfaction,
            })
            await self._db.commit()
        except SQLAlchemyError as e:
            await self._db.rollback()
            raise ObservationStoreError(f"Failed to store observation: {str(e)}", e)

        return replace(observation, id=record_id)

    async def delete(self, observation_id: str) -> bool:
        try:
            result = await self._db.execute(
                text("DELETE FROM daily_records WHERE id = :id"),
                {"id": observation_id},
            )
            await self._db.commit()
        except SQLAlchemyError as e:
            await self._db.rollback()
            raise ObservationStoreError(f"Failed to delete observation: {str(e)}", e)
        return result.rowcount > 0

    async def delete_all(self) -> int:
        try:
            result = await self._db.execute(text("DELETE FROM daily_records"))
            await self._db.commit()
        except SQLAlchemyError as e:
            await self._db.rollback()
            raise ObservationStoreError(f"Failed to delete observations: {str(e)}", e)
        return result.rowcount
