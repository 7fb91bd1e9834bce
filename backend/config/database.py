"""
Database Configuration and Connection Management

Handles connections to:
- PostgreSQL (SQLAlchemy async engine over asyncpg) for observations
- Redis for caching the global observation pool
"""

from contextlib import asynccontextmanager
from typing import Optional
from urllib.parse import parse_qs, urlencode, urlparse, urlunparse

from redis import asyncio as aioredis
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

import structlog

from config.settings import settings

logger = structlog.get_logger()


def to_async_url(db_url: str) -> str:
    """Rewrite a postgresql:// URL for the asyncpg driver, dropping libpq-only params."""
    parsed = urlparse(db_url)
    params = parse_qs(parsed.query)
    params.pop("sslmode", None)
    params.pop("channel_binding", None)
    clean_query = urlencode({k: v[0] for k, v in params.items()})
    db_url = urlunparse(parsed._replace(query=clean_query))

    if db_url.startswith("postgres://"):
        db_url = "postgresql://" + db_url[len("postgres://"):]
    return db_url.replace("postgresql://", "postgresql+asyncpg://", 1)


class DatabaseManager:
    """Manages database connections and pooling"""

    def __init__(self):
        self.engine = None
        self.redis_client: Optional[aioredis.Redis] = None
        self.async_session_maker = None

    async def initialize(self):
        """Initialize all database connections"""
        await self._init_database()
        await self._init_redis()

    async def _init_database(self):
        """Initialize the SQLAlchemy async engine (optional for local dev)"""
        if not settings.database_url:
            logger.info("database_not_configured")
            return

        try:
            self.engine = create_async_engine(
                to_async_url(settings.database_url),
                echo=False,
                pool_size=2,
                max_overflow=3,
                pool_pre_ping=True,
                pool_recycle=300,
                pool_timeout=30,
            )

            self.async_session_maker = async_sessionmaker(
                self.engine,
                class_=AsyncSession,
                expire_on_commit=False
            )

            logger.info("database_engine_initialized")
        except Exception as e:
            logger.error("database_init_failed", error=str(e))
            if settings.is_production:
                raise
            logger.info("continuing_without_database", environment=settings.environment)
            self.engine = None
            self.async_session_maker = None

    async def _init_redis(self):
        """Initialize Redis connection"""
        if not settings.redis_url:
            logger.info("redis_not_configured")
            return

        try:
            self.redis_client = aioredis.from_url(
                settings.redis_url,
                password=settings.redis_password,
                encoding="utf-8",
                decode_responses=True,
                max_connections=10,
                socket_keepalive=True,
                socket_connect_timeout=5,
                retry_on_timeout=True
            )

            # Test connection
            await self.redis_client.ping()

            logger.info("redis_initialized")
        except Exception as e:
            logger.error("redis_init_failed", error=str(e))
            if settings.is_production:
                raise
            logger.info("continuing_without_redis", environment=settings.environment)
            self.redis_client = None

    async def close(self):
        """Close all database connections"""
        if self.engine:
            await self.engine.dispose()
            logger.info("database_engine_disposed")

        if self.redis_client:
            await self.redis_client.close()
            logger.info("redis_connection_closed")

    @property
    def has_database(self) -> bool:
        return self.async_session_maker is not None

    @asynccontextmanager
    async def get_session(self):
        """Get a database session (SQLAlchemy). Yields None if not initialized."""
        if not self.async_session_maker:
            yield None
            return

        async with self.async_session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise
            finally:
                await session.close()

    async def get_redis_client(self) -> Optional[aioredis.Redis]:
        """Get Redis client (returns None if not initialized)"""
        return self.redis_client


# Global database manager instance
db_manager = DatabaseManager()


# Dependency injection for FastAPI
async def get_db_session():
    """FastAPI dependency for a database session"""
    async with db_manager.get_session() as session:
        yield session


async def get_redis():
    """FastAPI dependency for Redis client"""
    return await db_manager.get_redis_client()
