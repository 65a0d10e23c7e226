# newsletter_api/database/connection.py
import logging
from typing import AsyncIterator, Optional

import asyncpg
from fastapi import Request

from newsletter_api.config import DatabaseSettings

logger = logging.getLogger(__name__)


class DatabaseConnection:
    """Lazily created asyncpg pool shared by every request of one application"""

    def __init__(self, settings: DatabaseSettings, min_size: int = 1, max_size: int = 10):
        self.settings = settings
        self.min_size = min_size
        self.max_size = max_size
        self._pool: Optional[asyncpg.Pool] = None

    async def get_pool(self) -> asyncpg.Pool:
        """Get or create database connection pool"""
        if self._pool is None:
            try:
                self._pool = await asyncpg.create_pool(
                    min_size=self.min_size,
                    max_size=self.max_size,
                    command_timeout=60,
                    timeout=2,
                    **self.settings.with_db(),
                )
                logger.info(
                    f"Database connection pool created for "
                    f"{self.settings.host}:{self.settings.port}/{self.settings.database_name}"
                )
            except Exception as e:
                logger.error(f"Failed to create database pool: {e}")
                raise
        return self._pool

    async def close_pool(self):
        """Close database connection pool"""
        if self._pool:
            await self._pool.close()
            self._pool = None
            logger.info("Database connection pool closed")


async def get_db_connection(request: Request) -> AsyncIterator[asyncpg.Connection]:
    """FastAPI dependency: borrow one pooled connection for the request"""
    pool = await request.app.state.database.get_pool()
    connection = await pool.acquire()
    try:
        yield connection
    finally:
        await pool.release(connection)


async def connect(settings: DatabaseSettings, with_db: bool = True) -> asyncpg.Connection:
    """Open a single connection outside the pool (migrations, tooling, tests)"""
    params = settings.with_db() if with_db else settings.without_db()
    return await asyncpg.connect(timeout=2, **params)
