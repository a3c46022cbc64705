"""
PostgreSQL connection pool (psycopg_pool) shared by the API process and the worker.
"""

import asyncio
import time
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

import psycopg
from psycopg import sql
from psycopg.rows import dict_row
from psycopg_pool import AsyncConnectionPool

from fintrack.config import settings
from fintrack.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

POOL_CLOSE_TIMEOUT = 30.0


async def _configure_connection(conn: psycopg.AsyncConnection) -> None:
    """Every pooled connection: dict rows, autocommit, UTC, bounded statements."""
    conn.row_factory = dict_row
    await conn.set_autocommit(True)
    await conn.execute(
        sql.SQL("SET application_name = {}").format(
            sql.Literal(f"fintrack-{settings.environment}")
        )
    )
    await conn.execute("SET timezone = 'UTC'")
    await conn.execute("SET statement_timeout = '60s'")


class DatabasePoolManager:
    """Owns the pool lifecycle: opened in the lifespan hook, closed on shutdown."""

    def __init__(self):
        self.pool: AsyncConnectionPool | None = None
        self._closed = False

    @property
    def initialized(self) -> bool:
        return self.pool is not None and not self._closed

    async def initialize(self) -> None:
        if self.pool is not None:
            logger.warning("Database pool already initialized")
            return
        if self._closed:
            raise RuntimeError("Cannot reinitialize closed pool")

        sizing = settings.get_db_pool_config()
        pool = AsyncConnectionPool(
            conninfo=settings.DATABASE_URL,
            open=False,
            check=AsyncConnectionPool.check_connection,
            configure=_configure_connection,
            **sizing,
        )

        try:
            await pool.open(wait=True)
            async with pool.connection() as conn:
                await conn.execute("SELECT 1")
        except Exception as e:
            logger.error("Failed to initialize database pool", error=str(e))
            await pool.close()
            raise RuntimeError(f"Database pool initialization failed: {e}") from e

        self.pool = pool
        logger.info("Database pool ready", min_size=sizing["min_size"], max_size=sizing["max_size"])

    async def close(self) -> None:
        if self.pool is None or self._closed:
            return

        self._closed = True
        try:
            await asyncio.wait_for(self.pool.close(), timeout=POOL_CLOSE_TIMEOUT)
            logger.info("Database pool closed")
        except TimeoutError:
            logger.warning("Database pool close timed out")

    @asynccontextmanager
    async def connection(self) -> AsyncGenerator[psycopg.AsyncConnection, None]:
        if not self.initialized:
            raise RuntimeError("Database pool is not available")

        async with self.pool.connection() as conn:
            yield conn

    async def health_check(self) -> dict[str, Any]:
        if not self.initialized:
            return {"healthy": False, "service": "database_pool", "error": "Pool not available"}

        started = time.perf_counter()
        try:
            async with self.connection() as conn:
                await conn.execute("SELECT 1")
        except Exception as e:
            return {"healthy": False, "service": "database_pool", "error": str(e)}

        stats = self.pool.get_stats()
        return {
            "healthy": True,
            "service": "database_pool",
            "connection_time_ms": round((time.perf_counter() - started) * 1000, 2),
            "pool_size": stats.get("pool_size", 0),
            "pool_available": stats.get("pool_available", 0),
            "requests_waiting": stats.get("requests_waiting", 0),
        }


db_pool = DatabasePoolManager()


async def get_db_connection():
    return db_pool.connection()


async def db_health_check() -> dict[str, Any]:
    return await db_pool.health_check()
