"""
Query helpers used by the repositories.

Every helper borrows a pooled connection for a single statement. Errors other
than OperationalError are wrapped in DatabaseError; OperationalError is left
for `with_db_retry` to handle.
"""

import asyncio
import functools
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import psycopg

from fintrack.db.pool import get_db_connection
from fintrack.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class DatabaseError(Exception):
    def __init__(self, message: str, operation: str = "unknown", recoverable: bool = True):
        super().__init__(message)
        self.operation = operation
        self.recoverable = recoverable


@asynccontextmanager
async def _statement(operation: str, query: str) -> AsyncIterator[psycopg.AsyncConnection]:
    try:
        async with await get_db_connection() as conn:
            yield conn
    except psycopg.OperationalError:
        raise
    except psycopg.Error as e:
        logger.error("Database query failed", operation=operation, query=query[:100], error=str(e))
        raise DatabaseError(f"Query failed: {e}", operation=operation) from e


async def fetch_one(query: str, params: tuple = ()) -> dict[str, Any] | None:
    async with _statement("fetch_one", query) as conn:
        cursor = await conn.execute(query, params)
        return await cursor.fetchone()


async def fetch_all(query: str, params: tuple = ()) -> list[dict[str, Any]]:
    async with _statement("fetch_all", query) as conn:
        cursor = await conn.execute(query, params)
        return await cursor.fetchall()


async def fetch_val(query: str, params: tuple = ()) -> Any:
    """First column of the first row, or None."""
    row = await fetch_one(query, params)
    return next(iter(row.values())) if row else None


async def execute_query(query: str, params: tuple = ()) -> int:
    """Run a statement and return the affected row count."""
    async with _statement("execute", query) as conn:
        cursor = await conn.execute(query, params)
        return cursor.rowcount


def with_db_retry(max_retries: int = 3, base_delay: float = 0.1):
    """
    Retry a coroutine on psycopg.OperationalError with exponential backoff.

    Integrity and data errors are permanent and surface immediately as a
    non-recoverable DatabaseError.
    """

    def decorator(func):
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            attempt = 0
            while True:
                try:
                    return await func(*args, **kwargs)
                except (psycopg.IntegrityError, psycopg.DataError) as e:
                    logger.error("Permanent database error", operation=func.__name__, error=str(e))
                    raise DatabaseError(
                        f"Permanent database error: {e}", operation=func.__name__, recoverable=False
                    ) from e
                except psycopg.OperationalError as e:
                    if attempt >= max_retries:
                        logger.error(
                            "Database retries exhausted",
                            operation=func.__name__,
                            attempts=attempt + 1,
                            error=str(e),
                        )
                        raise DatabaseError(
                            f"{func.__name__} failed after {attempt + 1} attempts: {e}",
                            operation=func.__name__,
                            recoverable=False,
                        ) from e

                    delay = base_delay * 2**attempt
                    attempt += 1
                    logger.warning(
                        "Database operation failed, retrying",
                        operation=func.__name__,
                        attempt=attempt,
                        delay=delay,
                        error=str(e),
                    )
                    await asyncio.sleep(delay)

        return wrapper

    return decorator
