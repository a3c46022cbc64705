"""
FastAPI application for the Gmail transaction import.

The lifespan hook opens the database pool, connects Redis when configured and,
with ENABLE_GMAIL_CRON on, runs the scheduled Gmail fetch loop in the background.
"""

import asyncio
import contextlib
import time

from fastapi import FastAPI, Request

from fintrack.config import settings
from fintrack.db.pool import db_pool
from fintrack.features.gmail_import.api import admin_router, router as gmail_routes
from fintrack.features.gmail_import.jobs import start_gmail_fetch_scheduler
from fintrack.infrastructure.observability.logging import get_logger, log_request, setup_logging
from fintrack.routes import health
from fintrack.services.infrastructure.redis_client import fast_redis

setup_logging(log_level=settings.LOG_LEVEL)
logger = get_logger(__name__)


async def _stop_task(task: asyncio.Task) -> None:
    task.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await task


@contextlib.asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Application starting", environment=settings.environment)

    # Resources close in reverse order, including when a later startup step fails
    async with contextlib.AsyncExitStack() as resources:
        await db_pool.initialize()
        resources.push_async_callback(db_pool.close)

        if fast_redis.configured:
            await fast_redis.initialize()
            resources.push_async_callback(fast_redis.close)

        if settings.ENABLE_GMAIL_CRON:
            scheduler = asyncio.create_task(start_gmail_fetch_scheduler())
            resources.push_async_callback(_stop_task, scheduler)
            logger.info("Gmail fetch scheduler started", schedule=settings.GMAIL_CRON_SCHEDULE)

        yield
        logger.info("Application shutting down")

    logger.info("Application stopped")


app = FastAPI(
    title="FinTrack",
    description="Expense tracking with Gmail transaction import",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(health.router)
app.include_router(gmail_routes.router)
app.include_router(admin_router.router)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    started = time.perf_counter()
    response = await call_next(request)
    log_request(
        method=request.method,
        path=request.url.path,
        status_code=response.status_code,
        duration_ms=round((time.perf_counter() - started) * 1000, 2),
    )
    return response


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("fintrack.main:app", host="0.0.0.0", port=8000)
