"""
Background worker entrypoint.

    python -m fintrack.jobs.worker gmail_fetch        # cron loop
    python -m fintrack.jobs.worker gmail_fetch_once   # single run, then exit

The job name may also come from WORKER_JOB.
"""

import asyncio
import os
import sys
from collections.abc import Awaitable, Callable

from fintrack.config import settings
from fintrack.db.pool import db_pool
from fintrack.features.gmail_import.jobs.gmail_fetch_job import (
    run_gmail_fetch_job,
    start_gmail_fetch_scheduler,
)
from fintrack.infrastructure.observability.logging import get_logger, setup_logging
from fintrack.services.infrastructure.redis_client import fast_redis

logger = get_logger(__name__)

DEFAULT_JOB = "gmail_fetch"

JOB_REGISTRY: dict[str, Callable[[], Awaitable[object]]] = {
    "gmail_fetch": start_gmail_fetch_scheduler,
    "gmail_fetch_once": run_gmail_fetch_job,
}


def _job_name_from_environment(argv: list[str]) -> str:
    raw = argv[1] if len(argv) > 1 else os.getenv("WORKER_JOB", DEFAULT_JOB)
    return raw.strip().lower()


async def run_worker(job_name: str) -> None:
    job = JOB_REGISTRY.get(job_name.strip().lower())
    if job is None:
        raise ValueError(
            f"Unknown worker job '{job_name}'. Available jobs: {', '.join(sorted(JOB_REGISTRY))}"
        )

    logger.info("Starting background worker", job=job_name)
    await job()


async def _main(job_name: str) -> None:
    await db_pool.initialize()
    try:
        if fast_redis.configured:
            await fast_redis.initialize()
        await run_worker(job_name)
    finally:
        await fast_redis.close()
        await db_pool.close()


def main() -> None:
    setup_logging(settings.LOG_LEVEL)
    asyncio.run(_main(_job_name_from_environment(sys.argv)))


if __name__ == "__main__":
    main()
