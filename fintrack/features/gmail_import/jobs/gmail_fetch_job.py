"""
Scheduled Gmail fetch job.

Runs the sync orchestrator for every user with an active Gmail credential,
in sequential batches of GMAIL_FETCH_CONCURRENCY concurrent users. Users
whose credential turns out to be revoked or expired are notified and
deactivated so later runs skip them.

Overlap control: the job's own idle/running state blocks overlapping runs
inside one process. That state is process-local. When REDIS_URL is set a
Redis lock additionally keeps other instances from running concurrently.
"""

import asyncio
import uuid
from datetime import UTC, datetime
from typing import Literal

from croniter import croniter

from fintrack.config import settings
from fintrack.features.gmail_import.services.errors import is_credential_error
from fintrack.features.gmail_import.services.sync_service import (
    GmailSyncService,
    gmail_sync_service,
)
from fintrack.infrastructure.observability.logging import get_logger
from fintrack.services.gmail_credential_service import (
    GmailCredentialService,
    gmail_credential_service,
)
from fintrack.services.infrastructure.redis_client import FastRedisClient, fast_redis
from fintrack.services.notification_service import NotificationService, notification_service

logger = get_logger(__name__)

JOB_NAME = "gmail_fetch"
RUN_LOCK_KEY = "gmail_fetch_job:lock"
RUN_LOCK_TTL_SECONDS = 3 * 60 * 60

JobState = Literal["idle", "running"]


class GmailFetchJobError(Exception):
    """Custom exception for Gmail fetch job operations."""

    def __init__(self, message: str, operation: str | None = None, recoverable: bool = True):
        super().__init__(message)
        self.operation = operation
        self.recoverable = recoverable


class GmailFetchMetrics:
    """Metrics for one job run."""

    def __init__(self):
        self.reset()

    def reset(self):
        self.start_time = datetime.now(UTC)
        self.users_total = 0
        self.users_processed = 0
        self.users_succeeded = 0
        self.users_failed = 0
        self.users_disconnected = 0
        self.messages_fetched = 0
        self.transactions_saved = 0
        self.total_duration_seconds = 0.0
        self.errors: list[dict] = []

    def record_success(self, user_id: str, stats: dict):
        self.users_processed += 1
        self.users_succeeded += 1
        self.messages_fetched += stats.get("fetched", 0)
        self.transactions_saved += stats.get("saved", 0)

        logger.info("Gmail sync for user completed", user_id=user_id, job_run=JOB_NAME, **stats)

    def record_failure(self, user_id: str, error: str, disconnected: bool = False):
        self.users_processed += 1
        self.users_failed += 1
        if disconnected:
            self.users_disconnected += 1

        self.errors.append(
            {
                "user_id": user_id,
                "error": error,
                "disconnected": disconnected,
                "timestamp": datetime.now(UTC).isoformat(),
            }
        )
        logger.warning(
            "Gmail sync for user failed",
            user_id=user_id,
            error=error,
            disconnected=disconnected,
            job_run=JOB_NAME,
        )

    def finalize(self):
        self.total_duration_seconds = (datetime.now(UTC) - self.start_time).total_seconds()

    def to_dict(self) -> dict:
        return {
            "job_run": JOB_NAME,
            "start_time": self.start_time.isoformat(),
            "total_duration_seconds": round(self.total_duration_seconds, 2),
            "users_total": self.users_total,
            "users_processed": self.users_processed,
            "users_succeeded": self.users_succeeded,
            "users_failed": self.users_failed,
            "users_disconnected": self.users_disconnected,
            "messages_fetched": self.messages_fetched,
            "transactions_saved": self.transactions_saved,
            "errors_count": len(self.errors),
        }


class GmailFetchJob:
    def __init__(
        self,
        sync_service: GmailSyncService = gmail_sync_service,
        credential_service: GmailCredentialService = gmail_credential_service,
        notifications: NotificationService = notification_service,
        redis_client: FastRedisClient = fast_redis,
    ):
        self.sync_service = sync_service
        self.credential_service = credential_service
        self.notifications = notifications
        self.redis_client = redis_client
        self.state: JobState = "idle"
        self.last_run_time: datetime | None = None
        self.job_metrics = GmailFetchMetrics()

    @property
    def is_running(self) -> bool:
        return self.state == "running"

    async def run_once(self) -> dict:
        """
        Run one scheduled sync over all active users.

        A trigger while a run is in progress is skipped, not queued.

        Raises:
            GmailFetchJobError: if the run fails outside per-user handling
        """
        # No await between the check and the transition
        if self.is_running:
            logger.warning("Gmail fetch job already running, skipping this trigger")
            return {"skipped": True, "reason": "already_running"}
        self.state = "running"

        lock_token = uuid.uuid4().hex
        lock_held = False
        config = settings.get_gmail_job_config()

        try:
            acquired = await self.redis_client.acquire_lock(
                RUN_LOCK_KEY, lock_token, RUN_LOCK_TTL_SECONDS
            )
            if acquired is False:
                logger.info("Gmail fetch job running on another instance, skipping")
                return {"skipped": True, "reason": "locked_elsewhere"}
            lock_held = bool(acquired)

            self.job_metrics.reset()
            user_ids = await self.credential_service.list_active_user_ids()
            self.job_metrics.users_total = len(user_ids)

            logger.info(
                "Starting Gmail fetch job",
                user_count=len(user_ids),
                concurrency=config["concurrency"],
                window_days=config["window_days"],
            )

            await self._process_users_in_batches(
                user_ids,
                batch_size=config["concurrency"],
                window_days=config["window_days"],
                timeout=config["user_timeout_seconds"],
            )

            self.job_metrics.finalize()
            self.last_run_time = datetime.now(UTC)
            metrics = self.job_metrics.to_dict()
            logger.info("Gmail fetch job completed", **metrics)
            return metrics

        except Exception as e:
            logger.error("Gmail fetch job failed", error=str(e), error_type=type(e).__name__)
            self.job_metrics.finalize()
            raise GmailFetchJobError(f"Gmail fetch job failed: {e}", operation="run_once") from e

        finally:
            if lock_held:
                await self.redis_client.release_lock(RUN_LOCK_KEY, lock_token)
            self.state = "idle"

    async def _process_users_in_batches(
        self, user_ids: list[str], *, batch_size: int, window_days: int, timeout: float
    ) -> None:
        batches = [user_ids[i : i + batch_size] for i in range(0, len(user_ids), batch_size)]

        for batch_num, batch_users in enumerate(batches, 1):
            logger.debug(
                "Processing batch",
                batch_number=batch_num,
                batch_size=len(batch_users),
                total_batches=len(batches),
            )
            await asyncio.gather(
                *(
                    self._process_user(user_id, window_days=window_days, timeout=timeout)
                    for user_id in batch_users
                )
            )

    async def _process_user(self, user_id: str, *, window_days: int, timeout: float) -> None:
        """Sync one user. Never raises; failures are recorded in the metrics."""
        try:
            stats = await asyncio.wait_for(
                self.sync_service.list_new_messages_and_parse(user_id, window_days=window_days),
                timeout=timeout,
            )
        except TimeoutError:
            self.job_metrics.record_failure(user_id, f"Gmail sync timed out after {timeout}s")
            return
        except Exception as e:
            if is_credential_error(e):
                await self._handle_credential_loss(user_id)
                self.job_metrics.record_failure(user_id, str(e), disconnected=True)
            else:
                self.job_metrics.record_failure(user_id, f"{type(e).__name__}: {e}")
            return

        if stats.errors:
            logger.warning(
                "Gmail sync finished with message errors",
                user_id=user_id,
                error_count=len(stats.errors),
            )
        self.job_metrics.record_success(user_id, stats.to_dict() | {"errors": len(stats.errors)})

    async def _handle_credential_loss(self, user_id: str) -> None:
        logger.warning("Gmail credential invalid, notifying user", user_id=user_id)
        await self.notifications.notify_gmail_reconnect(user_id)
        try:
            await self.credential_service.deactivate(user_id)
        except Exception as e:
            logger.error("Failed to deactivate Gmail credential", user_id=user_id, error=str(e))

    def get_job_status(self) -> dict:
        config = settings.get_gmail_job_config()
        return {
            "job_name": JOB_NAME,
            "state": self.state,
            "is_running": self.is_running,
            "last_run_time": self.last_run_time.isoformat() if self.last_run_time else None,
            "schedule": config["schedule"],
            "enabled": config["enabled"],
            "concurrency": config["concurrency"],
            "window_days": config["window_days"],
            "last_run_metrics": self.job_metrics.to_dict() if self.last_run_time else None,
        }


# Singleton instance for application use
gmail_fetch_job = GmailFetchJob()


async def run_gmail_fetch_job() -> dict:
    return await gmail_fetch_job.run_once()


def get_gmail_fetch_job_status() -> dict:
    return gmail_fetch_job.get_job_status()


def seconds_until_next_run(schedule: str, now: datetime | None = None) -> float:
    now = now or datetime.now(UTC)
    next_run = croniter(schedule, now).get_next(datetime)
    return max((next_run - now).total_seconds(), 0.0)


async def start_gmail_fetch_scheduler():
    """
    Run the Gmail fetch job on GMAIL_CRON_SCHEDULE until cancelled.

    Returns immediately when the cron is disabled or the expression is invalid.
    """
    config = settings.get_gmail_job_config()
    if not config["enabled"]:
        logger.info("Gmail fetch scheduler disabled via ENABLE_GMAIL_CRON")
        return

    schedule = config["schedule"]
    if not croniter.is_valid(schedule):
        logger.error("Invalid Gmail cron schedule, scheduler not started", schedule=schedule)
        return

    logger.info("Starting Gmail fetch scheduler", schedule=schedule)

    while True:
        delay = seconds_until_next_run(schedule)
        logger.debug("Next Gmail fetch run scheduled", in_seconds=round(delay, 1))
        await asyncio.sleep(delay)

        try:
            metrics = await run_gmail_fetch_job()
            if not metrics.get("skipped", False):
                logger.info("Gmail fetch job cycle completed", **metrics)
        except GmailFetchJobError as e:
            logger.error("Error in Gmail fetch scheduler", error=str(e))
