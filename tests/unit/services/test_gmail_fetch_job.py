import asyncio
from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock

import pytest

from fintrack.config import settings
from fintrack.features.gmail_import.domain import SyncStats
from fintrack.features.gmail_import.jobs import GmailFetchJob, GmailFetchJobError
from fintrack.features.gmail_import.jobs.gmail_fetch_job import (
    RUN_LOCK_KEY,
    seconds_until_next_run,
    start_gmail_fetch_scheduler,
)
from fintrack.services.google_gmail_service import GoogleGmailError


def _job(user_ids, sync_side_effect, lock_result=None):
    sync_service = MagicMock()
    sync_service.list_new_messages_and_parse = AsyncMock(side_effect=sync_side_effect)

    credential_service = MagicMock()
    credential_service.list_active_user_ids = AsyncMock(return_value=user_ids)
    credential_service.deactivate = AsyncMock(return_value=True)

    notifications = MagicMock()
    notifications.notify_gmail_reconnect = AsyncMock(return_value="notification-1")

    redis_client = MagicMock()
    redis_client.acquire_lock = AsyncMock(return_value=lock_result)
    redis_client.release_lock = AsyncMock(return_value=True)

    return GmailFetchJob(
        sync_service=sync_service,
        credential_service=credential_service,
        notifications=notifications,
        redis_client=redis_client,
    )


@pytest.mark.asyncio
async def test_credential_loss_notifies_and_deactivates_only_that_user():
    async def sync(user_id, window_days):
        if user_id == "user-u":
            raise GoogleGmailError("invalid_credentials: Gmail authorization expired", status_code=401)
        return SyncStats(fetched=3, parsed=2, saved=2)

    job = _job(["user-a", "user-u", "user-b"], sync)

    metrics = await job.run_once()

    job.notifications.notify_gmail_reconnect.assert_awaited_once_with("user-u")
    job.credential_service.deactivate.assert_awaited_once_with("user-u")
    assert metrics["users_total"] == 3
    assert metrics["users_succeeded"] == 2
    assert metrics["users_failed"] == 1
    assert metrics["users_disconnected"] == 1
    assert metrics["transactions_saved"] == 4
    assert job.state == "idle"


@pytest.mark.asyncio
async def test_transient_failure_does_not_notify():
    job = _job(["user-a"], RuntimeError("database hiccup"))

    metrics = await job.run_once()

    assert metrics["users_failed"] == 1
    assert metrics["users_disconnected"] == 0
    job.notifications.notify_gmail_reconnect.assert_not_awaited()
    job.credential_service.deactivate.assert_not_awaited()


@pytest.mark.asyncio
async def test_overlapping_trigger_is_skipped():
    release = asyncio.Event()

    async def slow_sync(user_id, window_days):
        await release.wait()
        return SyncStats()

    job = _job(["user-a"], slow_sync)

    first = asyncio.create_task(job.run_once())
    await asyncio.sleep(0)
    assert job.is_running

    second = await job.run_once()
    assert second == {"skipped": True, "reason": "already_running"}

    release.set()
    metrics = await first
    assert metrics["users_succeeded"] == 1
    assert job.sync_service.list_new_messages_and_parse.await_count == 1
    assert not job.is_running


@pytest.mark.asyncio
async def test_redis_lock_held_elsewhere_skips_run():
    job = _job(["user-a"], [SyncStats()], lock_result=False)

    result = await job.run_once()

    assert result == {"skipped": True, "reason": "locked_elsewhere"}
    job.credential_service.list_active_user_ids.assert_not_awaited()
    job.redis_client.release_lock.assert_not_awaited()
    assert job.state == "idle"


@pytest.mark.asyncio
async def test_redis_lock_is_released_after_run():
    job = _job(["user-a"], [SyncStats()], lock_result=True)

    await job.run_once()

    lock_key, token = job.redis_client.release_lock.await_args.args
    assert lock_key == RUN_LOCK_KEY
    assert token == job.redis_client.acquire_lock.await_args.args[1]


@pytest.mark.asyncio
async def test_users_are_processed_in_batches(monkeypatch):
    monkeypatch.setattr(settings, "GMAIL_FETCH_CONCURRENCY", 2)
    in_flight = 0
    peak = 0

    async def sync(user_id, window_days):
        nonlocal in_flight, peak
        in_flight += 1
        peak = max(peak, in_flight)
        await asyncio.sleep(0)
        in_flight -= 1
        return SyncStats()

    job = _job([f"user-{i}" for i in range(5)], sync)
    metrics = await job.run_once()

    assert metrics["users_processed"] == 5
    assert peak == 2


@pytest.mark.asyncio
async def test_user_timeout_is_recorded(monkeypatch):
    monkeypatch.setattr(settings, "GMAIL_USER_SYNC_TIMEOUT_SECONDS", 0.01)

    async def hang(user_id, window_days):
        await asyncio.sleep(1)

    job = _job(["user-a"], hang)
    metrics = await job.run_once()

    assert metrics["users_failed"] == 1
    assert metrics["users_disconnected"] == 0


@pytest.mark.asyncio
async def test_listing_failure_raises_job_error_and_resets_state():
    job = _job([], [])
    job.credential_service.list_active_user_ids = AsyncMock(side_effect=RuntimeError("db down"))

    with pytest.raises(GmailFetchJobError):
        await job.run_once()

    assert job.state == "idle"


def test_job_status_reports_configuration():
    status = _job([], []).get_job_status()

    assert status["job_name"] == "gmail_fetch"
    assert status["state"] == "idle"
    assert status["schedule"] == settings.GMAIL_CRON_SCHEDULE
    assert status["last_run_metrics"] is None


def test_seconds_until_next_run_follows_cron():
    now = datetime(2024, 5, 12, 1, 30, tzinfo=UTC)
    assert seconds_until_next_run("0 2 * * *", now) == 30 * 60


@pytest.mark.asyncio
async def test_scheduler_returns_when_disabled(monkeypatch):
    monkeypatch.setattr(settings, "ENABLE_GMAIL_CRON", False)
    assert await start_gmail_fetch_scheduler() is None


@pytest.mark.asyncio
async def test_scheduler_rejects_invalid_cron(monkeypatch):
    monkeypatch.setattr(settings, "ENABLE_GMAIL_CRON", True)
    monkeypatch.setattr(settings, "GMAIL_CRON_SCHEDULE", "not a cron")
    assert await start_gmail_fetch_scheduler() is None
