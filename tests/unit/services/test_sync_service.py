from unittest.mock import AsyncMock

import pytest

from fintrack.config import settings
from fintrack.db.helpers import DatabaseError
from fintrack.features.gmail_import.domain import SyncState
from fintrack.features.gmail_import.repository import (
    ExpenseRepository,
    PendingTransactionRepository,
    SyncStateRepository,
)
from fintrack.features.gmail_import.services import GmailSyncError, is_credential_error
from fintrack.features.gmail_import.services.staging_service import StagingService
from fintrack.features.gmail_import.services.sync_service import GmailSyncService
from fintrack.models.domain.gmail_domain import GmailMessage
from fintrack.services.gmail_credential_service import CredentialError
from fintrack.services.google_gmail_service import GoogleGmailError

SWIGGY_ALERT = "Rs.1,250.00 debited for UPI payment to SWIGGY on 12-05"


class InMemoryStore:
    """Stands in for the pending_transactions table and users sync columns."""

    def __init__(self):
        self.pending: dict[tuple[str, str], object] = {}
        self.processed: dict[str, set[str]] = {}
        self.errors: dict[str, str] = {}

    async def exists_for_message(self, user_id, gmail_message_id):
        return (user_id, gmail_message_id) in self.pending

    async def insert_if_absent(self, transaction):
        key = (transaction.user_id, transaction.gmail_message_id)
        if key in self.pending:
            return None
        self.pending[key] = transaction
        return transaction

    async def load(self, user_id):
        return SyncState(user_id=user_id, processed_message_ids=set(self.processed.get(user_id, ())))

    async def save_success(self, user_id, message_ids):
        self.processed.setdefault(user_id, set()).update(message_ids)

    async def record_error(self, user_id, error_message):
        self.errors[user_id] = error_message


@pytest.fixture
def store(monkeypatch):
    store = InMemoryStore()
    monkeypatch.setattr(PendingTransactionRepository, "exists_for_message", store.exists_for_message)
    monkeypatch.setattr(PendingTransactionRepository, "insert_if_absent", store.insert_if_absent)
    monkeypatch.setattr(ExpenseRepository, "exists_for_message", AsyncMock(return_value=False))
    monkeypatch.setattr(SyncStateRepository, "load", store.load)
    monkeypatch.setattr(SyncStateRepository, "save_success", store.save_success)
    monkeypatch.setattr(SyncStateRepository, "record_error", store.record_error)
    monkeypatch.setattr(settings, "GMAIL_AUTO_CONFIRM_TRANSACTIONS", False)
    return store


def _service(messages=None, error=None) -> GmailSyncService:
    fetcher = AsyncMock(side_effect=error) if error else AsyncMock(return_value=messages or [])
    return GmailSyncService(fetcher=fetcher, staging=StagingService())


@pytest.mark.asyncio
async def test_repeat_sync_skips_already_processed_message(store, gmail_message):
    messages = [GmailMessage(gmail_message("m-1", subject=SWIGGY_ALERT, body=SWIGGY_ALERT))]

    first = await _service(messages).list_new_messages_and_parse("user-123")
    second = await _service(messages).list_new_messages_and_parse("user-123")

    assert (first.fetched, first.parsed, first.saved, first.skipped) == (1, 1, 1, 0)
    assert (second.fetched, second.saved, second.skipped) == (1, 0, 1)
    assert len(store.pending) == 1
    staged = store.pending[("user-123", "m-1")]
    assert staged.vendor == "Swiggy"
    assert staged.confidence == "high"


@pytest.mark.asyncio
async def test_otp_email_counts_as_fetched_not_parsed(store, gmail_message):
    messages = [GmailMessage(gmail_message("otp", body="Your OTP is 482913. Do not share."))]

    stats = await _service(messages).list_new_messages_and_parse("user-123")

    assert (stats.fetched, stats.parsed, stats.saved, stats.skipped) == (1, 0, 0, 0)
    assert store.processed["user-123"] == {"otp"}


@pytest.mark.asyncio
async def test_staged_but_unrecorded_message_is_deduplicated(store, gmail_message):
    messages = [GmailMessage(gmail_message("m-1", body=SWIGGY_ALERT))]
    await _service(messages).list_new_messages_and_parse("user-123")
    store.processed.clear()

    stats = await _service(messages).list_new_messages_and_parse("user-123")

    assert (stats.parsed, stats.saved, stats.skipped) == (1, 0, 1)


@pytest.mark.asyncio
async def test_message_error_is_isolated_and_not_marked_processed(store, gmail_message, monkeypatch):
    messages = [
        GmailMessage(gmail_message("bad", body=SWIGGY_ALERT)),
        GmailMessage(gmail_message("good", body=SWIGGY_ALERT)),
    ]

    original = store.insert_if_absent

    async def failing_insert(transaction):
        if transaction.gmail_message_id == "bad":
            raise RuntimeError("insert failed")
        return await original(transaction)

    monkeypatch.setattr(PendingTransactionRepository, "insert_if_absent", failing_insert)

    stats = await _service(messages).list_new_messages_and_parse("user-123")

    assert stats.saved == 1
    assert stats.errors == [{"id": "bad", "error": "insert failed"}]
    assert store.processed["user-123"] == {"good"}


@pytest.mark.asyncio
async def test_credential_error_propagates_and_is_recorded(store):
    service = _service(error=CredentialError("Gmail not connected", recoverable=False))

    with pytest.raises(CredentialError):
        await service.list_new_messages_and_parse("user-123")

    assert store.errors["user-123"] == "Gmail not connected"
    assert "user-123" not in store.processed


@pytest.mark.asyncio
async def test_credential_error_survives_failed_error_bookkeeping(store, monkeypatch):
    monkeypatch.setattr(
        SyncStateRepository, "record_error", AsyncMock(side_effect=DatabaseError("db down"))
    )
    service = _service(error=CredentialError("invalid_grant: revoked", recoverable=False))

    with pytest.raises(CredentialError) as exc_info:
        await service.list_new_messages_and_parse("user-123")

    assert is_credential_error(exc_info.value)

@pytest.mark.asyncio
async def test_provider_401_propagates_unwrapped(store):
    error = GoogleGmailError("invalid_credentials: expired", status_code=401)

    with pytest.raises(GoogleGmailError):
        await _service(error=error).list_new_messages_and_parse("user-123")


@pytest.mark.asyncio
async def test_other_fetch_failures_are_wrapped(store):
    error = GoogleGmailError("Gmail API error (UNAVAILABLE): down", status_code=503)

    with pytest.raises(GmailSyncError) as exc_info:
        await _service(error=error).list_new_messages_and_parse("user-123")

    assert exc_info.value.status_code == 503
    assert "user-123" in store.errors


@pytest.mark.asyncio
async def test_fetch_uses_configured_defaults(store, monkeypatch):
    monkeypatch.setattr(settings, "GMAIL_FETCH_MAX_RESULTS", 25)
    service = _service([])

    await service.list_new_messages_and_parse("user-123", window_days=7)

    service.fetcher.assert_awaited_once_with("user-123", max_results=25, window_days=7)
