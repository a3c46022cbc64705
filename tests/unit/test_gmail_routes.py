from datetime import UTC, datetime
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from fintrack.features.gmail_import.api import router as gmail_routes
from fintrack.features.gmail_import.domain import (
    ConfirmationResult,
    PendingTransaction,
    SyncStats,
)
from fintrack.features.gmail_import.repository import PendingTransactionRepository
from fintrack.main import app
from fintrack.services.gmail_credential_service import CredentialError


def _pending(txn_id="p1") -> PendingTransaction:
    return PendingTransaction(
        id=txn_id,
        user_id="user-123",
        gmail_message_id="gm-1",
        amount=Decimal("499.00"),
        direction="debit",
        vendor="Swiggy",
        raw_vendor="SWIGGY",
        occurred_at=datetime(2024, 5, 12, 9, 30, tzinfo=UTC),
        reference_id="412345678901",
        confidence="high",
        metadata={"payment_method": "UPI"},
        category="Uncategorized",
        description="",
        is_confirmed=False,
        confirmed_at=None,
    )


@pytest.fixture
def client(apply_auth_override):
    apply_auth_override(app)
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def credentials(monkeypatch):
    service = MagicMock()
    service.get_connection_status = AsyncMock(return_value={"connected": True, "last_fetch_at": None})
    service.revoke = AsyncMock(return_value=True)
    monkeypatch.setattr(gmail_routes, "gmail_credential_service", service)
    return service


@pytest.fixture
def sync(monkeypatch):
    service = MagicMock()
    service.list_new_messages_and_parse = AsyncMock(
        return_value=SyncStats(fetched=2, parsed=1, saved=1, skipped=1)
    )
    monkeypatch.setattr(gmail_routes, "gmail_sync_service", service)
    return service


def test_requires_authentication():
    response = TestClient(app).get("/gmail/status")
    assert response.status_code in (401, 403)


def test_status(client, credentials):
    response = client.get("/gmail/status")

    assert response.status_code == 200
    assert response.json() == {"connected": True, "lastFetchAt": None}
    credentials.get_connection_status.assert_awaited_once_with("user-123")


def test_fetch_returns_counters(client, credentials, sync):
    response = client.post("/gmail/fetch", json={"maxResults": 10, "windowDays": 7})

    assert response.status_code == 200
    body = response.json()
    assert (body["fetched"], body["parsed"], body["saved"], body["skipped"]) == (2, 1, 1, 1)
    assert body["message"] == "Fetched 2 emails, saved 1 new transactions"
    sync.list_new_messages_and_parse.assert_awaited_once_with(
        "user-123", max_results=10, window_days=7
    )


def test_fetch_without_body_uses_defaults(client, credentials, sync):
    assert client.post("/gmail/fetch").status_code == 200
    sync.list_new_messages_and_parse.assert_awaited_once_with(
        "user-123", max_results=None, window_days=None
    )


def test_fetch_requires_connection(client, credentials, sync):
    credentials.get_connection_status.return_value = {"connected": False, "last_fetch_at": None}

    response = client.post("/gmail/fetch")

    assert response.status_code == 400
    sync.list_new_messages_and_parse.assert_not_awaited()


def test_fetch_credential_error_asks_for_reconnect(client, credentials, sync):
    sync.list_new_messages_and_parse.side_effect = CredentialError(
        "invalid_grant: revoked", recoverable=False
    )

    response = client.post("/gmail/fetch")

    assert response.status_code == 400
    assert "reconnect" in response.json()["detail"]


def test_list_pending(client, monkeypatch):
    monkeypatch.setattr(
        PendingTransactionRepository, "list_unconfirmed", AsyncMock(return_value=[_pending()])
    )

    response = client.get("/gmail/pending")

    assert response.status_code == 200
    body = response.json()
    assert body["count"] == 1
    txn = body["transactions"][0]
    assert txn["id"] == "p1"
    assert txn["gmailMessageId"] == "gm-1"
    assert txn["rawVendor"] == "SWIGGY"
    assert txn["isConfirmed"] is False
    assert Decimal(str(txn["amount"])) == Decimal("499.00")
    assert txn["date"].startswith("2024-05-12T09:30:00")


def test_update_pending_sends_only_provided_fields(client, monkeypatch):
    update = AsyncMock(return_value=_pending())
    monkeypatch.setattr(PendingTransactionRepository, "update_unconfirmed", update)

    response = client.put("/gmail/pending/p1", json={"category": "Food", "vendor": ""})

    assert response.status_code == 200
    update.assert_awaited_once_with("user-123", "p1", {"category": "Food"})


def test_update_unknown_pending_is_404(client, monkeypatch):
    monkeypatch.setattr(
        PendingTransactionRepository, "update_unconfirmed", AsyncMock(return_value=None)
    )
    assert client.put("/gmail/pending/nope", json={"category": "Food"}).status_code == 404


def test_update_rejects_non_positive_amount(client):
    assert client.put("/gmail/pending/p1", json={"amount": 0}).status_code == 422


def test_delete_pending(client, monkeypatch):
    delete = AsyncMock(side_effect=[True, False])
    monkeypatch.setattr(PendingTransactionRepository, "delete_unconfirmed", delete)

    assert client.delete("/gmail/pending/p1").status_code == 200
    assert client.delete("/gmail/pending/p1").status_code == 404


def test_confirm_requires_ids(client):
    assert client.post("/gmail/confirm", json={"transactionIds": []}).status_code == 400
    assert client.post("/gmail/confirm", json={}).status_code == 400


def test_confirm_unknown_ids_is_404(client, monkeypatch):
    service = MagicMock()
    service.confirm_transactions = AsyncMock(return_value=ConfirmationResult(0, 0))
    monkeypatch.setattr(gmail_routes, "confirmation_service", service)

    assert client.post("/gmail/confirm", json={"transactionIds": ["x"]}).status_code == 404


def test_confirm(client, monkeypatch):
    service = MagicMock()
    service.confirm_transactions = AsyncMock(return_value=ConfirmationResult(2, 1))
    monkeypatch.setattr(gmail_routes, "confirmation_service", service)

    response = client.post("/gmail/confirm", json={"transactionIds": ["p1", "p2"]})

    assert response.status_code == 200
    body = response.json()
    assert (body["confirmed"], body["expensesCreated"]) == (2, 1)
    service.confirm_transactions.assert_awaited_once_with("user-123", ["p1", "p2"])


def test_revoke_deletes_unconfirmed(client, credentials, monkeypatch):
    monkeypatch.setattr(
        PendingTransactionRepository, "delete_all_unconfirmed", AsyncMock(return_value=3)
    )

    response = client.post("/gmail/revoke")

    assert response.status_code == 200
    assert response.json()["pendingDeleted"] == 3
    assert response.json()["revoked"] is True
    credentials.revoke.assert_awaited_once_with("user-123")
