from datetime import UTC, datetime
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from fintrack.features.gmail_import.domain import NormalizedTransaction
from fintrack.features.gmail_import.repository import PendingTransactionRepository
from fintrack.features.gmail_import.repository import pending_repository as pending_module


def _row(**overrides) -> dict:
    row = {
        "id": 7,
        "user_id": "user-123",
        "gmail_message_id": "gm-1",
        "amount": "499.00",
        "direction": "debit",
        "vendor": "Swiggy",
        "raw_vendor": "SWIGGY",
        "occurred_at": datetime(2024, 5, 12, tzinfo=UTC),
        "reference_id": None,
        "confidence": "high",
        "metadata": None,
        "category": "Uncategorized",
        "description": None,
        "is_confirmed": False,
        "confirmed_at": None,
        "created_at": None,
    }
    row.update(overrides)
    return row


@pytest.mark.asyncio
async def test_insert_conflict_returns_none(monkeypatch):
    monkeypatch.setattr(pending_module, "fetch_one", AsyncMock(return_value=None))
    transaction = NormalizedTransaction(
        user_id="user-123",
        gmail_message_id="gm-1",
        amount=Decimal("499.00"),
        direction="debit",
        vendor="Swiggy",
        raw_vendor="SWIGGY",
        occurred_at=datetime(2024, 5, 12, tzinfo=UTC),
        metadata={},
        confidence="high",
    )

    assert await PendingTransactionRepository.insert_if_absent(transaction) is None


@pytest.mark.asyncio
async def test_row_mapping_defaults(monkeypatch):
    monkeypatch.setattr(pending_module, "fetch_one", AsyncMock(return_value=_row()))

    pending = await PendingTransactionRepository.find_unconfirmed("user-123", "7")

    assert pending.id == "7"
    assert pending.amount == Decimal("499.00")
    assert pending.metadata == {}
    assert pending.description == ""


@pytest.mark.asyncio
async def test_update_maps_date_to_occurred_at_and_ignores_unknown_fields(monkeypatch):
    fetch_one = AsyncMock(return_value=_row(category="Food"))
    monkeypatch.setattr(pending_module, "fetch_one", fetch_one)
    new_date = datetime(2024, 6, 1, tzinfo=UTC)

    updated = await PendingTransactionRepository.update_unconfirmed(
        "user-123", "7", {"category": "Food", "date": new_date, "is_confirmed": True}
    )

    query, params = fetch_one.await_args.args
    assert "category = %s" in query
    assert "occurred_at = %s" in query
    assert "is_confirmed = %s" not in query
    assert params == ("Food", new_date, "7", "user-123")
    assert updated.category == "Food"


@pytest.mark.asyncio
async def test_mark_confirmed_with_no_ids_is_zero(monkeypatch):
    execute = AsyncMock()
    monkeypatch.setattr(pending_module, "execute_query", execute)

    assert await PendingTransactionRepository.mark_confirmed("user-123", [], datetime.now(UTC)) == 0
    execute.assert_not_awaited()
