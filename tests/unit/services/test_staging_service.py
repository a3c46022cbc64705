from datetime import UTC, datetime
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from fintrack.config import settings
from fintrack.features.gmail_import.domain import NormalizedTransaction
from fintrack.features.gmail_import.repository import (
    ExpenseRepository,
    PendingTransactionRepository,
)
from fintrack.features.gmail_import.services.staging_service import StagingService


def _transaction(direction="debit") -> NormalizedTransaction:
    return NormalizedTransaction(
        user_id="user-123",
        gmail_message_id="m-1",
        amount=Decimal("499.00"),
        direction=direction,
        vendor="Swiggy",
        raw_vendor="SWIGGY",
        occurred_at=datetime(2024, 5, 12, tzinfo=UTC),
        metadata={"payment_method": "UPI"},
        confidence="high",
        reference_id="412345678901",
    )


@pytest.fixture
def repos(monkeypatch):
    mocks = {
        "pending_exists": AsyncMock(return_value=False),
        "expense_exists": AsyncMock(return_value=False),
        "insert": AsyncMock(return_value="pending-row"),
        "create_expense": AsyncMock(return_value="expense-row"),
    }
    monkeypatch.setattr(PendingTransactionRepository, "exists_for_message", mocks["pending_exists"])
    monkeypatch.setattr(ExpenseRepository, "exists_for_message", mocks["expense_exists"])
    monkeypatch.setattr(PendingTransactionRepository, "insert_if_absent", mocks["insert"])
    monkeypatch.setattr(ExpenseRepository, "create", mocks["create_expense"])
    return mocks


@pytest.mark.asyncio
async def test_new_transaction_is_staged(repos):
    txn = _transaction()
    result = await StagingService().save_if_new("user-123", txn, "m-1", auto_confirm=False)

    assert result == "pending-row"
    repos["insert"].assert_awaited_once_with(txn)
    repos["create_expense"].assert_not_awaited()


@pytest.mark.asyncio
@pytest.mark.parametrize("existing", ["pending_exists", "expense_exists"])
async def test_duplicate_in_either_collection_is_skipped(repos, existing):
    repos[existing].return_value = True

    result = await StagingService().save_if_new("user-123", _transaction(), "m-1", auto_confirm=False)

    assert result is None
    repos["insert"].assert_not_awaited()


@pytest.mark.asyncio
async def test_concurrent_insert_conflict_counts_as_duplicate(repos):
    repos["insert"].return_value = None
    assert await StagingService().save_if_new("user-123", _transaction(), "m-1", auto_confirm=False) is None


@pytest.mark.asyncio
async def test_auto_confirm_books_debit_as_expense(repos):
    result = await StagingService().save_if_new("user-123", _transaction(), "m-1", auto_confirm=True)

    assert result == "expense-row"
    repos["insert"].assert_not_awaited()
    kwargs = repos["create_expense"].await_args.kwargs
    assert kwargs["amount"] == Decimal("499.00")
    assert kwargs["description"] == "Swiggy transaction"
    assert kwargs["category"] == "Uncategorized"
    assert kwargs["payment_method"] == "UPI"
    assert kwargs["tags"] == ["gmail-auto"]
    assert kwargs["notes"] == "Auto-imported from Gmail. Ref: 412345678901"
    assert kwargs["gmail_message_id"] == "m-1"


@pytest.mark.asyncio
async def test_auto_confirm_drops_credits(repos):
    result = await StagingService().save_if_new(
        "user-123", _transaction("credit"), "m-1", auto_confirm=True
    )

    assert result is None
    repos["create_expense"].assert_not_awaited()
    repos["insert"].assert_not_awaited()


@pytest.mark.asyncio
async def test_auto_confirm_defaults_to_setting(repos, monkeypatch):
    monkeypatch.setattr(settings, "GMAIL_AUTO_CONFIRM_TRANSACTIONS", True)
    await StagingService().save_if_new("user-123", _transaction(), "m-1")
    repos["create_expense"].assert_awaited_once()
