from .expense_repository import ExpenseRepository
from .pending_repository import PendingTransactionRepository
from .sync_state_repository import SyncStateRepository

__all__ = [
    "ExpenseRepository",
    "PendingTransactionRepository",
    "SyncStateRepository",
]
