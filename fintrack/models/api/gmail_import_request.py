"""
Gmail import API request models.
Used by routes for input validation. JSON uses camelCase, Python uses snake_case.
"""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class FetchRequest(CamelModel):
    """Request for an ad-hoc Gmail fetch."""

    max_results: int | None = Field(default=None, ge=1, le=500, description="Messages to fetch")
    window_days: int | None = Field(default=None, ge=1, le=365, description="Look-back window in days")


class UpdatePendingRequest(CamelModel):
    """Partial update of an unconfirmed pending transaction. Empty values are ignored."""

    vendor: str | None = Field(default=None, max_length=200)
    category: str | None = Field(default=None, max_length=100)
    amount: Decimal | None = Field(default=None, gt=0, max_digits=14, decimal_places=2)
    date: datetime | None = None
    description: str | None = Field(default=None, max_length=500)

    def changes(self) -> dict:
        return {key: value for key, value in self.model_dump().items() if value}


class ConfirmRequest(CamelModel):
    """Ids of pending transactions to confirm. Emptiness is checked by the route (400)."""

    transaction_ids: list[str] | None = None


class AdminTestFetchRequest(CamelModel):
    user_id: str | None = None


class AddMerchantRequest(CamelModel):
    key: str = Field(..., min_length=1, max_length=100, description="Short form, matched as a substring")
    name: str = Field(..., min_length=1, max_length=200, description="Canonical merchant name")
