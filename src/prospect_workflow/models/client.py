from __future__ import annotations

from datetime import datetime, timezone
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field

from prospect_workflow.errors import InvalidTransactionType
from prospect_workflow.models.prospect import PropertyDetails


class TransactionType(StrEnum):
    RENT = "rent"
    BUY = "buy"

    @classmethod
    def parse(cls, value: str) -> "TransactionType":
        normalized = (value or "").strip().lower()
        try:
            return cls(normalized)
        except ValueError as exc:
            raise InvalidTransactionType(value) from exc


class ClientRecord(BaseModel):
    """Snapshot of the details saved for one prospect, keyed by address."""

    model_config = ConfigDict(frozen=True)

    name: str
    address: str
    phone: str
    details: PropertyDetails
    saved_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def same_data(self, other: "ClientRecord") -> bool:
        return (
            self.name == other.name
            and self.address == other.address
            and self.phone == other.phone
            and self.details == other.details
        )


__all__ = ["ClientRecord", "TransactionType"]
