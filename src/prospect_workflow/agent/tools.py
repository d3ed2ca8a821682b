from __future__ import annotations

from typing import Awaitable, Callable, Optional

import structlog

from prospect_workflow.interfaces.protocols import ClientRecordStore, OutboundMessenger
from prospect_workflow.models import ClientRecord, PropertyDetails, TransactionType

logger = structlog.get_logger(__name__)

RecordSavedHook = Callable[[ClientRecord], Awaitable[None]]


class ExtractionTools:
    """Side-effecting callbacks handed to the extraction agent for one cycle."""

    def __init__(
        self,
        messenger: OutboundMessenger,
        record_store: ClientRecordStore,
        *,
        on_record_saved: Optional[RecordSavedHook] = None,
    ) -> None:
        self.messenger = messenger
        self.record_store = record_store
        self._on_record_saved = on_record_saved
        self.sent_messages = 0
        self.saved_records: list[ClientRecord] = []

    async def send_message(self, address: str, subject: str, content: str) -> str:
        await self.messenger.send(address, subject, content)
        self.sent_messages += 1
        return f"Message was sent to {address}. Wait for a reply."

    async def save_record(
        self,
        name: str,
        address: str,
        phone: str,
        location: str,
        property_type: str,
        transaction_type: str,
    ) -> str:
        transaction = TransactionType.parse(transaction_type)
        if not name or not address:
            raise ValueError("name and address are required to save a client record")

        details = PropertyDetails(
            location=location,
            property_type=property_type,
            transaction_type=transaction.value,
        )
        logger.info(
            "Saving client record",
            address=address,
            location=location,
            property_type=property_type,
            transaction_type=transaction.value,
        )
        record = await self.record_store.save(name, address, phone, details)
        self.saved_records.append(record)
        if self._on_record_saved is not None:
            await self._on_record_saved(record)
        return f"Successfully saved customer information for {name}"


__all__ = ["ExtractionTools"]
