from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

import structlog

from prospect_workflow.db import ClientRecordRow, Database
from prospect_workflow.models import ClientRecord, PropertyDetails

logger = structlog.get_logger(__name__)


class SQLClientRecordStore:
    """Client records persisted in a SQL table keyed by address."""

    def __init__(self, database: Database) -> None:
        self.database = database

    async def save(
        self, name: str, address: str, phone: str, details: PropertyDetails
    ) -> ClientRecord:
        async with self.database.session() as session:
            async with session.begin():
                row = await session.get(ClientRecordRow, address)
                if row is not None and self._unchanged(row, name, phone, details):
                    logger.debug("Client record unchanged", address=address)
                    return self._to_record(row)

                if row is None:
                    row = ClientRecordRow(address=address)
                    session.add(row)
                row.name = name
                row.phone = phone
                row.location = details.location
                row.property_type = details.property_type
                row.transaction_type = details.transaction_type
                row.saved_at = datetime.now(timezone.utc)
            logger.info("Client record stored", address=address)
            return self._to_record(row)

    async def get(self, address: str) -> Optional[ClientRecord]:
        async with self.database.session() as session:
            row = await session.get(ClientRecordRow, address)
            return self._to_record(row) if row else None

    @staticmethod
    def _unchanged(
        row: ClientRecordRow, name: str, phone: str, details: PropertyDetails
    ) -> bool:
        return (
            row.name == name
            and row.phone == phone
            and row.location == details.location
            and row.property_type == details.property_type
            and row.transaction_type == details.transaction_type
        )

    @staticmethod
    def _to_record(row: ClientRecordRow) -> ClientRecord:
        return ClientRecord(
            name=row.name,
            address=row.address,
            phone=row.phone,
            details=PropertyDetails(
                location=row.location,
                property_type=row.property_type,
                transaction_type=row.transaction_type,
            ),
            saved_at=row.saved_at,
        )
