import asyncio
from typing import Dict, Optional

import structlog

from prospect_workflow.models import ClientRecord, PropertyDetails

logger = structlog.get_logger(__name__)


class InMemoryClientRecordStore:
    """
    In-memory client record store, idempotent by address.
    """

    def __init__(self) -> None:
        self._records: Dict[str, ClientRecord] = {}
        self._lock = asyncio.Lock()
        self.writes = 0

    async def save(
        self, name: str, address: str, phone: str, details: PropertyDetails
    ) -> ClientRecord:
        candidate = ClientRecord(name=name, address=address, phone=phone, details=details)
        async with self._lock:
            existing = self._records.get(address)
            if existing is not None and existing.same_data(candidate):
                logger.debug("Client record unchanged", address=address)
                return existing
            self._records[address] = candidate
            self.writes += 1
            logger.info("Client record stored", address=address, overwrite=existing is not None)
            return candidate

    async def get(self, address: str) -> Optional[ClientRecord]:
        async with self._lock:
            return self._records.get(address)

    def __len__(self) -> int:
        return len(self._records)
