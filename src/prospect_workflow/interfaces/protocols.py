from __future__ import annotations

from typing import TYPE_CHECKING, Optional, Protocol, runtime_checkable

from prospect_workflow.models import (
    ClientRecord,
    ConversationState,
    ConversationStatus,
    PropertyDetails,
)

if TYPE_CHECKING:
    from prospect_workflow.agent.tools import ExtractionTools


@runtime_checkable
class ExtractionAgent(Protocol):
    async def extract(
        self, customer_id: str, transcript: str, tools: "ExtractionTools"
    ) -> str:
        ...


class ClientRecordStore(Protocol):
    async def save(
        self, name: str, address: str, phone: str, details: PropertyDetails
    ) -> ClientRecord:
        ...

    async def get(self, address: str) -> Optional[ClientRecord]:
        ...


class OutboundMessenger(Protocol):
    async def send(self, address: str, subject: str, content: str) -> None:
        ...


class ConversationStateStore(Protocol):
    async def load(self, customer_id: str) -> Optional[ConversationState]:
        ...

    async def save(self, state: ConversationState) -> None:
        ...

    async def list_by_status(
        self, *statuses: ConversationStatus
    ) -> list[ConversationState]:
        ...


__all__ = [
    "ClientRecordStore",
    "ConversationStateStore",
    "ExtractionAgent",
    "OutboundMessenger",
]
