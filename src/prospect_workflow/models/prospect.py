from __future__ import annotations

from datetime import datetime, timezone
from enum import StrEnum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class ConversationStatus(StrEnum):
    COLLECT = "COLLECT"
    PROCESSING = "PROCESSING"
    WAITING_REPLY = "WAITING_REPLY"
    FOLLOW_UP = "FOLLOW_UP"
    CLOSED = "CLOSED"
    ERROR = "ERROR"


TERMINAL_STATUSES = frozenset({ConversationStatus.CLOSED, ConversationStatus.ERROR})


class SenderKind(StrEnum):
    USER = "USER"
    ASSISTANT = "ASSISTANT"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Message(BaseModel):
    """A single message exchanged with the prospect."""

    model_config = ConfigDict(frozen=True)

    sender_kind: SenderKind = SenderKind.USER
    sender: str
    subject: str
    content: str
    received_at: datetime = Field(default_factory=_utcnow)

    @classmethod
    def from_user(cls, sender: str, subject: str, content: str) -> "Message":
        return cls(sender_kind=SenderKind.USER, sender=sender, subject=subject, content=content)

    def render(self) -> str:
        return (
            f"<from>{self.sender}</from>\n"
            f"<subject>{self.subject}</subject>\n"
            f"<content>{self.content}</content>\n\n"
        )


class PropertyDetails(BaseModel):
    model_config = ConfigDict(frozen=True)

    location: str
    property_type: str
    transaction_type: str


class FenceToken(BaseModel):
    """Context captured when a follow-up timer is armed.

    A fire is only honoured while the conversation still has the same status
    and version it had when the timer was armed.
    """

    model_config = ConfigDict(frozen=True)

    status: ConversationStatus
    version: int


class ConversationState(BaseModel):
    """
    Per-customer conversation state.

    Instances are immutable: every transition returns a new value with a fresh
    ``last_updated`` and an incremented ``version``.
    """

    model_config = ConfigDict(frozen=True)

    customer_id: str
    status: ConversationStatus = ConversationStatus.COLLECT
    contact_address: str
    unread_messages: tuple[Message, ...] = ()
    in_flight: tuple[Message, ...] = ()
    last_updated: datetime = Field(default_factory=_utcnow)
    property_details: Optional[PropertyDetails] = None
    version: int = 0
    follow_ups_sent: int = 0
    last_error: Optional[str] = None

    @classmethod
    def new(cls, customer_id: str) -> "ConversationState":
        return cls(customer_id=customer_id, contact_address=customer_id)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def is_processing(self) -> bool:
        return self.status is ConversationStatus.PROCESSING

    def fence_token(self) -> FenceToken:
        return FenceToken(status=self.status, version=self.version)

    def matches(self, token: FenceToken) -> bool:
        return self.status is token.status and self.version == token.version

    def _replace(self, **changes: Any) -> "ConversationState":
        changes.setdefault("last_updated", _utcnow())
        changes["version"] = self.version + 1
        return self.model_copy(update=changes)

    def add_unread_message(self, message: Message) -> "ConversationState":
        return self._replace(
            unread_messages=(*self.unread_messages, message),
            follow_ups_sent=0,
        )

    def start_processing(self) -> "ConversationState":
        """Drain the buffer into the in-flight batch and mark the state PROCESSING."""

        return self._replace(
            status=ConversationStatus.PROCESSING,
            in_flight=self.unread_messages,
            unread_messages=(),
            last_error=None,
        )

    def resume_processing(self) -> "ConversationState":
        """Fold buffered messages into the interrupted in-flight batch."""

        return self._replace(
            status=ConversationStatus.PROCESSING,
            in_flight=(*self.in_flight, *self.unread_messages),
            unread_messages=(),
        )

    def waiting_reply(self) -> "ConversationState":
        return self._replace(status=ConversationStatus.WAITING_REPLY, in_flight=())

    def closed(self) -> "ConversationState":
        return self._replace(
            status=ConversationStatus.CLOSED, in_flight=(), unread_messages=()
        )

    def error(self, reason: str) -> "ConversationState":
        return self._replace(
            status=ConversationStatus.ERROR,
            in_flight=(),
            unread_messages=(),
            last_error=reason,
        )

    def follow_up_required(self) -> "ConversationState":
        return self._replace(
            status=ConversationStatus.FOLLOW_UP,
            follow_ups_sent=self.follow_ups_sent + 1,
        )

    def with_details(
        self, location: str, property_type: str, transaction_type: str
    ) -> "ConversationState":
        return self._replace(
            property_details=PropertyDetails(
                location=location,
                property_type=property_type,
                transaction_type=transaction_type,
            )
        )


__all__ = [
    "ConversationState",
    "ConversationStatus",
    "FenceToken",
    "Message",
    "PropertyDetails",
    "SenderKind",
    "TERMINAL_STATUSES",
]
