from .client import ClientRecord, TransactionType
from .prospect import (
    TERMINAL_STATUSES,
    ConversationState,
    ConversationStatus,
    FenceToken,
    Message,
    PropertyDetails,
    SenderKind,
)

__all__ = [
    "ClientRecord",
    "ConversationState",
    "ConversationStatus",
    "FenceToken",
    "Message",
    "PropertyDetails",
    "SenderKind",
    "TERMINAL_STATUSES",
    "TransactionType",
]
