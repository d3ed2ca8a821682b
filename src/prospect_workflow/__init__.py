"""Per-customer prospect conversation workflow."""

from prospect_workflow.errors import (
    ExtractionFailure,
    InvalidTransactionType,
    ProspectWorkflowError,
    StaleTimerFire,
    ValidationError,
)
from prospect_workflow.models import ConversationState, ConversationStatus, Message
from prospect_workflow.timer import FollowUpTimer
from prospect_workflow.workflow import Accepted, ConversationWorkflow

__all__ = [
    "Accepted",
    "ConversationState",
    "ConversationStatus",
    "ConversationWorkflow",
    "ExtractionFailure",
    "FollowUpTimer",
    "InvalidTransactionType",
    "Message",
    "ProspectWorkflowError",
    "StaleTimerFire",
    "ValidationError",
]

__version__ = "0.1.0"
