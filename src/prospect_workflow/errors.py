from __future__ import annotations

from typing import Any


class ProspectWorkflowError(RuntimeError):
    """Base error for the prospect workflow."""

    def __init__(self, message: str, *, payload: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.payload: dict[str, Any] = payload or {}


class ValidationError(ProspectWorkflowError, ValueError):
    """Raised when an inbound request is rejected before any state is touched."""


class InvalidTransactionType(ValidationError):
    """Raised when a transaction type is neither ``rent`` nor ``buy``."""

    def __init__(self, value: str) -> None:
        super().__init__(
            f"Invalid transaction type: {value}", payload={"transaction_type": value}
        )
        self.value = value


class ExtractionFailure(ProspectWorkflowError):
    """The extraction capability raised or timed out."""

    def __init__(self, customer_id: str, cause: BaseException) -> None:
        detail = str(cause) or type(cause).__name__
        super().__init__(
            f"Extraction failed for {customer_id}: {detail}",
            payload={"customer_id": customer_id, "cause": type(cause).__name__},
        )
        self.customer_id = customer_id
        self.cause = cause


class StaleTimerFire(ProspectWorkflowError):
    """A follow-up timer fired after the conversation left the armed state.

    Never propagated out of the workflow; it only describes the discarded event
    in logs.
    """

    def __init__(self, customer_id: str, expected: Any, actual: Any) -> None:
        super().__init__(
            f"Stale follow-up timer for {customer_id}",
            payload={"expected": str(expected), "actual": str(actual)},
        )
        self.customer_id = customer_id


__all__ = [
    "ExtractionFailure",
    "InvalidTransactionType",
    "ProspectWorkflowError",
    "StaleTimerFire",
    "ValidationError",
]
