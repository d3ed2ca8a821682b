from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel

from prospect_workflow.dependencies import get_record_store, get_workflow
from prospect_workflow.errors import ValidationError
from prospect_workflow.interfaces.protocols import ClientRecordStore
from prospect_workflow.models import ClientRecord
from prospect_workflow.workflow import ConversationWorkflow

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/emails", tags=["emails"])


class NewEmailRequest(BaseModel):
    sender: str
    subject: str = ""
    content: str = ""


@router.post("", status_code=status.HTTP_202_ACCEPTED)
async def new_email(
    request: NewEmailRequest,
    workflow: ConversationWorkflow = Depends(get_workflow),
) -> dict:
    """Accept an inbound email; processing continues in the background."""

    try:
        accepted = await workflow.submit(
            request.sender, request.subject, request.content, sender=request.sender
        )
    except ValidationError as exc:
        logger.warning("Rejected inbound email", sender=request.sender, error=str(exc))
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)
        ) from exc

    return {
        "status": "accepted",
        "customer_id": accepted.customer_id,
        "queued": accepted.queued,
        "detail": accepted.detail,
    }


@router.get("/{customer_id}")
async def get_client(
    customer_id: str,
    store: ClientRecordStore = Depends(get_record_store),
) -> ClientRecord:
    record = await store.get(customer_id)
    if record is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No client record for {customer_id}",
        )
    return record
