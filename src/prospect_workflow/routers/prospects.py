from fastapi import APIRouter, Depends

from prospect_workflow.dependencies import get_workflow
from prospect_workflow.workflow import ConversationWorkflow

router = APIRouter(prefix="/prospects", tags=["prospects"])


@router.get("/{customer_id}/status")
async def prospect_status(
    customer_id: str, workflow: ConversationWorkflow = Depends(get_workflow)
) -> dict:
    current = await workflow.status(customer_id)
    return {"customer_id": customer_id, "status": current.value}
