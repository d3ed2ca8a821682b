from typing import Optional

from prospect_workflow.interfaces.protocols import ClientRecordStore
from prospect_workflow.workflow import ConversationWorkflow

_workflow: Optional[ConversationWorkflow] = None
_record_store: Optional[ClientRecordStore] = None


def set_workflow(workflow: Optional[ConversationWorkflow]) -> None:
    global _workflow
    _workflow = workflow


def get_workflow() -> ConversationWorkflow:
    if _workflow is None:
        raise RuntimeError("Conversation workflow has not been configured")
    return _workflow


def set_record_store(store: Optional[ClientRecordStore]) -> None:
    global _record_store
    _record_store = store


def get_record_store() -> ClientRecordStore:
    if _record_store is None:
        raise RuntimeError("Client record store has not been configured")
    return _record_store
