from __future__ import annotations

import structlog

from prospect_workflow.adapters.logging_messenger import LoggingMessenger
from prospect_workflow.adapters.memory_record_store import InMemoryClientRecordStore
from prospect_workflow.adapters.memory_state_store import InMemoryConversationStateStore
from prospect_workflow.adapters.sql_record_store import SQLClientRecordStore
from prospect_workflow.adapters.sql_state_store import SQLConversationStateStore
from prospect_workflow.db import Database
from prospect_workflow.interfaces.protocols import ClientRecordStore, ConversationStateStore

logger = structlog.get_logger(__name__)


def get_stores(
    backend: str, database: Database | None = None
) -> tuple[ConversationStateStore, ClientRecordStore]:
    if backend == "sql":
        if database is None:
            raise ValueError("A database is required for the sql backend")
        logger.info("Initialising SQL stores", url=database.url)
        return SQLConversationStateStore(database), SQLClientRecordStore(database)

    logger.info("Initialising in-memory stores", backend=backend)
    return InMemoryConversationStateStore(), InMemoryClientRecordStore()


__all__ = [
    "InMemoryClientRecordStore",
    "InMemoryConversationStateStore",
    "LoggingMessenger",
    "SQLClientRecordStore",
    "SQLConversationStateStore",
    "get_stores",
]
