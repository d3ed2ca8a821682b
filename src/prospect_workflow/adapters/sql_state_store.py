from __future__ import annotations

from typing import List, Optional

from sqlalchemy import select

from prospect_workflow.db import ConversationStateRow, Database
from prospect_workflow.models import ConversationState, ConversationStatus


class SQLConversationStateStore:
    """
    Durable conversation state store. Each customer owns one row holding the
    JSON-serialised state; status and version are mirrored into columns for
    querying.
    """

    def __init__(self, database: Database) -> None:
        self.database = database

    async def load(self, customer_id: str) -> Optional[ConversationState]:
        async with self.database.session() as session:
            row = await session.get(ConversationStateRow, customer_id)
            return self._to_state(row) if row else None

    async def save(self, state: ConversationState) -> None:
        async with self.database.session() as session:
            async with session.begin():
                row = await session.get(ConversationStateRow, state.customer_id)
                if row is None:
                    row = ConversationStateRow(customer_id=state.customer_id)
                    session.add(row)
                row.status = state.status
                row.version = state.version
                row.payload = state.model_dump_json()
                row.updated_at = state.last_updated

    async def list_by_status(self, *statuses: ConversationStatus) -> List[ConversationState]:
        async with self.database.session() as session:
            result = await session.execute(
                select(ConversationStateRow)
                .where(ConversationStateRow.status.in_(statuses))
                .order_by(ConversationStateRow.updated_at)
            )
            return [self._to_state(row) for row in result.scalars().all()]

    @staticmethod
    def _to_state(row: ConversationStateRow) -> ConversationState:
        return ConversationState.model_validate_json(row.payload)
