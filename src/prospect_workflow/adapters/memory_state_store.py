import asyncio
from typing import Dict, List, Optional

from prospect_workflow.models import ConversationState, ConversationStatus


class InMemoryConversationStateStore:
    """
    Dictionary-backed state store used by tests and local runs.
    """

    def __init__(self) -> None:
        self._states: Dict[str, ConversationState] = {}
        self._lock = asyncio.Lock()
        self.writes = 0

    async def load(self, customer_id: str) -> Optional[ConversationState]:
        async with self._lock:
            return self._states.get(customer_id)

    async def save(self, state: ConversationState) -> None:
        async with self._lock:
            self._states[state.customer_id] = state
            self.writes += 1

    async def list_by_status(self, *statuses: ConversationStatus) -> List[ConversationState]:
        async with self._lock:
            return [s for s in self._states.values() if s.status in statuses]
