"""Shared fixtures for the prospect workflow tests."""

from __future__ import annotations

import asyncio
import sys
from collections import defaultdict
from datetime import timedelta
from pathlib import Path
from typing import Any, Awaitable, Callable

import pytest
import pytest_asyncio

PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_PATH = PROJECT_ROOT / "src"

if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from prospect_workflow.adapters import (  # noqa: E402
    InMemoryClientRecordStore,
    InMemoryConversationStateStore,
    LoggingMessenger,
)
from prospect_workflow.agent import ExtractionTools  # noqa: E402
from prospect_workflow.models import ConversationStatus  # noqa: E402
from prospect_workflow.workflow import ConversationWorkflow  # noqa: E402

Behaviour = str | BaseException | Callable[[str, str, ExtractionTools], Awaitable[str]]


class ScriptedAgent:
    """
    Extraction agent double. Replies are scripted per customer id; a list is
    consumed one entry per call and its last entry repeats.
    """

    def __init__(self, default: Behaviour = "WAIT_REPLY") -> None:
        self.default = default
        self.scripts: dict[str, list[Behaviour]] = {}
        self.calls: list[tuple[str, str]] = []
        self.in_flight: dict[str, int] = defaultdict(int)
        self.max_in_flight: dict[str, int] = defaultdict(int)
        self._gates: dict[str, asyncio.Event] = {}
        self._started: dict[str, asyncio.Event] = {}

    def script(self, customer_id: str, *behaviours: Behaviour) -> "ScriptedAgent":
        self.scripts[customer_id] = list(behaviours)
        return self

    def hold(self, customer_id: str) -> asyncio.Event:
        """Block calls for ``customer_id`` until the returned event is set."""

        gate = asyncio.Event()
        self._gates[customer_id] = gate
        return gate

    def started(self, customer_id: str) -> asyncio.Event:
        return self._started.setdefault(customer_id, asyncio.Event())

    def transcripts(self, customer_id: str) -> list[str]:
        return [transcript for cid, transcript in self.calls if cid == customer_id]

    async def extract(self, customer_id: str, transcript: str, tools: ExtractionTools) -> str:
        self.calls.append((customer_id, transcript))
        self.in_flight[customer_id] += 1
        self.max_in_flight[customer_id] = max(
            self.max_in_flight[customer_id], self.in_flight[customer_id]
        )
        try:
            self.started(customer_id).set()
            gate = self._gates.get(customer_id)
            if gate is not None:
                await gate.wait()

            behaviour = self._next(customer_id)
            if isinstance(behaviour, BaseException):
                raise behaviour
            if callable(behaviour):
                return await behaviour(customer_id, transcript, tools)
            return behaviour
        finally:
            self.in_flight[customer_id] -= 1

    def _next(self, customer_id: str) -> Behaviour:
        script = self.scripts.get(customer_id)
        if not script:
            return self.default
        if len(script) > 1:
            return script.pop(0)
        return script[0]


def save_then(signal: str, **fields: str) -> Callable[[str, str, ExtractionTools], Awaitable[str]]:
    """Behaviour that saves a client record through the tools, then replies."""

    async def _behaviour(customer_id: str, transcript: str, tools: ExtractionTools) -> str:
        values: dict[str, Any] = {
            "name": "John Doe",
            "address": customer_id,
            "phone": "911111111",
            "location": "Porto",
            "property_type": "apartment",
            "transaction_type": "rent",
        }
        values.update(fields)
        await tools.save_record(**values)
        return signal

    return _behaviour


async def wait_for_status(
    workflow: ConversationWorkflow,
    customer_id: str,
    expected: ConversationStatus,
    timeout: float = 2.0,
) -> None:
    async def _poll() -> None:
        while await workflow.status(customer_id) is not expected:
            await asyncio.sleep(0.01)

    try:
        await asyncio.wait_for(_poll(), timeout)
    except TimeoutError:
        current = await workflow.status(customer_id)
        raise AssertionError(
            f"{customer_id} stayed {current.value}, expected {expected.value}"
        ) from None


@pytest.fixture
def agent() -> ScriptedAgent:
    return ScriptedAgent()


@pytest.fixture
def messenger() -> LoggingMessenger:
    return LoggingMessenger()


@pytest.fixture
def record_store() -> InMemoryClientRecordStore:
    return InMemoryClientRecordStore()


@pytest.fixture
def state_store() -> InMemoryConversationStateStore:
    return InMemoryConversationStateStore()


@pytest_asyncio.fixture
async def make_workflow(agent, messenger, record_store, state_store):
    created: list[ConversationWorkflow] = []

    def _make(**overrides: Any) -> ConversationWorkflow:
        options: dict[str, Any] = {
            "follow_up_interval": timedelta(seconds=0.1),
            "extraction_timeout": 1.0,
        }
        options.update(overrides)
        workflow = ConversationWorkflow(
            agent, messenger, record_store, state_store, **options
        )
        created.append(workflow)
        return workflow

    yield _make
    for workflow in created:
        await workflow.shutdown()


@pytest.fixture
def workflow(make_workflow) -> ConversationWorkflow:
    return make_workflow()
