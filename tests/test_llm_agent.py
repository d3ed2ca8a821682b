from typing import Any

import pytest
from langchain_core.language_models.fake_chat_models import GenericFakeChatModel
from langchain_core.messages import AIMessage, HumanMessage, ToolMessage
from pydantic import Field

from prospect_workflow.agent import ExtractionTools
from prospect_workflow.agent.llm_agent import (
    SAVE_RECORD_TOOL,
    SEND_MESSAGE_TOOL,
    LLMExtractionAgent,
)


class ScriptedChatModel(GenericFakeChatModel):
    """Fake chat model that accepts tool binding and replays scripted replies."""

    bound_tool_names: list[str] = Field(default_factory=list)

    def bind_tools(self, tools: Any, **kwargs: Any) -> "ScriptedChatModel":
        self.bound_tool_names = [tool.name for tool in tools]
        return self


def _model(*replies: AIMessage | str) -> ScriptedChatModel:
    return ScriptedChatModel(messages=iter(replies))


def _call(name: str, call_id: str, /, **args: str) -> dict[str, Any]:
    return {"name": name, "args": args, "id": call_id, "type": "tool_call"}


RECORD_ARGS = {
    "name": "John Doe",
    "address": "john@example.com",
    "phone": "911111111",
    "location": "Porto, Portugal",
    "property_type": "apartment",
}


@pytest.fixture
def tools(messenger, record_store) -> ExtractionTools:
    return ExtractionTools(messenger, record_store)


@pytest.mark.asyncio
async def test_save_tool_then_final_reply(tools, record_store) -> None:
    llm = _model(
        AIMessage(
            content="",
            tool_calls=[
                _call(SAVE_RECORD_TOOL, "call-1", transaction_type="Rent", **RECORD_ARGS)
            ],
        ),
        "ALL_INFO_COLLECTED",
    )
    agent = LLMExtractionAgent(llm)

    reply = await agent.extract("john@example.com", "<content>hi</content>", tools)

    assert reply == "ALL_INFO_COLLECTED"
    assert llm.bound_tool_names == [SEND_MESSAGE_TOOL, SAVE_RECORD_TOOL]
    record = await record_store.get("john@example.com")
    assert record is not None
    assert record.details.transaction_type == "rent"

    history = agent.session("john@example.com")
    assert isinstance(history[0], HumanMessage)
    tool_messages = [m for m in history if isinstance(m, ToolMessage)]
    assert tool_messages[0].content == "Successfully saved customer information for John Doe"


@pytest.mark.asyncio
async def test_invalid_transaction_type_is_reported_to_the_model(tools, record_store) -> None:
    llm = _model(
        AIMessage(
            content="",
            tool_calls=[
                _call(SAVE_RECORD_TOOL, "call-1", transaction_type="lease", **RECORD_ARGS)
            ],
        ),
        "WAIT_REPLY",
    )
    agent = LLMExtractionAgent(llm)

    reply = await agent.extract("john@example.com", "transcript", tools)

    assert reply == "WAIT_REPLY"
    assert await record_store.get("john@example.com") is None
    tool_message = next(
        m for m in agent.session("john@example.com") if isinstance(m, ToolMessage)
    )
    assert tool_message.content.startswith("Failed to save customer information:")


@pytest.mark.asyncio
async def test_send_message_tool_reaches_messenger(tools, messenger) -> None:
    llm = _model(
        AIMessage(
            content="",
            tool_calls=[
                _call(
                    SEND_MESSAGE_TOOL,
                    "call-1",
                    address="john@example.com",
                    subject="Your inquiry",
                    content="What is your phone number?",
                )
            ],
        ),
        AIMessage(content=[{"type": "text", "text": "WAIT_REPLY"}]),
    )
    agent = LLMExtractionAgent(llm)

    reply = await agent.extract("john@example.com", "transcript", tools)

    assert reply == "WAIT_REPLY"
    assert [entry["subject"] for entry in messenger.sent_to("john@example.com")] == [
        "Your inquiry"
    ]
    assert tools.sent_messages == 1


@pytest.mark.asyncio
async def test_unknown_tool_gets_an_error_result(tools) -> None:
    llm = _model(
        AIMessage(content="", tool_calls=[_call("delete_everything", "call-1")]),
        "WAIT_REPLY",
    )
    agent = LLMExtractionAgent(llm)

    await agent.extract("john@example.com", "transcript", tools)

    tool_message = next(
        m for m in agent.session("john@example.com") if isinstance(m, ToolMessage)
    )
    assert tool_message.content == "Unknown tool: delete_everything"


@pytest.mark.asyncio
async def test_history_is_kept_per_customer(tools) -> None:
    llm = _model("WAIT_REPLY", "WAIT_REPLY", "WAIT_REPLY")
    agent = LLMExtractionAgent(llm)

    await agent.extract("a@example.com", "first", tools)
    await agent.extract("a@example.com", "second", tools)
    await agent.extract("b@example.com", "other", tools)

    a_inputs = [m.content for m in agent.session("a@example.com") if isinstance(m, HumanMessage)]
    assert a_inputs == ["first", "second"]
    assert len(agent.session("b@example.com")) == 2
    assert agent.session("nobody@example.com") == []


@pytest.mark.asyncio
async def test_exhausted_tool_rounds_wait_for_reply(tools) -> None:
    looping = [
        AIMessage(
            content="",
            tool_calls=[
                _call(
                    SEND_MESSAGE_TOOL,
                    f"call-{i}",
                    address="john@example.com",
                    subject="Again",
                    content="Still there?",
                )
            ],
        )
        for i in range(2)
    ]
    agent = LLMExtractionAgent(_model(*looping), max_tool_rounds=2)

    reply = await agent.extract("john@example.com", "transcript", tools)

    assert reply == "WAIT_REPLY"
    assert tools.sent_messages == 2
