from __future__ import annotations

from collections import defaultdict
from typing import Any, Optional

import structlog
from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage, ToolMessage
from langchain_core.tools import BaseTool, StructuredTool
from langchain_openai import ChatOpenAI
from pydantic import BaseModel, Field

from prospect_workflow.agent.prompts import (
    SAVE_RECORD_DESCRIPTION,
    SEND_MESSAGE_DESCRIPTION,
    SYSTEM_PROMPT,
)
from prospect_workflow.agent.signals import ExtractionSignal
from prospect_workflow.agent.tools import ExtractionTools
from prospect_workflow.settings import WorkflowSettings

logger = structlog.get_logger(__name__)

SEND_MESSAGE_TOOL = "send_message_customer"
SAVE_RECORD_TOOL = "save_customer_info"


class SendMessageArgs(BaseModel):
    address: str = Field(description="Customer contact address")
    subject: str = Field(description="Subject of the message")
    content: str = Field(description="Body of the message")


class SaveRecordArgs(BaseModel):
    name: str = Field(description="Customer full name")
    address: str = Field(description="Customer contact address")
    phone: str = Field(description="Customer phone number")
    location: str = Field(description="City and country of interest")
    property_type: str = Field(description="apartment or house")
    transaction_type: str = Field(description="rent or buy")


class LLMExtractionAgent:
    """
    Extraction agent backed by a LangChain chat model with tool calling.

    The model receives the system prompt, the customer's session history and the
    new transcript. Tool calls are executed against the injected
    :class:`ExtractionTools` and fed back until the model answers with text,
    which is returned verbatim for signal parsing.
    """

    def __init__(
        self,
        llm: Optional[BaseChatModel] = None,
        *,
        model: str = "gpt-4.1-mini",
        temperature: float = 0.2,
        api_key: Optional[str] = None,
        max_tool_rounds: int = 6,
    ) -> None:
        if llm is None:
            kwargs: dict[str, Any] = {"model": model, "temperature": temperature}
            if api_key:
                kwargs["api_key"] = api_key
            llm = ChatOpenAI(**kwargs)
        self.llm = llm
        self.max_tool_rounds = max_tool_rounds
        self._sessions: dict[str, list[BaseMessage]] = defaultdict(list)

    @classmethod
    def from_settings(cls, settings: WorkflowSettings) -> "LLMExtractionAgent":
        return cls(
            model=settings.agent_model,
            temperature=settings.agent_temperature,
            api_key=settings.openai_api_key,
            max_tool_rounds=settings.agent_max_tool_rounds,
        )

    def session(self, customer_id: str) -> list[BaseMessage]:
        return list(self._sessions.get(customer_id, []))

    async def extract(
        self, customer_id: str, transcript: str, tools: ExtractionTools
    ) -> str:
        bound_tools = _build_tools(tools)
        tools_by_name = {tool.name: tool for tool in bound_tools}
        model = self.llm.bind_tools(bound_tools)

        history = self._sessions[customer_id]
        history.append(HumanMessage(content=transcript))

        for _ in range(self.max_tool_rounds):
            response = await model.ainvoke([SystemMessage(content=SYSTEM_PROMPT), *history])
            history.append(response)

            tool_calls = getattr(response, "tool_calls", None) or []
            if not tool_calls:
                reply = _response_text(response)
                logger.debug("Agent replied", customer_id=customer_id, reply=reply)
                return reply

            for call in tool_calls:
                result = await _run_tool(tools_by_name, call)
                history.append(ToolMessage(content=result, tool_call_id=call["id"]))

        logger.warning(
            "Agent exhausted tool rounds without a final reply",
            customer_id=customer_id,
            max_tool_rounds=self.max_tool_rounds,
        )
        return ExtractionSignal.WAIT_REPLY.value


def _build_tools(tools: ExtractionTools) -> list[BaseTool]:
    return [
        StructuredTool.from_function(
            coroutine=tools.send_message,
            name=SEND_MESSAGE_TOOL,
            description=SEND_MESSAGE_DESCRIPTION,
            args_schema=SendMessageArgs,
        ),
        StructuredTool.from_function(
            coroutine=tools.save_record,
            name=SAVE_RECORD_TOOL,
            description=SAVE_RECORD_DESCRIPTION,
            args_schema=SaveRecordArgs,
        ),
    ]


async def _run_tool(tools_by_name: dict[str, BaseTool], call: dict[str, Any]) -> str:
    name = call.get("name", "")
    tool = tools_by_name.get(name)
    if tool is None:
        logger.warning("Agent requested unknown tool", tool=name)
        return f"Unknown tool: {name}"

    try:
        result = await tool.ainvoke(call.get("args") or {})
    except Exception as exc:
        logger.error("Tool call failed", tool=name, error=str(exc), exc_info=True)
        if name == SAVE_RECORD_TOOL:
            return f"Failed to save customer information: {exc}"
        return f"Tool {name} failed: {exc}"
    return str(result)


def _response_text(response: AIMessage | BaseMessage) -> str:
    content = response.content
    if isinstance(content, str):
        return content
    parts: list[str] = []
    for block in content:
        if isinstance(block, str):
            parts.append(block)
        elif isinstance(block, dict) and block.get("type") == "text":
            parts.append(str(block.get("text", "")))
    return "".join(parts)


__all__ = [
    "LLMExtractionAgent",
    "SAVE_RECORD_TOOL",
    "SEND_MESSAGE_TOOL",
    "SaveRecordArgs",
    "SendMessageArgs",
]
