from __future__ import annotations

from enum import StrEnum
from typing import Iterable

from prospect_workflow.models import Message


class ExtractionSignal(StrEnum):
    ALL_INFO_COLLECTED = "ALL_INFO_COLLECTED"
    WAIT_REPLY = "WAIT_REPLY"


def parse_signal(reply: str | None) -> ExtractionSignal:
    """Map an agent reply to a signal.

    Only the exact ``ALL_INFO_COLLECTED`` token closes the conversation; any
    other text, including lowercase variants, falls back to ``WAIT_REPLY``.
    """

    if reply is not None and reply.strip() == ExtractionSignal.ALL_INFO_COLLECTED.value:
        return ExtractionSignal.ALL_INFO_COLLECTED
    return ExtractionSignal.WAIT_REPLY


def render_transcript(messages: Iterable[Message]) -> str:
    return "".join(message.render() for message in messages)


__all__ = ["ExtractionSignal", "parse_signal", "render_transcript"]
