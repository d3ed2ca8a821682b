import pytest

from prospect_workflow.agent.signals import ExtractionSignal, parse_signal, render_transcript
from prospect_workflow.models import Message


@pytest.mark.parametrize(
    ("reply", "expected"),
    [
        ("ALL_INFO_COLLECTED", ExtractionSignal.ALL_INFO_COLLECTED),
        ("  ALL_INFO_COLLECTED\n", ExtractionSignal.ALL_INFO_COLLECTED),
        ("WAIT_REPLY", ExtractionSignal.WAIT_REPLY),
        ("all_info_collected", ExtractionSignal.WAIT_REPLY),
        ("ALL_INFO_COLLECTED, thanks!", ExtractionSignal.WAIT_REPLY),
        ("", ExtractionSignal.WAIT_REPLY),
        (None, ExtractionSignal.WAIT_REPLY),
    ],
)
def test_parse_signal(reply, expected) -> None:
    assert parse_signal(reply) is expected


def test_render_transcript_keeps_arrival_order() -> None:
    messages = [
        Message.from_user("a@b.com", "Looking to rent", "first"),
        Message.from_user("a@b.com", "Re: Looking to rent", "second"),
    ]

    transcript = render_transcript(messages)

    assert transcript == (
        "<from>a@b.com</from>\n<subject>Looking to rent</subject>\n<content>first</content>\n\n"
        "<from>a@b.com</from>\n<subject>Re: Looking to rent</subject>\n<content>second</content>\n\n"
    )


def test_render_transcript_empty_batch() -> None:
    assert render_transcript([]) == ""
