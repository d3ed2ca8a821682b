from .llm_agent import LLMExtractionAgent
from .signals import ExtractionSignal, parse_signal, render_transcript
from .tools import ExtractionTools

__all__ = [
    "ExtractionSignal",
    "ExtractionTools",
    "LLMExtractionAgent",
    "parse_signal",
    "render_transcript",
]
