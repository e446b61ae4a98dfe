"""Optional LLM assist for estimates the rule-based scrubber struggles with."""

from adas_scrub.assist.extractor import (
    AssistPort,
    OpenAIEstimateAssist,
    build_operation_hint_text,
    parse_assist_payload,
)
from adas_scrub.assist.openai_client import get_openai_client, has_openai_credentials

__all__ = [
    "AssistPort",
    "OpenAIEstimateAssist",
    "build_operation_hint_text",
    "get_openai_client",
    "has_openai_credentials",
    "parse_assist_payload",
]
