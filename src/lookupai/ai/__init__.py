"""Completion client, stream decoding, prompt and extraction helpers."""

from .client import CompletionRequest, StreamingCompletionClient
from .json_extract import try_parse_json_object
from .prompts import build_explain_prompt

__all__ = [
    "CompletionRequest",
    "StreamingCompletionClient",
    "build_explain_prompt",
    "try_parse_json_object",
]
