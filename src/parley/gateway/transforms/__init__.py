"""Translators between the Anthropic Messages and OpenAI Chat Completions formats.

Everything here is pure: no I/O, no shared state between requests.
"""

from .content import from_chat_message, parse_block, to_chat_messages
from .request import translate_request
from .response import translate_response
from .schema import clean_schema
from .stream import SSELineBuffer, StreamReencoder, reencode_stream
from .types import (
    ContentBlock,
    ImageBlock,
    StreamEvent,
    StreamState,
    TextBlock,
    TokenUsage,
    ToolResultBlock,
    ToolSchema,
    ToolUseBlock,
)
from .validation import MessagesRequest, validate_request

__all__ = [
    # Translators
    "translate_request",
    "translate_response",
    "reencode_stream",
    "StreamReencoder",
    "SSELineBuffer",
    "clean_schema",
    "parse_block",
    "to_chat_messages",
    "from_chat_message",
    # Types
    "ContentBlock",
    "ImageBlock",
    "StreamEvent",
    "StreamState",
    "TextBlock",
    "TokenUsage",
    "ToolResultBlock",
    "ToolSchema",
    "ToolUseBlock",
    # Validation
    "MessagesRequest",
    "validate_request",
]
