"""Anthropic Messages request -> OpenAI Chat Completions request.

OpenAI API Reference:
- Request: POST /chat/completions with {model, messages, tools, tool_choice, stream,
  max_tokens, temperature, top_p, stop}
- Messages: [{role, content, tool_calls?, tool_call_id?}]
"""

import logging
from typing import Any

from .content import to_chat_messages
from .schema import clean_schema
from .types import ToolSchema
from .validation import ensure_valid_request

logger = logging.getLogger(__name__)

# Anthropic name -> OpenAI name, copied only when the request defines them
_SAMPLING_FIELDS = (
    ("temperature", "temperature"),
    ("top_p", "top_p"),
    ("max_tokens", "max_tokens"),
    ("stop_sequences", "stop"),
)


def flatten_system(system: Any) -> str:
    """Flatten an Anthropic system prompt to plain text.

    Block lists keep only ``text`` blocks, joined with newlines.
    """
    if system is None:
        return ""
    if isinstance(system, str):
        return system
    if isinstance(system, list):
        return "\n".join(
            block.get("text") or ""
            for block in system
            if isinstance(block, dict) and block.get("type") == "text"
        )
    return str(system)


def translate_tools(tools: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Convert Anthropic tool definitions to OpenAI function tools."""
    return [
        ToolSchema(
            name=tool["name"],
            description=tool.get("description") or "",
            parameters=clean_schema(tool.get("input_schema") or {}),
        ).to_openai()
        for tool in tools
    ]


def translate_tool_choice(tool_choice: Any) -> str | dict[str, Any] | None:
    """Map an Anthropic tool_choice to the OpenAI equivalent.

    ``any`` has no OpenAI counterpart short of ``required``; it maps to
    ``auto``. Returns None when the key should be left out.
    """
    if isinstance(tool_choice, str):
        choice_type, name = tool_choice, None
    elif isinstance(tool_choice, dict):
        choice_type, name = tool_choice.get("type"), tool_choice.get("name")
    else:
        return None

    if choice_type in ("auto", "any"):
        return "auto"
    if choice_type == "none":
        return "none"
    if choice_type == "tool" and name:
        return {"type": "function", "function": {"name": name}}
    logger.debug("Ignoring unrecognised tool_choice: %r", tool_choice)
    return None


def translate_request(body: dict[str, Any], model: str | None = None) -> dict[str, Any]:
    """Convert an Anthropic Messages request to OpenAI Chat Completions format.

    Args:
        body: Raw Anthropic request body; validated before translation
        model: Upstream model name (defaults to ``body["model"]``)

    Returns:
        OpenAI-format request dict ready for /chat/completions

    Raises:
        InvalidRequest: If the body is missing required fields or holds
            an unknown content block type.
    """
    ensure_valid_request(body)

    messages: list[dict[str, Any]] = []
    for message in body["messages"]:
        messages.extend(to_chat_messages(message))

    system_text = flatten_system(body.get("system"))
    if system_text.strip():
        messages.insert(0, {"role": "system", "content": system_text})

    result: dict[str, Any] = {
        "model": model or body["model"],
        "messages": messages,
    }

    tools = body.get("tools")
    if tools:
        result["tools"] = translate_tools(tools)
        tool_choice = translate_tool_choice(body.get("tool_choice"))
        if tool_choice is not None:
            result["tool_choice"] = tool_choice

    for source_key, target_key in _SAMPLING_FIELDS:
        if body.get(source_key) is not None:
            result[target_key] = body[source_key]

    if "stream" in body and body["stream"] is not None:
        result["stream"] = body["stream"]

    return result
