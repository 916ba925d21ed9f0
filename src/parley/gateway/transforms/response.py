"""OpenAI Chat Completions response -> Anthropic Messages response.

Anthropic API Reference:
- Response: {id, type, role, content, model, stop_reason, stop_sequence, usage}
"""

import json
import uuid
from typing import Any

from ..errors import MalformedToolArguments
from .types import TokenUsage


def generate_message_id() -> str:
    """Generate a unique message ID in Anthropic format."""
    return f"msg_{uuid.uuid4().hex[:24]}"


def map_stop_reason(finish_reason: str | None, has_tool_calls: bool) -> str:
    """Map an OpenAI finish_reason to an Anthropic stop_reason.

    Tool-call presence wins over the literal finish_reason.
    """
    if has_tool_calls:
        return "tool_use"
    if finish_reason == "length":
        return "max_tokens"
    return "end_turn"


def parse_tool_arguments(name: str, arguments: str | None) -> Any:
    """Decode a complete tool-call argument string.

    An absent or empty string means a call without arguments.

    Raises:
        MalformedToolArguments: If the string is not valid JSON.
    """
    if not arguments:
        return {}
    try:
        return json.loads(arguments)
    except json.JSONDecodeError as e:
        raise MalformedToolArguments(name, arguments) from e


def translate_response(response: dict[str, Any], model: str | None = None) -> dict[str, Any]:
    """Convert an OpenAI non-streaming response to Anthropic format.

    Only the first choice is translated.

    Args:
        response: OpenAI response dict
        model: Model name to report in the response

    Returns:
        Anthropic-format response dict

    Raises:
        MalformedToolArguments: If a tool call carries unparseable arguments.
    """
    content: list[dict[str, Any]] = []
    finish_reason: str | None = None
    tool_calls: list[dict[str, Any]] = []

    choices = response.get("choices") or []
    if choices:
        choice = choices[0]
        message = choice.get("message") or {}
        finish_reason = choice.get("finish_reason")

        if message.get("content"):
            content.append({"type": "text", "text": message["content"]})

        tool_calls = message.get("tool_calls") or []
        for tool_call in tool_calls:
            function = tool_call.get("function") or {}
            name = function.get("name", "")
            content.append(
                {
                    "type": "tool_use",
                    "id": tool_call.get("id", ""),
                    "name": name,
                    "input": parse_tool_arguments(name, function.get("arguments")),
                }
            )

    result: dict[str, Any] = {
        "id": generate_message_id(),
        "type": "message",
        "role": "assistant",
        "content": content,
    }
    if model:
        result["model"] = model
    result["stop_reason"] = map_stop_reason(finish_reason, bool(tool_calls))
    result["stop_sequence"] = None

    if response.get("usage"):
        result["usage"] = TokenUsage.from_openai(response["usage"]).to_anthropic()

    return result
