"""Content-block conversion between Anthropic Messages and OpenAI Chat.

Anthropic puts everything a turn contains into one typed block list:
text, images, tool calls and tool results. OpenAI splits the same turn:
text and images stay in ``content``, tool calls move to ``tool_calls`` and
each tool result becomes its own ``role: tool`` message.

Text-only messages collapse to a plain string (multiple text blocks joined
with a newline). A message with any image is multimodal and keeps a part
array, since providers encode the two shapes differently.
"""

import base64
import binascii
import json
import re
from typing import Any

from ..errors import InvalidRequest
from .types import (
    ContentBlock,
    ImageBlock,
    TextBlock,
    ToolResultBlock,
    ToolUseBlock,
)

_DATA_URI_RE = re.compile(r"^data:(?P<media_type>[^;,]+);base64,(?P<data>.*)$", re.DOTALL)


def parse_block(raw: Any) -> ContentBlock:
    """Parse one Anthropic content block into its typed variant.

    Raises:
        InvalidRequest: If the block is not an object or its type is unknown.
    """
    if not isinstance(raw, dict):
        raise InvalidRequest(f"Content block must be an object, got {type(raw).__name__}")

    block_type = raw.get("type")
    if block_type == "text":
        return TextBlock(text=raw.get("text") or "")
    if block_type == "image":
        source = raw.get("source") or {}
        if source.get("type") == "url":
            return ImageBlock(url=source.get("url"))
        return ImageBlock(media_type=source.get("media_type"), data=source.get("data"))
    if block_type == "tool_use":
        return ToolUseBlock(
            id=raw.get("id") or "",
            name=raw.get("name") or "",
            input=raw.get("input"),
        )
    if block_type == "tool_result":
        return ToolResultBlock(
            tool_use_id=raw.get("tool_use_id") or "",
            content=raw.get("content"),
        )
    raise InvalidRequest(f"Unsupported content block type: {block_type!r}")


def parse_blocks(raw_blocks: list[Any]) -> tuple[ContentBlock, ...]:
    return tuple(parse_block(raw) for raw in raw_blocks)


def image_to_data_uri(block: ImageBlock) -> str:
    """Build ``data:<media_type>;base64,<data>`` (or pass a URL through)."""
    if block.url is not None:
        return block.url
    return f"data:{block.media_type};base64,{block.data}"


def data_uri_to_image(uri: str) -> ImageBlock:
    """Decode a base64 data URI back into an image block.

    Raises:
        InvalidRequest: If ``uri`` is not a base64 data URI.
    """
    match = _DATA_URI_RE.match(uri)
    if not match:
        raise InvalidRequest("Image URL is not a base64 data URI")
    data = match.group("data")
    try:
        base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError) as e:
        raise InvalidRequest(f"Image data URI has invalid base64 payload: {e}") from e
    return ImageBlock(media_type=match.group("media_type"), data=data)


def _tool_call(block: ToolUseBlock) -> dict[str, Any]:
    return {
        "id": block.id,
        "type": "function",
        "function": {
            "name": block.name,
            "arguments": json.dumps(block.input),
        },
    }


def _tool_result_content(content: Any) -> str:
    if not content:
        return ""
    if isinstance(content, str):
        return content
    return json.dumps(content)


def _content_part(block: TextBlock | ImageBlock) -> dict[str, Any]:
    if isinstance(block, TextBlock):
        return {"type": "text", "text": block.text}
    return {
        "type": "image_url",
        "image_url": {"url": image_to_data_uri(block), "detail": "auto"},
    }


def to_chat_messages(message: dict[str, Any]) -> list[dict[str, Any]]:
    """Convert one Anthropic message into zero or more OpenAI messages.

    Args:
        message: Anthropic message with ``role`` and ``content``.

    Returns:
        The converted message (if it has any content or tool calls),
        followed by one ``role: tool`` message per tool_result block.
    """
    role = "assistant" if message.get("role") == "assistant" else "user"
    content = message.get("content")

    if isinstance(content, str):
        return [{"role": role, "content": content}]
    if content is None:
        content = []
    if not isinstance(content, list):
        raise InvalidRequest("Message content must be a string or a list of content blocks")

    blocks = parse_blocks(content)

    texts: list[str] = []
    parts: list[dict[str, Any]] = []
    tool_calls: list[dict[str, Any]] = []
    tool_messages: list[dict[str, Any]] = []
    multimodal = any(isinstance(block, ImageBlock) for block in blocks)

    for block in blocks:
        if isinstance(block, TextBlock):
            if block.text:
                texts.append(block.text)
                parts.append(_content_part(block))
        elif isinstance(block, ImageBlock):
            # Only inline base64 or URL sources are translatable
            if block.is_base64 or block.url:
                parts.append(_content_part(block))
        elif isinstance(block, ToolUseBlock):
            if block.id and block.name and block.input is not None:
                tool_calls.append(_tool_call(block))
        elif isinstance(block, ToolResultBlock):
            # Every call needs an answering tool message, even an empty one
            if block.tool_use_id:
                tool_messages.append(
                    {
                        "role": "tool",
                        "tool_call_id": block.tool_use_id,
                        "content": _tool_result_content(block.content),
                    }
                )

    converted: list[dict[str, Any]] = []
    msg: dict[str, Any] | None = None
    if multimodal:
        if parts:
            msg = {"role": role, "content": parts}
    elif texts or tool_calls:
        msg = {"role": role, "content": "\n".join(texts)}

    if msg is not None:
        if tool_calls:
            msg["tool_calls"] = tool_calls
        converted.append(msg)

    converted.extend(tool_messages)
    return converted


def from_chat_message(message: dict[str, Any]) -> dict[str, Any]:
    """Convert one OpenAI message into an Anthropic message.

    The reverse of :func:`to_chat_messages` for user/assistant turns:
    string content becomes one text block, image parts holding a data URI
    become base64 image blocks, and ``tool_calls`` become tool_use blocks.

    Raises:
        InvalidRequest: If a tool call's arguments are not valid JSON.
    """
    role = "assistant" if message.get("role") == "assistant" else "user"
    content = message.get("content")
    blocks: list[dict[str, Any]] = []

    if isinstance(content, str):
        if content:
            blocks.append({"type": "text", "text": content})
    elif isinstance(content, list):
        for part in content:
            part_type = part.get("type")
            if part_type == "text":
                blocks.append({"type": "text", "text": part.get("text", "")})
            elif part_type == "image_url":
                url = (part.get("image_url") or {}).get("url", "")
                if url.startswith("data:"):
                    image = data_uri_to_image(url)
                    source = {"type": "base64", "media_type": image.media_type, "data": image.data}
                else:
                    source = {"type": "url", "url": url}
                blocks.append({"type": "image", "source": source})
            else:
                raise InvalidRequest(f"Unsupported content part type: {part_type!r}")

    for call in message.get("tool_calls") or []:
        function = call.get("function", {})
        arguments = function.get("arguments") or "{}"
        try:
            tool_input = json.loads(arguments)
        except json.JSONDecodeError as e:
            raise InvalidRequest(f"Tool call arguments are not valid JSON: {e}") from e
        blocks.append(
            {
                "type": "tool_use",
                "id": call.get("id", ""),
                "name": function.get("name", ""),
                "input": tool_input,
            }
        )

    # A single text block collapses back to a plain string
    if len(blocks) == 1 and blocks[0]["type"] == "text":
        return {"role": role, "content": blocks[0]["text"]}
    return {"role": role, "content": blocks}
