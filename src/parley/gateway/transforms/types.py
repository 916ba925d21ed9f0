"""Types shared by the translators.

Content blocks are an explicit sum type: one frozen dataclass per block kind,
matched exhaustively by the normalizer. Stream state is a plain mutable
dataclass owned by exactly one streaming translation.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Literal


@dataclass(frozen=True)
class TextBlock:
    """Plain text content."""

    text: str
    type: Literal["text"] = "text"


@dataclass(frozen=True)
class ImageBlock:
    """Image content, either inline base64 data or a URL reference."""

    media_type: str | None = None
    data: str | None = None
    url: str | None = None
    type: Literal["image"] = "image"

    @property
    def is_base64(self) -> bool:
        return self.data is not None


@dataclass(frozen=True)
class ToolUseBlock:
    """A tool invocation issued by the assistant."""

    id: str
    name: str
    input: Any
    type: Literal["tool_use"] = "tool_use"


@dataclass(frozen=True)
class ToolResultBlock:
    """The caller's answer to an earlier tool_use."""

    tool_use_id: str
    content: Any = None
    type: Literal["tool_result"] = "tool_result"


ContentBlock = TextBlock | ImageBlock | ToolUseBlock | ToolResultBlock


@dataclass(frozen=True)
class ToolSchema:
    """Definition of an available tool."""

    name: str
    description: str
    parameters: dict[str, Any]  # JSON Schema, already cleaned

    def to_openai(self) -> dict[str, Any]:
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }


@dataclass(frozen=True)
class TokenUsage:
    """Token usage statistics."""

    input_tokens: int | None = None
    output_tokens: int | None = None

    @classmethod
    def from_openai(cls, usage: dict[str, Any]) -> "TokenUsage":
        return cls(
            input_tokens=usage.get("prompt_tokens"),
            output_tokens=usage.get("completion_tokens"),
        )

    def to_anthropic(self) -> dict[str, Any]:
        result: dict[str, Any] = {}
        if self.input_tokens is not None:
            result["input_tokens"] = self.input_tokens
        if self.output_tokens is not None:
            result["output_tokens"] = self.output_tokens
        return result


@dataclass
class ToolCallBuffer:
    """Partial tool call assembled from incremental upstream deltas."""

    id: str | None = None
    name: str | None = None
    arguments: str = ""

    @property
    def ready(self) -> bool:
        return bool(self.id and self.name and self.arguments)


@dataclass
class StreamState:
    """Per-stream accumulator for the streaming re-encoder.

    One instance per active stream; never shared between requests.
    """

    text_block_open: bool = False
    text_block_closed: bool = False
    text_block_index: int | None = None
    next_block_index: int = 0
    tool_calls: dict[int, ToolCallBuffer] = field(default_factory=dict)
    tool_use_emitted: bool = False
    finish_reason: str | None = None
    usage: TokenUsage | None = None
    done: bool = False

    def allocate_index(self) -> int:
        """Hand out the next unused content block index."""
        index = self.next_block_index
        self.next_block_index += 1
        return index


EventType = Literal[
    "message_start",
    "content_block_start",
    "content_block_delta",
    "content_block_stop",
    "message_delta",
    "message_stop",
]


@dataclass(frozen=True)
class StreamEvent:
    """One outbound Anthropic streaming event."""

    type: EventType
    index: int | None = None
    body: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"type": self.type}
        if self.index is not None:
            data["index"] = self.index
        data.update(self.body)
        return data

    def encode(self) -> bytes:
        """Format as an SSE event with event and data lines."""
        json_data = json.dumps(self.to_dict(), separators=(",", ":"), ensure_ascii=False)
        return f"event: {self.type}\ndata: {json_data}\n\n".encode()
