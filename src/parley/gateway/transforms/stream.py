"""Streaming re-encoder: OpenAI chat.completion.chunk SSE -> Anthropic SSE events.

Upstream framing is line-oriented (``data: {...}`` lines, blank separators,
``:`` comments) and ends with ``data: [DONE]``. Network reads do not respect
line boundaries, so bytes go through :class:`SSELineBuffer` first and only
complete lines reach the state machine. The output for a given byte stream
is the same however it was split across reads.

Event sequence produced for one stream:

    message_start
    content_block_start / content_block_delta* / content_block_stop   (per block)
    message_delta
    message_stop

Text occupies one block, opened by the first text delta. Tool calls are
buffered per upstream position until id, name and a parseable argument
string are all present; each then emits its whole start/delta/stop
lifecycle at once, with the full argument object in a single
``input_json_delta``.
"""

import codecs
import json
import logging
from collections.abc import AsyncIterable, AsyncIterator
from typing import Any

from .response import generate_message_id, map_stop_reason
from .types import StreamEvent, StreamState, TokenUsage, ToolCallBuffer

logger = logging.getLogger(__name__)

DONE_SENTINEL = "[DONE]"


class SSELineBuffer:
    """Splits an arbitrarily chunked byte stream into complete lines.

    UTF-8 is decoded incrementally so a multi-byte character split across
    reads is reassembled. The trailing partial line is held back until a
    newline arrives or :meth:`flush` is called.
    """

    def __init__(self) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._pending = ""

    def feed(self, data: bytes) -> list[str]:
        """Add bytes; return every line completed by them."""
        text = self._pending + self._decoder.decode(data)
        lines = text.split("\n")
        self._pending = lines.pop()
        return [line.rstrip("\r") for line in lines]

    def flush(self) -> list[str]:
        """Return whatever is left once the upstream has closed."""
        text = self._pending + self._decoder.decode(b"", final=True)
        self._pending = ""
        text = text.rstrip("\r")
        return [text] if text.strip() else []


def _data_payload(line: str) -> str | None:
    """Extract the payload of a ``data:`` line, or None for any other line."""
    if not line.startswith("data:"):
        return None
    return line[5:].strip()


def _close_text_block(state: StreamState) -> list[StreamEvent]:
    if not state.text_block_open:
        return []
    state.text_block_open = False
    state.text_block_closed = True
    return [StreamEvent(type="content_block_stop", index=state.text_block_index)]


def _text_delta(state: StreamState, text: str) -> list[StreamEvent]:
    if state.text_block_closed:
        # The text block is never reopened
        logger.debug("Dropping text delta after text block closed: %r", text[:50])
        return []

    events: list[StreamEvent] = []
    if not state.text_block_open:
        state.text_block_open = True
        state.text_block_index = state.allocate_index()
        events.append(
            StreamEvent(
                type="content_block_start",
                index=state.text_block_index,
                body={"content_block": {"type": "text", "text": ""}},
            )
        )

    events.append(
        StreamEvent(
            type="content_block_delta",
            index=state.text_block_index,
            body={"delta": {"type": "text_delta", "text": text}},
        )
    )
    return events


def _tool_call_delta(state: StreamState, tool_call: Any) -> list[StreamEvent]:
    if not isinstance(tool_call, dict):
        logger.warning("Skipping malformed tool call delta: %r", tool_call)
        return []
    position = tool_call.get("index") or 0
    function = tool_call.get("function") or {}
    if not isinstance(position, int) or not isinstance(function, dict):
        logger.warning("Skipping malformed tool call delta: %r", tool_call)
        return []

    buffered = state.tool_calls.setdefault(position, ToolCallBuffer())

    if isinstance(tool_call.get("id"), str) and tool_call["id"]:
        buffered.id = tool_call["id"]
    if isinstance(function.get("name"), str) and function["name"]:
        buffered.name = function["name"]
    if isinstance(function.get("arguments"), str):
        buffered.arguments += function["arguments"]

    if not buffered.ready:
        return []

    try:
        arguments = json.loads(buffered.arguments)
    except json.JSONDecodeError:
        # Arguments not complete yet, keep buffering
        return []

    del state.tool_calls[position]
    state.tool_use_emitted = True
    index = state.allocate_index()

    return [
        StreamEvent(
            type="content_block_start",
            index=index,
            body={
                "content_block": {
                    "type": "tool_use",
                    "id": buffered.id,
                    "name": buffered.name,
                    "input": {},
                }
            },
        ),
        StreamEvent(
            type="content_block_delta",
            index=index,
            body={
                "delta": {
                    "type": "input_json_delta",
                    "partial_json": json.dumps(arguments, separators=(",", ":"), ensure_ascii=False),
                }
            },
        ),
        StreamEvent(type="content_block_stop", index=index),
    ]


def process_chunk(state: StreamState, chunk: dict[str, Any]) -> list[StreamEvent]:
    """Translate one decoded upstream chunk, updating ``state`` in place.

    Parts of the chunk with an unexpected shape are skipped; the rest of
    the chunk is still processed.

    Args:
        state: The stream's accumulator
        chunk: One ``chat.completion.chunk`` object

    Returns:
        Outbound events produced by this chunk (possibly none)
    """
    usage = chunk.get("usage")
    if isinstance(usage, dict) and usage:
        state.usage = TokenUsage.from_openai(usage)

    choices = chunk.get("choices")
    if not isinstance(choices, list) or not choices:
        return []

    choice = choices[0]
    if not isinstance(choice, dict):
        logger.warning("Skipping malformed stream choice: %r", choice)
        return []
    delta = choice.get("delta")
    if not isinstance(delta, dict):
        delta = {}
    events: list[StreamEvent] = []

    content = delta.get("content")
    if isinstance(content, str) and content:
        events.extend(_text_delta(state, content))

    tool_calls = delta.get("tool_calls")
    if isinstance(tool_calls, list):
        for tool_call in tool_calls:
            events.extend(_tool_call_delta(state, tool_call))

    finish_reason = choice.get("finish_reason")
    if isinstance(finish_reason, str) and finish_reason:
        state.finish_reason = finish_reason
        events.extend(_close_text_block(state))

    return events


def handle_payload(state: StreamState, payload: str) -> list[StreamEvent]:
    """Decode one JSON payload and process it; undecodable payloads are skipped."""
    if state.done:
        return []
    try:
        chunk = json.loads(payload)
    except json.JSONDecodeError:
        logger.warning("Skipping undecodable stream chunk: %s", payload[:100])
        return []
    if not isinstance(chunk, dict):
        logger.warning("Skipping non-object stream chunk: %s", payload[:100])
        return []
    return process_chunk(state, chunk)


def handle_line(state: StreamState, line: str) -> list[StreamEvent]:
    """Process one complete upstream line.

    Blank lines, comments and non-data fields produce nothing. ``[DONE]``
    closes the text block and ends processing for the stream.
    """
    if state.done:
        return []
    payload = _data_payload(line)
    if not payload:
        return []
    if payload == DONE_SENTINEL:
        state.done = True
        return _close_text_block(state)
    return handle_payload(state, payload)


class StreamReencoder:
    """Re-encodes one upstream stream; owns that stream's state.

    Example:
        reencoder = StreamReencoder(model="gpt-4o#openai")
        events = reencoder.start()
        for data in upstream_reads:
            events += reencoder.feed(data)
        events += reencoder.finish()
    """

    def __init__(self, model: str | None = None, message_id: str | None = None):
        self.model = model
        self.message_id = message_id or generate_message_id()
        self.state = StreamState()
        self._lines = SSELineBuffer()

    def start(self) -> list[StreamEvent]:
        """First event of a streaming response."""
        message: dict[str, Any] = {
            "id": self.message_id,
            "type": "message",
            "role": "assistant",
            "content": [],
            "model": self.model,
            "stop_reason": None,
            "stop_sequence": None,
            "usage": {"input_tokens": 0, "output_tokens": 0},
        }
        return [StreamEvent(type="message_start", body={"message": message})]

    def feed(self, data: bytes) -> list[StreamEvent]:
        """Process one network read."""
        events: list[StreamEvent] = []
        for line in self._lines.feed(data):
            events.extend(handle_line(self.state, line))
        return events

    def finish(self) -> list[StreamEvent]:
        """Flush the tail and close the message once the upstream has drained."""
        events: list[StreamEvent] = []

        for line in self._lines.flush():
            stripped = line.strip()
            if line.startswith("data:"):
                events.extend(handle_line(self.state, line))
            elif stripped.startswith(("{", "[")):
                # Some upstreams close with a bare JSON object and no framing
                events.extend(handle_payload(self.state, stripped))
            else:
                logger.debug("Ignoring trailing stream data: %s", stripped[:50])

        # Safety net for upstreams that never sent a finish reason
        events.extend(_close_text_block(self.state))

        if self.state.tool_calls:
            logger.debug(
                "Dropping %d tool call(s) whose arguments never became valid JSON",
                len(self.state.tool_calls),
            )

        delta_body: dict[str, Any] = {
            "delta": {
                "stop_reason": map_stop_reason(self.state.finish_reason, self.state.tool_use_emitted),
                "stop_sequence": None,
            }
        }
        if self.state.usage:
            delta_body["usage"] = self.state.usage.to_anthropic()
        events.append(StreamEvent(type="message_delta", body=delta_body))
        events.append(StreamEvent(type="message_stop"))
        return events


async def reencode_stream(
    chunks: AsyncIterable[bytes],
    model: str | None = None,
    message_id: str | None = None,
) -> AsyncIterator[bytes]:
    """Re-encode an upstream byte stream into Anthropic SSE bytes.

    Events are yielded as soon as each read is processed. The caller owns
    the upstream response and must release it (``contextlib.aclosing``
    around this generator plus the response's own context manager).
    """
    reencoder = StreamReencoder(model=model, message_id=message_id)
    for event in reencoder.start():
        yield event.encode()

    async for data in chunks:
        for event in reencoder.feed(data):
            yield event.encode()

    for event in reencoder.finish():
        yield event.encode()
