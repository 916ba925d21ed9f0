"""Tests for content-block conversion."""

import base64

import pytest

from parley.gateway.errors import InvalidRequest
from parley.gateway.transforms.content import (
    data_uri_to_image,
    from_chat_message,
    image_to_data_uri,
    parse_block,
    to_chat_messages,
)
from parley.gateway.transforms.types import (
    ImageBlock,
    TextBlock,
    ToolResultBlock,
    ToolUseBlock,
)

PNG_DATA = base64.b64encode(b"\x89PNG fake image bytes").decode()


class TestParseBlock:
    """Tests for parsing raw blocks into typed variants."""

    def test_text_block(self):
        assert parse_block({"type": "text", "text": "hi"}) == TextBlock(text="hi")

    def test_base64_image_block(self):
        block = parse_block(
            {
                "type": "image",
                "source": {"type": "base64", "media_type": "image/png", "data": PNG_DATA},
            }
        )

        assert block == ImageBlock(media_type="image/png", data=PNG_DATA)
        assert block.is_base64

    def test_url_image_block(self):
        block = parse_block(
            {"type": "image", "source": {"type": "url", "url": "https://example.com/a.png"}}
        )

        assert block.url == "https://example.com/a.png"
        assert not block.is_base64

    def test_tool_use_block(self):
        block = parse_block(
            {"type": "tool_use", "id": "toolu_1", "name": "get_weather", "input": {"city": "Oslo"}}
        )

        assert block == ToolUseBlock(id="toolu_1", name="get_weather", input={"city": "Oslo"})

    def test_tool_result_block(self):
        block = parse_block(
            {"type": "tool_result", "tool_use_id": "toolu_1", "content": "12C", "is_error": True}
        )

        assert block == ToolResultBlock(tool_use_id="toolu_1", content="12C")

    def test_unknown_type_rejected(self):
        """Unknown block kinds are rejected rather than dropped."""
        with pytest.raises(InvalidRequest, match="Unsupported content block type"):
            parse_block({"type": "thinking", "thinking": "hmm"})

    def test_non_object_rejected(self):
        with pytest.raises(InvalidRequest):
            parse_block("just a string")


class TestToChatMessages:
    """Tests for Anthropic message -> OpenAI messages."""

    def test_string_content_passes_through(self):
        result = to_chat_messages({"role": "user", "content": "Hello!"})

        assert result == [{"role": "user", "content": "Hello!"}]

    def test_text_blocks_joined_with_newline(self):
        result = to_chat_messages(
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": "First"},
                    {"type": "text", "text": "Second"},
                ],
            }
        )

        assert result == [{"role": "user", "content": "First\nSecond"}]

    def test_image_makes_message_multimodal(self):
        result = to_chat_messages(
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": "What is this?"},
                    {
                        "type": "image",
                        "source": {"type": "base64", "media_type": "image/png", "data": PNG_DATA},
                    },
                ],
            }
        )

        assert len(result) == 1
        parts = result[0]["content"]
        assert parts[0] == {"type": "text", "text": "What is this?"}
        assert parts[1] == {
            "type": "image_url",
            "image_url": {"url": f"data:image/png;base64,{PNG_DATA}", "detail": "auto"},
        }

    def test_assistant_tool_use_becomes_tool_calls(self):
        result = to_chat_messages(
            {
                "role": "assistant",
                "content": [
                    {"type": "text", "text": "Let me check."},
                    {
                        "type": "tool_use",
                        "id": "toolu_1",
                        "name": "get_weather",
                        "input": {"city": "Oslo"},
                    },
                ],
            }
        )

        assert len(result) == 1
        message = result[0]
        assert message["role"] == "assistant"
        assert message["content"] == "Let me check."
        assert message["tool_calls"] == [
            {
                "id": "toolu_1",
                "type": "function",
                "function": {"name": "get_weather", "arguments": '{"city": "Oslo"}'},
            }
        ]

    def test_tool_use_without_text(self):
        """A tool-call-only turn still produces an assistant message."""
        result = to_chat_messages(
            {
                "role": "assistant",
                "content": [{"type": "tool_use", "id": "toolu_1", "name": "ping", "input": {}}],
            }
        )

        assert result[0]["content"] == ""
        assert result[0]["tool_calls"][0]["function"]["arguments"] == "{}"

    def test_tool_result_becomes_tool_message(self):
        result = to_chat_messages(
            {
                "role": "user",
                "content": [{"type": "tool_result", "tool_use_id": "toolu_1", "content": "12C"}],
            }
        )

        assert result == [{"role": "tool", "tool_call_id": "toolu_1", "content": "12C"}]

    def test_structured_tool_result_is_serialized(self):
        content = [{"type": "text", "text": "12C"}]
        result = to_chat_messages(
            {
                "role": "user",
                "content": [{"type": "tool_result", "tool_use_id": "toolu_1", "content": content}],
            }
        )

        assert result[0]["content"] == '[{"type": "text", "text": "12C"}]'

    def test_tool_messages_follow_the_converted_message(self):
        result = to_chat_messages(
            {
                "role": "user",
                "content": [
                    {"type": "tool_result", "tool_use_id": "toolu_1", "content": "a"},
                    {"type": "text", "text": "And now?"},
                    {"type": "tool_result", "tool_use_id": "toolu_2", "content": "b"},
                ],
            }
        )

        assert [m["role"] for m in result] == ["user", "tool", "tool"]
        assert [m.get("tool_call_id") for m in result[1:]] == ["toolu_1", "toolu_2"]

    def test_incomplete_tool_use_dropped(self):
        result = to_chat_messages(
            {
                "role": "assistant",
                "content": [
                    {"type": "text", "text": "ok"},
                    {"type": "tool_use", "id": "toolu_1", "input": {}},
                ],
            }
        )

        assert result == [{"role": "assistant", "content": "ok"}]

    @pytest.mark.parametrize("content", ["", None, []])
    def test_empty_tool_result_still_answers_the_call(self, content):
        """A command with no output must still produce a tool message."""
        block = {"type": "tool_result", "tool_use_id": "toolu_1", "is_error": True}
        if content is not None:
            block["content"] = content

        result = to_chat_messages({"role": "user", "content": [block]})

        assert result == [{"role": "tool", "tool_call_id": "toolu_1", "content": ""}]

    def test_tool_result_without_id_dropped(self):
        result = to_chat_messages(
            {"role": "user", "content": [{"type": "tool_result", "content": "orphan"}]}
        )

        assert result == []

    def test_empty_block_list_yields_nothing(self):
        assert to_chat_messages({"role": "user", "content": []}) == []

    def test_unknown_block_rejected(self):
        with pytest.raises(InvalidRequest):
            to_chat_messages({"role": "user", "content": [{"type": "audio"}]})


class TestFromChatMessage:
    """Tests for OpenAI message -> Anthropic message."""

    def test_string_content(self):
        assert from_chat_message({"role": "user", "content": "Hi"}) == {
            "role": "user",
            "content": "Hi",
        }

    def test_image_data_uri_decoded(self):
        result = from_chat_message(
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": "Look"},
                    {"type": "image_url", "image_url": {"url": f"data:image/png;base64,{PNG_DATA}"}},
                ],
            }
        )

        assert result["content"][1] == {
            "type": "image",
            "source": {"type": "base64", "media_type": "image/png", "data": PNG_DATA},
        }

    def test_tool_calls_become_tool_use(self):
        result = from_chat_message(
            {
                "role": "assistant",
                "content": None,
                "tool_calls": [
                    {
                        "id": "call_1",
                        "type": "function",
                        "function": {"name": "ping", "arguments": '{"n":1}'},
                    }
                ],
            }
        )

        assert result == {
            "role": "assistant",
            "content": [{"type": "tool_use", "id": "call_1", "name": "ping", "input": {"n": 1}}],
        }

    def test_bad_tool_arguments_rejected(self):
        with pytest.raises(InvalidRequest):
            from_chat_message(
                {
                    "role": "assistant",
                    "tool_calls": [{"id": "c", "function": {"name": "x", "arguments": "{oops"}}],
                }
            )


class TestTextRoundTrip:
    """Text-only messages survive OpenAI -> Anthropic -> OpenAI."""

    @pytest.mark.parametrize(
        "message",
        [
            {"role": "user", "content": "Hello"},
            {"role": "assistant", "content": "Line one\nLine two"},
        ],
    )
    def test_plain_string(self, message):
        assert to_chat_messages(from_chat_message(message)) == [message]

    def test_multiple_parts_join_with_newline(self):
        message = {
            "role": "user",
            "content": [{"type": "text", "text": "a"}, {"type": "text", "text": "b"}],
        }

        assert to_chat_messages(from_chat_message(message)) == [{"role": "user", "content": "a\nb"}]


class TestDataUris:
    def test_image_to_data_uri(self):
        block = ImageBlock(media_type="image/jpeg", data="AAAA")

        assert image_to_data_uri(block) == "data:image/jpeg;base64,AAAA"

    def test_url_passes_through(self):
        assert image_to_data_uri(ImageBlock(url="https://x/y.png")) == "https://x/y.png"

    def test_invalid_data_uri(self):
        with pytest.raises(InvalidRequest):
            data_uri_to_image("https://example.com/a.png")

    def test_invalid_base64_payload(self):
        with pytest.raises(InvalidRequest):
            data_uri_to_image("data:image/png;base64,not*base64!")
