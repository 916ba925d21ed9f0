"""Tests for UpstreamClient."""

import aiohttp
import pytest
from aioresponses import aioresponses

from parley.gateway.clients.upstream import (
    UpstreamClient,
    UpstreamClientConfig,
    is_event_stream,
    provider_message,
)
from parley.gateway.errors import UpstreamError, UpstreamUnavailable

URL = "https://gateway.test/compat/chat/completions"


@pytest.fixture
async def client():
    client = UpstreamClient(config=UpstreamClientConfig(api_key="test-key"))
    await client.connect()
    yield client
    await client.close()


class TestUpstreamClient:
    """Tests for UpstreamClient."""

    async def test_post_json(self, client):
        with aioresponses() as m:
            m.post(URL, payload={"choices": []})

            async with client.post(URL, {"model": "openai/gpt-4o"}, provider="openai") as response:
                assert not is_event_stream(response)
                data = await client.read_json(response, "openai")

        assert data == {"choices": []}

    async def test_sends_auth_header_and_body(self, client):
        with aioresponses() as m:
            m.post(URL, payload={})

            async with client.post(URL, {"model": "m"}, provider="openai"):
                pass

            [calls] = m.requests.values()
            assert calls[0].kwargs["json"] == {"model": "m"}

        assert client._session.headers["cf-aig-authorization"] == "Bearer test-key"

    async def test_event_stream_detected(self, client):
        with aioresponses() as m:
            m.post(URL, body=b"data: [DONE]\n\n", content_type="text/event-stream")

            async with client.post(URL, {}, provider="openai") as response:
                assert is_event_stream(response)
                assert await response.read() == b"data: [DONE]\n\n"

    async def test_error_message_is_prefixed(self, client):
        with aioresponses() as m:
            m.post(URL, status=429, payload={"error": {"message": "Slow down"}})

            with pytest.raises(UpstreamError) as exc_info:
                async with client.post(URL, {}, provider="groq"):
                    pass

        error = exc_info.value
        assert error.message == "[groq] Slow down"
        assert error.status == 429
        assert error.kind == "rate_limit_error"
        assert error.response_body == {"error": {"message": "Slow down"}}

    async def test_non_json_error_body(self, client):
        with aioresponses() as m:
            m.post(URL, status=502, body="Bad Gateway", content_type="text/plain")

            with pytest.raises(UpstreamError) as exc_info:
                async with client.post(URL, {}, provider="openai"):
                    pass

        assert exc_info.value.message == "[openai] API request failed with status 502"
        assert exc_info.value.response_body == "Bad Gateway"

    async def test_connection_failure(self, client):
        with aioresponses() as m:
            m.post(URL, exception=aiohttp.ClientConnectionError("refused"))

            with pytest.raises(UpstreamUnavailable, match="Connection failed to provider openai"):
                async with client.post(URL, {}, provider="openai"):
                    pass

    async def test_invalid_json_body(self, client):
        with aioresponses() as m:
            m.post(URL, body="not json", content_type="application/json")

            async with client.post(URL, {}, provider="openai") as response:
                with pytest.raises(UpstreamError) as exc_info:
                    await client.read_json(response, "openai")

        assert exc_info.value.status == 502

    async def test_requires_connect(self):
        client = UpstreamClient(config=UpstreamClientConfig())

        with pytest.raises(RuntimeError):
            async with client.post(URL, {}, provider="openai"):
                pass


class TestProviderMessage:
    @pytest.mark.parametrize(
        "body, expected",
        [
            ({"error": {"message": "nested"}}, "nested"),
            ({"error": "flat"}, "flat"),
            ({"message": "top"}, "top"),
            ({"error": {}}, None),
            ("text", None),
            (None, None),
        ],
    )
    def test_extraction(self, body, expected):
        assert provider_message(body) == expected
