"""HTTP client for upstream provider calls.

Uses aiohttp.ClientSession. Transport failures become UpstreamUnavailable,
non-success statuses become UpstreamError carrying the provider's own
message. Requests are never retried here.
"""

import asyncio
import json
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any

import aiohttp

from ..errors import UpstreamError, UpstreamUnavailable

logger = logging.getLogger(__name__)


@dataclass
class UpstreamClientConfig:
    """Configuration for the upstream client."""

    api_key: str = ""
    auth_header: str = "cf-aig-authorization"

    # Timeouts (seconds)
    connect_timeout: float = 10.0
    read_timeout: float = 300.0


def is_event_stream(response: aiohttp.ClientResponse) -> bool:
    """Check whether the upstream answered with an SSE body."""
    return "text/event-stream" in response.headers.get("Content-Type", "")


def provider_message(error_body: Any) -> str | None:
    """Pull the human-readable message out of a provider error body.

    Understands ``{"error": {"message": ...}}``, ``{"error": "..."}`` and
    ``{"message": ...}``.
    """
    if not isinstance(error_body, dict):
        return None
    message = None
    error = error_body.get("error")
    if isinstance(error, dict):
        message = error.get("message")
    elif isinstance(error, str):
        message = error
    return message or error_body.get("message") or None


@dataclass
class UpstreamClient:
    """HTTP client for upstream provider APIs.

    Example:
        client = UpstreamClient(config=UpstreamClientConfig(api_key="..."))
        await client.connect()
        async with client.post(url, body, provider="openai") as response:
            ...
        await client.close()
    """

    config: UpstreamClientConfig
    _session: aiohttp.ClientSession | None = None

    async def connect(self) -> None:
        """Initialize the HTTP session."""
        timeout = aiohttp.ClientTimeout(
            sock_connect=self.config.connect_timeout,
            sock_read=self.config.read_timeout,
        )
        headers = {"Content-Type": "application/json"}
        if self.config.api_key:
            headers[self.config.auth_header] = f"Bearer {self.config.api_key}"
        self._session = aiohttp.ClientSession(headers=headers, timeout=timeout)

    async def close(self) -> None:
        """Close the HTTP session."""
        if self._session:
            await self._session.close()
            self._session = None

    @asynccontextmanager
    async def post(
        self,
        url: str,
        body: dict[str, Any],
        provider: str,
        trace_id: str = "-",
    ) -> AsyncIterator[aiohttp.ClientResponse]:
        """POST ``body`` and yield the successful response.

        The response is released when the context exits, on every path.

        Raises:
            UpstreamUnavailable: If the provider cannot be reached.
            UpstreamError: If the provider returns a non-success status.
        """
        if self._session is None:
            raise RuntimeError("Client not connected. Call connect() first.")

        logger.debug("[%s] POST %s (provider=%s)", trace_id, url, provider)
        try:
            response = await self._session.post(url, json=body)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error("[%s] Fetch failed for provider %s: %s (%s)", trace_id, provider, e, url)
            raise UpstreamUnavailable(
                f"Connection failed to provider {provider}: {e or type(e).__name__}"
            ) from e

        try:
            if not response.ok:
                raise await self._upstream_error(response, provider, trace_id)
            yield response
        finally:
            response.release()

    async def read_json(
        self,
        response: aiohttp.ClientResponse,
        provider: str,
    ) -> dict[str, Any]:
        """Read a complete JSON body from a successful response.

        Raises:
            UpstreamUnavailable: If reading the body fails mid-transfer.
            UpstreamError: If the body is not a JSON object.
        """
        try:
            data = await response.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise UpstreamUnavailable(f"Failed reading response from provider {provider}: {e}") from e
        except json.JSONDecodeError as e:
            raise UpstreamError(
                f"[{provider}] Provider returned invalid JSON", 502, provider=provider
            ) from e
        if not isinstance(data, dict):
            raise UpstreamError(
                f"[{provider}] Provider returned a non-object JSON body", 502, provider=provider
            )
        return data

    async def _upstream_error(
        self,
        response: aiohttp.ClientResponse,
        provider: str,
        trace_id: str,
    ) -> UpstreamError:
        """Re-wrap the provider's error message, preserving its status."""
        try:
            error_body = await response.text()
        except (aiohttp.ClientError, asyncio.TimeoutError):
            error_body = ""

        logger.error(
            "[%s] Provider %s response not OK: %d %s",
            trace_id,
            provider,
            response.status,
            error_body[:500],
        )

        try:
            parsed = json.loads(error_body)
        except json.JSONDecodeError:
            parsed = None

        message = provider_message(parsed)
        if message:
            text = f"[{provider}] {message}"
        elif parsed is not None:
            text = f"[{provider}] API request failed"
        else:
            text = f"[{provider}] API request failed with status {response.status}"

        return UpstreamError(
            text,
            response.status,
            provider=provider,
            response_body=parsed if parsed is not None else error_body,
        )
