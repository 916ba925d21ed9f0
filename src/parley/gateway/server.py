"""Messages gateway server.

Exposes /v1/messages, which accepts Anthropic Messages API requests,
translates them to OpenAI Chat Completions and forwards them to an AI
gateway upstream, and /v1/chat/completions, which forwards OpenAI-format
requests with only the model routing applied.

Models are addressed as ``<model>#<provider>``; the provider picks the
upstream URL (see :mod:`parley.gateway.providers`).
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any

import aiohttp
from aiohttp import web

from .clients.upstream import UpstreamClient, UpstreamClientConfig, is_event_stream, provider_message
from .errors import (
    AuthenticationFailed,
    GatewayError,
    InvalidRequest,
    UpstreamError,
    UpstreamUnavailable,
    anthropic_error_body,
    openai_error_body,
)
from .providers import AzureConfig, Route, build_url, parse_model
from .tracing import RequestTracer
from .transforms.request import translate_request
from .transforms.response import translate_response
from .transforms.stream import reencode_stream

logger = logging.getLogger(__name__)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Authorization, Content-Type",
    "Access-Control-Max-Age": "86400",
}

SSE_HEADERS = {
    "Content-Type": "text/event-stream",
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
}

# Paths served without an inbound API key
PUBLIC_PATHS = ("/health",)


@dataclass
class GatewayConfig:
    """Configuration for the messages gateway."""

    host: str = "127.0.0.1"
    port: int = 8787

    # Upstream AI gateway, e.g. https://gateway.ai.cloudflare.com/v1/<account>/<gateway>
    endpoint: str = ""
    upstream_api_key: str = ""
    upstream_auth_header: str = "cf-aig-authorization"

    # Inbound key; empty disables authentication
    api_key: str = ""

    # azure-openai routing
    azure_resource: str | None = None
    azure_api_version: str | None = None

    # Client configuration
    connect_timeout: float = 10.0
    read_timeout: float = 300.0

    # Request limits
    max_body_size: int = 500 * 1024 * 1024  # 500MB

    # Debug: save raw requests/responses to files
    debug_dir: str | None = None  # e.g., "/tmp/parley-debug"


def verify_api_key(headers: Any, api_key: str) -> bool:
    """Check an inbound request's credentials.

    ``Authorization: Bearer <key>`` takes precedence over ``x-api-key``.
    Always true when no key is configured.
    """
    if not api_key:
        return True

    authorization = headers.get("Authorization")
    if authorization:
        scheme, _, token = authorization.partition(" ")
        return scheme.lower() == "bearer" and token.strip() == api_key

    x_api_key = headers.get("x-api-key")
    if x_api_key:
        return x_api_key == api_key
    return False


@dataclass
class MessagesGateway:
    """Server that accepts Anthropic Messages API requests and forwards
    them to an OpenAI-compatible AI gateway.

    Example:
        >>> config = GatewayConfig(
        ...     endpoint="https://gateway.ai.cloudflare.com/v1/acct/gw",
        ...     upstream_api_key="...",
        ... )
        >>> gateway = MessagesGateway(config=config)
        >>> await gateway.serve()
    """

    config: GatewayConfig
    _app: web.Application | None = None
    _runner: web.AppRunner | None = None
    _client: UpstreamClient | None = None
    _shutdown_event: asyncio.Event = field(default_factory=asyncio.Event)
    _tracer: RequestTracer = field(init=False)

    def __post_init__(self) -> None:
        self._tracer = RequestTracer(debug_dir=self.config.debug_dir)

    async def start(self) -> web.AppRunner:
        """Connect the upstream client and build the application runner."""
        self._client = UpstreamClient(
            config=UpstreamClientConfig(
                api_key=self.config.upstream_api_key,
                auth_header=self.config.upstream_auth_header,
                connect_timeout=self.config.connect_timeout,
                read_timeout=self.config.read_timeout,
            )
        )
        await self._client.connect()

        self._app = self.build_app()
        self._runner = web.AppRunner(self._app)
        await self._runner.setup()
        return self._runner

    def build_app(self) -> web.Application:
        app = web.Application(
            client_max_size=self.config.max_body_size,
            middlewares=[self._cors_middleware, self._auth_middleware],
        )
        app.router.add_post("/v1/messages", self._handle_messages)
        app.router.add_post("/v1/chat/completions", self._handle_chat_completions)
        app.router.add_get("/health", self._handle_health)
        return app

    async def serve(self) -> None:
        """Start the gateway and block until :meth:`shutdown` is called."""
        runner = await self.start()
        site = web.TCPSite(runner, self.config.host, self.config.port)
        await site.start()
        logger.info(
            "Messages gateway listening on %s:%s -> %s",
            self.config.host,
            self.config.port,
            self.config.endpoint,
        )

        await self._shutdown_event.wait()
        logger.info("Messages gateway shutdown requested")
        await self.stop()

    def shutdown(self) -> None:
        self._shutdown_event.set()

    async def stop(self) -> None:
        """Stop the gateway."""
        if self._client:
            await self._client.close()
            self._client = None
        if self._runner:
            await self._runner.cleanup()
            self._runner = None

    # -- middleware ---------------------------------------------------------

    @web.middleware
    async def _cors_middleware(self, request: web.Request, handler: Any) -> web.StreamResponse:
        """Answer preflight requests and add CORS headers to every response."""
        if request.method == "OPTIONS":
            return web.Response(status=204, headers=CORS_HEADERS)

        try:
            response = await handler(request)
        except web.HTTPMethodNotAllowed:
            response = self._openai_error_response(
                GatewayError("Method not allowed", kind="method_not_allowed", status=405)
            )
        except web.HTTPNotFound:
            response = self._openai_error_response(
                GatewayError("Not found", kind="not_found", status=404)
            )

        # Streaming responses carry their CORS headers from the start
        if not response.prepared:
            response.headers.update(CORS_HEADERS)
        return response

    @web.middleware
    async def _auth_middleware(self, request: web.Request, handler: Any) -> web.StreamResponse:
        if request.path not in PUBLIC_PATHS and not verify_api_key(request.headers, self.config.api_key):
            logger.warning("Rejected request to %s: invalid API key", request.path)
            return self._openai_error_response(AuthenticationFailed("Invalid API key"))
        return await handler(request)

    # -- /v1/messages -------------------------------------------------------

    async def _handle_messages(self, request: web.Request) -> web.StreamResponse:
        """Handle POST /v1/messages - Anthropic Messages endpoint."""
        # Header validation
        content_type = request.headers.get("Content-Type", "")
        if "application/json" not in content_type:
            return self._error_response(
                InvalidRequest(f"Content-Type must be application/json, got: {content_type}")
            )

        # Parse request body
        try:
            body = await request.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            return self._error_response(InvalidRequest(f"Invalid JSON: {e}"))

        trace_id = self._tracer.generate_trace_id(body)
        started = time.monotonic()
        msg_count = len(body.get("messages") or []) if isinstance(body, dict) else 0
        self._tracer.log_request(
            trace_id, request.method, request.path, request.content_length or 0, msg_count
        )
        logger.debug(
            "[%s] anthropic-version: %s", trace_id, request.headers.get("anthropic-version", "unknown")
        )

        try:
            response = await self._forward_messages(request, body, trace_id)
        except GatewayError as e:
            self._tracer.log_response(trace_id, e.status, time.monotonic() - started, error=e.message)
            return self._error_response(e)
        except Exception as e:
            logger.exception("[%s] Unexpected error", trace_id)
            self._tracer.log_response(trace_id, 500, time.monotonic() - started, error=str(e))
            return self._error_response(GatewayError(f"Internal error: {e}"))

        self._tracer.log_response(trace_id, response.status, time.monotonic() - started)
        return response

    async def _forward_messages(
        self,
        request: web.Request,
        body: Any,
        trace_id: str,
    ) -> web.StreamResponse:
        """Translate, send upstream and translate back.

        Raises:
            GatewayError: For anything that fails before the response starts.
        """
        # Translation validates the body; routing runs only on a valid one
        openai_request = translate_request(body)
        route = parse_model(body["model"])
        openai_request["model"] = route.upstream_model
        url = self._build_url(route)

        self._tracer.save_debug(trace_id, "1_anthropic_request.json", body)
        self._tracer.save_debug(trace_id, "2_openai_request.json", openai_request)
        logger.info(
            "[%s] Request: model=%s, messages=%d, stream=%s -> %s",
            trace_id,
            body["model"],
            len(body["messages"]),
            body.get("stream", False),
            url,
        )

        client = self._require_client()
        async with client.post(url, openai_request, route.provider, trace_id) as upstream:
            if is_event_stream(upstream):
                return await self._stream_messages(request, upstream, trace_id, body["model"])

            openai_response = await client.read_json(upstream, route.provider)
            self._tracer.save_debug(trace_id, "3_openai_response.json", openai_response)

        anthropic_response = translate_response(openai_response, model=body["model"])
        usage = anthropic_response.get("usage", {})
        logger.info(
            "[%s] Response complete: input_tokens=%s, output_tokens=%s",
            trace_id,
            usage.get("input_tokens", "?"),
            usage.get("output_tokens", "?"),
        )
        return web.json_response(anthropic_response, headers={"X-Trace-Id": trace_id})

    async def _stream_messages(
        self,
        request: web.Request,
        upstream: aiohttp.ClientResponse,
        trace_id: str,
        model: str,
    ) -> web.StreamResponse:
        """Re-encode an upstream SSE body onto the client connection."""
        response = web.StreamResponse(
            status=upstream.status,
            headers={**SSE_HEADERS, **CORS_HEADERS, "X-Trace-Id": trace_id},
        )
        await response.prepare(request)

        try:
            async with contextlib.aclosing(
                reencode_stream(upstream.content.iter_any(), model=model)
            ) as events:
                async for data in events:
                    await response.write(data)
        except (ConnectionResetError, BrokenPipeError):
            # Client disconnected; the upstream is released by the caller
            logger.debug("[%s] Client disconnected during streaming", trace_id)
            return response
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error("[%s] Upstream stream failed: %s", trace_id, e)
            await self._write_error_sse(
                response, UpstreamUnavailable(f"Upstream stream interrupted: {e}"), trace_id
            )
        except Exception as e:
            logger.exception("[%s] Unexpected error during streaming", trace_id)
            await self._write_error_sse(response, GatewayError(f"Internal error: {e}"), trace_id)

        logger.info("[%s] Stream complete", trace_id)
        with contextlib.suppress(ConnectionResetError):
            await response.write_eof()
        return response

    # -- /v1/chat/completions -----------------------------------------------

    async def _handle_chat_completions(self, request: web.Request) -> web.StreamResponse:
        """Handle POST /v1/chat/completions - OpenAI-format passthrough."""
        try:
            body = await request.json()
        except (json.JSONDecodeError, UnicodeDecodeError):
            return self._openai_error_response(InvalidRequest("Invalid request body"))
        if not isinstance(body, dict):
            return self._openai_error_response(InvalidRequest("Invalid request body"))

        trace_id = self._tracer.generate_trace_id(body)
        started = time.monotonic()

        for message in body.get("messages") or []:
            if isinstance(message, dict) and not message.get("content"):
                message["content"] = []

        try:
            route = parse_model(body.get("model"))
            url = self._build_url(route)
        except GatewayError as e:
            return self._openai_error_response(e)

        stream_options = body.get("stream_options")
        if route.provider == "mistral" and isinstance(stream_options, dict):
            stream_options.pop("include_usage", None)

        upstream_body = {**body, "model": route.upstream_model}
        self._tracer.save_debug(trace_id, "1_chat_request.json", upstream_body)
        logger.info("[%s] Chat completions: model=%s -> %s", trace_id, body["model"], url)

        try:
            async with self._require_client().post(url, upstream_body, route.provider, trace_id) as upstream:
                response = await self._pipe_upstream(request, upstream, trace_id)
        except UpstreamError as e:
            meta = json.dumps({"url": url, "model": route.model, "provider": route.provider})
            error = GatewayError(
                f"[{route.provider} error] API request failed, "
                f"message: {provider_message(e.response_body) or '-'}, meta: {meta}",
                kind=e.kind,
                status=e.status,
            )
            self._tracer.log_response(trace_id, e.status, time.monotonic() - started, error=error.message)
            return self._openai_error_response(error, provider_error=e.response_body)
        except GatewayError as e:
            self._tracer.log_response(trace_id, e.status, time.monotonic() - started, error=e.message)
            return self._openai_error_response(e)

        self._tracer.log_response(trace_id, response.status, time.monotonic() - started)
        return response

    async def _pipe_upstream(
        self,
        request: web.Request,
        upstream: aiohttp.ClientResponse,
        trace_id: str,
    ) -> web.StreamResponse:
        """Copy the upstream body to the client unchanged."""
        headers = {**CORS_HEADERS, "X-Trace-Id": trace_id}
        if is_event_stream(upstream):
            headers.update(SSE_HEADERS)
        else:
            headers["Content-Type"] = upstream.headers.get("Content-Type", "application/json")

        response = web.StreamResponse(status=upstream.status, headers=headers)
        await response.prepare(request)
        try:
            async for data in upstream.content.iter_any():
                await response.write(data)
        except (ConnectionResetError, BrokenPipeError):
            logger.debug("[%s] Client disconnected during passthrough", trace_id)
            return response
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error("[%s] Upstream passthrough interrupted: %s", trace_id, e)

        with contextlib.suppress(ConnectionResetError):
            await response.write_eof()
        return response

    # -- misc ---------------------------------------------------------------

    async def _handle_health(self, request: web.Request) -> web.Response:
        """Handle GET /health."""
        return web.json_response({"status": "ok"})

    def _build_url(self, route: Route) -> str:
        azure = AzureConfig(
            resource=self.config.azure_resource,
            deployment=route.model,
            api_version=self.config.azure_api_version,
        )
        return build_url(self.config.endpoint, route.provider, azure)

    def _require_client(self) -> UpstreamClient:
        if not self._client:
            raise UpstreamUnavailable("Upstream client not initialized")
        return self._client

    def _error_response(self, error: GatewayError) -> web.Response:
        """Return Anthropic-format error response."""
        return web.json_response(anthropic_error_body(error), status=error.status)

    def _openai_error_response(self, error: GatewayError, **extra: Any) -> web.Response:
        """Return OpenAI-format error response."""
        return web.json_response(openai_error_body(error, **extra), status=error.status)

    async def _write_error_sse(
        self,
        response: web.StreamResponse,
        error: GatewayError,
        trace_id: str,
    ) -> None:
        """Send an error event on an already-started stream."""
        data = json.dumps(anthropic_error_body(error))
        try:
            await response.write(f"event: error\ndata: {data}\n\n".encode())
        except (ConnectionResetError, BrokenPipeError):
            logger.debug("[%s] Client gone before error event could be sent", trace_id)
