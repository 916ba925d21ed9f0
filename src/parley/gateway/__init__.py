"""Parley gateway - Anthropic Messages API in front of OpenAI-compatible upstreams.

Components:
- Server: aiohttp application with /v1/messages and /v1/chat/completions
- Providers: model routing and upstream URL building
- Transforms: request, response and stream translators
- Clients: HTTP client for the upstream gateway

Usage (via compose.py convenience functions):
    from parley.compose import create_gateway
    import asyncio

    asyncio.run(create_gateway(
        endpoint="https://gateway.ai.cloudflare.com/v1/acct/gw",
        upstream_api_key="...",
    ))

Usage (direct):
    from parley.gateway.server import GatewayConfig, MessagesGateway
    import asyncio

    async def main():
        config = GatewayConfig(endpoint="https://gateway.ai.cloudflare.com/v1/acct/gw")
        gateway = MessagesGateway(config=config)
        await gateway.serve()

    asyncio.run(main())
"""

from parley.gateway.errors import ERROR_TYPE_MAP, GatewayError
from parley.gateway.providers import Route, build_url, parse_model
from parley.gateway.tracing import RequestTracer

__all__ = [
    "ERROR_TYPE_MAP",
    "GatewayError",
    "RequestTracer",
    "Route",
    "build_url",
    "parse_model",
]
