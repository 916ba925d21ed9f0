"""Parley - Anthropic Messages front door for OpenAI-compatible AI gateways.

Accepts Anthropic Messages API requests, translates them to OpenAI Chat
Completions, forwards them to an AI gateway and translates the answers
back, including streamed ones.

Layout:
    gateway/transforms/  Pure translators (request, response, stream)
    gateway/providers    ``<model>#<provider>`` routing and upstream URLs
    gateway/server       aiohttp server
    compose              Configuration loading and server startup
    cli                  ``parley`` command

Quick Start (translate without a server):
    >>> from parley.gateway.transforms import translate_request
    >>> translate_request({
    ...     "model": "gpt-4o#openai",
    ...     "max_tokens": 256,
    ...     "messages": [{"role": "user", "content": "Hello"}],
    ... })

With server:
    >>> from parley.compose import create_gateway
    >>> await create_gateway(endpoint="https://gateway.ai.cloudflare.com/v1/acct/gw")
"""

from parley.__version__ import __version__

__all__ = ["__version__"]
