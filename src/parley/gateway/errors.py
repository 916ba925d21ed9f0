"""Error taxonomy shared by the translators and the gateway server.

Translators raise these; the server turns them into wire envelopes.
Every error carries a human-readable message, a machine-readable kind
tag and an HTTP status.
"""

from __future__ import annotations

from typing import Any

# Error type mapping from upstream status to Anthropic error type
ERROR_TYPE_MAP = {
    400: "invalid_request_error",
    401: "authentication_error",
    403: "permission_error",
    404: "not_found_error",
    429: "rate_limit_error",
    500: "api_error",
    502: "api_error",
    503: "api_error",
    504: "api_error",
}


class GatewayError(Exception):
    """Base class for all errors surfaced to the boundary layer."""

    kind: str = "api_error"
    status: int = 500

    def __init__(self, message: str, *, kind: str | None = None, status: int | None = None):
        super().__init__(message)
        self.message = message
        if kind is not None:
            self.kind = kind
        if status is not None:
            self.status = status

    def __repr__(self) -> str:
        return f"{type(self).__name__}(kind={self.kind!r}, status={self.status}, message={self.message!r})"


class InvalidRequest(GatewayError):
    """Missing or malformed required field. The caller's fault, never retried."""

    kind = "invalid_request_error"
    status = 400


class UnsupportedProvider(GatewayError):
    """Model routing key names a provider we cannot route to."""

    kind = "invalid_request_error"
    status = 400

    def __init__(self, provider: str):
        super().__init__(f"Unsupported provider: {provider}")
        self.provider = provider


class MalformedToolArguments(GatewayError):
    """Upstream produced a tool call whose arguments are not valid JSON."""

    kind = "api_error"
    status = 502

    def __init__(self, tool_name: str, arguments: str):
        super().__init__(f"Tool call '{tool_name}' has malformed JSON arguments: {arguments[:200]}")
        self.tool_name = tool_name
        self.arguments = arguments


class UpstreamUnavailable(GatewayError):
    """Transport-level failure reaching the provider."""

    kind = "connection_error"
    status = 503


class UpstreamError(GatewayError):
    """Provider answered with a non-success status."""

    def __init__(
        self,
        message: str,
        status_code: int,
        provider: str = "",
        response_body: Any = None,
    ):
        super().__init__(
            message,
            kind=ERROR_TYPE_MAP.get(status_code, "api_error"),
            status=status_code,
        )
        self.status_code = status_code
        self.provider = provider
        self.response_body = response_body


class AuthenticationFailed(GatewayError):
    kind = "authentication_error"
    status = 401


class ConfigurationError(GatewayError):
    """Gateway is missing configuration needed to serve the request."""

    kind = "api_error"
    status = 500


def anthropic_error_body(error: GatewayError) -> dict[str, Any]:
    """Shape an error as an Anthropic Messages API error object."""
    return {
        "type": "error",
        "error": {
            "type": error.kind,
            "message": error.message,
        },
    }


def openai_error_body(error: GatewayError, **extra: Any) -> dict[str, Any]:
    """Shape an error as an OpenAI-compatible error object.

    Extra keyword arguments are merged at the top level (e.g. ``provider_error``).
    """
    return {
        "error": {
            "message": error.message,
            "type": error.kind,
        },
        **extra,
    }
