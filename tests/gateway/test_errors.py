"""Tests for the error taxonomy and envelopes."""

import pytest

from parley.gateway.errors import (
    AuthenticationFailed,
    ConfigurationError,
    GatewayError,
    InvalidRequest,
    MalformedToolArguments,
    UnsupportedProvider,
    UpstreamError,
    UpstreamUnavailable,
    anthropic_error_body,
    openai_error_body,
)


class TestErrorTaxonomy:
    @pytest.mark.parametrize(
        "error, kind, status",
        [
            (InvalidRequest("bad"), "invalid_request_error", 400),
            (UnsupportedProvider("acme"), "invalid_request_error", 400),
            (MalformedToolArguments("f", "{"), "api_error", 502),
            (UpstreamUnavailable("down"), "connection_error", 503),
            (AuthenticationFailed("nope"), "authentication_error", 401),
            (ConfigurationError("missing"), "api_error", 500),
        ],
    )
    def test_kind_and_status(self, error, kind, status):
        assert isinstance(error, GatewayError)
        assert error.kind == kind
        assert error.status == status

    @pytest.mark.parametrize(
        "status_code, kind",
        [
            (400, "invalid_request_error"),
            (401, "authentication_error"),
            (403, "permission_error"),
            (404, "not_found_error"),
            (429, "rate_limit_error"),
            (500, "api_error"),
            (418, "api_error"),
        ],
    )
    def test_upstream_error_keeps_provider_status(self, status_code, kind):
        error = UpstreamError("[openai] nope", status_code, provider="openai")

        assert error.status == status_code
        assert error.kind == kind

    def test_overrides(self):
        error = GatewayError("Not found", kind="not_found", status=404)

        assert (error.kind, error.status, str(error)) == ("not_found", 404, "Not found")


class TestEnvelopes:
    def test_anthropic_envelope(self):
        assert anthropic_error_body(InvalidRequest("messages: Field required")) == {
            "type": "error",
            "error": {"type": "invalid_request_error", "message": "messages: Field required"},
        }

    def test_openai_envelope_with_extra(self):
        body = openai_error_body(UpstreamUnavailable("down"), provider_error={"x": 1})

        assert body == {
            "error": {"message": "down", "type": "connection_error"},
            "provider_error": {"x": 1},
        }
