"""Provider routing for the AI gateway upstream.

Callers address a model as ``<model>#<provider>`` (e.g. ``gpt-4o#openai``).
The provider decides the upstream URL and, for providers served through
the unified ``/compat`` endpoint, the ``provider/model`` name sent upstream.
"""

from dataclasses import dataclass

from .errors import ConfigurationError, InvalidRequest, UnsupportedProvider

MODEL_SEPARATOR = "#"

DEFAULT_AZURE_API_VERSION = "2025-04-01-preview"

# compat => google-vertex-ai
OPENAI_ENDPOINT = ("cerebras", "deepseek", "groq", "openai", "perplexity-ai", "compat")
OPENAI_V1_ENDPOINT = ("grok", "mistral", "openrouter")
SUPPORTED_ENDPOINTS = (
    "azure-openai",
    "anthropic",
    "google-ai-studio",
    "cohere",
    *OPENAI_ENDPOINT,
    *OPENAI_V1_ENDPOINT,
)
UNIFIED_API_ENDPOINTS = (
    "anthropic",
    "openai",
    "groq",
    "mistral",
    "cohere",
    "google-ai-studio",
    "grok",
    "deepseek",
    "cerebras",
)


@dataclass(frozen=True)
class AzureConfig:
    """Resource/deployment pair for the azure-openai provider."""

    resource: str | None = None
    deployment: str | None = None
    api_version: str | None = None


@dataclass(frozen=True)
class Route:
    """Where one request goes."""

    model: str
    provider: str

    @property
    def unified(self) -> bool:
        return is_unified_provider(self.provider)

    @property
    def upstream_model(self) -> str:
        """Model name as the upstream expects it."""
        if self.unified:
            return f"{self.provider}/{self.model}"
        return self.model


def is_unified_provider(provider: str) -> bool:
    return provider in UNIFIED_API_ENDPOINTS


def parse_model(name: str | None) -> Route:
    """Split ``<model>#<provider>``.

    Raises:
        InvalidRequest: If the name carries no provider separator.
    """
    if not name or MODEL_SEPARATOR not in name:
        raise InvalidRequest(
            f"Model '{name}' not found; expected '<model>{MODEL_SEPARATOR}<provider>'"
        )
    model, provider = name.split(MODEL_SEPARATOR, 1)
    if not model or not provider:
        raise InvalidRequest(
            f"Model '{name}' not found; expected '<model>{MODEL_SEPARATOR}<provider>'"
        )
    return Route(model=model, provider=provider)


def gateway_endpoint(account_id: str, gateway_id: str) -> str:
    """Base URL of a Cloudflare AI Gateway."""
    return f"https://gateway.ai.cloudflare.com/v1/{account_id}/{gateway_id}"


def build_url(endpoint: str, provider: str, azure: AzureConfig | None = None) -> str:
    """Build the upstream chat URL for ``provider``.

    Raises:
        UnsupportedProvider: If the provider is unknown.
        ConfigurationError: If azure-openai is missing its resource/deployment.
    """
    if provider not in SUPPORTED_ENDPOINTS:
        raise UnsupportedProvider(provider)

    endpoint = endpoint.rstrip("/")
    if is_unified_provider(provider):
        return f"{endpoint}/compat/chat/completions"

    fragments = [endpoint, provider]
    query = ""
    if provider == "azure-openai":
        if not azure or not azure.resource or not azure.deployment:
            raise ConfigurationError(f"Missing Azure config for provider: {provider}")
        fragments.extend([azure.resource, azure.deployment])
        query = f"?api-version={azure.api_version or DEFAULT_AZURE_API_VERSION}"

    if provider in OPENAI_V1_ENDPOINT:
        fragments.append("v1")

    fragments.append(f"chat/completions{query}")
    return "/".join(fragments)
