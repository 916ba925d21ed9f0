"""Composition helpers for running the gateway.

Configuration priority:
1. Function arguments (highest)
2. Environment variables (``PARLEY_*``; a ``.env`` file is loaded first
   without overriding variables already set)
3. YAML config file (``--config`` or ``PARLEY_CONFIG``)
4. Defaults
"""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Callable
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from parley.gateway.errors import ConfigurationError
from parley.gateway.providers import gateway_endpoint
from parley.gateway.server import GatewayConfig, MessagesGateway

logger = logging.getLogger(__name__)

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8787


async def _load_file_config(
    config_file: str | None,
    env_config_key: str = "PARLEY_CONFIG",
) -> tuple[dict[str, Any], Callable[[Any, str, str, str], str]]:
    """Load the YAML config file and return (file_config, get_value_fn).

    Args:
        config_file: Path to config file, or None to check env var.
        env_config_key: Environment variable name for config path.

    Returns:
        Tuple of (file_config dict, get_value function).
        The get_value function resolves config values with priority:
        arg > env > file > default.

    Raises:
        ConfigurationError: If the file is not valid YAML or not a mapping.
    """
    file_config: dict[str, Any] = {}
    config_path = config_file or os.environ.get(env_config_key)
    if config_path:
        try:
            content = await asyncio.to_thread(Path(config_path).read_text)
        except FileNotFoundError:
            logger.warning("Config file not found: %s", config_path)
            content = ""
        try:
            loaded = yaml.safe_load(content) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid config file {config_path}: {e}") from e
        if not isinstance(loaded, dict):
            raise ConfigurationError(f"Config file {config_path} must contain a mapping")
        file_config = loaded

    def get_value(arg: Any, env_key: str, file_key: str, default: str) -> str:
        if arg is not None:
            return str(arg)
        env_val = os.environ.get(env_key)
        if env_val:
            return env_val
        file_val = file_config.get(file_key)
        if file_val:
            return str(file_val)
        return default

    return file_config, get_value


def _as_float(value: str, name: str) -> float:
    try:
        return float(value)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be a number, got: {value!r}") from e


async def load_config(
    host: str | None = None,
    port: int | None = None,
    endpoint: str | None = None,
    upstream_api_key: str | None = None,
    api_key: str | None = None,
    debug_dir: str | None = None,
    config_file: str | None = None,
    env_file: str | Path | None = ".env",
) -> GatewayConfig:
    """Resolve a :class:`GatewayConfig` from arguments, environment and file.

    The upstream endpoint is either given directly (``PARLEY_ENDPOINT`` /
    ``endpoint``) or derived from a Cloudflare account and gateway id
    (``PARLEY_ACCOUNT_ID`` + ``PARLEY_GATEWAY_ID``).

    Raises:
        ConfigurationError: If no upstream endpoint can be resolved or a
            value has the wrong type.
    """
    if env_file and Path(env_file).is_file():
        load_dotenv(env_file, override=False)

    _, get_value = await _load_file_config(config_file)

    resolved_endpoint = get_value(endpoint, "PARLEY_ENDPOINT", "endpoint", "")
    if not resolved_endpoint:
        account_id = get_value(None, "PARLEY_ACCOUNT_ID", "account_id", "")
        gateway_id = get_value(None, "PARLEY_GATEWAY_ID", "gateway_id", "")
        if account_id and gateway_id:
            resolved_endpoint = gateway_endpoint(account_id, gateway_id)

    if not resolved_endpoint:
        raise ConfigurationError(
            "Upstream endpoint is required. Set PARLEY_ENDPOINT (or PARLEY_ACCOUNT_ID "
            "and PARLEY_GATEWAY_ID) or pass it explicitly."
        )

    port_value = get_value(port, "PARLEY_PORT", "port", str(DEFAULT_PORT))
    try:
        resolved_port = int(port_value)
    except ValueError as e:
        raise ConfigurationError(f"port must be an integer, got: {port_value!r}") from e

    return GatewayConfig(
        host=get_value(host, "PARLEY_HOST", "host", DEFAULT_HOST),
        port=resolved_port,
        endpoint=resolved_endpoint,
        upstream_api_key=get_value(upstream_api_key, "PARLEY_UPSTREAM_API_KEY", "upstream_api_key", ""),
        upstream_auth_header=get_value(
            None, "PARLEY_UPSTREAM_AUTH_HEADER", "upstream_auth_header", "cf-aig-authorization"
        ),
        api_key=get_value(api_key, "PARLEY_API_KEY", "api_key", ""),
        azure_resource=get_value(None, "PARLEY_AZURE_RESOURCE", "azure_resource", "") or None,
        azure_api_version=get_value(None, "PARLEY_AZURE_API_VERSION", "azure_api_version", "") or None,
        connect_timeout=_as_float(
            get_value(None, "PARLEY_CONNECT_TIMEOUT", "connect_timeout", "10"), "connect_timeout"
        ),
        read_timeout=_as_float(
            get_value(None, "PARLEY_READ_TIMEOUT", "read_timeout", "300"), "read_timeout"
        ),
        debug_dir=get_value(debug_dir, "PARLEY_DEBUG_DIR", "debug_dir", "") or None,
    )


async def create_gateway(
    host: str | None = None,
    port: int | None = None,
    endpoint: str | None = None,
    upstream_api_key: str | None = None,
    api_key: str | None = None,
    debug_dir: str | None = None,
    config_file: str | None = None,
) -> None:
    """Create and run the messages gateway.

    This is a convenience function that blocks until stopped.

    Example:
        >>> # export PARLEY_ACCOUNT_ID=... PARLEY_GATEWAY_ID=...
        >>> # export PARLEY_UPSTREAM_API_KEY=...
        >>> await create_gateway(port=8787)
    """
    config = await load_config(
        host=host,
        port=port,
        endpoint=endpoint,
        upstream_api_key=upstream_api_key,
        api_key=api_key,
        debug_dir=debug_dir,
        config_file=config_file,
    )
    gateway = MessagesGateway(config=config)
    await gateway.serve()
