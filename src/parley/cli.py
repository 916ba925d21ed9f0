"""CLI entry point."""

from __future__ import annotations

import asyncio
import json
import sys
from typing import Any

import rich_click as click

from parley.__version__ import __version__

# Configure rich-click styling
click.rich_click.USE_RICH_MARKUP = True
click.rich_click.USE_MARKDOWN = True
click.rich_click.SHOW_ARGUMENTS = True
click.rich_click.GROUP_ARGUMENTS_OPTIONS = True
click.rich_click.STYLE_ERRORS_SUGGESTION = "magenta italic"
click.rich_click.ERRORS_SUGGESTION = "Try running '--help' for more information."
click.rich_click.ERRORS_EPILOGUE = ""
click.rich_click.MAX_WIDTH = 100


def _read_json(path: str) -> Any:
    if path == "-":
        text = sys.stdin.read()
    else:
        with open(path) as f:
            text = f.read()
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise click.ClickException(f"{path} is not valid JSON: {e}") from e


@click.group()
@click.version_option(version=__version__, prog_name="parley")
def cli() -> None:
    """Parley - Anthropic Messages front door for OpenAI-compatible gateways.

    **Commands:**

        parley serve        Run the gateway server

        parley translate    Translate a single request or response offline
    """


@cli.command()
@click.option("--host", default=None, help="Host to bind (or PARLEY_HOST)")
@click.option("--port", type=int, default=None, help="Port to bind (or PARLEY_PORT)")
@click.option("--endpoint", default=None, help="Upstream AI gateway URL (or PARLEY_ENDPOINT)")
@click.option("--upstream-api-key", default=None, help="Upstream key (or PARLEY_UPSTREAM_API_KEY)")
@click.option("--api-key", default=None, help="Key required from clients (or PARLEY_API_KEY)")
@click.option("--config", "config_file", default=None, help="YAML config file (or PARLEY_CONFIG)")
@click.option("--debug-dir", default=None, help="Directory for request/response debug dumps")
@click.option("--log-level", default=None, help="Log level (or PARLEY_LOG_LEVEL)")
@click.option(
    "--log-format",
    type=click.Choice(["text", "json"]),
    default=None,
    help="Log format (or PARLEY_LOG_FORMAT)",
)
def serve(
    host: str | None,
    port: int | None,
    endpoint: str | None,
    upstream_api_key: str | None,
    api_key: str | None,
    config_file: str | None,
    debug_dir: str | None,
    log_level: str | None,
    log_format: str | None,
) -> None:
    """Run the gateway server.

    Accepts Anthropic Messages requests on **/v1/messages** and OpenAI
    requests on **/v1/chat/completions**. Models are addressed as
    `<model>#<provider>`.

    **Examples:**

        parley serve --endpoint https://gateway.ai.cloudflare.com/v1/ACCOUNT/GATEWAY

        parley serve --config parley.yaml --port 9000
    """
    from parley.compose import create_gateway
    from parley.gateway.errors import ConfigurationError
    from parley.logging_config import configure_logging

    configure_logging(level=log_level, format=log_format)  # type: ignore[arg-type]

    try:
        asyncio.run(
            create_gateway(
                host=host,
                port=port,
                endpoint=endpoint,
                upstream_api_key=upstream_api_key,
                api_key=api_key,
                debug_dir=debug_dir,
                config_file=config_file,
            )
        )
    except ConfigurationError as e:
        click.echo(f"Error: {e.message}", err=True)
        sys.exit(1)
    except KeyboardInterrupt:
        click.echo("Stopped.")


@cli.command()
@click.argument("file", default="-")
@click.option(
    "--response",
    "-r",
    "is_response",
    is_flag=True,
    help="FILE is an OpenAI chat completion; print the Anthropic message",
)
@click.option("--model", "-m", default=None, help="Model name to put on the output")
def translate(file: str, is_response: bool, model: str | None) -> None:
    """Translate one JSON document without contacting any upstream.

    By default FILE is an Anthropic Messages request and the OpenAI Chat
    Completions request is printed. Reads stdin when FILE is omitted.

    **Examples:**

        parley translate request.json

        cat completion.json | parley translate --response
    """
    from parley.gateway.errors import GatewayError
    from parley.gateway.transforms.request import translate_request
    from parley.gateway.transforms.response import translate_response

    data = _read_json(file)
    try:
        if is_response:
            if not isinstance(data, dict):
                raise click.ClickException("Response must be a JSON object")
            result = translate_response(data, model=model)
        else:
            result = translate_request(data, model=model)
    except GatewayError as e:
        raise click.ClickException(e.message) from e

    click.echo(json.dumps(result, indent=2, ensure_ascii=False))


def main() -> None:
    """Main entry point for the CLI."""
    cli()
