"""Main CLI application.

Click commands that start one MCP adapter server on stdio:
n8n, gemini-image, postgres, vault. ``tools`` prints a server's
tool catalogue.
"""

from __future__ import annotations

import asyncio
import json as json_mod
import logging
import sys
from typing import TYPE_CHECKING, Any

import click

from mcp_adapters import __version__
from mcp_adapters.config.loader import SERVERS, load_config, validate_for
from mcp_adapters.core.errors import ConfigurationError
from mcp_adapters.core.logging import setup_logging

if TYPE_CHECKING:
    from mcp_adapters.config.schema import AdapterConfig

logger = logging.getLogger(__name__)


# ── Helpers ──────────────────────────────────────────────────────


def _error(msg: str) -> None:
    """Print an error message to stderr and exit."""
    click.echo(f"Error: {msg}", err=True)
    sys.exit(1)


def _load_config(options: dict[str, Any], server: str) -> AdapterConfig:
    """Load config, set up logging and check what ``server`` needs."""
    overrides: dict[str, Any] = {}
    if options.get("log_level"):
        overrides.setdefault("logging", {})["level"] = options["log_level"]
    if options.get("debug"):
        overrides.setdefault("logging", {})["debug"] = True

    try:
        config = load_config(path=options.get("config_path"), overrides=overrides)
        setup_logging(config.logging.level, config.logging.file)
        validate_for(config, server)
    except ConfigurationError as e:
        _error(str(e))
        raise  # unreachable, keeps mypy happy
    return config


async def _serve_async(server: str, config: AdapterConfig) -> int:
    from mcp_adapters.mcp.server import create_server, serve_stdio
    from mcp_adapters.servers import SERVER_NAMES, build_registry

    registry = build_registry(server, config)
    logger.info("Starting %s with %d tools", SERVER_NAMES[server], len(registry))
    try:
        return await serve_stdio(create_server(SERVER_NAMES[server], registry))
    finally:
        await registry.aclose()


def _serve(ctx: click.Context, server: str) -> None:
    config = _load_config(ctx.obj, server)
    try:
        code = asyncio.run(_serve_async(server, config))
    except KeyboardInterrupt:
        code = 0
    except Exception:
        logger.exception("%s server stopped by an unhandled error", server)
        code = 1
    sys.exit(code)


# ── Group ────────────────────────────────────────────────────────


@click.group(invoke_without_command=True)
@click.version_option(version=__version__, prog_name="mcp-adapters")
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True),
    default=None,
    help="Path to config file.",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default=None,
    help="Log level (logs go to stderr).",
)
@click.option("--debug", is_flag=True, default=False, help="Attach tracebacks to tool errors.")
@click.pass_context
def cli(ctx: click.Context, config_path: str | None, log_level: str | None, debug: bool) -> None:
    """mcp-adapters - MCP servers for n8n, Gemini images, PostgreSQL and Obsidian.

    Each command serves one adapter over stdin/stdout.
    """
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["log_level"] = log_level
    ctx.obj["debug"] = debug
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


# ── servers ──────────────────────────────────────────────────────


@cli.command()
@click.pass_context
def n8n(ctx: click.Context) -> None:
    """Serve n8n workflow tools (N8N_BASE_URL, N8N_API_KEY)."""
    _serve(ctx, "n8n")


@cli.command(name="gemini-image")
@click.pass_context
def gemini_image(ctx: click.Context) -> None:
    """Serve the Gemini image generation tool (GEMINI_API_KEY)."""
    _serve(ctx, "gemini-image")


@cli.command()
@click.pass_context
def postgres(ctx: click.Context) -> None:
    """Serve PostgreSQL tools (PG_DB_MAP or PG_CONNECTION_STRING)."""
    _serve(ctx, "postgres")


@cli.command()
@click.pass_context
def vault(ctx: click.Context) -> None:
    """Serve Obsidian vault tools (OBSIDIAN_API_KEY)."""
    _serve(ctx, "vault")


# ── tools ────────────────────────────────────────────────────────


@cli.command()
@click.argument("server", type=click.Choice(SERVERS))
@click.option("--json", "as_json", is_flag=True, default=False, help="Print input schemas as JSON.")
@click.pass_context
def tools(ctx: click.Context, server: str, as_json: bool) -> None:
    """List the tools SERVER exposes. Does not contact the remote system."""
    from mcp_adapters.servers import build_registry

    config = _load_config(ctx.obj, server)
    registry = build_registry(server, config)
    try:
        descriptors = registry.list_descriptors()
        if as_json:
            payload = [
                {"name": d.name, "description": d.description, "inputSchema": d.input_schema}
                for d in descriptors
            ]
            click.echo(json_mod.dumps(payload, indent=2))
        else:
            for d in descriptors:
                click.echo(f"  {d.name:<36} {d.description}")
    finally:
        asyncio.run(registry.aclose())
