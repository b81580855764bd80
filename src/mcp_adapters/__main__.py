"""Allow ``python -m mcp_adapters``."""

from mcp_adapters.cli.app import cli

cli()
