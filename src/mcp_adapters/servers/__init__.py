"""Tool catalogues, one module per MCP server.

Each module exposes ``build_registry(config, ...)`` returning a populated
:class:`~mcp_adapters.tools.registry.ToolRegistry`.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from mcp_adapters.core.errors import ConfigurationError

if TYPE_CHECKING:
    from mcp_adapters.config.schema import AdapterConfig
    from mcp_adapters.tools.registry import ToolRegistry

SERVER_NAMES = {
    "n8n": "n8n-mcp",
    "gemini-image": "gemini-image-mcp",
    "postgres": "postgresql-mcp",
    "vault": "obsidian-vault-mcp",
}


def build_registry(server: str, config: AdapterConfig) -> ToolRegistry:
    """Build the registry for ``server`` from a loaded configuration."""
    if server == "n8n":
        from mcp_adapters.servers import n8n

        return n8n.build_registry(config)
    if server == "gemini-image":
        from mcp_adapters.servers import gemini_image

        return gemini_image.build_registry(config)
    if server == "postgres":
        from mcp_adapters.servers import postgres

        return postgres.build_registry(config)
    if server == "vault":
        from mcp_adapters.servers import vault

        return vault.build_registry(config)
    msg = f"Unknown server: '{server}'. Available: {', '.join(SERVER_NAMES)}"
    raise ConfigurationError(msg)
