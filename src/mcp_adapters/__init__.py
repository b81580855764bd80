"""mcp-adapters: small MCP servers that forward tools to external systems."""

__version__ = "0.3.0"
