"""MCP transport shim."""
