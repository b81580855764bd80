"""Exception hierarchy for mcp-adapters.

Every module imports from here. The hierarchy is:

    AdapterError
    ├── ConfigurationError
    ├── ValidationError
    ├── UnknownToolError(name, available)
    └── RemoteError(status)
        ├── AuthenticationError
        └── NotFoundError

Each class carries a stable ``code`` that ends up in the structured
failure result returned to MCP clients.
"""

from __future__ import annotations


class AdapterError(Exception):
    """Base exception for all mcp-adapters errors."""

    code = "adapter_error"


# ─── Configuration Errors ─────────────────────────────────────


class ConfigurationError(AdapterError):
    """Missing or invalid configuration. Fatal at startup."""

    code = "configuration_error"


# ─── Invocation Errors ────────────────────────────────────────


class ValidationError(AdapterError):
    """Tool parameters have the wrong shape or are out of range."""

    code = "validation_error"


class UnknownToolError(AdapterError):
    """No tool with the requested name is registered."""

    code = "unknown_tool"

    def __init__(self, name: str, available: list[str] | None = None) -> None:
        self.name = name
        self.available = available or []
        msg = f"Unknown tool: '{name}'"
        if self.available:
            msg += f". Available: {', '.join(self.available)}"
        super().__init__(msg)


# ─── Remote Errors ────────────────────────────────────────────


class RemoteError(AdapterError):
    """The external system failed or could not be reached."""

    code = "remote_error"

    def __init__(self, message: str, status: int | None = None) -> None:
        self.status = status
        super().__init__(message)


class AuthenticationError(RemoteError):
    """The external system rejected our credentials (401/403)."""

    code = "authentication_error"


class NotFoundError(RemoteError):
    """The requested remote resource does not exist (404)."""

    code = "not_found"
