"""Configuration loading and validation."""

from mcp_adapters.config.loader import load_config, validate_for
from mcp_adapters.config.schema import AdapterConfig

__all__ = ["AdapterConfig", "load_config", "validate_for"]
