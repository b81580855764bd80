"""Tool framework: descriptors, results, validation and dispatch."""

from mcp_adapters.tools.base import (
    FunctionTool,
    ParameterSpec,
    ToolDescriptor,
    ToolResult,
    validate_arguments,
)
from mcp_adapters.tools.registry import ToolRegistry

__all__ = [
    "FunctionTool",
    "ParameterSpec",
    "ToolDescriptor",
    "ToolRegistry",
    "ToolResult",
    "validate_arguments",
]
