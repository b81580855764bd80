"""External system adapters.

Each adapter wraps one external API behind typed async methods and
translates its failures into :mod:`mcp_adapters.core.errors`.
"""
