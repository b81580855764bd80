"""Obsidian vault tools."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from mcp_adapters.adapters.vault import PATCH_OPERATIONS, PATCH_TARGET_TYPES, VaultClient
from mcp_adapters.core.errors import RemoteError, ValidationError
from mcp_adapters.tools.base import ParameterSpec
from mcp_adapters.tools.registry import ToolRegistry

if TYPE_CHECKING:
    from mcp_adapters.config.schema import AdapterConfig

logger = logging.getLogger(__name__)


def build_registry(config: AdapterConfig, *, client: VaultClient | None = None) -> ToolRegistry:
    vault = client or VaultClient(config.vault)
    registry = ToolRegistry(debug=config.logging.debug, secrets=[config.vault.api_key])
    registry.on_close(vault.aclose)

    async def list_files_in_vault() -> list[str]:
        return await vault.list_files()

    async def list_files_in_dir(dirpath: str) -> list[str]:
        return await vault.list_files(dirpath)

    async def get_file_contents(filepath: str) -> str:
        return await vault.get_file(filepath)

    async def simple_search(query: str, context_length: int = 100) -> list[dict[str, Any]]:
        return await vault.search(query, context_length)

    async def patch_content(
        filepath: str, operation: str, target_type: str, target: str, content: str
    ) -> str:
        await vault.patch(filepath, operation, target_type, target, content)
        return f"Successfully patched content in {filepath}"

    async def append_content(filepath: str, content: str) -> str:
        await vault.append(filepath, content)
        return f"Successfully appended content to {filepath}"

    async def batch_get_file_contents(filepaths: list[Any]) -> str:
        if not all(isinstance(p, str) for p in filepaths):
            msg = "Parameter 'filepaths' must be a list of strings"
            raise ValidationError(msg)
        sections = []
        for path in filepaths:
            try:
                body = await vault.get_file(path)
            except RemoteError as exc:
                logger.info("Skipping %s in batch read: %s", path, exc)
                sections.append(f"# {path}\n\nError reading file: {exc}\n\n---\n\n")
                continue
            sections.append(f"# {path}\n\n{body}\n\n---\n\n")
        return "".join(sections)

    registry.add(
        "obsidian_list_files_in_vault",
        "Lists all files and directories in the root directory of your Obsidian vault.",
        list_files_in_vault,
    )
    registry.add(
        "obsidian_list_files_in_dir",
        (
            "Lists all files and directories that exist in a specific Obsidian directory. "
            "Note: empty directories are not returned."
        ),
        list_files_in_dir,
        {
            "dirpath": ParameterSpec(
                "string",
                "Path to list files from (relative to your vault root).",
                required=True,
            )
        },
    )
    registry.add(
        "obsidian_get_file_contents",
        "Return the content of a single file in your vault.",
        get_file_contents,
        {
            "filepath": ParameterSpec(
                "string", "Path to the relevant file (relative to your vault root).", required=True
            )
        },
    )
    registry.add(
        "obsidian_simple_search",
        (
            "Simple search for documents matching a specified text query across all files "
            "in the vault. Use this tool when you want to do a simple text search."
        ),
        simple_search,
        {
            "query": ParameterSpec("string", "Text to search for in the vault.", required=True),
            "context_length": ParameterSpec(
                "integer", "How much context to return around the matching string", default=100
            ),
        },
    )
    registry.add(
        "obsidian_patch_content",
        "Insert content into an existing note relative to a heading, block reference, or frontmatter field.",
        patch_content,
        {
            "filepath": ParameterSpec("string", "Path to the file (relative to vault root)", required=True),
            "operation": ParameterSpec(
                "string", "Operation to perform", required=True, enum=PATCH_OPERATIONS
            ),
            "target_type": ParameterSpec(
                "string", "Type of target to patch", required=True, enum=PATCH_TARGET_TYPES
            ),
            "target": ParameterSpec(
                "string",
                "Target identifier (heading path, block reference, or frontmatter field)",
                required=True,
            ),
            "content": ParameterSpec("string", "Content to insert", required=True),
        },
    )
    registry.add(
        "obsidian_append_content",
        "Append content to a new or existing file in the vault.",
        append_content,
        {
            "filepath": ParameterSpec("string", "Path to the file (relative to vault root)", required=True),
            "content": ParameterSpec("string", "Content to append to the file", required=True),
        },
    )
    registry.add(
        "obsidian_batch_get_file_contents",
        (
            "Return the contents of multiple files in your vault, concatenated with headers. "
            "Files that cannot be read are reported inline."
        ),
        batch_get_file_contents,
        {
            "filepaths": ParameterSpec(
                "array",
                "List of file paths to read",
                required=True,
                items={"type": "string", "description": "Path to a file (relative to your vault root)"},
            )
        },
    )
    return registry
