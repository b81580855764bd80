"""Obsidian vault adapter (Local REST API plugin)."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any
from urllib.parse import quote

from mcp_adapters.adapters.http import HttpAdapter
from mcp_adapters.core.errors import ConfigurationError, RemoteError

if TYPE_CHECKING:
    import httpx

    from mcp_adapters.config.schema import VaultConfig

PATCH_OPERATIONS = ("append", "prepend", "replace")
PATCH_TARGET_TYPES = ("heading", "block", "frontmatter")


def _vault_path(path: str, *, directory: bool = False) -> str:
    clean = path.strip("/")
    url = f"/vault/{quote(clean)}" if clean else "/vault"
    return url + "/" if directory else url


class VaultClient(HttpAdapter):
    """Client for the Obsidian Local REST API.

    The plugin serves a self-signed certificate by default, so TLS
    verification follows ``VaultConfig.verify_ssl``.
    """

    service = "vault"

    def __init__(
        self,
        config: VaultConfig,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not config.api_key:
            msg = "Missing vault configuration. Please set OBSIDIAN_API_KEY."
            raise ConfigurationError(msg)
        super().__init__(
            config.base_url,
            headers={"Authorization": f"Bearer {config.api_key}"},
            timeout=config.timeout,
            verify=config.verify_ssl,
            secrets=[config.api_key],
            transport=transport,
        )

    async def list_files(self, dirpath: str = "") -> list[str]:
        """List files and folders at the vault root or inside ``dirpath``."""
        action = f"Failed to list files in {dirpath!r}" if dirpath else "Failed to list vault files"
        resp = await self._request("GET", _vault_path(dirpath, directory=True), action)
        body = resp.json()
        return list(body.get("files", [])) if isinstance(body, dict) else []

    async def get_file(self, filepath: str) -> str:
        resp = await self._request(
            "GET",
            _vault_path(filepath),
            f"Failed to get file {filepath!r}",
            headers={"Accept": "text/markdown"},
        )
        return resp.text

    async def search(self, query: str, context_length: int = 100) -> list[dict[str, Any]]:
        """Simple full-text search; one entry per matching file."""
        resp = await self._request(
            "POST",
            "/search/simple/",
            f"Failed to search for {query!r}",
            params={"query": query, "contextLength": context_length},
        )
        try:
            body = resp.json()
        except ValueError:
            body = None
        if not isinstance(body, list):
            msg = f"Unexpected search response for {query!r}"
            raise RemoteError(msg, resp.status_code)
        results = []
        for hit in body:
            results.append(
                {
                    "filename": hit.get("filename"),
                    "score": hit.get("score"),
                    "matches": [
                        {
                            "context": m.get("context", ""),
                            "start": (m.get("match") or {}).get("start"),
                            "end": (m.get("match") or {}).get("end"),
                        }
                        for m in hit.get("matches", [])
                    ],
                }
            )
        return results

    async def append(self, filepath: str, content: str) -> None:
        """Append to a file, creating it when missing."""
        await self._request(
            "POST",
            _vault_path(filepath),
            f"Failed to append to {filepath!r}",
            content=content.encode("utf-8"),
            headers={"Content-Type": "text/markdown"},
        )

    async def patch(
        self,
        filepath: str,
        operation: str,
        target_type: str,
        target: str,
        content: str,
    ) -> None:
        """Insert content relative to a heading, block reference or frontmatter field."""
        await self._request(
            "PATCH",
            _vault_path(filepath),
            f"Failed to patch {filepath!r}",
            content=content.encode("utf-8"),
            headers={
                "Content-Type": "text/markdown",
                "Operation": operation,
                "Target-Type": target_type,
                "Target": quote(target),
            },
        )
