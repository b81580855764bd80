"""Tests for the Obsidian vault adapter and its tools."""

from __future__ import annotations

from urllib.parse import unquote

import httpx
import pytest

from mcp_adapters.adapters.vault import VaultClient
from mcp_adapters.config.schema import VaultConfig
from mcp_adapters.core.errors import ConfigurationError, NotFoundError, RemoteError
from mcp_adapters.servers.vault import build_registry

# ── Fake vault ──────────────────────────────────────────────────────


class FakeVault:
    """In-memory stand-in for the Local REST API plugin."""

    def __init__(self, files: dict[str, str] | None = None) -> None:
        self.files = dict(files or {})
        self.requests: list[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = unquote(request.url.path)
        if path == "/search/simple/" and request.method == "POST":
            query = request.url.params["query"]
            hits = [
                {
                    "filename": name,
                    "score": 1.0,
                    "matches": [{"context": body, "match": {"start": body.find(query), "end": body.find(query) + len(query)}}],
                }
                for name, body in self.files.items()
                if query in body
            ]
            return httpx.Response(200, json=hits)
        if not path.startswith("/vault"):
            return httpx.Response(404, json={"message": "Not Found"})

        rel = path[len("/vault") :].strip("/")
        if path.endswith("/"):
            prefix = f"{rel}/" if rel else ""
            entries = sorted(
                {
                    name[len(prefix) :].split("/")[0] + ("/" if "/" in name[len(prefix) :] else "")
                    for name in self.files
                    if name.startswith(prefix)
                }
            )
            if rel and not entries:
                return httpx.Response(404, json={"message": "Not Found"})
            return httpx.Response(200, json={"files": entries})
        if request.method == "GET":
            if rel not in self.files:
                return httpx.Response(404, json={"message": "Not Found"})
            return httpx.Response(200, text=self.files[rel])
        if request.method == "POST":
            self.files[rel] = self.files.get(rel, "") + request.content.decode()
            return httpx.Response(204)
        if request.method == "PATCH":
            if rel not in self.files:
                return httpx.Response(404, json={"message": "Not Found"})
            self.files[rel] += request.content.decode()
            return httpx.Response(200)
        return httpx.Response(405)


@pytest.fixture
def vault() -> FakeVault:
    return FakeVault(
        {
            "README.md": "# Vault\n\nhello world",
            "notes/daily.md": "# Daily\n\n## Tasks\n- water plants",
            "notes/ideas.md": "nothing here",
        }
    )


@pytest.fixture
def client(vault: FakeVault) -> VaultClient:
    config = VaultConfig(base_url="https://vault.test", api_key="vault-secret-key")
    return VaultClient(config, transport=httpx.MockTransport(vault.handler))


# ── Adapter ─────────────────────────────────────────────────────────


class TestVaultClient:
    def test_requires_api_key(self) -> None:
        with pytest.raises(ConfigurationError, match="OBSIDIAN_API_KEY"):
            VaultClient(VaultConfig())

    async def test_bearer_header(self, client: VaultClient, vault: FakeVault) -> None:
        await client.list_files()
        assert vault.requests[0].headers["Authorization"] == "Bearer vault-secret-key"

    async def test_list_root(self, client: VaultClient) -> None:
        assert await client.list_files() == ["README.md", "notes/"]

    async def test_list_dir(self, client: VaultClient) -> None:
        assert await client.list_files("notes") == ["daily.md", "ideas.md"]

    async def test_get_missing_file(self, client: VaultClient) -> None:
        with pytest.raises(NotFoundError):
            await client.get_file("nope.md")

    async def test_search(self, client: VaultClient) -> None:
        hits = await client.search("hello", context_length=20)
        assert [h["filename"] for h in hits] == ["README.md"]
        assert hits[0]["matches"][0]["start"] == 9

    @pytest.mark.parametrize("body", [{"error": "index not ready"}, "not json"])
    async def test_search_rejects_unexpected_body(self, body: object) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            if isinstance(body, str):
                return httpx.Response(200, text=body)
            return httpx.Response(200, json=body)

        config = VaultConfig(base_url="https://vault.test", api_key="vault-secret-key")
        client = VaultClient(config, transport=httpx.MockTransport(handler))
        with pytest.raises(RemoteError, match="Unexpected search response"):
            await client.search("hello")

    async def test_patch_headers(self, client: VaultClient, vault: FakeVault) -> None:
        await client.patch("notes/daily.md", "append", "heading", "Daily::Tasks", "\n- buy milk")
        sent = vault.requests[-1]
        assert sent.method == "PATCH"
        assert sent.headers["Operation"] == "append"
        assert sent.headers["Target-Type"] == "heading"
        assert unquote(sent.headers["Target"]) == "Daily::Tasks"


# ── Tools ───────────────────────────────────────────────────────────


class TestVaultTools:
    def test_catalogue(self, make_config, client: VaultClient) -> None:  # type: ignore[no-untyped-def]
        registry = build_registry(make_config(), client=client)
        assert registry.list_names() == [
            "obsidian_list_files_in_vault",
            "obsidian_list_files_in_dir",
            "obsidian_get_file_contents",
            "obsidian_simple_search",
            "obsidian_patch_content",
            "obsidian_append_content",
            "obsidian_batch_get_file_contents",
        ]

    async def test_append_then_read(self, make_config, client: VaultClient) -> None:  # type: ignore[no-untyped-def]
        registry = build_registry(make_config(), client=client)
        appended = await registry.dispatch(
            "obsidian_append_content", {"filepath": "inbox.md", "content": "first line\n"}
        )
        assert appended.payload == "Successfully appended content to inbox.md"
        read = await registry.dispatch("obsidian_get_file_contents", {"filepath": "inbox.md"})
        assert read.to_text() == "first line\n"

    async def test_patch_message(self, make_config, client: VaultClient) -> None:  # type: ignore[no-untyped-def]
        registry = build_registry(make_config(), client=client)
        result = await registry.dispatch(
            "obsidian_patch_content",
            {
                "filepath": "notes/daily.md",
                "operation": "append",
                "target_type": "heading",
                "target": "Daily::Tasks",
                "content": "- buy milk",
            },
        )
        assert result.payload == "Successfully patched content in notes/daily.md"

    async def test_patch_rejects_bad_operation(self, make_config, client: VaultClient, vault: FakeVault) -> None:  # type: ignore[no-untyped-def]
        registry = build_registry(make_config(), client=client)
        result = await registry.dispatch(
            "obsidian_patch_content",
            {
                "filepath": "notes/daily.md",
                "operation": "delete",
                "target_type": "heading",
                "target": "Daily",
                "content": "",
            },
        )
        assert result.code == "validation_error"
        assert vault.requests == []

    async def test_search_default_context_length(self, make_config, client: VaultClient, vault: FakeVault) -> None:  # type: ignore[no-untyped-def]
        registry = build_registry(make_config(), client=client)
        await registry.dispatch("obsidian_simple_search", {"query": "world"})
        assert vault.requests[-1].url.params["contextLength"] == "100"

    async def test_batch_reports_missing_inline(self, make_config, client: VaultClient) -> None:  # type: ignore[no-untyped-def]
        registry = build_registry(make_config(), client=client)
        result = await registry.dispatch(
            "obsidian_batch_get_file_contents", {"filepaths": ["README.md", "gone.md"]}
        )
        assert result.success
        text = result.to_text()
        assert text.startswith("# README.md\n\n# Vault\n\nhello world\n\n---\n\n")
        assert "# gone.md\n\nError reading file: Resource not found" in text

    async def test_batch_rejects_non_strings(self, make_config, client: VaultClient) -> None:  # type: ignore[no-untyped-def]
        registry = build_registry(make_config(), client=client)
        result = await registry.dispatch("obsidian_batch_get_file_contents", {"filepaths": ["a.md", 3]})
        assert result.code == "validation_error"
