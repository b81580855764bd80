"""Shared test fixtures for mcp-adapters."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import httpx
import pytest

from mcp_adapters.config.schema import AdapterConfig

if TYPE_CHECKING:
    from collections.abc import Callable


@pytest.fixture
def make_config() -> Any:
    """Factory fixture for AdapterConfig with every credential filled in."""

    def _make(**sections: Any) -> AdapterConfig:
        data: dict[str, Any] = {
            "n8n": {"base_url": "https://n8n.test", "api_key": "n8n-secret-key"},
            "gemini_image": {"api_key": "gemini-secret-key"},
            "vault": {"base_url": "https://vault.test", "api_key": "vault-secret-key"},
            "postgres": {"connections": {}},
        }
        for name, values in sections.items():
            data[name] = {**data.get(name, {}), **values}
        return AdapterConfig.model_validate(data)

    return _make


@pytest.fixture
def json_transport() -> Any:
    """Build an ``httpx.MockTransport`` that records requests.

    The handler maps ``(method, path)`` to ``(status, body)``; str bodies
    are sent as text, anything else as JSON.
    """

    def _make(
        routes: dict[tuple[str, str], tuple[int, Any]],
    ) -> tuple[httpx.MockTransport, list[httpx.Request]]:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            status, body = routes.get((request.method, request.url.path), (404, {"message": "nope"}))
            if isinstance(body, str):
                return httpx.Response(status, text=body)
            return httpx.Response(status, json=body)

        return httpx.MockTransport(handler), seen

    return _make


@pytest.fixture
def env_without_credentials(monkeypatch: pytest.MonkeyPatch) -> Callable[[], None]:
    """Remove every variable the loader reads from the process environment."""

    def _clear() -> None:
        for var in (
            "MCP_ADAPTERS_CONFIG",
            "N8N_BASE_URL",
            "N8N_API_KEY",
            "GEMINI_API_KEY",
            "OBSIDIAN_BASE_URL",
            "OBSIDIAN_API_KEY",
            "PG_DB_MAP",
            "PG_CONNECTION_STRING",
            "MCP_ADAPTERS_LOG_LEVEL",
            "MCP_ADAPTERS_LOG_FILE",
            "MCP_ADAPTERS_DEBUG",
        ):
            monkeypatch.delenv(var, raising=False)

    _clear()
    return _clear
