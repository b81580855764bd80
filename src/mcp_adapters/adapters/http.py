"""Shared plumbing for adapters that talk to a REST API over httpx."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import httpx

from mcp_adapters.core.errors import AuthenticationError, NotFoundError, RemoteError
from mcp_adapters.core.secrets import redact

if TYPE_CHECKING:
    from collections.abc import Iterable

logger = logging.getLogger(__name__)


def _upstream_message(response: httpx.Response) -> str:
    """Best-effort error message from an upstream error body."""
    try:
        body = response.json()
    except ValueError:
        return response.text.strip() or response.reason_phrase
    if isinstance(body, dict):
        for key in ("message", "detail", "error"):
            if isinstance(body.get(key), str):
                return body[key]
    return response.text.strip() or response.reason_phrase


def map_status_error(
    response: httpx.Response,
    action: str,
    secrets: Iterable[str | None] = (),
) -> RemoteError:
    """Translate an HTTP error response into the adapter error hierarchy."""
    status = response.status_code
    if status in (401, 403):
        return AuthenticationError(
            "Authentication failed. Please check your API key.", status
        )
    if status == 404:
        return NotFoundError("Resource not found. Please check the ID or path.", status)
    message = redact(f"{action}: {_upstream_message(response)}", secrets)
    return RemoteError(message, status)


class HttpAdapter:
    """Base class for httpx-backed adapters.

    Subclasses call :meth:`_request`, which returns the response on 2xx
    and raises a :class:`RemoteError` subclass otherwise.
    """

    service = "http"

    def __init__(
        self,
        base_url: str,
        *,
        headers: dict[str, str] | None = None,
        timeout: float = 30.0,
        verify: bool = True,
        secrets: Iterable[str | None] = (),
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._secrets = [s for s in secrets if s]
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers=headers or {},
            timeout=timeout,
            verify=verify,
            transport=transport,
        )

    async def __aenter__(self) -> HttpAdapter:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        action: str,
        **kwargs: Any,
    ) -> httpx.Response:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.TimeoutException as e:
            logger.warning("%s %s timed out", self.service, action)
            msg = f"{action}: request timed out"
            raise RemoteError(msg) from e
        except httpx.HTTPError as e:
            text = redact(str(e), self._secrets)
            logger.warning("%s %s failed: %s", self.service, action, text)
            msg = f"{action}: {text}"
            raise RemoteError(msg) from e

        if response.is_error:
            error = map_status_error(response, action, self._secrets)
            logger.warning(
                "%s %s failed (HTTP %s): %s",
                self.service,
                action,
                response.status_code,
                error,
            )
            raise error
        return response
