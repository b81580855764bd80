"""Named database connections.

A :class:`ConnectionStore` maps user-chosen aliases to connection URLs
for the lifetime of the process. Changes made through the connection
tools are held in memory only: they are lost on restart and never
written back to the environment or to disk.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from mcp_adapters.core.errors import NotFoundError, ValidationError
from mcp_adapters.core.secrets import mask_url_password

if TYPE_CHECKING:
    from mcp_adapters.config.schema import PostgresConfig

logger = logging.getLogger(__name__)


def looks_like_url(value: str) -> bool:
    return "://" in value


class ConnectionStore:
    """In-memory registry of named connection strings.

    Names are case-insensitive (stored lowercased). ``durable`` is always
    ``False``: this store is mutable configuration, not persistence.
    """

    durable = False

    def __init__(self, connections: dict[str, str] | None = None, default: str | None = None) -> None:
        self._connections = {k.lower(): v for k, v in (connections or {}).items()}
        self._default = default.lower() if default and default.lower() in self._connections else None

    @classmethod
    def from_config(cls, config: PostgresConfig) -> ConnectionStore:
        return cls(dict(config.connections), config.default)

    @property
    def default(self) -> str | None:
        return self._default

    def names(self) -> list[str]:
        return list(self._connections.keys())

    def resolve(self, name_or_url: str | None) -> str:
        """Turn a connection name, a URL or nothing into a URL.

        Raises:
            NotFoundError: If the name is unknown, or nothing was given
                and there is no default.
        """
        value = (name_or_url or "").strip()
        if value and looks_like_url(value):
            return value
        if not value:
            if self._default is None:
                msg = "No connection given and no default connection available"
                raise NotFoundError(msg)
            return self._connections[self._default]
        try:
            return self._connections[value.lower()]
        except KeyError:
            msg = f'Connection "{value}" not found and no default connection available'
            raise NotFoundError(msg) from None

    def describe(self, *, reveal: bool = False) -> dict[str, Any]:
        """Summary of every connection; passwords masked unless ``reveal``."""
        return {
            "connections": [
                {
                    "name": name,
                    "connectionString": url if reveal else mask_url_password(url),
                    "isDefault": name == self._default,
                }
                for name, url in self._connections.items()
            ],
            "default": self._default,
            "durable": self.durable,
        }

    def add(self, name: str, url: str) -> None:
        """Add or replace a connection; the first one becomes the default."""
        key = name.strip().lower()
        if not key or key == "default":
            msg = "Connection name must be non-empty and not 'default'"
            raise ValidationError(msg)
        if not looks_like_url(url.strip()):
            msg = "Connection string must be a URL such as postgresql://user@host/db"
            raise ValidationError(msg)
        self._connections[key] = url.strip()
        if self._default is None:
            self._default = key
        logger.info("Added connection %s (in memory only)", key)

    def remove(self, name: str) -> None:
        """Remove a connection; a removed default falls back to the first remaining."""
        key = name.strip().lower()
        if key not in self._connections:
            msg = f'Connection "{name}" does not exist'
            raise NotFoundError(msg)
        del self._connections[key]
        if self._default == key:
            self._default = next(iter(self._connections), None)
        logger.info("Removed connection %s (in memory only)", key)

    def set_default(self, name: str) -> None:
        key = name.strip().lower()
        if key not in self._connections:
            msg = f'Connection "{name}" does not exist'
            raise NotFoundError(msg)
        self._default = key
        logger.info("Default connection set to %s (in memory only)", key)

    def __contains__(self, name: str) -> bool:
        return name.lower() in self._connections

    def __len__(self) -> int:
        return len(self._connections)
