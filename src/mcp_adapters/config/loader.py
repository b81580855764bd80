"""Configuration loading: TOML files, env var overrides, merge logic.

Discovery order (later overrides earlier):
    1. Built-in defaults (Pydantic model defaults)
    2. ``$MCP_ADAPTERS_CONFIG`` (explicit path) or the ``--config`` option
    3. Environment variables (``N8N_API_KEY``, ``PG_DB_MAP``, ...)
    4. Programmatic overrides (passed to ``load_config``)

Configuration is loaded once at startup and handed to every adapter
constructor; nothing reads the environment after that.
"""

from __future__ import annotations

import json
import os
import tomllib
from pathlib import Path
from typing import TYPE_CHECKING, Any

from mcp_adapters.core.errors import ConfigurationError

from .schema import AdapterConfig

if TYPE_CHECKING:
    from collections.abc import Mapping

CONFIG_ENV = "MCP_ADAPTERS_CONFIG"

# env var -> (section, field)
_ENV_FIELDS: dict[str, tuple[str, str]] = {
    "N8N_BASE_URL": ("n8n", "base_url"),
    "N8N_API_KEY": ("n8n", "api_key"),
    "GEMINI_API_KEY": ("gemini_image", "api_key"),
    "OBSIDIAN_BASE_URL": ("vault", "base_url"),
    "OBSIDIAN_API_KEY": ("vault", "api_key"),
    "MCP_ADAPTERS_LOG_LEVEL": ("logging", "level"),
    "MCP_ADAPTERS_LOG_FILE": ("logging", "file"),
    "MCP_ADAPTERS_DEBUG": ("logging", "debug"),
}

SERVERS = ("n8n", "gemini-image", "postgres", "vault")


def _read_toml(path: Path) -> dict[str, Any]:
    """Read and parse a TOML file."""
    try:
        with path.open("rb") as f:
            return tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        msg = f"Invalid TOML in {path}: {e}"
        raise ConfigurationError(msg) from e
    except OSError as e:
        msg = f"Cannot read config file {path}: {e}"
        raise ConfigurationError(msg) from e


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge override into base. Override wins on conflicts."""
    merged = base.copy()
    for key, value in override.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _parse_db_map(raw: str) -> dict[str, Any]:
    """Parse ``PG_DB_MAP`` into the ``postgres`` section shape."""
    try:
        db_map = json.loads(raw)
    except json.JSONDecodeError as e:
        msg = f"PG_DB_MAP is not valid JSON: {e}"
        raise ConfigurationError(msg) from e
    if not isinstance(db_map, dict):
        msg = "PG_DB_MAP must be a JSON object mapping names to connection strings"
        raise ConfigurationError(msg)

    section: dict[str, Any] = {
        "connections": {
            key: value
            for key, value in db_map.items()
            if key != "default" and isinstance(value, str)
        }
    }
    if isinstance(db_map.get("default"), str):
        section["default"] = db_map["default"]
    return section


def _env_overrides(env: Mapping[str, str]) -> dict[str, Any]:
    """Collect config overrides from environment variables.

    Blank values count as unset.
    """
    overrides: dict[str, Any] = {}
    for var, (section, field) in _ENV_FIELDS.items():
        value = env.get(var, "").strip()
        if value:
            overrides.setdefault(section, {})[field] = value

    db_map = env.get("PG_DB_MAP", "").strip()
    if db_map:
        overrides["postgres"] = _parse_db_map(db_map)
    return overrides


def _normalize_connections(config: AdapterConfig, env: Mapping[str, str]) -> None:
    """Lowercase connection names and resolve the default (in-place)."""
    pg = config.postgres
    pg.connections = {name.lower(): url for name, url in pg.connections.items()}

    legacy = env.get("PG_CONNECTION_STRING", "").strip()
    if not pg.connections and legacy:
        pg.connections = {"default": legacy}
        pg.default = "default"

    if pg.default is not None:
        pg.default = pg.default.lower()
        if pg.default not in pg.connections:
            pg.default = None


def load_config(
    path: str | Path | None = None,
    overrides: dict[str, Any] | None = None,
    env: Mapping[str, str] | None = None,
) -> AdapterConfig:
    """Load and validate configuration.

    Args:
        path: Explicit config file path (wins over ``$MCP_ADAPTERS_CONFIG``).
        overrides: Dict of overrides merged last (highest overall priority).
        env: Environment mapping; defaults to ``os.environ``.

    Returns:
        Validated AdapterConfig instance.

    Raises:
        ConfigurationError: On invalid TOML, missing files, bad
            ``PG_DB_MAP`` or validation failure.
    """
    env = os.environ if env is None else env
    merged: dict[str, Any] = {}

    file_path = path if path is not None else env.get(CONFIG_ENV)
    if file_path:
        p = Path(file_path)
        if not p.is_file():
            msg = f"Config file not found: {file_path}"
            raise ConfigurationError(msg)
        merged = _deep_merge(merged, _read_toml(p))

    merged = _deep_merge(merged, _env_overrides(env))

    if overrides:
        merged = _deep_merge(merged, overrides)

    try:
        config = AdapterConfig.model_validate(merged)
    except Exception as e:
        msg = f"Configuration validation failed: {e}"
        raise ConfigurationError(msg) from e

    _normalize_connections(config, env)
    return config


def validate_for(config: AdapterConfig, server: str) -> None:
    """Fail fast when ``server`` cannot run with ``config``.

    Raises:
        ConfigurationError: Naming every missing environment variable.
    """
    missing: list[str] = []
    if server == "n8n":
        if not config.n8n.base_url:
            missing.append("N8N_BASE_URL")
        if not config.n8n.api_key:
            missing.append("N8N_API_KEY")
    elif server == "gemini-image":
        if not config.gemini_image.api_key:
            missing.append("GEMINI_API_KEY")
    elif server == "vault":
        if not config.vault.api_key:
            missing.append("OBSIDIAN_API_KEY")
    elif server == "postgres":
        if not config.postgres.connections:
            missing.append("PG_DB_MAP (or PG_CONNECTION_STRING)")
    else:
        msg = f"Unknown server: '{server}'. Available: {', '.join(SERVERS)}"
        raise ConfigurationError(msg)

    if missing:
        msg = (
            f"Missing required environment variable(s) for {server}: "
            f"{', '.join(missing)}"
        )
        raise ConfigurationError(msg)
