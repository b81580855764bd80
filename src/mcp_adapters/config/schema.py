"""Pydantic models for mcp-adapters configuration."""

from __future__ import annotations

from pydantic import BaseModel, Field


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    file: str = ""
    debug: bool = False


class N8nConfig(BaseModel):
    """n8n REST API connection."""

    base_url: str | None = None
    api_key: str | None = None
    timeout: float = 30.0


class GeminiImageConfig(BaseModel):
    """Gemini image generation settings."""

    api_key: str | None = None
    model: str = "gemini-2.5-flash-image"
    default_image_size: str = "1K"
    default_modalities: list[str] = Field(default_factory=lambda: ["IMAGE", "TEXT"])
    default_output_dir: str = "./generated-images"
    file_name_pattern: str = "gemini_image_{timestamp}_{index}"
    auto_create_output_dir: bool = True
    overwrite_existing_files: bool = False
    request_timeout: float = 60.0
    min_prompt_length: int = 1
    max_prompt_length: int = 2000
    validate_output_path: bool = True


class PostgresConfig(BaseModel):
    """Named PostgreSQL connections and pool settings."""

    connections: dict[str, str] = Field(default_factory=dict)
    default: str | None = None
    pool_size: int = 5
    max_overflow: int = 10
    pool_timeout: int = 30
    pool_recycle: int = 3600
    statement_timeout_ms: int | None = None
    max_pools: int | None = None
    pool_idle_ttl: float | None = None


class VaultConfig(BaseModel):
    """Obsidian Local REST API connection."""

    base_url: str = "https://127.0.0.1:27124"
    api_key: str | None = None
    verify_ssl: bool = False
    timeout: float = 30.0


class AdapterConfig(BaseModel):
    """Top-level configuration shared by every server."""

    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    n8n: N8nConfig = Field(default_factory=N8nConfig)
    gemini_image: GeminiImageConfig = Field(default_factory=GeminiImageConfig)
    postgres: PostgresConfig = Field(default_factory=PostgresConfig)
    vault: VaultConfig = Field(default_factory=VaultConfig)
