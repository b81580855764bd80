"""Tests for Gemini image generation: adapter, validation and tool."""

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
from google.genai import errors as genai_errors

from mcp_adapters.adapters.gemini import GeminiImageClient, unique_path
from mcp_adapters.config.schema import GeminiImageConfig
from mcp_adapters.core.errors import AuthenticationError, ConfigurationError, ValidationError
from mcp_adapters.servers.gemini_image import (
    build_registry,
    format_file_size,
    validate_modalities,
    validate_output_path,
    validate_prompt,
)

PNG = b"\x89PNG\r\n\x1a\nfake"

# ── Helpers ─────────────────────────────────────────────────────────


def _chunk(*parts: Any) -> SimpleNamespace:
    return SimpleNamespace(candidates=[SimpleNamespace(content=SimpleNamespace(parts=list(parts)))])


def _image(data: bytes = PNG, mime: str = "image/png") -> SimpleNamespace:
    return SimpleNamespace(inline_data=SimpleNamespace(data=data, mime_type=mime), text=None)


def _text(text: str) -> SimpleNamespace:
    return SimpleNamespace(inline_data=None, text=text)


def _fake_genai(*chunks: Any, error: Exception | None = None) -> MagicMock:
    async def _stream() -> Any:
        for chunk in chunks:
            yield chunk

    client = MagicMock()
    if error is not None:
        client.aio.models.generate_content_stream = AsyncMock(side_effect=error)
    else:
        client.aio.models.generate_content_stream = AsyncMock(return_value=_stream())
    return client


def _config(tmp_path: Path, **overrides: Any) -> GeminiImageConfig:
    values: dict[str, Any] = {"api_key": "gemini-secret-key", "default_output_dir": str(tmp_path)}
    values.update(overrides)
    return GeminiImageConfig(**values)


# ── Validation ──────────────────────────────────────────────────────


class TestValidation:
    @pytest.mark.parametrize("prompt", ["", "   "])
    def test_empty_prompt(self, prompt: str) -> None:
        with pytest.raises(ValidationError, match="non-empty"):
            validate_prompt(prompt, GeminiImageConfig())

    def test_prompt_too_long(self) -> None:
        with pytest.raises(ValidationError, match="must not exceed 10"):
            validate_prompt("x" * 11, GeminiImageConfig(max_prompt_length=10))

    @pytest.mark.parametrize("path", ["./images", "images/cats", "out_dir-2"])
    def test_accepted_paths(self, path: str) -> None:
        validate_output_path(path)

    def test_traversal_rejected(self) -> None:
        with pytest.raises(ValidationError, match="directory traversal"):
            validate_output_path("./images/../../etc")

    @pytest.mark.parametrize("path", ["C:\\images", "./my images", "~/images"])
    def test_other_shapes_rejected(self, path: str) -> None:
        with pytest.raises(ValidationError, match="allowed patterns"):
            validate_output_path(path)

    def test_modalities(self) -> None:
        validate_modalities(["IMAGE"])
        with pytest.raises(ValidationError, match="At least one"):
            validate_modalities([])
        with pytest.raises(ValidationError, match="Invalid response modality: AUDIO"):
            validate_modalities(["IMAGE", "AUDIO"])

    def test_format_file_size(self) -> None:
        assert format_file_size(512) == "512.00 B"
        assert format_file_size(1536) == "1.50 KB"
        assert format_file_size(3 * 1024 * 1024) == "3.00 MB"


# ── Adapter ─────────────────────────────────────────────────────────


class TestGeminiImageClient:
    def test_missing_api_key(self) -> None:
        with pytest.raises(ConfigurationError, match="GEMINI_API_KEY"):
            GeminiImageClient(GeminiImageConfig())

    async def test_saves_images_and_collects_text(self, tmp_path: Path) -> None:
        fake = _fake_genai(_chunk(_text("A cat ")), _chunk(_image(), _text("on a mat")))
        client = GeminiImageClient(_config(tmp_path), client=fake)

        result = await client.generate_image("a cat", file_name="cat")

        assert len(result.files) == 1
        saved = result.files[0]
        assert saved.file_name == "cat.png"
        assert saved.extension == "png"
        assert Path(saved.path).read_bytes() == PNG
        assert result.text_response == "A cat on a mat"

    async def test_request_uses_defaults(self, tmp_path: Path) -> None:
        fake = _fake_genai()
        client = GeminiImageClient(_config(tmp_path), client=fake)
        await client.generate_image("a dog")

        kwargs = fake.aio.models.generate_content_stream.await_args.kwargs
        assert kwargs["model"] == "gemini-2.5-flash-image"
        assert kwargs["config"]["response_modalities"] == ["IMAGE", "TEXT"]
        assert kwargs["config"]["image_config"] == {"image_size": "1K"}
        assert kwargs["contents"][0]["parts"] == [{"text": "a dog"}]

    async def test_no_overwrite_by_default(self, tmp_path: Path) -> None:
        (tmp_path / "cat.png").write_bytes(b"old")
        fake = _fake_genai(_chunk(_image()))
        client = GeminiImageClient(_config(tmp_path), client=fake)

        result = await client.generate_image("a cat", file_name="cat.png")

        assert result.files[0].file_name == "cat_1.png"
        assert (tmp_path / "cat.png").read_bytes() == b"old"

    async def test_creates_output_dir(self, tmp_path: Path) -> None:
        fake = _fake_genai(_chunk(_image()))
        client = GeminiImageClient(_config(tmp_path), client=fake)
        out = tmp_path / "nested" / "dir"

        result = await client.generate_image("x", output_path=str(out))

        assert Path(result.files[0].path).parent == out

    def test_pattern_file_name(self, tmp_path: Path) -> None:
        client = GeminiImageClient(
            _config(tmp_path, file_name_pattern="img_{index}"), client=_fake_genai()
        )
        assert client.build_file_name(None, 2, "png") == "img_2.png"

    async def test_auth_error_mapped(self, tmp_path: Path) -> None:
        error = genai_errors.ClientError(
            403,
            {"error": {"code": 403, "message": "API key not valid", "status": "PERMISSION_DENIED"}},
        )
        client = GeminiImageClient(_config(tmp_path), client=_fake_genai(error=error))
        with pytest.raises(AuthenticationError):
            await client.generate_image("x")


class TestUniquePath:
    def test_free_path_unchanged(self, tmp_path: Path) -> None:
        assert unique_path(tmp_path / "a.png") == tmp_path / "a.png"

    def test_counter_increments(self, tmp_path: Path) -> None:
        (tmp_path / "a.png").touch()
        (tmp_path / "a_1.png").touch()
        assert unique_path(tmp_path / "a.png") == tmp_path / "a_2.png"


# ── Tool ────────────────────────────────────────────────────────────


class TestGenerateImageTool:
    async def test_success_payload(self, make_config, tmp_path: Path, monkeypatch) -> None:  # type: ignore[no-untyped-def]
        monkeypatch.chdir(tmp_path)
        config = make_config()
        fake = _fake_genai(_chunk(_image(), _text("done")))
        registry = build_registry(config, client=GeminiImageClient(config.gemini_image, client=fake))

        result = await registry.dispatch(
            "generate_image",
            {"prompt": "a fox", "outputPath": "./foxes", "fileName": "fox", "imageSize": "2K"},
        )

        assert result.success
        payload = result.payload
        assert payload["message"] == "Successfully generated 1 image(s)"
        assert payload["files"][0]["fileName"] == "fox.png"
        assert payload["files"][0]["sizeFormatted"] == format_file_size(len(PNG))
        assert payload["textResponse"] == "done"
        assert payload["prompt"] == "a fox"
        assert (tmp_path / "foxes" / "fox.png").exists()
        config_sent = fake.aio.models.generate_content_stream.await_args.kwargs["config"]
        assert config_sent["image_config"] == {"image_size": "2K"}

    async def test_bad_path_never_calls_model(self, make_config) -> None:  # type: ignore[no-untyped-def]
        config = make_config()
        fake = _fake_genai()
        registry = build_registry(config, client=GeminiImageClient(config.gemini_image, client=fake))

        result = await registry.dispatch("generate_image", {"prompt": "x", "outputPath": "../up"})

        assert result.code == "validation_error"
        assert fake.aio.models.generate_content_stream.await_count == 0

    async def test_bad_size_rejected(self, make_config) -> None:  # type: ignore[no-untyped-def]
        config = make_config()
        fake = _fake_genai()
        registry = build_registry(config, client=GeminiImageClient(config.gemini_image, client=fake))
        result = await registry.dispatch("generate_image", {"prompt": "x", "imageSize": "8K"})
        assert result.code == "validation_error"

    def test_schema_exposes_camel_case(self, make_config) -> None:  # type: ignore[no-untyped-def]
        config = make_config()
        registry = build_registry(config, client=GeminiImageClient(config.gemini_image, client=_fake_genai()))
        schema = registry.list_descriptors()[0].input_schema
        assert set(schema["properties"]) == {
            "prompt",
            "outputPath",
            "fileName",
            "imageSize",
            "responseModalities",
        }
        assert schema["properties"]["responseModalities"]["items"]["enum"] == ["IMAGE", "TEXT"]

    async def test_aclose_closes_genai_session(self, make_config) -> None:  # type: ignore[no-untyped-def]
        config = make_config()
        fake = _fake_genai()
        fake.aio.aclose = AsyncMock()
        registry = build_registry(config, client=GeminiImageClient(config.gemini_image, client=fake))
        await registry.aclose()
        fake.aio.aclose.assert_awaited_once()
