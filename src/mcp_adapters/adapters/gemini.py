"""Google Gemini image generation adapter."""

from __future__ import annotations

import asyncio
import logging
import mimetypes
import time
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any

from google import genai
from google.genai import errors as genai_errors

from mcp_adapters.core.errors import (
    AuthenticationError,
    ConfigurationError,
    NotFoundError,
    RemoteError,
)
from mcp_adapters.core.secrets import redact

if TYPE_CHECKING:
    from mcp_adapters.config.schema import GeminiImageConfig

logger = logging.getLogger(__name__)

IMAGE_SIZES = ("256", "512", "1K", "2K", "4K")
MODALITIES = ("IMAGE", "TEXT")


@dataclass(frozen=True, slots=True)
class GeneratedFile:
    """An image written to disk."""

    path: str
    file_name: str
    mime_type: str
    size: int
    extension: str


@dataclass(slots=True)
class ImageGenerationResult:
    """Everything a single generation produced."""

    prompt: str
    files: list[GeneratedFile] = field(default_factory=list)
    text_response: str | None = None


def _map_error(e: Exception, secrets: list[str]) -> Exception:
    """Map Google GenAI errors to the adapter error hierarchy."""
    msg = redact(str(e), secrets)
    code = getattr(e, "code", None)
    if isinstance(e, genai_errors.ClientError):
        lower = msg.lower()
        if code in (401, 403) or "api key" in lower or "permission" in lower:
            return AuthenticationError("Authentication failed. Please check GEMINI_API_KEY.", code)
        if code == 404:
            return NotFoundError(f"Model not found: {msg}", code)
    return RemoteError(f"Failed to generate image: {msg}", code)


def _extension_for(mime_type: str) -> str:
    ext = mimetypes.guess_extension(mime_type) or ".png"
    return ext.lstrip(".")


class GeminiImageClient:
    """Generates images with a Gemini image model and saves them to disk."""

    def __init__(
        self,
        config: GeminiImageConfig,
        *,
        client: genai.Client | None = None,
    ) -> None:
        if not config.api_key and client is None:
            msg = "Missing required environment variable: GEMINI_API_KEY"
            raise ConfigurationError(msg)
        self._config = config
        self._secrets = [config.api_key] if config.api_key else []
        self._client = client or genai.Client(
            api_key=config.api_key,
            http_options={"timeout": int(config.request_timeout * 1000)},
        )

    async def aclose(self) -> None:
        """Close the async HTTP session held by the genai client."""
        await self._client.aio.aclose()

    async def generate_image(
        self,
        prompt: str,
        *,
        output_path: str | None = None,
        file_name: str | None = None,
        image_size: str | None = None,
        modalities: list[str] | None = None,
    ) -> ImageGenerationResult:
        cfg = self._config
        generation_config: dict[str, Any] = {
            "response_modalities": list(modalities or cfg.default_modalities),
            "image_config": {"image_size": image_size or cfg.default_image_size},
        }
        contents = [{"role": "user", "parts": [{"text": prompt}]}]

        logger.debug("Calling %s (size=%s)", cfg.model, generation_config["image_config"])
        try:
            stream = await self._client.aio.models.generate_content_stream(
                model=cfg.model,
                contents=contents,
                config=generation_config,
            )
            return await self._consume(stream, prompt, output_path, file_name)
        except (genai_errors.ClientError, genai_errors.ServerError) as e:
            raise _map_error(e, self._secrets) from e

    async def _consume(
        self,
        stream: Any,
        prompt: str,
        output_path: str | None,
        file_name: str | None,
    ) -> ImageGenerationResult:
        result = ImageGenerationResult(prompt=prompt)
        text_parts: list[str] = []
        index = 0

        async for chunk in stream:
            candidates = chunk.candidates or []
            content = candidates[0].content if candidates else None
            if content is None or not content.parts:
                continue
            for part in content.parts:
                inline = getattr(part, "inline_data", None)
                if inline is not None and inline.data:
                    saved = await self._save(inline.data, inline.mime_type, output_path, file_name, index)
                    result.files.append(saved)
                    index += 1
                elif part.text:
                    text_parts.append(part.text)

        result.text_response = "".join(text_parts) or None
        return result

    async def _save(
        self,
        data: bytes,
        mime_type: str | None,
        output_path: str | None,
        file_name: str | None,
        index: int,
    ) -> GeneratedFile:
        cfg = self._config
        mime_type = mime_type or "image/png"
        extension = _extension_for(mime_type)
        directory = Path(output_path or cfg.default_output_dir)

        if cfg.auto_create_output_dir:
            await asyncio.to_thread(directory.mkdir, parents=True, exist_ok=True)

        name = self.build_file_name(file_name, index, extension)
        target = directory / name
        if not cfg.overwrite_existing_files:
            target = unique_path(target)

        try:
            await asyncio.to_thread(target.write_bytes, data)
        except OSError as e:
            msg = f"Failed to save file {target}: {e}"
            raise RemoteError(msg) from e

        logger.info("Saved generated image %s (%d bytes)", target, len(data))
        return GeneratedFile(
            path=str(target),
            file_name=target.name,
            mime_type=mime_type,
            size=len(data),
            extension=extension,
        )

    def build_file_name(self, custom: str | None, index: int, extension: str) -> str:
        """Resolve the on-disk file name for image number ``index``.

        A custom name without an extension gets one; otherwise the
        configured pattern is filled in.
        """
        if custom:
            return custom if "." in custom else f"{custom}.{extension}"

        now = datetime.now()
        name = (
            self._config.file_name_pattern.replace("{timestamp}", str(int(time.time() * 1000)))
            .replace("{index}", str(index))
            .replace("{date}", now.strftime("%Y-%m-%d"))
            .replace("{time}", now.strftime("%H-%M-%S"))
        )
        return f"{name}.{extension}"


def unique_path(path: Path) -> Path:
    """Return ``path``, or ``stem_N.ext`` with the first free N."""
    if not path.exists():
        return path
    counter = 1
    while True:
        candidate = path.with_name(f"{path.stem}_{counter}{path.suffix}")
        if not candidate.exists():
            return candidate
        counter += 1
