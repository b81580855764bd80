"""Gemini image generation tool.

Inputs are checked here, before the model is called: prompt length,
output directory shape, image size and response modalities.
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING, Any

from mcp_adapters.adapters.gemini import IMAGE_SIZES, MODALITIES, GeminiImageClient
from mcp_adapters.core.errors import ValidationError
from mcp_adapters.tools.base import ParameterSpec
from mcp_adapters.tools.registry import ToolRegistry

if TYPE_CHECKING:
    from mcp_adapters.config.schema import AdapterConfig, GeminiImageConfig

logger = logging.getLogger(__name__)

ALLOWED_OUTPUT_PATH_PATTERNS = (
    re.compile(r"^\./[\w\-/]+$"),
    re.compile(r"^[\w\-/]+$"),
)


def validate_prompt(prompt: str, config: GeminiImageConfig) -> None:
    trimmed = prompt.strip()
    if not trimmed:
        msg = "Prompt must be a non-empty string"
        raise ValidationError(msg)
    if len(trimmed) < config.min_prompt_length:
        msg = f"Prompt must be at least {config.min_prompt_length} characters long"
        raise ValidationError(msg)
    if config.max_prompt_length > 0 and len(trimmed) > config.max_prompt_length:
        msg = f"Prompt must not exceed {config.max_prompt_length} characters"
        raise ValidationError(msg)


def validate_output_path(path: str) -> None:
    """Reject directory traversal and anything but plain relative paths."""
    if ".." in path:
        msg = 'Output path cannot contain ".." (directory traversal not allowed)'
        raise ValidationError(msg)
    if not any(p.match(path) for p in ALLOWED_OUTPUT_PATH_PATTERNS):
        msg = (
            "Output path does not match allowed patterns. "
            'Use relative paths like "./my-folder" or simple paths without ".."'
        )
        raise ValidationError(msg)


def validate_modalities(modalities: list[Any]) -> None:
    if not modalities:
        msg = "At least one response modality must be specified"
        raise ValidationError(msg)
    for modality in modalities:
        if modality not in MODALITIES:
            msg = f"Invalid response modality: {modality}. Must be one of: {', '.join(MODALITIES)}"
            raise ValidationError(msg)


def format_file_size(size: float) -> str:
    """Human-readable size, e.g. ``1.50 KB``."""
    units = ["B", "KB", "MB", "GB"]
    unit = 0
    while size >= 1024 and unit < len(units) - 1:
        size /= 1024
        unit += 1
    return f"{size:.2f} {units[unit]}"


def build_registry(
    config: AdapterConfig, *, client: GeminiImageClient | None = None
) -> ToolRegistry:
    cfg = config.gemini_image
    gemini = client or GeminiImageClient(cfg)
    registry = ToolRegistry(debug=config.logging.debug, secrets=[cfg.api_key])
    registry.on_close(gemini.aclose)

    async def generate_image(
        prompt: str,
        output_path: str | None = None,
        file_name: str | None = None,
        image_size: str | None = None,
        modalities: list[Any] | None = None,
    ) -> dict[str, Any]:
        validate_prompt(prompt, cfg)
        if output_path and cfg.validate_output_path:
            validate_output_path(output_path)
        if modalities is not None:
            validate_modalities(modalities)

        result = await gemini.generate_image(
            prompt,
            output_path=output_path,
            file_name=file_name,
            image_size=image_size,
            modalities=modalities,
        )
        logger.info("Generated %d image(s) for prompt %r", len(result.files), prompt[:50])
        return {
            "success": True,
            "message": f"Successfully generated {len(result.files)} image(s)",
            "files": [
                {
                    "path": f.path,
                    "fileName": f.file_name,
                    "mimeType": f.mime_type,
                    "size": f.size,
                    "sizeFormatted": format_file_size(f.size),
                    "extension": f.extension,
                }
                for f in result.files
            ],
            "textResponse": result.text_response,
            "prompt": result.prompt,
        }

    registry.add(
        "generate_image",
        (
            "Generate an image using the Google Gemini image generation model. "
            "Provide a text prompt describing the image you want to create, and optionally "
            "specify output location, file name, image size, and response modalities."
        ),
        generate_image,
        {
            "prompt": ParameterSpec(
                "string", "Text description of the image to generate (required)", required=True
            ),
            "outputPath": ParameterSpec(
                "string",
                f"Directory path where the image should be saved (optional, defaults to {cfg.default_output_dir})",
            ),
            "fileName": ParameterSpec(
                "string",
                "Custom file name for the generated image (optional, auto-generated if not provided)",
            ),
            "imageSize": ParameterSpec(
                "string",
                f"Size of the generated image (optional, defaults to {cfg.default_image_size})",
                enum=IMAGE_SIZES,
            ),
            "responseModalities": ParameterSpec(
                "array",
                "Response modalities - IMAGE returns the generated image, "
                "TEXT returns AI explanation (optional, defaults to both)",
                items={"type": "string", "enum": list(MODALITIES)},
            ),
        },
        arg_names={
            "outputPath": "output_path",
            "fileName": "file_name",
            "imageSize": "image_size",
            "responseModalities": "modalities",
        },
    )
    return registry
