"""Tool descriptors, results and the function-backed tool wrapper.

A tool is a :class:`ToolDescriptor` (name, description, parameter specs)
bound to an async function. :meth:`FunctionTool.invoke` validates the
incoming arguments against the descriptor before the function runs and
turns every :class:`AdapterError` into a failed :class:`ToolResult`, so
nothing raises across the tool boundary.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from mcp_adapters.core.errors import AdapterError, ValidationError

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

# JSON Schema type -> accepted Python types
_JSON_TYPES: dict[str, tuple[type, ...]] = {
    "string": (str,),
    "integer": (int,),
    "number": (int, float),
    "boolean": (bool,),
    "object": (dict,),
    "array": (list,),
}


@dataclass(frozen=True, slots=True)
class ParameterSpec:
    """Schema for a single tool parameter."""

    type: str
    description: str = ""
    required: bool = False
    enum: tuple[Any, ...] | None = None
    items: dict[str, Any] | None = None
    default: Any = None

    def to_schema(self) -> dict[str, Any]:
        schema: dict[str, Any] = {"type": self.type}
        if self.description:
            schema["description"] = self.description
        if self.enum is not None:
            schema["enum"] = list(self.enum)
        if self.items is not None:
            schema["items"] = self.items
        if self.default is not None:
            schema["default"] = self.default
        return schema


@dataclass(frozen=True, slots=True)
class ToolDescriptor:
    """Name, description and parameter schema of a tool."""

    name: str
    description: str
    parameters: dict[str, ParameterSpec] = field(default_factory=dict)

    @property
    def input_schema(self) -> dict[str, Any]:
        """JSON Schema for the tool's parameters."""
        return {
            "type": "object",
            "properties": {
                name: spec.to_schema() for name, spec in self.parameters.items()
            },
            "required": [name for name, spec in self.parameters.items() if spec.required],
        }


@dataclass(frozen=True, slots=True)
class ToolResult:
    """Outcome of one tool invocation: a payload or a structured error."""

    success: bool
    payload: Any = None
    error: str | None = None
    code: str | None = None
    details: dict[str, Any] | None = None

    @classmethod
    def ok(cls, payload: Any) -> ToolResult:
        return cls(success=True, payload=payload)

    @classmethod
    def failure(
        cls,
        error: str,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> ToolResult:
        return cls(success=False, error=error, code=code, details=details)

    @classmethod
    def from_error(cls, exc: AdapterError) -> ToolResult:
        details = None
        status = getattr(exc, "status", None)
        if status is not None:
            details = {"status": status}
        return cls.failure(str(exc), code=exc.code, details=details)

    def to_dict(self) -> dict[str, Any]:
        if self.success:
            return {"success": True, "payload": self.payload}
        body: dict[str, Any] = {"success": False, "error": self.error}
        if self.code:
            body["code"] = self.code
        if self.details:
            body["details"] = self.details
        return body

    def to_text(self) -> str:
        """Render the result as the text block sent to the client.

        Successful string payloads pass through untouched; everything
        else is JSON.
        """
        if self.success and isinstance(self.payload, str):
            return self.payload
        if self.success:
            return json.dumps(self.payload, default=str)
        return json.dumps(self.to_dict(), default=str)


def _type_name(value: Any) -> str:
    for name, types in _JSON_TYPES.items():
        if isinstance(value, types) and not (name != "boolean" and isinstance(value, bool)):
            return name
    return "null" if value is None else type(value).__name__


def validate_arguments(
    descriptor: ToolDescriptor, arguments: dict[str, Any]
) -> dict[str, Any]:
    """Check ``arguments`` against the descriptor and fill in defaults.

    Unknown keys are dropped.

    Raises:
        ValidationError: On a missing required parameter, a wrong JSON
            type, or a value outside the declared enum.
    """
    if not isinstance(arguments, dict):
        msg = f"Arguments for {descriptor.name} must be an object"
        raise ValidationError(msg)

    validated: dict[str, Any] = {}
    for name, spec in descriptor.parameters.items():
        value = arguments.get(name)
        if value is None:
            if spec.required:
                msg = f"Missing required parameter: '{name}'"
                raise ValidationError(msg)
            if spec.default is not None:
                validated[name] = spec.default
            continue

        accepted = _JSON_TYPES.get(spec.type)
        if accepted is not None:
            is_bool = isinstance(value, bool)
            if not isinstance(value, accepted) or (is_bool and spec.type != "boolean"):
                msg = (
                    f"Parameter '{name}' must be of type {spec.type}, "
                    f"got {_type_name(value)}"
                )
                raise ValidationError(msg)

        if spec.enum is not None and value not in spec.enum:
            allowed = ", ".join(str(v) for v in spec.enum)
            msg = f"Parameter '{name}' must be one of: {allowed}"
            raise ValidationError(msg)

        validated[name] = value
    return validated


class FunctionTool:
    """A tool backed by an async function.

    The function receives the validated arguments as keyword arguments.
    """

    def __init__(
        self,
        descriptor: ToolDescriptor,
        func: Callable[..., Awaitable[Any]],
        *,
        arg_names: dict[str, str] | None = None,
    ) -> None:
        self.descriptor = descriptor
        self._func = func
        # wire name -> python keyword, e.g. "outputPath" -> "output_path"
        self._arg_names = arg_names or {}

    @property
    def name(self) -> str:
        return self.descriptor.name

    async def invoke(self, arguments: dict[str, Any]) -> ToolResult:
        try:
            validated = validate_arguments(self.descriptor, arguments)
            kwargs = {self._arg_names.get(k, k): v for k, v in validated.items()}
            payload = await self._func(**kwargs)
        except AdapterError as exc:
            return ToolResult.from_error(exc)
        return ToolResult.ok(payload)
