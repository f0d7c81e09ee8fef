"""Locate and execute capability handlers, normalising their outcomes.

Tools and the other capability kinds fail differently on purpose. A tool
failure is data: :meth:`CapabilityInvoker.call_tool` never raises and reports
the fault inside a :class:`ToolOutcome` flagged ``is_error``. Resource and
prompt failures are protocol errors: :meth:`CapabilityInvoker.read_resource`
and :meth:`CapabilityInvoker.get_prompt` return a failed
:class:`CapabilityResult` that the dispatcher turns into a JSON-RPC error.
"""

from __future__ import annotations

import inspect
import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from jsonschema import ValidationError

from mcp_toolbox.observability import LOGGER_NAME
from mcp_toolbox.service.errors import ProtocolError

from .registry import CapabilityKind, CapabilityRegistry, PromptEntry, ResourceEntry, ToolEntry

__all__ = ["CapabilityInvoker", "CapabilityResult", "ToolOutcome"]


@dataclass(frozen=True, slots=True)
class ToolOutcome:
    """Result of a tool call; failures are carried as text content."""

    content: tuple[dict[str, Any], ...]
    is_error: bool = False

    @classmethod
    def text(cls, text: str) -> ToolOutcome:
        return cls(content=({"type": "text", "text": text},))

    @classmethod
    def error(cls, message: str) -> ToolOutcome:
        return cls(content=({"type": "text", "text": f"Error: {message}"},), is_error=True)

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"content": [dict(block) for block in self.content]}
        if self.is_error:
            payload["isError"] = True
        return payload


@dataclass(frozen=True, slots=True)
class CapabilityResult:
    """Either a result payload or the :class:`ProtocolError` explaining its absence."""

    value: dict[str, Any] | None = None
    error: ProtocolError | None = field(default=None)

    def __post_init__(self) -> None:
        if (self.value is None) == (self.error is None):
            raise ValueError("CapabilityResult requires exactly one of value or error")

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: dict[str, Any]) -> CapabilityResult:
        return cls(value=value)

    @classmethod
    def failure(cls, error: ProtocolError) -> CapabilityResult:
        return cls(error=error)

    def unwrap(self) -> dict[str, Any]:
        if self.error is not None:
            raise self.error
        assert self.value is not None
        return self.value


async def _call(handler: Any, *args: Any) -> Any:
    result = handler(*args)
    if inspect.isawaitable(result):
        result = await result
    return result


class CapabilityInvoker:
    """Execute registered capability handlers."""

    def __init__(self, registry: CapabilityRegistry, *, logger: logging.Logger | None = None) -> None:
        self._registry = registry
        self._logger = logger or logging.getLogger(LOGGER_NAME)

    async def invoke(
        self,
        kind: CapabilityKind,
        name: str,
        arguments: Mapping[str, Any] | None = None,
    ) -> ToolOutcome | CapabilityResult:
        args = dict(arguments or {})
        if kind is CapabilityKind.TOOL:
            return await self.call_tool(name, args)
        if kind is CapabilityKind.RESOURCE:
            return await self.read_resource(name)
        return await self.get_prompt(name, args)

    async def call_tool(self, name: str, arguments: Mapping[str, Any] | None = None) -> ToolOutcome:
        args = dict(arguments or {})
        entry = self._registry.lookup(CapabilityKind.TOOL, name)
        if not isinstance(entry, ToolEntry):
            self._logger.warning("Tool execution error: %s (unknown tool)", name)
            return ToolOutcome.error(f"Unknown tool: {name}")
        try:
            self._registry.tool_validator(name).validate(args)
        except ValidationError as exc:
            reason = str(exc).splitlines()[0]
            self._logger.warning("Tool execution error: %s (%s)", name, reason)
            return ToolOutcome.error(f"Invalid arguments for tool '{name}': {reason}")
        try:
            result = await _call(entry.handler, args)
        except Exception as exc:
            self._logger.exception("Tool execution error: %s", name)
            return ToolOutcome.error(str(exc) or type(exc).__name__)
        if isinstance(result, ToolOutcome):
            return result
        if not isinstance(result, str):
            result = json.dumps(result, indent=2, default=str)
        return ToolOutcome.text(result)

    async def read_resource(self, uri: str) -> CapabilityResult:
        entry = self._registry.lookup(CapabilityKind.RESOURCE, uri)
        if not isinstance(entry, ResourceEntry):
            return CapabilityResult.failure(
                ProtocolError("RESOURCE_NOT_FOUND", f"Unknown resource: {uri}", data={"uri": uri})
            )
        try:
            text = await _call(entry.handler)
        except Exception as exc:
            self._logger.exception("Resource read error: %s", uri)
            return CapabilityResult.failure(ProtocolError("INTERNAL_ERROR", data=str(exc)))
        return CapabilityResult.success(
            {
                "contents": [
                    {"uri": uri, "mimeType": entry.descriptor.mime_type, "text": str(text)},
                ]
            }
        )

    async def get_prompt(self, name: str, arguments: Mapping[str, Any] | None = None) -> CapabilityResult:
        args = dict(arguments or {})
        entry = self._registry.lookup(CapabilityKind.PROMPT, name)
        if not isinstance(entry, PromptEntry):
            return CapabilityResult.failure(
                ProtocolError("INVALID_PARAMS", f"Unknown prompt: {name}", data={"name": name})
            )
        missing = [arg for arg in entry.descriptor.required_arguments if not args.get(arg)]
        if missing:
            return CapabilityResult.failure(
                ProtocolError(
                    "INVALID_PARAMS",
                    f"Missing required argument '{missing[0]}' for prompt '{name}'",
                    data={"missing": missing},
                )
            )
        try:
            payload = await _call(entry.handler, args)
        except Exception as exc:
            self._logger.exception("Prompt generation error: %s", name)
            return CapabilityResult.failure(ProtocolError("INTERNAL_ERROR", data=str(exc)))
        return CapabilityResult.success(dict(payload))
