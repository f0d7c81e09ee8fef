from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Any

from jsonschema import Draft202012Validator, validators
from pydantic import BaseModel, ConfigDict, Field

__all__ = [
    "CapabilityKind",
    "CapabilityRegistry",
    "PromptArgument",
    "PromptDescriptor",
    "PromptEntry",
    "ResourceDescriptor",
    "ResourceEntry",
    "ToolDescriptor",
    "ToolEntry",
]


class CapabilityKind(Enum):
    TOOL = "tool"
    RESOURCE = "resource"
    PROMPT = "prompt"


class ToolDescriptor(BaseModel):
    """Metadata advertised by ``tools/list``."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="forbid")

    name: str
    description: str
    input_schema: dict[str, Any] = Field(..., alias="inputSchema")

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


class ResourceDescriptor(BaseModel):
    """Metadata advertised by ``resources/list``."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="forbid")

    uri: str
    name: str
    description: str
    mime_type: str = Field(..., alias="mimeType")

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


class PromptArgument(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str
    description: str
    required: bool = False


class PromptDescriptor(BaseModel):
    """Metadata advertised by ``prompts/list``."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str
    description: str
    arguments: tuple[PromptArgument, ...] = ()

    @property
    def required_arguments(self) -> tuple[str, ...]:
        return tuple(argument.name for argument in self.arguments if argument.required)

    def to_dict(self) -> dict[str, Any]:
        payload = self.model_dump()
        payload["arguments"] = list(payload["arguments"])
        return payload


@dataclass(frozen=True, slots=True)
class ToolEntry:
    descriptor: ToolDescriptor
    handler: Callable[[Mapping[str, Any]], Any]

    @property
    def key(self) -> str:
        return self.descriptor.name


@dataclass(frozen=True, slots=True)
class ResourceEntry:
    descriptor: ResourceDescriptor
    handler: Callable[[], Any]

    @property
    def key(self) -> str:
        return self.descriptor.uri


@dataclass(frozen=True, slots=True)
class PromptEntry:
    descriptor: PromptDescriptor
    handler: Callable[[Mapping[str, Any]], Any]

    @property
    def key(self) -> str:
        return self.descriptor.name


Entry = ToolEntry | ResourceEntry | PromptEntry


class CapabilityRegistry:
    """Read-only catalog of tools, resources and prompts.

    Built once at startup. Listing order is declaration order and never
    changes for the lifetime of the instance. Resources are keyed by URI,
    tools and prompts by name.
    """

    def __init__(
        self,
        *,
        tools: Iterable[ToolEntry] = (),
        resources: Iterable[ResourceEntry] = (),
        prompts: Iterable[PromptEntry] = (),
    ) -> None:
        self._entries: Mapping[CapabilityKind, tuple[Entry, ...]] = MappingProxyType(
            {
                CapabilityKind.TOOL: tuple(tools),
                CapabilityKind.RESOURCE: tuple(resources),
                CapabilityKind.PROMPT: tuple(prompts),
            }
        )
        self._index: Mapping[CapabilityKind, Mapping[str, Entry]] = MappingProxyType(
            {kind: self._build_index(kind, entries) for kind, entries in self._entries.items()}
        )
        self._validators: Mapping[str, Draft202012Validator] = MappingProxyType(
            {entry.key: _compile_schema(entry) for entry in self._entries[CapabilityKind.TOOL]}
        )

    @staticmethod
    def _build_index(kind: CapabilityKind, entries: tuple[Entry, ...]) -> Mapping[str, Entry]:
        index: dict[str, Entry] = {}
        for entry in entries:
            if entry.key in index:
                raise ValueError(f"Duplicate {kind.value} '{entry.key}'")
            index[entry.key] = entry
        return MappingProxyType(index)

    def list(self, kind: CapabilityKind) -> tuple[Any, ...]:
        return tuple(entry.descriptor for entry in self._entries[kind])

    def lookup(self, kind: CapabilityKind, name: str) -> Entry | None:
        return self._index[kind].get(name)

    def tool_validator(self, name: str) -> Draft202012Validator:
        if name not in self._validators:
            raise KeyError(f"Unknown tool '{name}'")
        return self._validators[name]

    def __len__(self) -> int:
        return sum(len(entries) for entries in self._entries.values())


def _compile_schema(entry: Entry) -> Draft202012Validator:
    schema = entry.descriptor.input_schema  # type: ignore[union-attr]
    validator_cls = validators.validator_for(schema, default=Draft202012Validator)
    validator_cls.check_schema(schema)
    return validator_cls(schema)
