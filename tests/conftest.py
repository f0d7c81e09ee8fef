from __future__ import annotations

import pathlib
import random
import sys
from collections.abc import Mapping
from typing import Any

import pytest

REPO_ROOT = pathlib.Path(__file__).resolve().parents[1]

if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from mcp_toolbox.capabilities import build_default_registry  # noqa: E402
from mcp_toolbox.capabilities.registry import (  # noqa: E402
    CapabilityRegistry,
    PromptArgument,
    PromptDescriptor,
    PromptEntry,
    ResourceDescriptor,
    ResourceEntry,
    ToolDescriptor,
    ToolEntry,
)
from mcp_toolbox.config import ServerInfo  # noqa: E402
from mcp_toolbox.service.dispatcher import ProtocolDispatcher  # noqa: E402


def _explode(arguments: Mapping[str, Any]) -> str:
    raise RuntimeError("boom")


async def _echo(arguments: Mapping[str, Any]) -> dict[str, Any]:
    return {"echo": arguments.get("value")}


def _broken_resource() -> str:
    raise RuntimeError("disk unavailable")


def _fragile_prompt(arguments: Mapping[str, Any]) -> dict[str, Any]:
    raise RuntimeError("template missing")


def build_faulty_registry() -> CapabilityRegistry:
    """Registry whose handlers misbehave in the ways callers must survive."""

    return CapabilityRegistry(
        tools=[
            ToolEntry(
                ToolDescriptor(
                    name="explode",
                    description="Always raises",
                    inputSchema={"type": "object", "properties": {}},
                ),
                _explode,
            ),
            ToolEntry(
                ToolDescriptor(
                    name="echo",
                    description="Echoes the value back as structured data",
                    inputSchema={
                        "type": "object",
                        "properties": {"value": {"type": "integer"}},
                        "required": ["value"],
                    },
                ),
                _echo,
            ),
        ],
        resources=[
            ResourceEntry(
                ResourceDescriptor(
                    uri="broken://resource",
                    name="Broken",
                    description="Always raises",
                    mimeType="text/plain",
                ),
                _broken_resource,
            ),
        ],
        prompts=[
            PromptEntry(
                PromptDescriptor(
                    name="fragile",
                    description="Always raises",
                    arguments=(PromptArgument(name="topic", description="Topic", required=True),),
                ),
                _fragile_prompt,
            ),
        ],
    )


@pytest.fixture(scope="session")
def repo_root() -> pathlib.Path:
    return REPO_ROOT


@pytest.fixture
def server_info() -> ServerInfo:
    return ServerInfo()


@pytest.fixture
def registry() -> CapabilityRegistry:
    return build_default_registry(rng=random.Random(42))


@pytest.fixture
def faulty_registry() -> CapabilityRegistry:
    return build_faulty_registry()


@pytest.fixture
def dispatcher(registry: CapabilityRegistry, server_info: ServerInfo) -> ProtocolDispatcher:
    return ProtocolDispatcher(registry, server_info)


@pytest.fixture
def faulty_dispatcher(faulty_registry: CapabilityRegistry, server_info: ServerInfo) -> ProtocolDispatcher:
    return ProtocolDispatcher(faulty_registry, server_info)
