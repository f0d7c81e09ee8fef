"""Capabilities exposed by the server and the registry that catalogs them."""

from __future__ import annotations

import random
from functools import partial

from .code_review import CODE_REVIEW_PROMPT, render_code_review
from .invoker import CapabilityInvoker, CapabilityResult, ToolOutcome
from .registry import (
    CapabilityKind,
    CapabilityRegistry,
    PromptEntry,
    ResourceEntry,
    ToolEntry,
)
from .system_info import SYSTEM_INFO_RESOURCE, get_system_info
from .weather import WEATHER_TOOL, handle_weather

__all__ = [
    "CapabilityInvoker",
    "CapabilityKind",
    "CapabilityRegistry",
    "CapabilityResult",
    "ToolOutcome",
    "build_default_registry",
]


def build_default_registry(*, rng: random.Random | None = None) -> CapabilityRegistry:
    """Return the registry of built-in tools, resources and prompts."""

    return CapabilityRegistry(
        tools=[ToolEntry(WEATHER_TOOL, partial(handle_weather, rng=rng))],
        resources=[ResourceEntry(SYSTEM_INFO_RESOURCE, get_system_info)],
        prompts=[PromptEntry(CODE_REVIEW_PROMPT, render_code_review)],
    )
