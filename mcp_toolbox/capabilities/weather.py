"""Synthetic weather lookup tool."""

from __future__ import annotations

import random
from collections.abc import Mapping
from typing import Any

from .registry import ToolDescriptor

__all__ = ["WEATHER_TOOL", "handle_weather"]

WEATHER_TOOL = ToolDescriptor(
    name="weather",
    description="Get weather information for a location",
    inputSchema={
        "type": "object",
        "properties": {
            "location": {
                "type": "string",
                "description": "Location to get weather for (city, country)",
            },
        },
        "required": ["location"],
    },
)

_CONDITIONS = ("Sunny", "Cloudy", "Rainy", "Partly Cloudy")


def handle_weather(arguments: Mapping[str, Any], *, rng: random.Random | None = None) -> str:
    """Return mock weather text for ``arguments["location"]``."""

    rng = rng or random.Random()
    location = arguments["location"]
    temperature = rng.randint(10, 39)
    condition = rng.choice(_CONDITIONS)
    humidity = rng.randint(40, 79)
    wind_speed = rng.randint(5, 24)
    return (
        f"Weather for {location}:\n"
        f"Temperature: {temperature}°C\n"
        f"Condition: {condition}\n"
        f"Humidity: {humidity}%\n"
        f"Wind Speed: {wind_speed} km/h\n"
        "\n"
        "Note: This is mock data. Integrate with a real weather API for production use."
    )
