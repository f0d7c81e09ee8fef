"""Structured logging utilities for the MCP toolbox server."""

from __future__ import annotations

import json
import logging
import sys
from typing import IO, Any

LOGGER_NAME = "mcp_toolbox"

_FORMAT = "[%(asctime)s] [%(levelname)s] %(name)s: %(message)s"


def configure_logging(level: str = "INFO", *, stream: IO[str] | None = None) -> logging.Logger:
    """Configure and return the server logger.

    Records go to stderr so the stdio transport keeps stdout for protocol
    frames only. Calling this again replaces the handler instead of stacking.
    """

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(getattr(logging, level.upper()))
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(logging.Formatter(_FORMAT))
    logger.addHandler(handler)
    logger.propagate = False
    return logger


def log_event(logger: logging.Logger, event: str, *, level: int = logging.INFO, **fields: Any) -> None:
    """Emit a JSON log line describing a protocol event."""

    if not logger.isEnabledFor(level):
        return
    payload: dict[str, Any] = {"event": event}
    for key, value in fields.items():
        if value is not None:
            payload[key] = value
    logger.log(level, json.dumps(payload, sort_keys=True, default=str))


__all__ = ["LOGGER_NAME", "configure_logging", "log_event"]
