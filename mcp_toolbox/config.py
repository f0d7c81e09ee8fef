"""Runtime configuration for the MCP toolbox server."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum

from mcp_toolbox import __version__

__all__ = ["LogLevel", "ServerInfo", "Settings", "PROTOCOL_VERSION"]

PROTOCOL_VERSION = "2024-11-05"

_DEFAULT_HOST = "0.0.0.0"


class LogLevel(Enum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARN = "WARN"
    ERROR = "ERROR"

    @classmethod
    def from_str(cls, raw: str | None) -> LogLevel:
        if not raw:
            return cls.INFO
        normalised = raw.strip().upper()
        if normalised == "WARNING":
            return cls.WARN
        for level in cls:
            if level.value == normalised:
                return level
        raise ValueError(f"Unsupported log level: {raw!r}")

    @property
    def logging_name(self) -> str:
        return "WARNING" if self is LogLevel.WARN else self.value


@dataclass(frozen=True, slots=True)
class ServerInfo:
    """Identity advertised during the handshake and on the health endpoint."""

    name: str = "mcp-toolbox"
    version: str = __version__
    description: str = "A Model Context Protocol server exposing tools, resources and prompts"

    def to_payload(self) -> dict[str, str]:
        return {"name": self.name, "version": self.version}


@dataclass(frozen=True, slots=True)
class Settings:
    """Process settings resolved from the environment.

    ``port`` selects the transport: ``None`` runs the stdio transport, any
    other value serves HTTP on that port. The two never run together.
    """

    log_level: LogLevel = LogLevel.INFO
    port: int | None = None
    host: str = _DEFAULT_HOST

    def __post_init__(self) -> None:
        if self.port is not None and not 0 < self.port < 65536:
            raise ValueError("port must be between 1 and 65535")

    @property
    def transport(self) -> str:
        return "stdio" if self.port is None else "http"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Settings:
        env = os.environ if environ is None else environ
        raw_port = env.get("MCP_PORT", "").strip()
        port: int | None = None
        if raw_port:
            try:
                port = int(raw_port)
            except ValueError as exc:
                raise ValueError(f"MCP_PORT must be an integer, got {raw_port!r}") from exc
        return cls(
            log_level=LogLevel.from_str(env.get("LOG_LEVEL")),
            port=port,
            host=env.get("MCP_HOST", "").strip() or _DEFAULT_HOST,
        )
