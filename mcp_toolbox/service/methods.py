"""Closed set of protocol methods understood by the dispatcher."""

from __future__ import annotations

from enum import Enum

__all__ = ["Method", "MethodFamily"]


class MethodFamily(Enum):
    HANDSHAKE = "handshake"
    LIVENESS = "liveness"
    LISTING = "listing"
    INVOCATION = "invocation"
    NOTIFICATION = "notification"


class Method(Enum):
    INITIALIZE = ("initialize", MethodFamily.HANDSHAKE)
    PING = ("ping", MethodFamily.LIVENESS)
    TOOLS_LIST = ("tools/list", MethodFamily.LISTING)
    TOOLS_CALL = ("tools/call", MethodFamily.INVOCATION)
    RESOURCES_LIST = ("resources/list", MethodFamily.LISTING)
    RESOURCES_READ = ("resources/read", MethodFamily.INVOCATION)
    PROMPTS_LIST = ("prompts/list", MethodFamily.LISTING)
    PROMPTS_GET = ("prompts/get", MethodFamily.INVOCATION)
    NOTIFY_INITIALIZED = ("notifications/initialized", MethodFamily.NOTIFICATION)
    NOTIFY_CANCELLED = ("notifications/cancelled", MethodFamily.NOTIFICATION)
    NOTIFY_PROGRESS = ("notifications/progress", MethodFamily.NOTIFICATION)
    NOTIFY_MESSAGE = ("notifications/message", MethodFamily.NOTIFICATION)

    def __init__(self, wire_name: str, family: MethodFamily) -> None:
        self.wire_name = wire_name
        self.family = family

    @property
    def expects_reply(self) -> bool:
        return self.family is not MethodFamily.NOTIFICATION

    @classmethod
    def from_str(cls, raw: str | None) -> Method | None:
        if not raw:
            return None
        return _BY_WIRE_NAME.get(raw)


_BY_WIRE_NAME: dict[str, Method] = {method.wire_name: method for method in Method}
