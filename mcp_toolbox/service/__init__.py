"""Protocol service layer: envelopes, error taxonomy and dispatcher (lazy exports)."""
from __future__ import annotations

from importlib import import_module
from typing import TYPE_CHECKING

__all__ = [
    "CanonicalError",
    "JsonRpcError",
    "JsonRpcRequest",
    "JsonRpcResponse",
    "Method",
    "MethodFamily",
    "ProtocolDispatcher",
    "ProtocolError",
    "RequestContext",
]

_EXPORT_MAP = {
    "CanonicalError": "mcp_toolbox.service.errors",
    "ProtocolError": "mcp_toolbox.service.errors",
    "JsonRpcError": "mcp_toolbox.service.envelope",
    "JsonRpcRequest": "mcp_toolbox.service.envelope",
    "JsonRpcResponse": "mcp_toolbox.service.envelope",
    "Method": "mcp_toolbox.service.methods",
    "MethodFamily": "mcp_toolbox.service.methods",
    "ProtocolDispatcher": "mcp_toolbox.service.dispatcher",
    "RequestContext": "mcp_toolbox.service.dispatcher",
}

if TYPE_CHECKING:  # pragma: no cover - import for typing only
    from .dispatcher import ProtocolDispatcher, RequestContext
    from .envelope import JsonRpcError, JsonRpcRequest, JsonRpcResponse
    from .errors import CanonicalError, ProtocolError
    from .methods import Method, MethodFamily


def __getattr__(name: str):  # pragma: no cover - thin loader
    if name not in _EXPORT_MAP:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
    module = import_module(_EXPORT_MAP[name])
    value = getattr(module, name)
    globals()[name] = value
    return value


def __dir__() -> list[str]:  # pragma: no cover - thin loader
    return sorted(set(globals()) | set(__all__))
