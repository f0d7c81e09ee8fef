from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:  # pragma: no cover - import for typing only
    from .envelope import JsonRpcError

__all__ = ["CanonicalError", "ProtocolError"]


@dataclass(frozen=True)
class _CanonicalSpec:
    code: str
    description: str
    jsonrpc_code: int
    message: str


class CanonicalError:
    """Canonical error codes shared by every transport."""

    _SPECS: tuple[_CanonicalSpec, ...] = (
        _CanonicalSpec(
            "INVALID_REQUEST",
            "Envelope is malformed or uses an unsupported protocol version",
            -32600,
            "Invalid Request",
        ),
        _CanonicalSpec(
            "METHOD_NOT_FOUND",
            "Method name is not part of the supported method table",
            -32601,
            "Method not found",
        ),
        _CanonicalSpec(
            "INVALID_PARAMS",
            "Parameters are missing or malformed for the method",
            -32602,
            "Invalid params",
        ),
        _CanonicalSpec(
            "INTERNAL_ERROR",
            "Unexpected server-side failure",
            -32603,
            "Internal error",
        ),
        _CanonicalSpec(
            "RESOURCE_NOT_FOUND",
            "Requested resource URI is not registered",
            -32002,
            "Resource not found",
        ),
    )

    _JSONRPC_MAP: dict[str, _CanonicalSpec] = {spec.code: spec for spec in _SPECS}

    @classmethod
    def codes(cls) -> Sequence[str]:
        return tuple(spec.code for spec in cls._SPECS)

    @staticmethod
    def _lookup(code: str, mapping: Mapping[str, _CanonicalSpec]) -> _CanonicalSpec:
        if code not in mapping:
            raise KeyError(f"{code} does not have a JSON-RPC mapping")
        return mapping[code]

    @classmethod
    def jsonrpc_code(cls, code: str) -> int:
        return cls._lookup(code, cls._JSONRPC_MAP).jsonrpc_code

    @classmethod
    def default_message(cls, code: str) -> str:
        return cls._lookup(code, cls._JSONRPC_MAP).message

    @classmethod
    def to_jsonrpc_error(cls, code: str, *, message: str | None = None, data: Any = None) -> dict[str, Any]:
        """Materialise a JSON-RPC error object for ``code``."""

        spec = cls._lookup(code, cls._JSONRPC_MAP)
        payload: dict[str, Any] = {"code": spec.jsonrpc_code, "message": message or spec.message}
        if data is not None:
            payload["data"] = data
        return payload


class ProtocolError(Exception):
    """Fault reported to the caller as a JSON-RPC error object."""

    def __init__(self, code: str, message: str | None = None, *, data: Any = None) -> None:
        # Fail fast on codes without a mapping.
        CanonicalError.jsonrpc_code(code)
        self.code = code
        self.message = message or CanonicalError.default_message(code)
        self.data = data
        super().__init__(self.message)

    @property
    def jsonrpc_code(self) -> int:
        return CanonicalError.jsonrpc_code(self.code)

    def to_error(self) -> JsonRpcError:
        from .envelope import JsonRpcError

        return JsonRpcError.model_validate(
            CanonicalError.to_jsonrpc_error(self.code, message=self.message, data=self.data)
        )

    def __repr__(self) -> str:
        return f"ProtocolError({self.code!r}, {self.message!r})"
