from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, StrictInt, StrictStr, model_validator

__all__ = [
    "JSONRPC_VERSION",
    "CallToolParams",
    "GetPromptParams",
    "InitializeParams",
    "JsonRpcError",
    "JsonRpcRequest",
    "JsonRpcResponse",
    "ReadResourceParams",
    "RequestId",
]

JSONRPC_VERSION = "2.0"

RequestId = StrictStr | StrictInt


class JsonRpcRequest(BaseModel):
    """Inbound request or notification envelope."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    jsonrpc: Literal["2.0"]
    id: RequestId | None = None
    method: StrictStr
    params: dict[str, Any] | None = None

    @property
    def is_notification(self) -> bool:
        return self.id is None

    @property
    def arguments(self) -> dict[str, Any]:
        return dict(self.params or {})


class JsonRpcError(BaseModel):
    """Error object carried by a failed response."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    code: int = Field(..., description="JSON-RPC error code")
    message: str = Field(..., description="Human readable error message")
    data: Any | None = Field(default=None, description="Optional diagnostic payload")

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.data is not None:
            payload["data"] = self.data
        return payload


class JsonRpcResponse(BaseModel):
    """Outbound envelope carrying exactly one of ``result`` or ``error``."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    jsonrpc: Literal["2.0"] = JSONRPC_VERSION
    id: RequestId | None = None
    result: dict[str, Any] | None = None
    error: JsonRpcError | None = None

    @model_validator(mode="after")
    def _exactly_one_outcome(self) -> JsonRpcResponse:
        if (self.result is None) == (self.error is None):
            raise ValueError("response must carry exactly one of result or error")
        return self

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, request_id: Any, result: dict[str, Any]) -> JsonRpcResponse:
        return cls(id=request_id, result=result)

    @classmethod
    def failure(cls, request_id: Any, error: JsonRpcError) -> JsonRpcResponse:
        return cls(id=request_id, error=error)

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-ready mapping; ``id`` is always present."""

        payload: dict[str, Any] = {"jsonrpc": self.jsonrpc, "id": self.id}
        if self.error is not None:
            payload["error"] = self.error.to_dict()
        else:
            payload["result"] = self.result
        return payload


class InitializeParams(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    protocol_version: StrictStr | None = Field(default=None, alias="protocolVersion")
    client_info: dict[str, Any] | None = Field(default=None, alias="clientInfo")
    capabilities: dict[str, Any] = Field(default_factory=dict)


class CallToolParams(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    name: StrictStr
    arguments: dict[str, Any] | None = None


class ReadResourceParams(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    uri: StrictStr


class GetPromptParams(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    name: StrictStr
    arguments: dict[str, Any] | None = None
