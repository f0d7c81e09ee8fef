"""Transport-independent JSON-RPC dispatcher for the MCP method table."""

from __future__ import annotations

import json
import logging
import math
import time
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from mcp_toolbox.capabilities import CapabilityInvoker, CapabilityKind, CapabilityRegistry
from mcp_toolbox.config import PROTOCOL_VERSION, ServerInfo
from mcp_toolbox.observability import LOGGER_NAME, log_event

from .envelope import (
    JSONRPC_VERSION,
    CallToolParams,
    GetPromptParams,
    InitializeParams,
    JsonRpcRequest,
    JsonRpcResponse,
    ReadResourceParams,
)
from .errors import ProtocolError
from .methods import Method, MethodFamily

__all__ = [
    "ProtocolDispatcher",
    "RequestContext",
    "SENTINEL_ID",
    "decode_json",
    "encode_response",
    "internal_error_response",
]

# Correlation id used when the offending message carried no usable id.
SENTINEL_ID = None

_SERVER_CAPABILITIES: dict[str, dict[str, Any]] = {"tools": {}, "resources": {}, "prompts": {}}

ParamsT = TypeVar("ParamsT", bound=BaseModel)

Handler = Callable[[JsonRpcRequest], Awaitable[dict[str, Any] | None]]


@dataclass(slots=True)
class RequestContext:
    """Per-message metadata supplied by transports; used for logging only."""

    transport: str = "internal"
    route: str | None = None
    start_time: float = field(default_factory=time.perf_counter)

    def duration_ms(self) -> float:
        return round((time.perf_counter() - self.start_time) * 1000.0, 3)


def _correlation_id(message: Mapping[str, Any]) -> Any:
    value = message.get("id")
    if isinstance(value, bool) or not isinstance(value, (str, int)):
        return SENTINEL_ID
    return value


def _reject_constant(name: str) -> Any:
    raise ValueError(f"Non-standard JSON constant {name!r}")


def _finite_float(text: str) -> float:
    value = float(text)
    if not math.isfinite(value):
        raise ValueError(f"Number out of range: {text}")
    return value


def decode_json(raw: str | bytes) -> Any:
    """Strict RFC 8259 decode: ``NaN``/``Infinity`` and overflowing numbers are rejected."""

    return json.loads(raw, parse_constant=_reject_constant, parse_float=_finite_float)


def encode_response(response: JsonRpcResponse) -> str:
    """Serialise ``response`` as strict JSON.

    A result that cannot be represented (non-finite floats, foreign objects,
    runaway nesting) is replaced by an internal error for the same id, so a
    transport never writes an invalid frame.
    """

    try:
        return json.dumps(response.to_dict(), ensure_ascii=False, allow_nan=False)
    except (TypeError, ValueError, RecursionError) as exc:
        fallback = JsonRpcResponse.failure(
            response.id,
            ProtocolError("INTERNAL_ERROR", data=f"Response is not serialisable: {exc}").to_error(),
        )
        return json.dumps(fallback.to_dict(), ensure_ascii=False)


def internal_error_response(exc: BaseException) -> JsonRpcResponse:
    """Error response for a fault raised outside ``dispatch`` (no usable id)."""

    return JsonRpcResponse.failure(SENTINEL_ID, ProtocolError("INTERNAL_ERROR", data=str(exc)).to_error())


def _echoable(value: Any) -> Any:
    # Only scalars are echoed back in diagnostics.
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    return type(value).__name__


def _validation_details(exc: ValidationError) -> list[dict[str, Any]]:
    return [
        {"loc": [str(part) for part in error["loc"]], "message": error["msg"]}
        for error in exc.errors()
    ]


class ProtocolDispatcher:
    """Route decoded envelopes to listing, invocation and notification handlers.

    ``dispatch`` never raises: every fault becomes an error response. It returns
    ``None`` when the message warrants no reply (notifications).
    """

    def __init__(
        self,
        registry: CapabilityRegistry,
        server_info: ServerInfo | None = None,
        *,
        invoker: CapabilityInvoker | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._registry = registry
        self._server_info = server_info or ServerInfo()
        self._logger = logger or logging.getLogger(LOGGER_NAME)
        self._invoker = invoker or CapabilityInvoker(registry, logger=self._logger)
        self._handlers: dict[Method, Handler] = {
            Method.INITIALIZE: self._handle_initialize,
            Method.PING: self._handle_ping,
            Method.TOOLS_LIST: self._handle_tools_list,
            Method.TOOLS_CALL: self._handle_tools_call,
            Method.RESOURCES_LIST: self._handle_resources_list,
            Method.RESOURCES_READ: self._handle_resources_read,
            Method.PROMPTS_LIST: self._handle_prompts_list,
            Method.PROMPTS_GET: self._handle_prompts_get,
            Method.NOTIFY_INITIALIZED: self._handle_notification,
            Method.NOTIFY_CANCELLED: self._handle_notification,
            Method.NOTIFY_PROGRESS: self._handle_notification,
            Method.NOTIFY_MESSAGE: self._handle_notification,
        }
        missing = [method.wire_name for method in Method if method not in self._handlers]
        if missing:
            raise RuntimeError(f"No dispatcher handler registered for: {', '.join(missing)}")

    @property
    def server_info(self) -> ServerInfo:
        return self._server_info

    @property
    def registry(self) -> CapabilityRegistry:
        return self._registry

    async def decode_and_dispatch(
        self,
        raw: str | bytes,
        context: RequestContext | None = None,
    ) -> JsonRpcResponse | None:
        """Decode one JSON document and dispatch it."""

        ctx = context or RequestContext()
        try:
            message = decode_json(raw)
        except RecursionError:
            self._log(ctx, "request.rejected", status="error", reason="nesting too deep")
            return self._error(
                SENTINEL_ID,
                ProtocolError("INVALID_REQUEST", data="Parse error: nesting exceeds the supported depth"),
            )
        except ValueError as exc:
            # JSONDecodeError and UnicodeDecodeError are both ValueErrors.
            self._log(ctx, "request.rejected", status="error", reason="malformed json")
            return self._error(SENTINEL_ID, ProtocolError("INVALID_REQUEST", data=f"Parse error: {exc}"))
        return await self.dispatch(message, ctx)

    async def dispatch(self, message: Any, context: RequestContext | None = None) -> JsonRpcResponse | None:
        ctx = context or RequestContext()
        if not isinstance(message, Mapping):
            self._log(ctx, "request.rejected", status="error", reason="envelope is not an object")
            return self._error(
                SENTINEL_ID,
                ProtocolError("INVALID_REQUEST", data="Request envelope must be a JSON object"),
            )
        request_id = _correlation_id(message)
        version = message.get("jsonrpc")
        if version != JSONRPC_VERSION:
            self._log(ctx, "request.rejected", status="error", id=request_id, reason="unsupported version")
            return self._error(
                request_id,
                ProtocolError(
                    "INVALID_REQUEST",
                    data={"supported": JSONRPC_VERSION, "received": _echoable(version)},
                ),
            )
        try:
            request = JsonRpcRequest.model_validate(message)
        except ValidationError as exc:
            self._log(ctx, "request.rejected", status="error", id=request_id, reason="invalid envelope")
            return self._error(request_id, ProtocolError("INVALID_REQUEST", data=_validation_details(exc)))

        method = Method.from_str(request.method)
        if method is None:
            if request.is_notification:
                self._log(ctx, "notification.ignored", level=logging.DEBUG, method=request.method)
                return None
            self._log(ctx, "request.failed", status="error", id=request.id, method=request.method)
            return self._error(
                request.id,
                ProtocolError("METHOD_NOT_FOUND", data={"method": request.method}),
            )
        if method.family is not MethodFamily.NOTIFICATION and request.is_notification:
            self._log(ctx, "notification.ignored", level=logging.WARNING, method=request.method)
            return None

        handler = self._handlers[method]
        try:
            result = await handler(request)
        except ProtocolError as exc:
            self._log(ctx, "request.failed", status="error", id=request.id, method=method.wire_name, code=exc.code)
            response = self._error(request.id, exc)
        except Exception as exc:
            self._logger.exception("Unhandled error while dispatching %s", method.wire_name)
            response = self._error(request.id, ProtocolError("INTERNAL_ERROR", data=str(exc)))
        else:
            if not method.expects_reply:
                return None
            self._log(ctx, "request.ok", status="ok", id=request.id, method=method.wire_name)
            response = JsonRpcResponse.success(request.id, result or {})
        return response if method.expects_reply else None

    # Method handlers -------------------------------------------------

    async def _handle_initialize(self, request: JsonRpcRequest) -> dict[str, Any]:
        params = _parse_params(InitializeParams, request)
        if params.protocol_version is not None and params.protocol_version != PROTOCOL_VERSION:
            raise ProtocolError(
                "INVALID_REQUEST",
                f"Unsupported protocol version: {params.protocol_version}",
                data={"supported": [PROTOCOL_VERSION], "requested": params.protocol_version},
            )
        if params.client_info:
            self._logger.info(
                "Initialize from client %s %s",
                params.client_info.get("name"),
                params.client_info.get("version"),
            )
        return {
            "protocolVersion": PROTOCOL_VERSION,
            "capabilities": {key: dict(value) for key, value in _SERVER_CAPABILITIES.items()},
            "serverInfo": self._server_info.to_payload(),
        }

    async def _handle_ping(self, request: JsonRpcRequest) -> dict[str, Any]:
        return {}

    async def _handle_tools_list(self, request: JsonRpcRequest) -> dict[str, Any]:
        self._logger.debug("Listing available tools")
        return {"tools": [tool.to_dict() for tool in self._registry.list(CapabilityKind.TOOL)]}

    async def _handle_resources_list(self, request: JsonRpcRequest) -> dict[str, Any]:
        self._logger.debug("Listing available resources")
        return {
            "resources": [
                resource.to_dict() for resource in self._registry.list(CapabilityKind.RESOURCE)
            ]
        }

    async def _handle_prompts_list(self, request: JsonRpcRequest) -> dict[str, Any]:
        self._logger.debug("Listing available prompts")
        return {"prompts": [prompt.to_dict() for prompt in self._registry.list(CapabilityKind.PROMPT)]}

    async def _handle_tools_call(self, request: JsonRpcRequest) -> dict[str, Any]:
        params = _parse_params(CallToolParams, request)
        self._logger.info("Tool called: %s", params.name)
        outcome = await self._invoker.call_tool(params.name, params.arguments)
        return outcome.to_payload()

    async def _handle_resources_read(self, request: JsonRpcRequest) -> dict[str, Any]:
        params = _parse_params(ReadResourceParams, request)
        self._logger.info("Resource requested: %s", params.uri)
        result = await self._invoker.read_resource(params.uri)
        if not result.ok:
            self._logger.error("Resource read error: %s", params.uri)
        return result.unwrap()

    async def _handle_prompts_get(self, request: JsonRpcRequest) -> dict[str, Any]:
        params = _parse_params(GetPromptParams, request)
        self._logger.info("Prompt requested: %s", params.name)
        result = await self._invoker.get_prompt(params.name, params.arguments)
        if not result.ok:
            self._logger.error("Prompt generation error: %s", params.name)
        return result.unwrap()

    async def _handle_notification(self, request: JsonRpcRequest) -> None:
        self._logger.info("Notification received: %s", request.method)
        return None

    # Internal helpers -------------------------------------------------

    @staticmethod
    def _error(request_id: Any, error: ProtocolError) -> JsonRpcResponse:
        return JsonRpcResponse.failure(request_id, error.to_error())

    def _log(self, context: RequestContext, event: str, *, level: int = logging.INFO, **fields: Any) -> None:
        log_event(
            self._logger,
            event,
            level=level,
            transport=context.transport,
            route=context.route,
            durationMs=context.duration_ms(),
            **fields,
        )


def _parse_params(model: type[ParamsT], request: JsonRpcRequest) -> ParamsT:
    try:
        return model.model_validate(request.arguments)
    except ValidationError as exc:
        raise ProtocolError("INVALID_PARAMS", data=_validation_details(exc)) from exc
