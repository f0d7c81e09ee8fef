from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse, Response, StreamingResponse

from mcp_toolbox.config import ServerInfo
from mcp_toolbox.service.dispatcher import (
    ProtocolDispatcher,
    RequestContext,
    encode_response,
    internal_error_response,
)
from mcp_toolbox.service.envelope import JsonRpcResponse

from .channels import PushChannelRegistry

__all__ = ["build_router"]

_LOGGED_HEADERS = ("authorization", "x-api-key", "x-user-id", "x-session-id")
_HEADER_PREVIEW = 20
_JSON_MEDIA_TYPE = "application/json"


def _describe_connection(request: Request) -> dict[str, Any]:
    return {
        "client": request.client.host if request.client else None,
        "userAgent": request.headers.get("user-agent"),
        "authorization": "Present" if request.headers.get("authorization") else "Not present",
        "customHeaders": sorted(name for name in request.headers if name.startswith("x-")),
    }


def _session_not_found() -> JSONResponse:
    return JSONResponse(
        {"error": "Session not found or expired"},
        status_code=status.HTTP_404_NOT_FOUND,
    )


async def _exchange(
    dispatcher: ProtocolDispatcher,
    body: bytes,
    context: RequestContext,
    logger: logging.Logger,
) -> JsonRpcResponse | None:
    try:
        return await dispatcher.decode_and_dispatch(body, context)
    except Exception as exc:
        logger.exception("Unhandled error on %s", context.route)
        return internal_error_response(exc)


def build_router(
    dispatcher: ProtocolDispatcher,
    server_info: ServerInfo,
    channels: PushChannelRegistry,
    *,
    logger: logging.Logger,
    keepalive_seconds: float = 30.0,
) -> APIRouter:
    router = APIRouter()

    @router.get("/health")
    def health() -> dict[str, Any]:
        return {"status": "healthy", "server": server_info.name, "version": server_info.version}

    @router.post("/mcp")
    async def mcp(request: Request) -> Response:
        body = await request.body()
        logger.info("MCP request received from %s", request.client.host if request.client else "unknown")
        response = await _exchange(dispatcher, body, RequestContext(transport="http", route="/mcp"), logger)
        if response is None:
            return Response(status_code=status.HTTP_204_NO_CONTENT)
        return Response(
            encode_response(response),
            status_code=status.HTTP_200_OK,
            media_type=_JSON_MEDIA_TYPE,
        )

    @router.get("/sse")
    async def sse(request: Request) -> StreamingResponse:
        logger.info("SSE connection established: %s", _describe_connection(request))
        for header in _LOGGED_HEADERS:
            value = request.headers.get(header)
            if value:
                logger.info("Header %s: %s...", header, value[:_HEADER_PREVIEW])
        channel = channels.open()

        async def events():
            try:
                async for frame in channel.stream(keepalive_seconds=keepalive_seconds):
                    yield frame
            finally:
                channels.release(channel)
                logger.info("SSE session %s closed", channel.session_id)

        return StreamingResponse(
            events(),
            media_type="text/event-stream",
            headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
        )

    @router.post("/messages")
    async def messages(request: Request, sessionId: str | None = None) -> JSONResponse:  # noqa: N803
        channel = channels.resolve(sessionId)
        if channel is None:
            return _session_not_found()
        body = await request.body()
        response = await _exchange(
            dispatcher,
            body,
            RequestContext(transport="sse", route="/messages"),
            logger,
        )
        if response is not None and not channels.publish(
            encode_response(response), session_id=channel.session_id
        ):
            # The session was superseded or closed while the request was dispatched.
            return _session_not_found()
        return JSONResponse({"ok": True}, status_code=status.HTTP_202_ACCEPTED)

    return router
