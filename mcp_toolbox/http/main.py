from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from mcp_toolbox.config import ServerInfo
from mcp_toolbox.observability import LOGGER_NAME
from mcp_toolbox.service.dispatcher import ProtocolDispatcher

from .channels import PushChannelRegistry
from .routes import build_router

__all__ = ["create_app"]

_CORS_HEADERS = ["Content-Type", "Authorization", "X-Custom-Header", "Cache-Control"]


def create_app(
    dispatcher: ProtocolDispatcher,
    *,
    channels: PushChannelRegistry | None = None,
    logger: logging.Logger | None = None,
    keepalive_seconds: float = 30.0,
    enable_openapi: bool = False,
) -> FastAPI:
    """Return a FastAPI application exposing the MCP HTTP endpoints."""

    server_info: ServerInfo = dispatcher.server_info
    log = logger or logging.getLogger(LOGGER_NAME)
    registry = channels if channels is not None else PushChannelRegistry(logger=log)

    docs_url = "/docs" if enable_openapi else None
    openapi_url = "/openapi.json" if enable_openapi else None
    app = FastAPI(
        title=server_info.name,
        version=server_info.version,
        docs_url=docs_url,
        openapi_url=openapi_url,
        redoc_url=None,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=_CORS_HEADERS,
        allow_credentials=True,
    )
    app.include_router(
        build_router(
            dispatcher,
            server_info,
            registry,
            logger=log,
            keepalive_seconds=keepalive_seconds,
        )
    )
    app.state.channels = registry
    return app
