from __future__ import annotations

import argparse
import asyncio
import contextlib
import logging
import signal
from collections.abc import Mapping
from typing import Any

import uvicorn

from mcp_toolbox.capabilities import build_default_registry
from mcp_toolbox.config import LogLevel, ServerInfo, Settings
from mcp_toolbox.http import PushChannelRegistry, create_app
from mcp_toolbox.observability import configure_logging
from mcp_toolbox.service.dispatcher import ProtocolDispatcher
from mcp_toolbox.stdio import JsonRpcStdioServer

_UVICORN_LOG_LEVELS = {
    LogLevel.DEBUG: "debug",
    LogLevel.INFO: "info",
    LogLevel.WARN: "warning",
    LogLevel.ERROR: "error",
}


def create_parser(defaults: Settings | None = None) -> argparse.ArgumentParser:
    settings = defaults or Settings()
    parser = argparse.ArgumentParser(description="Run the MCP toolbox server")
    parser.add_argument(
        "--port",
        type=int,
        default=settings.port,
        help="Serve HTTP on this port (default: $MCP_PORT; stdio when unset)",
    )
    parser.add_argument("--host", default=settings.host, help="HTTP bind address")
    parser.add_argument(
        "--log-level",
        type=LogLevel.from_str,
        default=settings.log_level,
        metavar="{DEBUG,INFO,WARN,ERROR}",
        help="Logging level (default: $LOG_LEVEL or INFO)",
    )
    return parser


def parse_settings(argv: list[str] | None = None, environ: Mapping[str, str] | None = None) -> Settings:
    """Resolve settings from the environment, with CLI flags taking precedence."""

    defaults = Settings.from_env(environ)
    args = create_parser(defaults).parse_args(argv)
    return Settings(log_level=args.log_level, port=args.port, host=args.host)


class _ToolboxServer(uvicorn.Server):
    """uvicorn server that closes push channels before shutting down."""

    def __init__(self, config: uvicorn.Config, channels: PushChannelRegistry) -> None:
        super().__init__(config)
        self._channels = channels

    def handle_exit(self, sig: int, frame: Any) -> None:
        self._channels.close_all()
        super().handle_exit(sig, frame)


async def _serve_http(dispatcher: ProtocolDispatcher, settings: Settings, logger: logging.Logger) -> None:
    channels = PushChannelRegistry(logger=logger)
    app = create_app(dispatcher, channels=channels, logger=logger)
    config = uvicorn.Config(
        app,
        host=settings.host,
        port=settings.port,
        log_level=_UVICORN_LOG_LEVELS[settings.log_level],
        access_log=False,
    )
    server = _ToolboxServer(config, channels)
    info = dispatcher.server_info
    logger.info("Starting %s v%s on port %s", info.name, info.version, settings.port)
    logger.info("Health check: http://localhost:%s/health", settings.port)
    logger.info("SSE endpoint: http://localhost:%s/sse", settings.port)
    await server.serve()
    logger.info("HTTP server stopped")


async def _serve_stdio(dispatcher: ProtocolDispatcher, logger: logging.Logger) -> None:
    loop = asyncio.get_running_loop()
    task = asyncio.current_task()
    assert task is not None

    def _request_stop(sig: signal.Signals) -> None:
        logger.info("Received %s, shutting down gracefully...", sig.name)
        task.cancel()

    for sig in (signal.SIGINT, signal.SIGTERM):
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(sig, _request_stop, sig)

    info = dispatcher.server_info
    logger.info("Starting %s v%s (stdio)", info.name, info.version)
    server = JsonRpcStdioServer(dispatcher, logger=logger)
    try:
        await server.serve_stdio()
    except asyncio.CancelledError:
        logger.info("Stopping MCP server")


async def _run_server(settings: Settings, logger: logging.Logger) -> None:
    dispatcher = ProtocolDispatcher(build_default_registry(), ServerInfo(), logger=logger)
    if settings.transport == "http":
        logger.info("Configured to run on HTTP port: %s", settings.port)
        await _serve_http(dispatcher, settings, logger)
    else:
        logger.info("Configured to run on stdio transport")
        await _serve_stdio(dispatcher, logger)


def main(argv: list[str] | None = None) -> int:
    try:
        settings = parse_settings(argv)
    except SystemExit as exc:
        # argparse has already printed usage; --help exits cleanly.
        return 0 if exc.code in (0, None) else 1
    except ValueError as exc:
        logger = configure_logging()
        logger.error("Failed to start server: %s", exc)
        return 1
    logger = configure_logging(settings.log_level.logging_name)
    try:
        asyncio.run(_run_server(settings, logger))
    except KeyboardInterrupt:
        logger.info("Received SIGINT, shutting down gracefully...")
        return 0
    except SystemExit as exc:
        # uvicorn exits with a non-zero code when it cannot bind the port.
        if exc.code in (0, None):
            return 0
        logger.error("Failed to start server (exit code %s)", exc.code)
        return 1
    except Exception:
        logger.exception("Fatal error")
        return 1
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
