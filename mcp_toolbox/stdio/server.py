from __future__ import annotations

import asyncio
import contextlib
import logging
import sys
import threading
from typing import IO, Any

from mcp_toolbox.observability import LOGGER_NAME
from mcp_toolbox.service.dispatcher import (
    ProtocolDispatcher,
    RequestContext,
    encode_response,
    internal_error_response,
)
from mcp_toolbox.service.envelope import JsonRpcResponse

__all__ = ["JsonRpcStdioServer"]

_EOF = None


class JsonRpcStdioServer:
    """Newline-delimited JSON-RPC 2.0 server bound to a single peer."""

    def __init__(self, dispatcher: ProtocolDispatcher, *, logger: logging.Logger | None = None) -> None:
        self._dispatcher = dispatcher
        self._logger = logger or logging.getLogger(LOGGER_NAME)

    async def _dispatch_line(self, line: str | bytes) -> JsonRpcResponse | None:
        payload = line.strip()
        if not payload:
            return None
        return await self._dispatcher.decode_and_dispatch(
            payload,
            RequestContext(transport="stdio"),
        )

    async def process_line(self, line: str | bytes) -> dict[str, Any] | None:
        """Dispatch one framed message; ``None`` means nothing is written back."""

        response = await self._dispatch_line(line)
        return response.to_dict() if response is not None else None

    async def _reply(self, line: str | bytes) -> str | None:
        """Return the encoded frame for ``line``; a single bad line never ends the session."""

        try:
            response = await self._dispatch_line(line)
        except Exception as exc:
            self._logger.exception("Unhandled error while processing a stdio frame")
            response = internal_error_response(exc)
        if response is None:
            return None
        return encode_response(response) + "\n"

    async def serve(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        """Serve requests read from ``reader`` until EOF."""

        try:
            while True:
                line = await reader.readline()
                if not line:
                    break
                frame = await self._reply(line)
                if frame is None:
                    continue
                writer.write(frame.encode("utf-8"))
                await writer.drain()
        finally:
            self._logger.info("STDIO peer disconnected")
            writer.close()
            await writer.wait_closed()

    async def serve_stdio(
        self,
        *,
        reader: IO[bytes] | IO[str] | None = None,
        writer: IO[str] | None = None,
    ) -> None:
        """Serve the process's standard streams until EOF.

        Input is read as bytes from ``sys.stdin.buffer`` so undecodable input
        reaches the dispatcher as a parse error. Lines are read on a daemon
        thread so a blocked ``readline`` never holds up interpreter shutdown
        once this coroutine is cancelled.
        """

        source = reader if reader is not None else sys.stdin.buffer
        sink = writer if writer is not None else sys.stdout
        loop = asyncio.get_running_loop()
        lines: asyncio.Queue[str | bytes | None] = asyncio.Queue()

        def enqueue(item: str | bytes | None) -> None:
            with contextlib.suppress(RuntimeError):
                loop.call_soon_threadsafe(lines.put_nowait, item)

        def pump() -> None:
            try:
                while True:
                    line = source.readline()
                    if not line:
                        break
                    enqueue(line)
            except Exception:
                self._logger.exception("STDIO reader failed")
            finally:
                enqueue(_EOF)

        threading.Thread(target=pump, name="mcp-stdio-reader", daemon=True).start()
        self._logger.info("MCP server connected and ready (stdio)")
        while True:
            line = await lines.get()
            if line is _EOF:
                break
            frame = await self._reply(line)
            if frame is None:
                continue
            sink.write(frame)
            sink.flush()
        self._logger.info("STDIO input closed")
