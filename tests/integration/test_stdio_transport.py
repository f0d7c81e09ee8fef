from __future__ import annotations

import asyncio
import io
import json
from typing import Any

import pytest

from mcp_toolbox.service.dispatcher import ProtocolDispatcher, decode_json
from mcp_toolbox.stdio import JsonRpcStdioServer


class _BufferWriter:
    """Minimal stand-in for ``asyncio.StreamWriter``."""

    def __init__(self) -> None:
        self.buffer = bytearray()
        self.closed = False

    def write(self, data: bytes) -> None:
        self.buffer.extend(data)

    async def drain(self) -> None:
        return None

    def close(self) -> None:
        self.closed = True

    async def wait_closed(self) -> None:
        return None


@pytest.fixture
def server(dispatcher: ProtocolDispatcher) -> JsonRpcStdioServer:
    return JsonRpcStdioServer(dispatcher)


def _lines(*messages: Any) -> str:
    return "".join((m if isinstance(m, str) else json.dumps(m)) + "\n" for m in messages)


def test_process_line_round_trip(server: JsonRpcStdioServer) -> None:
    response = asyncio.run(server.process_line('{"jsonrpc":"2.0","id":"p1","method":"ping"}\n'))
    assert response == {"jsonrpc": "2.0", "id": "p1", "result": {}}


@pytest.mark.parametrize("line", ["", "\n", "   \n", '{"jsonrpc":"2.0","method":"notifications/initialized"}'])
def test_process_line_without_reply(server: JsonRpcStdioServer, line: str) -> None:
    assert asyncio.run(server.process_line(line)) is None


def test_process_line_rejects_malformed_json(server: JsonRpcStdioServer) -> None:
    response = asyncio.run(server.process_line("{broken"))
    assert response["id"] is None
    assert response["error"]["code"] == -32600


def test_serve_stdio_answers_in_order(server: JsonRpcStdioServer) -> None:
    reader = io.StringIO(
        _lines(
            {"jsonrpc": "2.0", "id": 1, "method": "initialize", "params": {"protocolVersion": "2024-11-05"}},
            {"jsonrpc": "2.0", "method": "notifications/initialized"},
            "",
            {"jsonrpc": "2.0", "id": 2, "method": "tools/call", "params": {"name": "weather", "arguments": {"location": "Lima"}}},
            "not json",
            {"jsonrpc": "1.0", "id": 3, "method": "ping"},
        )
    )
    writer = io.StringIO()
    asyncio.run(server.serve_stdio(reader=reader, writer=writer))

    responses = [json.loads(line) for line in writer.getvalue().splitlines()]
    assert [response["id"] for response in responses] == [1, 2, None, 3]
    assert responses[0]["result"]["protocolVersion"] == "2024-11-05"
    assert "Lima" in responses[1]["result"]["content"][0]["text"]
    assert responses[2]["error"]["code"] == -32600
    assert responses[3]["error"]["code"] == -32600


def test_serve_over_asyncio_streams(server: JsonRpcStdioServer) -> None:
    writer = _BufferWriter()

    async def scenario() -> None:
        reader = asyncio.StreamReader()
        reader.feed_data(
            _lines(
                {"jsonrpc": "2.0", "id": 1, "method": "resources/list"},
                {"jsonrpc": "2.0", "id": 2, "method": "prompts/get", "params": {"name": "code_review"}},
            ).encode("utf-8")
        )
        reader.feed_eof()
        await server.serve(reader, writer)  # type: ignore[arg-type]

    asyncio.run(scenario())
    responses = [json.loads(line) for line in writer.buffer.decode("utf-8").splitlines()]
    assert responses[0]["result"]["resources"][0]["uri"] == "system://info"
    assert responses[1]["error"]["code"] == -32602
    assert writer.closed


def test_frames_are_single_lines(server: JsonRpcStdioServer) -> None:
    reader = io.StringIO(
        _lines({"jsonrpc": "2.0", "id": 1, "method": "prompts/get", "params": {"name": "code_review", "arguments": {"code": "a\nb"}}})
    )
    writer = io.StringIO()
    asyncio.run(server.serve_stdio(reader=reader, writer=writer))
    output = writer.getvalue()
    assert output.count("\n") == 1
    assert "a\\nb" in output


_PING = b'{"jsonrpc":"2.0","id":"after","method":"ping"}\n'
_DEEP = b"[" * 200_000 + b"]" * 200_000


def _serve_bytes(server: JsonRpcStdioServer, raw: bytes) -> list[dict[str, Any]]:
    reader = io.BytesIO(raw)
    writer = io.StringIO()
    asyncio.run(asyncio.wait_for(server.serve_stdio(reader=reader, writer=writer), timeout=10))
    return [decode_json(line) for line in writer.getvalue().splitlines()]


@pytest.mark.parametrize("constant", ["NaN", "Infinity", "-Infinity", "1e400"])
def test_non_standard_numbers_are_parse_errors(server: JsonRpcStdioServer, constant: str) -> None:
    line = f'{{"jsonrpc": {constant}, "id": 1, "method": "ping"}}\n'.encode()
    responses = _serve_bytes(server, line + _PING)
    assert responses[0]["id"] is None
    assert responses[0]["error"]["code"] == -32600
    assert responses[0]["error"]["data"].startswith("Parse error")
    assert responses[1] == {"jsonrpc": "2.0", "id": "after", "result": {}}


def test_deep_nesting_does_not_end_the_session(server: JsonRpcStdioServer) -> None:
    responses = _serve_bytes(server, _DEEP + b"\n" + _PING)
    assert responses[0]["error"]["code"] == -32600
    assert responses[1]["id"] == "after"


def test_undecodable_bytes_are_parse_errors(server: JsonRpcStdioServer) -> None:
    responses = _serve_bytes(server, b"\xc3\x28 garbage\n" + _PING)
    assert responses[0]["id"] is None
    assert responses[0]["error"]["code"] == -32600
    assert responses[1]["id"] == "after"


def test_non_scalar_version_is_not_echoed(server: JsonRpcStdioServer) -> None:
    nested = b'{"jsonrpc": [2.0], "id": 3, "method": "ping"}\n'
    (response,) = _serve_bytes(server, nested)
    assert response["id"] == 3
    assert response["error"]["data"] == {"supported": "2.0", "received": "list"}


def test_reader_failure_still_ends_the_session(server: JsonRpcStdioServer) -> None:
    class _FailingReader:
        def readline(self) -> bytes:
            raise OSError("stdin went away")

    writer = io.StringIO()
    asyncio.run(asyncio.wait_for(server.serve_stdio(reader=_FailingReader(), writer=writer), timeout=10))
    assert writer.getvalue() == ""


def test_unexpected_fault_is_reported_and_session_continues(dispatcher: ProtocolDispatcher) -> None:
    class _FlakyDispatcher(ProtocolDispatcher):
        async def decode_and_dispatch(self, raw, context=None):  # type: ignore[override]
            if b"explode" in raw:
                raise RuntimeError("dispatcher crashed")
            return await super().decode_and_dispatch(raw, context)

    flaky = _FlakyDispatcher(dispatcher.registry, dispatcher.server_info)
    responses = _serve_bytes(JsonRpcStdioServer(flaky), b'{"explode": true}\n' + _PING)
    assert responses[0] == {
        "jsonrpc": "2.0",
        "id": None,
        "error": {"code": -32603, "message": "Internal error", "data": "dispatcher crashed"},
    }
    assert responses[1]["id"] == "after"


def test_unserialisable_results_become_internal_errors(dispatcher: ProtocolDispatcher) -> None:
    class _NanDispatcher(ProtocolDispatcher):
        async def _handle_ping(self, request):  # type: ignore[override]
            return {"value": float("nan")}

    nan = _NanDispatcher(dispatcher.registry, dispatcher.server_info)
    (response,) = _serve_bytes(JsonRpcStdioServer(nan), _PING)
    assert response["id"] == "after"
    assert response["error"]["code"] == -32603
