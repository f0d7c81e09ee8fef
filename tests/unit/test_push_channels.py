from __future__ import annotations

import asyncio
import json

import pytest

from mcp_toolbox.http.channels import PushChannel, PushChannelRegistry, format_sse


async def _collect(channel: PushChannel, count: int, *, keepalive_seconds: float = 5.0) -> list[str]:
    frames: list[str] = []
    stream = channel.stream(keepalive_seconds=keepalive_seconds)
    try:
        async for frame in stream:
            frames.append(frame)
            if len(frames) == count:
                break
    finally:
        await stream.aclose()
    return frames


def test_format_sse_frames() -> None:
    assert format_sse("hello", event="endpoint") == "event: endpoint\ndata: hello\n\n"
    assert format_sse("a\nb") == "data: a\ndata: b\n\n"
    assert format_sse("") == "data: \n\n"


def test_channel_stream_announces_endpoint_then_messages() -> None:
    channel = PushChannel("abc")
    channel.send({"jsonrpc": "2.0", "id": 1, "result": {}})
    channel.close()

    async def scenario() -> list[str]:
        return [frame async for frame in channel.stream()]

    frames = asyncio.run(scenario())
    assert frames[0] == "event: endpoint\ndata: /messages?sessionId=abc\n\n"
    assert frames[1].startswith("event: message\ndata: ")
    assert json.loads(frames[1].split("data: ", 1)[1]) == {"jsonrpc": "2.0", "id": 1, "result": {}}
    assert len(frames) == 2


def test_channel_emits_keepalive_comments_when_idle() -> None:
    channel = PushChannel()
    frames = asyncio.run(_collect(channel, 2, keepalive_seconds=0.01))
    assert frames[1] == ": keepalive\n\n"


def test_send_after_close_is_rejected() -> None:
    channel = PushChannel()
    channel.close()
    channel.close()
    assert channel.closed
    with pytest.raises(RuntimeError, match="is closed"):
        channel.send({})


def test_registry_keeps_only_the_newest_channel() -> None:
    registry = PushChannelRegistry()
    first = registry.open()
    second = registry.open()
    assert len(registry) == 1
    assert first.closed
    assert not second.closed
    assert registry.current is second
    assert registry.get(first.session_id) is None
    assert registry.get(second.session_id) is second


def test_registry_capacity_bounds_live_channels() -> None:
    registry = PushChannelRegistry(capacity=2)
    first, second, third = registry.open(), registry.open(), registry.open()
    assert len(registry) == 2
    assert first.closed
    assert registry.current is third
    assert registry.get(second.session_id) is second
    with pytest.raises(ValueError):
        PushChannelRegistry(capacity=0)


def test_release_only_removes_the_matching_channel() -> None:
    registry = PushChannelRegistry()
    stale = registry.open()
    live = registry.open()
    registry.release(stale)
    assert registry.current is live
    registry.release(live)
    assert registry.current is None
    assert live.closed


def test_publish_targets_the_current_channel() -> None:
    registry = PushChannelRegistry()
    assert registry.publish({"jsonrpc": "2.0", "method": "notifications/message"}) is False
    channel = registry.open()
    assert registry.publish({"jsonrpc": "2.0", "method": "notifications/message"}) is True
    assert channel.pending == 1


def test_close_all_ends_every_stream() -> None:
    registry = PushChannelRegistry(capacity=3)
    channels = [registry.open() for _ in range(3)]
    registry.close_all()
    assert len(registry) == 0
    assert all(channel.closed for channel in channels)


def test_publish_by_session_id() -> None:
    registry = PushChannelRegistry(capacity=2)
    first = registry.open()
    second = registry.open()
    assert registry.publish({"jsonrpc": "2.0", "method": "notifications/message"}, session_id=first.session_id)
    assert first.pending == 1
    assert second.pending == 0
    assert registry.publish({"jsonrpc": "2.0"}, session_id="missing") is False


def test_resolve_skips_closed_channels() -> None:
    registry = PushChannelRegistry()
    channel = registry.open()
    assert registry.resolve(channel.session_id) is channel
    assert registry.resolve() is channel
    channel.close()
    assert registry.resolve(channel.session_id) is None
    assert registry.publish({"jsonrpc": "2.0"}, session_id=channel.session_id) is False


def test_encoded_messages_are_streamed_verbatim() -> None:
    registry = PushChannelRegistry()
    channel = registry.open()
    assert registry.publish('{"jsonrpc":"2.0","id":1,"result":{}}')
    frames = asyncio.run(_collect(channel, 2))
    assert frames[1] == 'event: message\ndata: {"jsonrpc":"2.0","id":1,"result":{}}\n\n'
