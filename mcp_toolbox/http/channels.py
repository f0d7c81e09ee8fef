"""Server-Sent-Events push channels and the registry that bounds them."""

from __future__ import annotations

import asyncio
import json
import logging
import threading
from collections import OrderedDict
from collections.abc import AsyncIterator, Mapping
from typing import Any
from uuid import uuid4

from mcp_toolbox.observability import LOGGER_NAME

__all__ = ["PushChannel", "PushChannelRegistry", "format_sse"]

_CLOSE = object()


def format_sse(data: str, *, event: str | None = None) -> str:
    """Render one SSE frame; multi-line data is split across ``data:`` lines."""

    lines = [f"event: {event}"] if event else []
    lines.extend(f"data: {chunk}" for chunk in data.splitlines() or [""])
    return "\n".join(lines) + "\n\n"


class PushChannel:
    """A single open event stream to one client."""

    def __init__(self, session_id: str | None = None, *, endpoint: str = "/messages") -> None:
        self.session_id = session_id or uuid4().hex
        self.endpoint = f"{endpoint}?sessionId={self.session_id}"
        self._queue: asyncio.Queue[Any] = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def send(self, message: Mapping[str, Any] | str) -> None:
        """Queue ``message``; a ``str`` is taken as already-encoded JSON."""

        if self._closed:
            raise RuntimeError(f"Push channel {self.session_id} is closed")
        self._queue.put_nowait(message if isinstance(message, str) else dict(message))

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(_CLOSE)

    async def stream(self, *, keepalive_seconds: float = 30.0) -> AsyncIterator[str]:
        """Yield SSE frames until the channel is closed."""

        yield format_sse(self.endpoint, event="endpoint")
        while True:
            try:
                item = await asyncio.wait_for(self._queue.get(), timeout=keepalive_seconds)
            except asyncio.TimeoutError:
                yield ": keepalive\n\n"
                continue
            if item is _CLOSE:
                return
            data = item if isinstance(item, str) else json.dumps(item, ensure_ascii=False)
            yield format_sse(data, event="message")


class PushChannelRegistry:
    """Bounded set of live push channels.

    With the default capacity of one, only a single client receives pushed
    messages. Opening a channel when the registry is full closes and evicts
    the oldest channel (last writer wins).
    """

    def __init__(self, capacity: int = 1, *, logger: logging.Logger | None = None) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be a positive integer")
        self._capacity = capacity
        self._channels: OrderedDict[str, PushChannel] = OrderedDict()
        self._lock = threading.Lock()
        self._logger = logger or logging.getLogger(LOGGER_NAME)

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def current(self) -> PushChannel | None:
        with self._lock:
            if not self._channels:
                return None
            return next(reversed(self._channels.values()))

    def __len__(self) -> int:
        with self._lock:
            return len(self._channels)

    def open(self, *, endpoint: str = "/messages") -> PushChannel:
        channel = PushChannel(endpoint=endpoint)
        evicted: list[PushChannel] = []
        with self._lock:
            while len(self._channels) >= self._capacity:
                _, oldest = self._channels.popitem(last=False)
                evicted.append(oldest)
            self._channels[channel.session_id] = channel
        for old in evicted:
            self._logger.warning(
                "Push channel %s superseded by %s", old.session_id, channel.session_id
            )
            old.close()
        return channel

    def get(self, session_id: str) -> PushChannel | None:
        with self._lock:
            return self._channels.get(session_id)

    def release(self, channel: PushChannel) -> None:
        with self._lock:
            if self._channels.get(channel.session_id) is channel:
                del self._channels[channel.session_id]
        channel.close()

    def resolve(self, session_id: str | None = None) -> PushChannel | None:
        """Return the open channel for ``session_id``, or the current one when omitted."""

        channel = self.get(session_id) if session_id else self.current
        if channel is None or channel.closed:
            return None
        return channel

    def publish(self, message: Mapping[str, Any] | str, *, session_id: str | None = None) -> bool:
        """Push ``message`` to a live channel; ``False`` when it is gone or closed."""

        channel = self.resolve(session_id)
        if channel is None:
            return False
        try:
            channel.send(message)
        except RuntimeError:
            # Closed between resolve() and send().
            return False
        return True

    def close_all(self) -> None:
        with self._lock:
            channels = list(self._channels.values())
            self._channels.clear()
        for channel in channels:
            channel.close()
