"""In-process transport: two linked endpoints over asyncio queues.

Frames are JSON-encoded on send and decoded on receive so that the same
serialization path as the WebSocket transport is exercised.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any, Optional, Tuple

from ..core.errors import TransportClosed
from ..core.messages import MessageEnvelope

_CLOSED = object()


class MemoryTransport:
    def __init__(self, inbox: asyncio.Queue, outbox: asyncio.Queue, name: str = "memory"):
        self.name = name
        self._inbox = inbox
        self._outbox = outbox
        self._closed = False
        self.peer: Optional["MemoryTransport"] = None

    @classmethod
    def pair(cls) -> Tuple["MemoryTransport", "MemoryTransport"]:
        """Return ``(host_end, ui_end)``; what one sends the other receives."""
        a_to_b: asyncio.Queue = asyncio.Queue()
        b_to_a: asyncio.Queue = asyncio.Queue()
        host = cls(inbox=b_to_a, outbox=a_to_b, name="host")
        ui = cls(inbox=a_to_b, outbox=b_to_a, name="ui")
        host.peer, ui.peer = ui, host
        return host, ui

    @property
    def closed(self) -> bool:
        return self._closed

    async def send(self, envelope: MessageEnvelope) -> None:
        await self.send_raw(envelope.to_json())

    async def send_raw(self, frame: str) -> None:
        """Push a pre-serialized frame (used to inject malformed input in tests)."""
        if self._closed:
            raise TransportClosed(f"{self.name} transport is closed")
        await self._outbox.put(frame)

    async def receive(self) -> Any:
        if self._closed and self._inbox.empty():
            raise TransportClosed(f"{self.name} transport is closed")
        frame = await self._inbox.get()
        if frame is _CLOSED:
            self._closed = True
            raise TransportClosed(f"{self.name} peer closed the channel")
        try:
            return json.loads(frame)
        except ValueError:
            return frame

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self._outbox.put(_CLOSED)
        # Wake our own pending receive() as well.
        await self._inbox.put(_CLOSED)
