"""WebSocket transport over a FastAPI/Starlette ``WebSocket``."""

from __future__ import annotations

import json
import logging
from typing import Any

from fastapi import WebSocket, WebSocketDisconnect

from ..core.errors import TransportClosed
from ..core.messages import MessageEnvelope

logger = logging.getLogger(__name__)


class WebSocketTransport:
    def __init__(self, websocket: WebSocket):
        self._ws = websocket
        self._closed = False

    async def send(self, envelope: MessageEnvelope) -> None:
        if self._closed:
            raise TransportClosed("websocket is closed")
        try:
            await self._ws.send_text(envelope.to_json())
        except (WebSocketDisconnect, RuntimeError) as e:
            self._closed = True
            raise TransportClosed(f"websocket send failed: {e}") from e

    async def receive(self) -> Any:
        if self._closed:
            raise TransportClosed("websocket is closed")
        try:
            text = await self._ws.receive_text()
        except (WebSocketDisconnect, RuntimeError) as e:
            self._closed = True
            raise TransportClosed(f"websocket disconnected: {e}") from e
        try:
            return json.loads(text)
        except ValueError:
            logger.debug("Received non-JSON websocket frame (%d chars)", len(text))
            return text

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            await self._ws.close()
        except Exception:
            pass  # already closed by the peer
