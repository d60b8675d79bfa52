"""Transport protocol definition."""

from __future__ import annotations

from typing import Any, Protocol

from ..core.messages import MessageEnvelope


class Transport(Protocol):
    """Reliable, ordered, message-boundary-preserving channel.

    Each implementation (in-memory pair, WebSocket) moves whole envelopes;
    ``receive`` returns one decoded JSON frame per call.
    """

    async def send(self, envelope: MessageEnvelope) -> None:
        """Serialize and send one envelope. Raises TransportClosed once closed."""
        ...

    async def receive(self) -> Any:
        """Wait for the next frame. Raises TransportClosed when the peer is gone."""
        ...

    async def close(self) -> None:
        """Close the channel; idempotent."""
        ...
