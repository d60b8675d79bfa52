"""Transports and the envelope pump."""

from .memory import MemoryTransport
from .protocol import Transport
from .pump import EnvelopePump
from .websocket import WebSocketTransport

__all__ = [
    "EnvelopePump",
    "MemoryTransport",
    "Transport",
    "WebSocketTransport",
]
