"""
WebBridge - typed message bridge between a privileged host and a sandboxed UI.

Routes envelopes to per-type handlers and paces streamed responses for display.
"""

__version__ = "0.1.0"

from .client import BridgeClient
from .core.errors import (
    BridgeError,
    DuplicateRouteError,
    EnvelopeError,
    MissingRouteError,
    RouteOwnershipError,
    TransportClosed,
)
from .core.messages import MessageEnvelope, MessageType, StreamingDomain
from .core.routing import DispatchOutcome, MessageRouter
from .core.streaming import StreamingPolicy, StreamingSession, StreamProducer, StreamState
from .host import BridgeHost

__all__ = [
    "BridgeClient",
    "BridgeError",
    "BridgeHost",
    "DispatchOutcome",
    "DuplicateRouteError",
    "EnvelopeError",
    "MessageEnvelope",
    "MessageRouter",
    "MessageType",
    "MissingRouteError",
    "RouteOwnershipError",
    "StreamProducer",
    "StreamState",
    "StreamingDomain",
    "StreamingPolicy",
    "StreamingSession",
    "TransportClosed",
]
