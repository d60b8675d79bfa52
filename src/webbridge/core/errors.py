"""Exception hierarchy shared by the bridge layers."""

from __future__ import annotations

from typing import Iterable


class BridgeError(Exception):
    """Base class for all bridge errors."""


class EnvelopeError(BridgeError, ValueError):
    """A frame could not be decoded into a message envelope."""


class TransportClosed(BridgeError):
    """The underlying channel is closed; no further frames will arrive."""


class GeneratorError(BridgeError):
    """The upstream token generator failed."""


class RoutingError(BridgeError):
    """Startup-time route table integrity error."""


class DuplicateRouteError(RoutingError):
    def __init__(self, message_type: str, router_name: str = "router"):
        self.message_type = message_type
        super().__init__(
            f"Duplicate handler registration for message type: {message_type} ({router_name})"
        )


class MissingRouteError(RoutingError):
    def __init__(self, missing: Iterable[str], router_name: str = "router"):
        self.missing = sorted(str(m) for m in missing)
        super().__init__(
            f"Router {router_name} is missing handlers for: {', '.join(self.missing)}"
        )


class RouteOwnershipError(RoutingError):
    """A route group registered types it does not own, or skipped ones it does."""
