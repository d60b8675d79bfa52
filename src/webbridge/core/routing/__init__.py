"""Message routing and dispatch."""

from .groups import RouteGroup, include_all, verify_groups
from .router import DispatchOutcome, Handler, MessageRouter, RouterStats

__all__ = [
    "DispatchOutcome",
    "Handler",
    "MessageRouter",
    "RouteGroup",
    "RouterStats",
    "include_all",
    "verify_groups",
]
