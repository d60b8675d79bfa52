"""Route group contract and startup verification."""

from __future__ import annotations

from typing import FrozenSet, Iterable, Protocol, runtime_checkable

from ..errors import MissingRouteError, RoutingError
from ..messages import MessageType
from .router import MessageRouter


@runtime_checkable
class RouteGroup(Protocol):
    """A set of handlers owning a fixed, disjoint subset of message types."""

    @property
    def message_types(self) -> FrozenSet[MessageType]: ...

    def register_routes(self, router: MessageRouter) -> None: ...


def include_all(router: MessageRouter, groups: Iterable[RouteGroup]) -> None:
    for group in groups:
        router.include(group)


def verify_groups(router: MessageRouter, groups: Iterable[RouteGroup]) -> None:
    """Startup self-check: every declared type is routed and nothing is counted twice."""
    declared: set = set()
    for group in groups:
        declared.update(group.message_types)

    missing = [t.value for t in declared if not router.has_handler(t)]
    if missing:
        raise MissingRouteError(missing, router.name)
    if router.handler_count != len(declared):
        raise RoutingError(
            f"Router {router.name} has {router.handler_count} handler(s) "
            f"but groups declare {len(declared)} type(s)"
        )
