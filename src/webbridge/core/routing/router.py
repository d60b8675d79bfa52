"""Message router: one handler per message type.

Domain groups register the types they own; there is no central switch
statement. Registration is strict (a second handler for a type is rejected)
while dispatch is forgiving (an unknown type or a failing handler is reported
and never propagates to the channel loop).
"""

from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Union

from ..errors import DuplicateRouteError, MissingRouteError, RouteOwnershipError
from ..messages import MessageEnvelope, MessageType

logger = logging.getLogger(__name__)

Handler = Callable[[MessageEnvelope], Union[None, Awaitable[None]]]
UnroutableCallback = Callable[[MessageEnvelope], Any]
HandlerErrorCallback = Callable[[MessageEnvelope, BaseException], Any]


class DispatchOutcome(str, Enum):
    HANDLED = "handled"
    UNROUTABLE = "unroutable"
    FAILED = "failed"


@dataclass
class RouterStats:
    dispatched: int = 0
    handled: int = 0
    unroutable: int = 0
    failed: int = 0


class MessageRouter:
    """Route table plus dispatch.

    Args:
        name: Label used in logs and errors (``"host"``, ``"ui"``).
        on_unroutable: Called with the envelope when no handler matches.
        on_handler_error: Called with the envelope and the exception when a
            handler raises.
    """

    def __init__(
        self,
        name: str = "router",
        *,
        on_unroutable: Optional[UnroutableCallback] = None,
        on_handler_error: Optional[HandlerErrorCallback] = None,
    ):
        self.name = name
        self._handlers: Dict[MessageType, Handler] = {}
        self._on_unroutable = on_unroutable
        self._on_handler_error = on_handler_error
        self.stats = RouterStats()

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register(self, message_type: MessageType, handler: Handler) -> None:
        """Register *handler* for *message_type*.

        Raises:
            DuplicateRouteError: a handler is already registered for the type.
        """
        if not isinstance(message_type, MessageType):
            raise ValueError(f"Cannot route unknown message type: {message_type!r}")
        if message_type in self._handlers:
            logger.error("[%s] duplicate handler registration for %s", self.name, message_type.value)
            raise DuplicateRouteError(message_type.value, self.name)
        self._handlers[message_type] = handler
        logger.debug("[%s] registered route %s", self.name, message_type.value)

    def unregister(self, message_type: MessageType) -> bool:
        return self._handlers.pop(message_type, None) is not None

    def include(self, group: Any) -> None:
        """Let *group* register its routes and check it stayed within its declared types.

        On any failure the group's partial registrations are rolled back.
        """
        declared = frozenset(group.message_types)
        before = set(self._handlers)
        group_name = type(group).__name__
        try:
            group.register_routes(self)
        except Exception:
            self._rollback(before)
            raise

        added = set(self._handlers) - before
        if added != declared:
            self._rollback(before)
            extra = sorted(t.value for t in added - declared)
            missing = sorted(t.value for t in declared - added)
            logger.error(
                "[%s] %s violated route ownership: extra=%s missing=%s",
                self.name, group_name, extra, missing,
            )
            raise RouteOwnershipError(
                f"{group_name} registered {extra or 'nothing extra'} outside its declared types "
                f"and left {missing or 'nothing'} unregistered"
            )
        logger.info("[%s] %s registered %d route(s)", self.name, group_name, len(added))

    def _rollback(self, keep: Iterable[MessageType]) -> None:
        keep = set(keep)
        for message_type in list(self._handlers):
            if message_type not in keep:
                del self._handlers[message_type]

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def has_handler(self, message_type: Union[MessageType, str]) -> bool:
        return message_type in self._handlers

    @property
    def handler_count(self) -> int:
        return len(self._handlers)

    def registered_types(self) -> List[MessageType]:
        return list(self._handlers)

    def require(self, expected: Iterable[MessageType]) -> None:
        """Raise :class:`MissingRouteError` unless every expected type has a handler."""
        missing = [t.value for t in expected if t not in self._handlers]
        if missing:
            logger.error("[%s] missing routes: %s", self.name, ", ".join(missing))
            raise MissingRouteError(missing, self.name)

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    async def dispatch(self, envelope: MessageEnvelope) -> DispatchOutcome:
        """Invoke the handler registered for ``envelope.type``.

        Never raises for unknown types or handler failures; the outcome is
        returned and reported through the callbacks instead.
        """
        self.stats.dispatched += 1
        handler = self._handlers.get(envelope.type) if envelope.is_known else None
        if handler is None:
            self.stats.unroutable += 1
            logger.warning(
                "[%s] no handler registered for message type: %s. Registered types: %s",
                self.name,
                envelope.type_tag,
                ", ".join(t.value for t in self._handlers),
            )
            await self._notify(self._on_unroutable, envelope)
            return DispatchOutcome.UNROUTABLE

        try:
            result = handler(envelope)
            if inspect.isawaitable(result):
                await result
        except Exception as exc:
            self.stats.failed += 1
            logger.exception("[%s] handler for %s failed", self.name, envelope.type_tag)
            await self._notify(self._on_handler_error, envelope, exc)
            return DispatchOutcome.FAILED

        self.stats.handled += 1
        return DispatchOutcome.HANDLED

    async def _notify(self, callback: Optional[Callable[..., Any]], *args: Any) -> None:
        if callback is None:
            return
        try:
            result = callback(*args)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger.error("[%s] error in dispatch callback: %s", self.name, e)
