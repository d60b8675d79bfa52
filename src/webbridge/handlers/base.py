"""Shared plumbing for host-side domain handlers."""

from __future__ import annotations

import logging
from typing import Any, Dict, FrozenSet, Optional

from ..core.messages import ErrorPayload, MessageEnvelope, MessageType, StatusPayload
from ..core.routing import MessageRouter
from ..core.streaming import PostMessage

logger = logging.getLogger(__name__)


class DomainHandler:
    """Base for a route group; each domain owns its message lifecycle.

    Subclasses set ``message_types`` and implement ``register_routes``.
    """

    message_types: FrozenSet[MessageType] = frozenset()
    source: str = "host"

    def __init__(self, post: PostMessage):
        self._post = post

    def register_routes(self, router: MessageRouter) -> None:
        raise NotImplementedError

    async def send(
        self,
        message_type: MessageType,
        payload: Any,
        *,
        request_id: Optional[str] = None,
    ) -> None:
        await self._post(
            MessageEnvelope(type=message_type, payload=payload, request_id=request_id, source=self.source)
        )

    async def send_error(
        self,
        error_source: str,
        message: str,
        details: Optional[str] = None,
        *,
        request_id: Optional[str] = None,
    ) -> None:
        logger.warning("[%s] %s: %s", error_source, message, details or "")
        await self.send(
            MessageType.ERROR,
            ErrorPayload(source=error_source, message=message, details=details).to_dict(),
            request_id=request_id,
        )

    async def send_status(self, message: str, **extra: Any) -> None:
        await self.send(MessageType.STATUS, StatusPayload(message=message, extra=extra).to_dict())


def payload_dict(envelope: MessageEnvelope) -> Dict[str, Any]:
    return envelope.payload if isinstance(envelope.payload, dict) else {}
