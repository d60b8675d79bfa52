"""UI state handler."""

from __future__ import annotations

import logging
from typing import Optional

from ..core.messages import MessageEnvelope, MessageType
from ..core.routing import MessageRouter
from .base import DomainHandler, payload_dict

logger = logging.getLogger(__name__)


class UIHandler(DomainHandler):
    message_types = frozenset({MessageType.TAB_CHANGED})
    source = "host.ui"

    active_tab: Optional[str] = None

    def register_routes(self, router: MessageRouter) -> None:
        router.register(MessageType.TAB_CHANGED, self.handle_tab_changed)

    def handle_tab_changed(self, envelope: MessageEnvelope) -> None:
        tab = payload_dict(envelope).get("tabId")
        self.active_tab = str(tab) if tab is not None else None
        logger.debug("Active tab: %s", self.active_tab)
