"""
Configuration domain handler
Handles settings and model selection
"""

from __future__ import annotations

import logging

from ..core.messages import MessageEnvelope, MessageType
from ..core.routing import MessageRouter
from ..core.streaming import PostMessage
from ..infra.settings import SettingsStore
from .base import DomainHandler, payload_dict

logger = logging.getLogger(__name__)


class ConfigurationHandler(DomainHandler):
    message_types = frozenset({
        MessageType.REQUEST_SETTINGS_DATA,
        MessageType.UPDATE_SETTING,
        MessageType.REQUEST_MODEL_DATA,
        MessageType.SET_MODEL_SELECTION,
    })
    source = "host.configuration"

    def __init__(self, post: PostMessage, settings: SettingsStore):
        super().__init__(post)
        self._settings = settings

    def register_routes(self, router: MessageRouter) -> None:
        router.register(MessageType.REQUEST_SETTINGS_DATA, self.handle_request_settings)
        router.register(MessageType.UPDATE_SETTING, self.handle_update_setting)
        router.register(MessageType.REQUEST_MODEL_DATA, self.handle_request_model_data)
        router.register(MessageType.SET_MODEL_SELECTION, self.handle_set_model_selection)

    async def handle_request_settings(self, envelope: MessageEnvelope) -> None:
        await self._send_settings()

    async def handle_update_setting(self, envelope: MessageEnvelope) -> None:
        payload = payload_dict(envelope)
        key = payload.get("key")
        if not isinstance(key, str) or not key:
            await self.send_error("settings.general", "Setting update requires a key")
            return
        try:
            self._settings.update_setting(key, payload.get("value"))
        except KeyError as e:
            await self.send_error("settings.general", "Unknown setting", str(e))
            return
        await self._send_settings()

    async def handle_request_model_data(self, envelope: MessageEnvelope) -> None:
        await self._send_model_data()

    async def handle_set_model_selection(self, envelope: MessageEnvelope) -> None:
        payload = payload_dict(envelope)
        scope = payload.get("scope")
        model_id = payload.get("modelId")
        try:
            self._settings.set_model(str(scope or ""), str(model_id or ""))
        except (KeyError, ValueError) as e:
            await self.send_error("settings.model", "Invalid model selection", str(e))
            return
        await self._send_model_data()

    async def _send_settings(self) -> None:
        await self.send(MessageType.SETTINGS_DATA, {"settings": self._settings.get_settings()})

    async def _send_model_data(self) -> None:
        await self.send(
            MessageType.MODEL_DATA,
            {
                "options": self._settings.get_model_options(),
                "selections": self._settings.get_models(),
            },
        )
