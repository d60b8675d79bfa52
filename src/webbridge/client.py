"""UI-side composition root.

The sandboxed surface keeps its own router: stream envelopes feed the paced
:class:`StreamingSessions`, everything else lands in :class:`UiState`. The
request helpers send typed envelopes to the host.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional

from .channel import EnvelopePump, Transport
from .core.messages import (
    CANCEL_TYPE_BY_DOMAIN,
    CancelRequestPayload,
    ErrorPayload,
    MessageEnvelope,
    MessageType,
    StreamingDomain,
    new_request_id,
)
from .core.routing import MessageRouter, include_all, verify_groups
from .core.streaming import StreamingPolicy, StreamingSessions, TimerScheduler

logger = logging.getLogger(__name__)

_RESULT_DOMAINS = {
    MessageType.ANALYSIS_RESULT: StreamingDomain.ANALYSIS,
    MessageType.DICTIONARY_RESULT: StreamingDomain.DICTIONARY,
    MessageType.CONTEXT_RESULT: StreamingDomain.CONTEXT,
}


class UiState:
    """Non-streaming host messages: results, status, errors, settings."""

    message_types = frozenset({
        MessageType.STATUS,
        MessageType.ERROR,
        MessageType.SETTINGS_DATA,
        MessageType.MODEL_DATA,
        *_RESULT_DOMAINS,
    })

    def __init__(self):
        self.status: str = ""
        self.errors: List[ErrorPayload] = []
        self.results: Dict[StreamingDomain, Dict[str, Any]] = {}
        self.settings: Dict[str, Any] = {}
        self.model_data: Dict[str, Any] = {}
        self._result_events: Dict[StreamingDomain, asyncio.Event] = {}

    def register_routes(self, router: MessageRouter) -> None:
        router.register(MessageType.STATUS, self.handle_status)
        router.register(MessageType.ERROR, self.handle_error)
        router.register(MessageType.SETTINGS_DATA, self.handle_settings)
        router.register(MessageType.MODEL_DATA, self.handle_model_data)
        for message_type in _RESULT_DOMAINS:
            router.register(message_type, self.handle_result)

    def handle_status(self, envelope: MessageEnvelope) -> None:
        payload = envelope.payload if isinstance(envelope.payload, dict) else {}
        self.status = str(payload.get("message") or "")

    def handle_error(self, envelope: MessageEnvelope) -> None:
        payload = envelope.payload if isinstance(envelope.payload, dict) else {}
        error = ErrorPayload.from_dict(payload)
        self.errors.append(error)
        self.status = ""
        logger.warning("Host reported error [%s]: %s %s", error.source, error.message, error.details or "")

    def handle_settings(self, envelope: MessageEnvelope) -> None:
        payload = envelope.payload if isinstance(envelope.payload, dict) else {}
        self.settings = dict(payload.get("settings") or {})

    def handle_model_data(self, envelope: MessageEnvelope) -> None:
        self.model_data = dict(envelope.payload or {})

    def handle_result(self, envelope: MessageEnvelope) -> None:
        domain = _RESULT_DOMAINS[envelope.type]
        self.results[domain] = dict(envelope.payload or {})
        self.status = ""
        self._event(domain).set()

    def _event(self, domain: StreamingDomain) -> asyncio.Event:
        if domain not in self._result_events:
            self._result_events[domain] = asyncio.Event()
        return self._result_events[domain]

    def clear_result(self, domain: StreamingDomain) -> None:
        self.results.pop(domain, None)
        self._event(domain).clear()

    async def wait_for_result(self, domain: StreamingDomain, timeout: float = 10.0) -> Dict[str, Any]:
        await asyncio.wait_for(self._event(domain).wait(), timeout=timeout)
        return self.results[domain]


class BridgeClient:
    """UI end of the bridge.

    Args:
        transport: Channel to the host.
        policy: Pacing for the streaming slots.
        scheduler: Timer source for the streaming slots (tests pass a manual one).
    """

    def __init__(
        self,
        transport: Transport,
        *,
        policy: Optional[StreamingPolicy] = None,
        scheduler: Optional[TimerScheduler] = None,
    ):
        self.transport = transport
        self.streams = StreamingSessions(policy, scheduler=scheduler)
        self.state = UiState()
        self.router = MessageRouter("ui")
        groups = [self.streams, self.state]
        include_all(self.router, groups)
        verify_groups(self.router, groups)
        self.pump = EnvelopePump(transport, self.router)
        self._pump_task: Optional[asyncio.Task] = None
        self._last_request: Dict[StreamingDomain, str] = {}

    async def start(self) -> None:
        if self._pump_task is None:
            self._pump_task = asyncio.create_task(self.pump.run())

    async def close(self) -> None:
        if self._pump_task is not None:
            self._pump_task.cancel()
            try:
                await self._pump_task
            except asyncio.CancelledError:
                pass
            self._pump_task = None
        await self.pump.stop()
        self.streams.close()
        await self.transport.close()

    async def send(self, message_type: MessageType, payload: Any = None, *, request_id: Optional[str] = None) -> None:
        await self.transport.send(
            MessageEnvelope(type=message_type, payload=payload, request_id=request_id, source="ui")
        )

    # ------------------------------------------------------------------
    # Streaming requests
    # ------------------------------------------------------------------

    async def _stream_request(self, domain: StreamingDomain, message_type: MessageType, payload: Dict[str, Any]) -> str:
        request_id = new_request_id()
        self._last_request[domain] = request_id
        self.state.clear_result(domain)
        await self.send(message_type, payload, request_id=request_id)
        return request_id

    async def analyze_prose(self, text: str) -> str:
        return await self._stream_request(StreamingDomain.ANALYSIS, MessageType.ANALYZE_PROSE, {"text": text})

    async def analyze_dialogue(self, text: str) -> str:
        return await self._stream_request(StreamingDomain.ANALYSIS, MessageType.ANALYZE_DIALOGUE, {"text": text})

    async def lookup_dictionary(self, word: str, context_text: Optional[str] = None) -> str:
        payload: Dict[str, Any] = {"word": word}
        if context_text:
            payload["contextText"] = context_text
        return await self._stream_request(StreamingDomain.DICTIONARY, MessageType.LOOKUP_DICTIONARY, payload)

    async def generate_context(self, text: str) -> str:
        return await self._stream_request(StreamingDomain.CONTEXT, MessageType.GENERATE_CONTEXT, {"text": text})

    async def cancel(self, domain: StreamingDomain) -> Optional[str]:
        """Abort the slot locally and ask the host to stop producing."""
        session = self.streams.session(domain)
        request_id = session.request_id if session.is_streaming else self._last_request.get(domain)
        self.streams.cancel(domain)
        if request_id is None:
            return None
        await self.send(
            CANCEL_TYPE_BY_DOMAIN[domain],
            CancelRequestPayload(request_id=request_id, domain=domain).to_dict(),
            request_id=request_id,
        )
        return request_id

    # ------------------------------------------------------------------
    # Configuration and UI
    # ------------------------------------------------------------------

    async def request_settings(self) -> None:
        await self.send(MessageType.REQUEST_SETTINGS_DATA, {})

    async def update_setting(self, key: str, value: Any) -> None:
        await self.send(MessageType.UPDATE_SETTING, {"key": key, "value": value})

    async def request_model_data(self) -> None:
        await self.send(MessageType.REQUEST_MODEL_DATA, {})

    async def set_model(self, scope: str, model_id: str) -> None:
        await self.send(MessageType.SET_MODEL_SELECTION, {"scope": scope, "modelId": model_id})

    async def tab_changed(self, tab_id: str) -> None:
        await self.send(MessageType.TAB_CHANGED, {"tabId": tab_id})
