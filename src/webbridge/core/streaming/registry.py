"""UI-side streaming slots fed by stream envelopes."""

from __future__ import annotations

import logging
from collections import deque
from typing import Deque, Dict, FrozenSet, Optional

from ..messages import (
    MessageEnvelope,
    MessageType,
    STREAMING_TYPES,
    StreamChunkPayload,
    StreamCompletePayload,
    StreamingDomain,
    StreamStartedPayload,
)
from ..routing import MessageRouter
from .session import SessionListener, StreamingPolicy, StreamingSession, StreamState, TimerScheduler

logger = logging.getLogger(__name__)

# Superseded request ids remembered per slot.
RETIRED_HISTORY = 32


class StreamingSessions:
    """One :class:`StreamingSession` per streaming domain.

    Registers the stream message types on a router. Envelopes are matched to
    the slot's current request id; fragments of a superseded request are
    dropped, and a chunk only auto-starts a slot for an id it has never seen.
    """

    message_types: FrozenSet[MessageType] = STREAMING_TYPES

    def __init__(
        self,
        policy: Optional[StreamingPolicy] = None,
        *,
        scheduler: Optional[TimerScheduler] = None,
    ):
        self.policy = policy or StreamingPolicy()
        self._sessions: Dict[StreamingDomain, StreamingSession] = {
            domain: StreamingSession(self.policy, scheduler=scheduler, name=f"stream.{domain.value}")
            for domain in StreamingDomain
        }
        self._retired: Dict[StreamingDomain, Deque[str]] = {
            domain: deque(maxlen=RETIRED_HISTORY) for domain in StreamingDomain
        }

    def register_routes(self, router: MessageRouter) -> None:
        router.register(MessageType.STREAM_STARTED, self.handle_started)
        router.register(MessageType.STREAM_CHUNK, self.handle_chunk)
        router.register(MessageType.STREAM_COMPLETE, self.handle_complete)

    def session(self, domain: StreamingDomain) -> StreamingSession:
        return self._sessions[StreamingDomain(domain)]

    def add_listener(self, domain: StreamingDomain, listener: SessionListener) -> None:
        self.session(domain).add_listener(listener)

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    def handle_started(self, envelope: MessageEnvelope) -> None:
        payload = StreamStartedPayload.from_dict(envelope.payload or {})
        self._begin(payload.domain, payload.request_id)

    def handle_chunk(self, envelope: MessageEnvelope) -> None:
        payload = StreamChunkPayload.from_dict(envelope.payload or {})
        session = self.session(payload.domain)

        if session.request_id != payload.request_id:
            if session.is_streaming:
                logger.debug(
                    "Dropping stale chunk for %s (slot %s is streaming %s)",
                    payload.request_id, payload.domain.value, session.request_id,
                )
                return
            if payload.request_id in self._retired[payload.domain]:
                logger.debug("Dropping late chunk for superseded request %s", payload.request_id)
                return
            # First chunk of a stream whose start signal we never saw.
            self._begin(payload.domain, payload.request_id)
        elif session.state is StreamState.SETTLED:
            logger.debug("Dropping late chunk for settled request %s", payload.request_id)
            return

        session.append_token(payload.token)

    def handle_complete(self, envelope: MessageEnvelope) -> None:
        payload = StreamCompletePayload.from_dict(envelope.payload or {})
        session = self.session(payload.domain)
        if session.request_id != payload.request_id:
            logger.debug(
                "Ignoring completion for %s; slot %s holds %s",
                payload.request_id, payload.domain.value, session.request_id,
            )
            return
        if payload.cancelled:
            session.cancel_streaming()
        else:
            session.end_streaming(payload.content)

    def _begin(self, domain: StreamingDomain, request_id: str) -> None:
        session = self.session(domain)
        previous = session.request_id
        if previous is not None and previous != request_id:
            self._retired[domain].append(previous)
        session.start_streaming(request_id)

    # ------------------------------------------------------------------
    # Local actions
    # ------------------------------------------------------------------

    def cancel(self, domain: StreamingDomain) -> Optional[str]:
        """User abort of a slot. Returns the cancelled request id, if any."""
        session = self.session(domain)
        request_id = session.request_id
        if session.cancel_streaming():
            return request_id
        return None

    def close(self) -> None:
        for session in self._sessions.values():
            session.close()
