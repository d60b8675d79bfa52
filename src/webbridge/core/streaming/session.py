"""Streaming session state machine.

Paces a token-by-token response for display::

    IDLE --start--> BUFFERING --buffer timer--> ACTIVE --end/cancel--> SETTLED
                        |                                                |
                        +---------------------end/cancel-----------------+
    any --reset--> IDLE,  any --start--> BUFFERING (replaces the session)

- BUFFERING: tokens accumulate, ``display_content`` stays untouched until the
  quiet-buffer timer fires.
- ACTIVE: every token re-arms a trailing debounce timer; when it fires the
  whole buffer is copied to ``display_content``.
- SETTLED: no timers, no further mutation. Completion force-flushes the
  buffer; cancellation keeps the last paced value.

Every state change goes through :meth:`StreamingSession._transition`, which
cancels all pending timers first. A timer can therefore never fire into a
session that has moved on.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Protocol

logger = logging.getLogger(__name__)

DEFAULT_BUFFER_SECONDS = 5.0
DEFAULT_DEBOUNCE_SECONDS = 0.1


class StreamState(str, Enum):
    IDLE = "idle"
    BUFFERING = "buffering"
    ACTIVE = "active"
    SETTLED = "settled"


class TimerScheduler(Protocol):
    """The subset of the asyncio event loop API used for pacing."""

    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> Any: ...


@dataclass(frozen=True)
class StreamingPolicy:
    buffer_seconds: float = DEFAULT_BUFFER_SECONDS
    debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "StreamingPolicy":
        """Build from ``bridge.streaming.{buffer_ms,debounce_ms}``."""
        streaming = ((config or {}).get("bridge") or {}).get("streaming") or {}
        buffer_ms = streaming.get("buffer_ms", DEFAULT_BUFFER_SECONDS * 1000)
        debounce_ms = streaming.get("debounce_ms", DEFAULT_DEBOUNCE_SECONDS * 1000)
        return cls(
            buffer_seconds=max(0.0, float(buffer_ms) / 1000.0),
            debounce_seconds=max(0.0, float(debounce_ms) / 1000.0),
        )


@dataclass(frozen=True)
class StreamingSnapshot:
    """Consumer-facing view of a session at one point in time."""

    request_id: Optional[str]
    state: StreamState
    display_content: str
    buffer: str
    is_buffering: bool
    is_streaming: bool
    token_count: int
    started_at: Optional[datetime]
    cancelled: bool


# (event, snapshot); event is one of started/active/display/settled/cancelled/reset
SessionListener = Callable[[str, StreamingSnapshot], Any]


class StreamingSession:
    """One UI slot's streaming state.

    Args:
        policy: Quiet-buffer and debounce durations.
        scheduler: Timer source; defaults to the running asyncio loop.
        name: Label used in logs.
    """

    def __init__(
        self,
        policy: Optional[StreamingPolicy] = None,
        *,
        scheduler: Optional[TimerScheduler] = None,
        name: str = "stream",
    ):
        self.policy = policy or StreamingPolicy()
        self.name = name
        self._scheduler = scheduler
        self._state = StreamState.IDLE
        self._chunks: List[str] = []
        self._display = ""
        self._token_count = 0
        self._request_id: Optional[str] = None
        self._started_at: Optional[datetime] = None
        self._cancelled = False
        self._buffer_timer: Any = None
        self._debounce_timer: Any = None
        self._listeners: List[SessionListener] = []

    # ------------------------------------------------------------------
    # State accessors
    # ------------------------------------------------------------------

    @property
    def state(self) -> StreamState:
        return self._state

    @property
    def request_id(self) -> Optional[str]:
        return self._request_id

    @property
    def buffer(self) -> str:
        if len(self._chunks) > 1:
            self._chunks = ["".join(self._chunks)]
        return self._chunks[0] if self._chunks else ""

    @property
    def display_content(self) -> str:
        return self._display

    @property
    def is_buffering(self) -> bool:
        return self._state is StreamState.BUFFERING

    @property
    def is_streaming(self) -> bool:
        return self._state in (StreamState.BUFFERING, StreamState.ACTIVE)

    @property
    def token_count(self) -> int:
        return self._token_count

    @property
    def started_at(self) -> Optional[datetime]:
        return self._started_at

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def has_pending_timers(self) -> bool:
        return self._buffer_timer is not None or self._debounce_timer is not None

    def snapshot(self) -> StreamingSnapshot:
        return StreamingSnapshot(
            request_id=self._request_id,
            state=self._state,
            display_content=self._display,
            buffer=self.buffer,
            is_buffering=self.is_buffering,
            is_streaming=self.is_streaming,
            token_count=self._token_count,
            started_at=self._started_at,
            cancelled=self._cancelled,
        )

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def add_listener(self, listener: SessionListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_listener(self, listener: SessionListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _emit(self, event: str) -> None:
        if not self._listeners:
            return
        snap = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(event, snap)
            except Exception as e:
                logger.error("[%s] error in session listener: %s", self.name, e)

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    def start_streaming(self, request_id: Optional[str] = None) -> None:
        """Begin a new session, replacing whatever this slot held before."""
        if self._state is not StreamState.IDLE:
            logger.debug(
                "[%s] replacing %s session %s with %s",
                self.name, self._state.value, self._request_id, request_id,
            )
        self._chunks = []
        self._display = ""
        self._token_count = 0
        self._cancelled = False
        self._request_id = request_id
        self._started_at = datetime.now(timezone.utc)
        self._transition(StreamState.BUFFERING)
        self._emit("started")

    def append_token(self, token: str) -> bool:
        """Append one fragment. Returns False when no session is streaming."""
        if not self.is_streaming:
            logger.debug("[%s] dropping token in state %s", self.name, self._state.value)
            return False
        self._chunks.append(token)
        self._token_count += 1
        if self._state is StreamState.ACTIVE:
            self._arm_debounce()
        return True

    def end_streaming(self, final_content: Optional[str] = None) -> bool:
        """Finish the session and show the full buffer immediately.

        *final_content* (the producer's own accumulation) replaces the buffer
        when it extends it. Calling this again on a settled session is a no-op
        that leaves ``display_content == buffer``.
        """
        if self._state is StreamState.IDLE:
            return False
        if self._state is StreamState.SETTLED:
            return False

        if final_content is not None and final_content != self.buffer:
            if final_content.startswith(self.buffer):
                self._chunks = [final_content]
            else:
                logger.warning(
                    "[%s] final content for %s diverges from streamed text; keeping streamed text",
                    self.name, self._request_id,
                )
        self._transition(StreamState.SETTLED)
        self._set_display(self.buffer)
        self._emit("settled")
        logger.debug("[%s] settled %s after %d token(s)", self.name, self._request_id, self._token_count)
        return True

    def cancel_streaming(self) -> bool:
        """Abort the session, keeping ``display_content`` at its last paced value.

        Idempotent; a no-op when idle or already settled.
        """
        if not self.is_streaming:
            return False
        self._cancelled = True
        self._transition(StreamState.SETTLED)
        self._emit("cancelled")
        logger.debug("[%s] cancelled %s", self.name, self._request_id)
        return True

    def reset(self) -> None:
        was_idle = self._state is StreamState.IDLE
        self._transition(StreamState.IDLE)
        self._chunks = []
        self._display = ""
        self._token_count = 0
        self._cancelled = False
        self._request_id = None
        self._started_at = None
        if not was_idle:
            self._emit("reset")

    def close(self) -> None:
        """Teardown: cancel timers, clear state, drop listeners."""
        self.reset()
        self._listeners.clear()

    # ------------------------------------------------------------------
    # Transitions and timers
    # ------------------------------------------------------------------

    def _clock(self) -> TimerScheduler:
        if self._scheduler is not None:
            return self._scheduler
        return asyncio.get_running_loop()

    def _transition(self, target: StreamState) -> None:
        self._cancel_timers()
        previous = self._state
        self._state = target
        if target is StreamState.BUFFERING:
            self._buffer_timer = self._clock().call_later(
                self.policy.buffer_seconds, self._on_buffer_elapsed
            )
        elif target is StreamState.ACTIVE and self.buffer != self._display:
            self._arm_debounce()
        if previous is not target:
            logger.debug("[%s] %s -> %s", self.name, previous.value, target.value)

    def _cancel_timers(self) -> None:
        if self._buffer_timer is not None:
            self._buffer_timer.cancel()
            self._buffer_timer = None
        if self._debounce_timer is not None:
            self._debounce_timer.cancel()
            self._debounce_timer = None

    def _arm_debounce(self) -> None:
        if self._debounce_timer is not None:
            self._debounce_timer.cancel()
        self._debounce_timer = self._clock().call_later(
            self.policy.debounce_seconds, self._on_debounce_elapsed
        )

    def _on_buffer_elapsed(self) -> None:
        self._buffer_timer = None
        self._transition(StreamState.ACTIVE)
        self._emit("active")

    def _on_debounce_elapsed(self) -> None:
        self._debounce_timer = None
        self._set_display(self.buffer)

    def _set_display(self, content: str) -> None:
        if content == self._display:
            return
        self._display = content
        self._emit("display")
