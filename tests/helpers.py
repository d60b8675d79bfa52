"""
Fakes shared by the bridge tests.
"""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Dict, List, Optional

from webbridge.core.errors import GeneratorError
from webbridge.core.messages import MessageEnvelope, MessageType


class ManualHandle:
    def __init__(self, scheduler: "ManualScheduler", when: float, callback: Callable[..., Any], args: tuple):
        self._scheduler = scheduler
        self.when = when
        self._callback = callback
        self._args = args
        self._cancelled = False
        self.fired = False

    def cancel(self) -> None:
        self._cancelled = True

    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def live(self) -> bool:
        return not self._cancelled and not self.fired

    def fire(self) -> None:
        self.fired = True
        self._callback(*self._args)


class ManualScheduler:
    """Deterministic stand-in for the event loop's ``call_later``."""

    def __init__(self):
        self.now = 0.0
        self.handles: List[ManualHandle] = []

    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> ManualHandle:
        handle = ManualHandle(self, self.now + delay, callback, args)
        self.handles.append(handle)
        return handle

    @property
    def pending(self) -> int:
        return sum(1 for h in self.handles if h.live)

    def advance(self, seconds: float) -> None:
        """Move the clock forward, firing due timers in deadline order."""
        target = self.now + seconds
        while True:
            due = [h for h in self.handles if h.live and h.when <= target]
            if not due:
                break
            handle = min(due, key=lambda h: h.when)
            self.now = handle.when
            handle.fire()
        self.now = target


class ScriptedGenerator:
    """Token generator that replays a fixed script.

    ``hold`` parks the stream after the scripted tokens until ``release()``
    is called, which lets tests cancel a stream that is still open.
    """

    def __init__(self, tokens: Optional[List[str]] = None, *, fail_with: Optional[str] = None, hold: bool = False):
        self.tokens = list(tokens or [])
        self.fail_with = fail_with
        self.calls: List[Dict[str, Any]] = []
        self.closed = 0
        self._gate = asyncio.Event()
        if not hold:
            self._gate.set()
        self.waiting = asyncio.Event()

    def release(self) -> None:
        self._gate.set()

    async def stream(self, messages, *, model: str):
        self.calls.append({"messages": messages, "model": model})
        try:
            for token in self.tokens:
                await asyncio.sleep(0)
                yield token
            self.waiting.set()
            await self._gate.wait()
            if self.fail_with:
                raise GeneratorError(self.fail_with)
        finally:
            self.closed += 1


class RecordingPost:
    """Async ``post`` callable that records every envelope."""

    def __init__(self):
        self.sent: List[MessageEnvelope] = []

    async def __call__(self, envelope: MessageEnvelope) -> None:
        self.sent.append(envelope)

    def of_type(self, message_type: MessageType) -> List[MessageEnvelope]:
        return [e for e in self.sent if e.type == message_type]

    @property
    def types(self) -> List[MessageType]:
        return [e.type for e in self.sent]


async def drain(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """Yield to the loop until *predicate* holds."""

    async def _wait():
        while not predicate():
            await asyncio.sleep(0.001)

    await asyncio.wait_for(_wait(), timeout=timeout)


