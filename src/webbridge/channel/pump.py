"""Envelope pump: transport frames -> router.

Envelopes that carry a request id are funnelled through a per-request FIFO
worker, so successive chunks of one stream are dispatched strictly in
arrival order even when a handler awaits. Envelopes without a request id are
dispatched as independent tasks; a slow handler never blocks the channel.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Optional, Set

from ..core.errors import EnvelopeError, TransportClosed
from ..core.messages import MessageEnvelope
from ..core.routing import MessageRouter
from .protocol import Transport

logger = logging.getLogger(__name__)


class EnvelopePump:
    def __init__(self, transport: Transport, router: MessageRouter, *, name: Optional[str] = None):
        self._transport = transport
        self._router = router
        self.name = name or router.name
        self._tasks: Set[asyncio.Task] = set()
        self._request_queues: Dict[str, asyncio.Queue] = {}
        self._request_workers: Dict[str, asyncio.Task] = {}
        self.received = 0
        self.malformed = 0

    async def run(self) -> None:
        """Receive until the transport closes."""
        logger.info("[%s] pump started", self.name)
        while True:
            try:
                frame = await self._transport.receive()
            except TransportClosed as e:
                logger.info("[%s] pump stopped: %s", self.name, e)
                return
            self.feed(frame)

    def feed(self, frame: Any) -> None:
        """Decode one frame and schedule its dispatch."""
        self.received += 1
        try:
            envelope = MessageEnvelope.from_dict(frame)
        except EnvelopeError as e:
            self.malformed += 1
            logger.warning("[%s] dropping malformed frame: %s", self.name, e)
            return

        key = envelope.correlation_id
        if key is None:
            task = asyncio.create_task(self._router.dispatch(envelope))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
            return

        queue = self._request_queues.get(key)
        if queue is None:
            queue = asyncio.Queue()
            self._request_queues[key] = queue
        queue.put_nowait(envelope)

        worker = self._request_workers.get(key)
        if worker is None or worker.done():
            self._request_workers[key] = asyncio.create_task(self._request_worker(key, queue))

    async def _request_worker(self, key: str, queue: asyncio.Queue) -> None:
        """Dispatch one request's envelopes sequentially, then exit."""
        try:
            while not queue.empty():
                envelope = queue.get_nowait()
                await self._router.dispatch(envelope)
        finally:
            # No await between the emptiness check and this cleanup, so a
            # frame fed afterwards always gets a fresh worker.
            if self._request_workers.get(key) is asyncio.current_task():
                del self._request_workers[key]
                if queue.empty() and self._request_queues.get(key) is queue:
                    del self._request_queues[key]

    @property
    def pending(self) -> int:
        return len(self._tasks) + len(self._request_workers)

    async def wait_idle(self) -> None:
        """Wait until every scheduled dispatch has finished."""
        while True:
            pending = [t for t in (*self._tasks, *self._request_workers.values()) if not t.done()]
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    async def stop(self) -> None:
        pending = [t for t in (*self._tasks, *self._request_workers.values()) if not t.done()]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        self._tasks.clear()
        self._request_workers.clear()
        self._request_queues.clear()
