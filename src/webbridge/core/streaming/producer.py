"""Host-side stream producer.

Turns an async iterator of text fragments into the envelope sequence the UI
expects::

    STREAM_STARTED -> STREAM_CHUNK* -> STREAM_COMPLETE

``STREAM_COMPLETE`` is always the last envelope of a request, including when
the stream is cancelled (``cancelled=True``) or the generator fails (an
``ERROR`` envelope precedes it).
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import AsyncIterator, Awaitable, Callable, Dict, Optional, Set

from ..messages import (
    ErrorPayload,
    MessageEnvelope,
    MessageType,
    StreamChunkPayload,
    StreamCompletePayload,
    StreamingDomain,
    StreamStartedPayload,
)

logger = logging.getLogger(__name__)

PostMessage = Callable[[MessageEnvelope], Awaitable[None]]


@dataclass
class StreamOutcome:
    request_id: str
    domain: StreamingDomain
    content: str
    token_count: int
    cancelled: bool = False
    truncated: bool = False
    error: Optional[str] = None


CompletionCallback = Callable[[StreamOutcome], Awaitable[None]]


class StreamProducer:
    """Runs token streams as tasks, one per request id.

    Args:
        post: Coroutine that sends an envelope to the UI.
        source: ``source`` field stamped on every envelope.
        max_tokens: Stop after this many fragments and mark the stream truncated.
    """

    def __init__(self, post: PostMessage, *, source: str = "host.stream", max_tokens: Optional[int] = None):
        self._post = post
        self._source = source
        self._max_tokens = max_tokens
        self._inflight: Dict[str, asyncio.Task] = {}
        self._cancelling: Set[str] = set()

    @property
    def active_requests(self) -> list[str]:
        return [rid for rid, task in self._inflight.items() if not task.done()]

    def is_active(self, request_id: str) -> bool:
        task = self._inflight.get(request_id)
        return task is not None and not task.done()

    def start(
        self,
        domain: StreamingDomain,
        request_id: str,
        tokens: AsyncIterator[str],
        *,
        on_complete: Optional[CompletionCallback] = None,
    ) -> asyncio.Task:
        """Schedule a stream and return its task without waiting for it."""
        if self.is_active(request_id):
            raise ValueError(f"Stream already running for request {request_id}")
        task = asyncio.create_task(self.run(domain, request_id, tokens, on_complete=on_complete))
        self._inflight[request_id] = task

        def _done(t: asyncio.Task) -> None:
            if self._inflight.get(request_id) is t:
                del self._inflight[request_id]
            self._cancelling.discard(request_id)
            if not t.cancelled() and t.exception() is not None:
                logger.error("Stream %s failed: %s", request_id, t.exception())

        task.add_done_callback(_done)
        return task

    def cancel(self, request_id: str) -> bool:
        """Cancel an in-flight stream. Unknown, finished or already-cancelling ids return False."""
        task = self._inflight.get(request_id)
        if task is None or task.done() or request_id in self._cancelling:
            return False
        self._cancelling.add(request_id)
        task.cancel()
        logger.info("Cancel requested for stream %s", request_id)
        return True

    async def aclose(self) -> None:
        tasks = [t for t in self._inflight.values() if not t.done()]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._inflight.clear()
        self._cancelling.clear()

    async def run(
        self,
        domain: StreamingDomain,
        request_id: str,
        tokens: AsyncIterator[str],
        *,
        on_complete: Optional[CompletionCallback] = None,
    ) -> StreamOutcome:
        """Drive *tokens* to completion, posting every envelope of the stream."""
        parts: list[str] = []
        cancelled = False
        truncated = False
        error: Optional[str] = None

        try:
            await self._send(
                MessageType.STREAM_STARTED, request_id,
                StreamStartedPayload(request_id=request_id, domain=domain).to_dict(),
            )
            async for token in tokens:
                if not token:
                    continue
                parts.append(token)
                await self._send(
                    MessageType.STREAM_CHUNK, request_id,
                    StreamChunkPayload(request_id=request_id, domain=domain, token=token).to_dict(),
                )
                if self._max_tokens and len(parts) >= self._max_tokens:
                    truncated = True
                    break
        except asyncio.CancelledError:
            cancelled = True
        except Exception as e:
            error = str(e) or type(e).__name__
            logger.error("Token stream %s (%s) failed: %s", request_id, domain.value, error)
        finally:
            aclose = getattr(tokens, "aclose", None)
            if aclose is not None:
                try:
                    await aclose()
                except Exception as e:
                    logger.debug("Closing token stream %s failed: %s", request_id, e)

        if error is not None:
            await self._send(
                MessageType.ERROR, request_id,
                ErrorPayload(source=domain.value, message="Streaming request failed", details=error).to_dict(),
            )

        outcome = StreamOutcome(
            request_id=request_id,
            domain=domain,
            content="".join(parts),
            token_count=len(parts),
            cancelled=cancelled,
            truncated=truncated,
            error=error,
        )
        await self._send(
            MessageType.STREAM_COMPLETE, request_id,
            StreamCompletePayload(
                request_id=request_id,
                domain=domain,
                content=outcome.content,
                cancelled=cancelled,
                truncated=truncated,
            ).to_dict(),
        )
        logger.info(
            "Stream %s (%s) finished: tokens=%d cancelled=%s truncated=%s",
            request_id, domain.value, outcome.token_count, cancelled, truncated,
        )

        if cancelled:
            raise asyncio.CancelledError()
        if on_complete is not None and error is None:
            await on_complete(outcome)
        return outcome

    async def _send(self, message_type: MessageType, request_id: str, payload: dict) -> None:
        await self._post(
            MessageEnvelope(type=message_type, payload=payload, request_id=request_id, source=self._source)
        )
