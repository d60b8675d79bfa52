"""Host composition root.

Builds one router per connection, hands it to every domain handler group,
verifies the route table and pumps envelopes from the transport. There is no
module-level router; each connection owns its own.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .channel import EnvelopePump, Transport
from .core.messages import ErrorPayload, MessageEnvelope, MessageType
from .core.routing import MessageRouter, include_all, verify_groups
from .core.streaming import PostMessage, StreamProducer
from .handlers import (
    AnalysisHandler,
    ConfigurationHandler,
    ContextHandler,
    DictionaryHandler,
    DomainHandler,
    UIHandler,
)
from .infra.generator import OpenAICompatibleGenerator, TokenGenerator
from .infra.settings import SettingsStore

logger = logging.getLogger(__name__)


def build_host_groups(
    post: PostMessage,
    producer: StreamProducer,
    generator: TokenGenerator,
    settings: SettingsStore,
) -> List[DomainHandler]:
    return [
        ConfigurationHandler(post, settings),
        AnalysisHandler(post, producer, generator, settings),
        DictionaryHandler(post, producer, generator, settings),
        ContextHandler(post, producer, generator, settings),
        UIHandler(post),
    ]


def build_host_router(
    post: PostMessage,
    producer: StreamProducer,
    generator: TokenGenerator,
    settings: SettingsStore,
    **router_kwargs: Any,
) -> Tuple[MessageRouter, List[DomainHandler]]:
    """Create the host router with every group included and verified."""
    router = MessageRouter("host", **router_kwargs)
    groups = build_host_groups(post, producer, generator, settings)
    include_all(router, groups)
    verify_groups(router, groups)
    return router, groups


def describe_routes(settings: Optional[SettingsStore] = None) -> Dict[str, List[str]]:
    """Route table by group name, for diagnostics."""

    async def _discard(_envelope: MessageEnvelope) -> None:
        return None

    settings = settings or SettingsStore({}, persist=False)
    generator = OpenAICompatibleGenerator(api_base="http://localhost", api_key="")
    _router, groups = build_host_router(_discard, StreamProducer(_discard), generator, settings)
    return {
        type(group).__name__: sorted(t.value for t in group.message_types)
        for group in groups
    }


class BridgeHost:
    """Serves one UI connection.

    Args:
        transport: Channel to the UI.
        settings: Settings store used by the configuration handler and for
            model selection.
        generator: Upstream token source for the streaming handlers.
        max_tokens: Truncate streams after this many fragments (``None``: no limit).
    """

    def __init__(
        self,
        transport: Transport,
        *,
        settings: SettingsStore,
        generator: TokenGenerator,
        max_tokens: Optional[int] = None,
    ):
        self.transport = transport
        self.settings = settings
        self.producer = StreamProducer(self._post, source="host.stream", max_tokens=max_tokens)
        self.router, self.groups = build_host_router(
            self._post,
            self.producer,
            generator,
            settings,
            on_unroutable=self._on_unroutable,
            on_handler_error=self._on_handler_error,
        )
        self._error_sources: Dict[MessageType, str] = {
            message_type: group.source.split(".", 1)[-1]
            for group in self.groups
            for message_type in group.message_types
        }
        self.pump = EnvelopePump(transport, self.router)

    @classmethod
    def from_config(
        cls,
        transport: Transport,
        config: Dict[str, Any],
        *,
        generator: Optional[TokenGenerator] = None,
        settings: Optional[SettingsStore] = None,
        config_path: Optional[str] = None,
    ) -> "BridgeHost":
        max_tokens = int(((config.get("bridge") or {}).get("generator") or {}).get("max_tokens") or 0)
        return cls(
            transport,
            settings=settings or SettingsStore(config, config_path=config_path),
            generator=generator or OpenAICompatibleGenerator.from_config(config),
            max_tokens=max_tokens or None,
        )

    @property
    def handler_groups(self) -> Sequence[DomainHandler]:
        return tuple(self.groups)

    async def serve(self) -> None:
        """Pump envelopes until the transport closes, then release everything."""
        logger.info("Bridge host serving %d route(s)", self.router.handler_count)
        try:
            await self.pump.run()
        finally:
            await self.pump.stop()
            await self.producer.aclose()
            logger.info(
                "Bridge host stopped: dispatched=%d unroutable=%d failed=%d",
                self.router.stats.dispatched,
                self.router.stats.unroutable,
                self.router.stats.failed,
            )

    async def _post(self, envelope: MessageEnvelope) -> None:
        await self.transport.send(envelope)

    async def _on_unroutable(self, envelope: MessageEnvelope) -> None:
        await self._post(MessageEnvelope(
            type=MessageType.ERROR,
            payload=ErrorPayload(
                source="unknown",
                message="Unknown message type",
                details=f"Received unrecognized message: {envelope.type_tag}",
            ).to_dict(),
            request_id=envelope.correlation_id,
            source="host",
        ))

    async def _on_handler_error(self, envelope: MessageEnvelope, exc: BaseException) -> None:
        error_source = self._error_sources.get(envelope.type, "unknown") if envelope.is_known else "unknown"
        await self._post(MessageEnvelope(
            type=MessageType.ERROR,
            payload=ErrorPayload(
                source=error_source,
                message="Error processing request",
                details=str(exc) or type(exc).__name__,
            ).to_dict(),
            request_id=envelope.correlation_id,
            source="host",
        ))
