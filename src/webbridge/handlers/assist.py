"""
AI-assisted domain handlers: analysis, dictionary and context generation.

Each request is streamed back to the UI through the shared StreamProducer;
the handler returns as soon as the stream is scheduled so that dispatch of
other envelopes is never held up by a slow upstream model.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional

from ..core.messages import (
    CancelRequestPayload,
    MessageEnvelope,
    MessageType,
    StreamingDomain,
    new_request_id,
)
from ..core.routing import MessageRouter
from ..core.streaming import PostMessage, StreamOutcome, StreamProducer
from ..infra.generator import TokenGenerator
from ..infra.settings import SettingsStore
from .base import DomainHandler, payload_dict

logger = logging.getLogger(__name__)

DIALOGUE_PROMPT = (
    "You are a fiction editor. Review the dialogue below for voice, subtext, "
    "attribution and pacing. Give concrete, actionable suggestions."
)
PROSE_PROMPT = (
    "You are a fiction editor. Review the prose below for clarity, rhythm, "
    "imagery and point of view. Give concrete, actionable suggestions."
)
DICTIONARY_PROMPT = (
    "You are a writer's dictionary. For the given word give definitions, "
    "part of speech, synonyms, antonyms and example sentences. When a context "
    "passage is supplied, explain the sense used there."
)
CONTEXT_PROMPT = (
    "Summarize the characters, setting, and open plot threads of the passage "
    "below as a compact briefing for an editor."
)


class StreamingRequestHandler(DomainHandler):
    """Shared request/cancel plumbing for one streaming domain."""

    domain: StreamingDomain
    model_scope: str = "assistant"

    def __init__(
        self,
        post: PostMessage,
        producer: StreamProducer,
        generator: TokenGenerator,
        settings: SettingsStore,
    ):
        super().__init__(post)
        self._producer = producer
        self._generator = generator
        self._settings = settings

    def _model(self) -> str:
        return self._settings.get_models().get(self.model_scope, "")

    async def start_stream(
        self,
        envelope: MessageEnvelope,
        messages: List[Dict[str, str]],
        *,
        result_type: MessageType,
        tool_name: str,
    ) -> str:
        request_id = envelope.correlation_id or new_request_id()
        if self._producer.is_active(request_id):
            await self.send_error(
                self.domain.value, "Request already in progress", request_id, request_id=request_id
            )
            return request_id

        async def on_complete(outcome: StreamOutcome) -> None:
            await self.send(
                result_type,
                {"result": outcome.content, "toolName": tool_name, "truncated": outcome.truncated},
                request_id=outcome.request_id,
            )

        tokens = self._generator.stream(messages, model=self._model())
        self._producer.start(self.domain, request_id, tokens, on_complete=on_complete)
        logger.info("Started %s stream %s (%s)", self.domain.value, request_id, tool_name)
        return request_id

    async def handle_cancel(self, envelope: MessageEnvelope) -> None:
        payload = CancelRequestPayload.from_dict(payload_dict(envelope))
        if not self._producer.cancel(payload.request_id):
            logger.debug("Nothing to cancel for %s request %s", self.domain.value, payload.request_id)


class AnalysisHandler(StreamingRequestHandler):
    message_types = frozenset({
        MessageType.ANALYZE_DIALOGUE,
        MessageType.ANALYZE_PROSE,
        MessageType.CANCEL_ANALYSIS_REQUEST,
    })
    source = "host.analysis"
    domain = StreamingDomain.ANALYSIS

    def register_routes(self, router: MessageRouter) -> None:
        router.register(MessageType.ANALYZE_DIALOGUE, self.handle_analyze_dialogue)
        router.register(MessageType.ANALYZE_PROSE, self.handle_analyze_prose)
        router.register(MessageType.CANCEL_ANALYSIS_REQUEST, self.handle_cancel)

    async def handle_analyze_dialogue(self, envelope: MessageEnvelope) -> None:
        await self._analyze(envelope, DIALOGUE_PROMPT, "analysis.dialogue", "dialogue")

    async def handle_analyze_prose(self, envelope: MessageEnvelope) -> None:
        await self._analyze(envelope, PROSE_PROMPT, "analysis.prose", "prose")

    async def _analyze(self, envelope: MessageEnvelope, prompt: str, error_source: str, subject: str) -> None:
        text = payload_dict(envelope).get("text")
        if not isinstance(text, str) or not text.strip():
            await self.send_error(error_source, "Analysis requires some text", request_id=envelope.correlation_id)
            return
        await self.send_status(f"Analyzing {subject} with AI...")
        await self.start_stream(
            envelope,
            [{"role": "system", "content": prompt}, {"role": "user", "content": text}],
            result_type=MessageType.ANALYSIS_RESULT,
            tool_name=f"{subject}_analysis",
        )


class DictionaryHandler(StreamingRequestHandler):
    message_types = frozenset({
        MessageType.LOOKUP_DICTIONARY,
        MessageType.CANCEL_DICTIONARY_REQUEST,
    })
    source = "host.dictionary"
    domain = StreamingDomain.DICTIONARY
    model_scope = "dictionary"

    def register_routes(self, router: MessageRouter) -> None:
        router.register(MessageType.LOOKUP_DICTIONARY, self.handle_lookup)
        router.register(MessageType.CANCEL_DICTIONARY_REQUEST, self.handle_cancel)

    async def handle_lookup(self, envelope: MessageEnvelope) -> None:
        payload = payload_dict(envelope)
        word = payload.get("word")
        if not isinstance(word, str) or not word.strip():
            await self.send_error(
                "dictionary", "Dictionary lookup requires a word to search",
                request_id=envelope.correlation_id,
            )
            return
        context_text: Optional[str] = payload.get("contextText")
        user = f"Word: {word.strip()}"
        if isinstance(context_text, str) and context_text.strip():
            user += f"\n\nContext:\n{context_text.strip()}"
        await self.send_status(f'Generating dictionary entry for "{word.strip()}"...')
        await self.start_stream(
            envelope,
            [{"role": "system", "content": DICTIONARY_PROMPT}, {"role": "user", "content": user}],
            result_type=MessageType.DICTIONARY_RESULT,
            tool_name="dictionary_lookup",
        )


class ContextHandler(StreamingRequestHandler):
    message_types = frozenset({
        MessageType.GENERATE_CONTEXT,
        MessageType.CANCEL_CONTEXT_REQUEST,
    })
    source = "host.context"
    domain = StreamingDomain.CONTEXT
    model_scope = "context"

    def register_routes(self, router: MessageRouter) -> None:
        router.register(MessageType.GENERATE_CONTEXT, self.handle_generate)
        router.register(MessageType.CANCEL_CONTEXT_REQUEST, self.handle_cancel)

    async def handle_generate(self, envelope: MessageEnvelope) -> None:
        text = payload_dict(envelope).get("text")
        if not isinstance(text, str) or not text.strip():
            await self.send_error("context", "Context generation requires some text", request_id=envelope.correlation_id)
            return
        await self.start_stream(
            envelope,
            [{"role": "system", "content": CONTEXT_PROMPT}, {"role": "user", "content": text}],
            result_type=MessageType.CONTEXT_RESULT,
            tool_name="context_briefing",
        )
