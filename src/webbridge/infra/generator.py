"""Token generator over an OpenAI-compatible streaming chat API.

Reads server-sent events from ``POST {api_base}/chat/completions`` with
``stream: true`` and yields the ``choices[0].delta.content`` fragments.
"""

from __future__ import annotations

import json
import logging
import os
from typing import Any, AsyncIterator, Dict, List, Optional, Protocol

import httpx

from ..core.errors import GeneratorError

logger = logging.getLogger(__name__)

_DONE = object()


class TokenGenerator(Protocol):
    def stream(self, messages: List[Dict[str, str]], *, model: str) -> AsyncIterator[str]: ...


def parse_sse_line(line: str) -> Any:
    """Return the text fragment of one SSE line, ``_DONE`` at end of stream, else None."""
    line = line.strip()
    if not line.startswith("data:"):
        return None
    data = line[len("data:"):].strip()
    if data == "[DONE]":
        return _DONE
    try:
        event = json.loads(data)
    except ValueError:
        logger.debug("Skipping undecodable SSE payload: %.80s", data)
        return None
    if isinstance(event, dict) and event.get("error"):
        raise GeneratorError(f"Upstream error: {event['error']}")
    choices = event.get("choices") if isinstance(event, dict) else None
    if not choices:
        return None
    delta = (choices[0] or {}).get("delta") or {}
    content = delta.get("content")
    return content if isinstance(content, str) else None


class OpenAICompatibleGenerator:
    """Streaming chat-completions client.

    Args:
        api_base: Base URL, e.g. ``https://openrouter.ai/api/v1``.
        api_key: Bearer token.
        timeout: Request timeout in seconds.
        temperature: Sampling temperature sent with every request.
        client: Shared ``httpx.AsyncClient``; a private one is created per
            stream when omitted.
    """

    def __init__(
        self,
        api_base: str,
        api_key: str,
        *,
        timeout: float = 60.0,
        temperature: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.api_base = api_base.rstrip("/")
        self._api_key = api_key
        self._timeout = timeout
        self._temperature = temperature
        self._client = client

    @classmethod
    def from_config(cls, config: Dict[str, Any], client: Optional[httpx.AsyncClient] = None) -> "OpenAICompatibleGenerator":
        bridge = (config or {}).get("bridge") or {}
        gen = bridge.get("generator") or {}
        settings = bridge.get("settings") or {}
        api_key = str(gen.get("api_key") or os.environ.get(str(gen.get("api_key_env") or ""), "") or "")
        return cls(
            api_base=str(gen.get("api_base") or "https://openrouter.ai/api/v1"),
            api_key=api_key,
            timeout=float(gen.get("timeout_seconds") or 60),
            temperature=settings.get("temperature"),
            client=client,
        )

    @property
    def configured(self) -> bool:
        return bool(self._api_key)

    async def stream(self, messages: List[Dict[str, str]], *, model: str) -> AsyncIterator[str]:
        if not self._api_key:
            raise GeneratorError("API key is not configured")

        body: Dict[str, Any] = {"model": model, "messages": messages, "stream": True}
        if self._temperature is not None:
            body["temperature"] = self._temperature
        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Accept": "text/event-stream",
        }

        client = self._client or httpx.AsyncClient(timeout=httpx.Timeout(self._timeout, connect=10.0))
        try:
            async with client.stream(
                "POST", f"{self.api_base}/chat/completions", json=body, headers=headers
            ) as response:
                if response.status_code >= 400:
                    detail = (await response.aread()).decode("utf-8", errors="replace")
                    raise GeneratorError(f"HTTP {response.status_code}: {detail[:500]}")
                async for line in response.aiter_lines():
                    fragment = parse_sse_line(line)
                    if fragment is _DONE:
                        break
                    if fragment:
                        yield fragment
        except httpx.HTTPError as e:
            raise GeneratorError(f"{type(e).__name__}: {e}") from e
        finally:
            if self._client is None:
                await client.aclose()
