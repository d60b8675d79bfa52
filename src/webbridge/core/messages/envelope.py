"""Message envelope: the unit that crosses the host/UI boundary.

Wire form (JSON object, both directions)::

    {"type": "stream_chunk", "payload": {...}, "requestId": "req_ab12", "source": "host.analysis", "timestamp": 1700000000000}

Only ``type`` is mandatory. Unknown type tags are preserved as plain strings so
that the router can report them as unroutable instead of the decoder failing.
"""

from __future__ import annotations

import json
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Union

from ..errors import EnvelopeError
from .types import MessageType


def new_request_id() -> str:
    return f"req_{uuid.uuid4().hex[:12]}"


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class MessageEnvelope:
    """Typed message with an opaque JSON payload."""

    type: Union[MessageType, str]
    payload: Any = None
    request_id: Optional[str] = None
    source: Optional[str] = None
    timestamp: int = field(default_factory=_now_ms)

    @property
    def is_known(self) -> bool:
        return isinstance(self.type, MessageType)

    @property
    def type_tag(self) -> str:
        return self.type.value if isinstance(self.type, MessageType) else str(self.type)

    @property
    def correlation_id(self) -> Optional[str]:
        """Request id from the envelope, falling back to ``payload["requestId"]``."""
        if self.request_id:
            return self.request_id
        if isinstance(self.payload, dict):
            value = self.payload.get("requestId")
            if isinstance(value, str) and value:
                return value
        return None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"type": self.type_tag, "payload": self.payload}
        if self.request_id is not None:
            data["requestId"] = self.request_id
        if self.source is not None:
            data["source"] = self.source
        if self.timestamp is not None:
            data["timestamp"] = self.timestamp
        return data

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False)

    @classmethod
    def from_dict(cls, data: Any) -> "MessageEnvelope":
        if not isinstance(data, dict):
            raise EnvelopeError(f"Envelope must be a JSON object, got {type(data).__name__}")
        raw_type = data.get("type")
        if not isinstance(raw_type, str) or not raw_type:
            raise EnvelopeError("Envelope is missing a string 'type'")

        request_id = data.get("requestId")
        if request_id is not None and not isinstance(request_id, str):
            request_id = str(request_id)
        source = data.get("source")
        timestamp = data.get("timestamp")
        if not isinstance(timestamp, int) or isinstance(timestamp, bool):
            timestamp = None

        return cls(
            type=MessageType.lookup(raw_type) or raw_type,
            payload=data.get("payload"),
            request_id=request_id,
            source=source if isinstance(source, str) else None,
            timestamp=timestamp,
        )

    @classmethod
    def from_json(cls, text: Union[str, bytes]) -> "MessageEnvelope":
        try:
            data = json.loads(text)
        except (TypeError, ValueError) as e:
            raise EnvelopeError(f"Envelope is not valid JSON: {e}") from e
        return cls.from_dict(data)
