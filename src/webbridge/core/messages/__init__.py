"""Wire-level message definitions."""

from .envelope import MessageEnvelope, new_request_id
from .payloads import (
    CancelRequestPayload,
    ErrorPayload,
    StatusPayload,
    StreamChunkPayload,
    StreamCompletePayload,
    StreamStartedPayload,
)
from .types import (
    CANCEL_TYPE_BY_DOMAIN,
    PROTOCOL_VERSION,
    STREAMING_TYPES,
    MessageType,
    StreamingDomain,
)

__all__ = [
    "CANCEL_TYPE_BY_DOMAIN",
    "CancelRequestPayload",
    "ErrorPayload",
    "MessageEnvelope",
    "MessageType",
    "PROTOCOL_VERSION",
    "STREAMING_TYPES",
    "StatusPayload",
    "StreamChunkPayload",
    "StreamCompletePayload",
    "StreamStartedPayload",
    "StreamingDomain",
    "new_request_id",
]
