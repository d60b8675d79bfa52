"""Closed message type enumeration shared by host and UI."""

from __future__ import annotations

from enum import Enum
from typing import Optional

# Bump when a member is added, removed or renamed.
PROTOCOL_VERSION = 1


class MessageType(str, Enum):
    # Analysis
    ANALYZE_DIALOGUE = "analyze_dialogue"
    ANALYZE_PROSE = "analyze_prose"
    LOOKUP_DICTIONARY = "lookup_dictionary"
    GENERATE_CONTEXT = "generate_context"

    # Results
    ANALYSIS_RESULT = "analysis_result"
    DICTIONARY_RESULT = "dictionary_result"
    CONTEXT_RESULT = "context_result"
    ERROR = "error"
    STATUS = "status"

    # UI state
    TAB_CHANGED = "tab_changed"

    # Configuration
    REQUEST_SETTINGS_DATA = "request_settings_data"
    SETTINGS_DATA = "settings_data"
    UPDATE_SETTING = "update_setting"
    REQUEST_MODEL_DATA = "request_model_data"
    MODEL_DATA = "model_data"
    SET_MODEL_SELECTION = "set_model_selection"

    # Streaming
    STREAM_STARTED = "stream_started"
    STREAM_CHUNK = "stream_chunk"
    STREAM_COMPLETE = "stream_complete"
    CANCEL_ANALYSIS_REQUEST = "cancel_analysis_request"
    CANCEL_DICTIONARY_REQUEST = "cancel_dictionary_request"
    CANCEL_CONTEXT_REQUEST = "cancel_context_request"

    @classmethod
    def lookup(cls, value: str) -> Optional["MessageType"]:
        """Return the member for a wire tag, or None for an unknown tag."""
        try:
            return cls(value)
        except ValueError:
            return None


class StreamingDomain(str, Enum):
    """UI slot a stream is rendered into."""

    ANALYSIS = "analysis"
    DICTIONARY = "dictionary"
    CONTEXT = "context"


CANCEL_TYPE_BY_DOMAIN = {
    StreamingDomain.ANALYSIS: MessageType.CANCEL_ANALYSIS_REQUEST,
    StreamingDomain.DICTIONARY: MessageType.CANCEL_DICTIONARY_REQUEST,
    StreamingDomain.CONTEXT: MessageType.CANCEL_CONTEXT_REQUEST,
}

STREAMING_TYPES = frozenset({
    MessageType.STREAM_STARTED,
    MessageType.STREAM_CHUNK,
    MessageType.STREAM_COMPLETE,
})
