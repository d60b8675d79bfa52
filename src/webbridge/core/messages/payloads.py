"""Payload records for the streaming and cross-cutting message types."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from .types import StreamingDomain


def _domain(value: Any) -> StreamingDomain:
    try:
        return StreamingDomain(value)
    except ValueError as e:
        raise ValueError(f"Unknown streaming domain: {value!r}") from e


def _require_str(data: Dict[str, Any], key: str) -> str:
    value = data.get(key)
    if not isinstance(value, str):
        raise ValueError(f"Payload field '{key}' must be a string")
    return value


@dataclass
class StreamStartedPayload:
    request_id: str
    domain: StreamingDomain

    def to_dict(self) -> Dict[str, Any]:
        return {"requestId": self.request_id, "domain": self.domain.value}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StreamStartedPayload":
        return cls(request_id=_require_str(data, "requestId"), domain=_domain(data.get("domain")))


@dataclass
class StreamChunkPayload:
    """One incremental text fragment of a stream."""

    request_id: str
    domain: StreamingDomain
    token: str

    def to_dict(self) -> Dict[str, Any]:
        return {"requestId": self.request_id, "domain": self.domain.value, "token": self.token}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StreamChunkPayload":
        return cls(
            request_id=_require_str(data, "requestId"),
            domain=_domain(data.get("domain")),
            token=_require_str(data, "token"),
        )


@dataclass
class StreamCompletePayload:
    """Sent when a stream finishes, whether it succeeded or was aborted."""

    request_id: str
    domain: StreamingDomain
    content: Optional[str] = None
    cancelled: bool = False
    truncated: bool = False

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "requestId": self.request_id,
            "domain": self.domain.value,
            "cancelled": self.cancelled,
            "truncated": self.truncated,
        }
        if self.content is not None:
            data["content"] = self.content
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StreamCompletePayload":
        content = data.get("content")
        return cls(
            request_id=_require_str(data, "requestId"),
            domain=_domain(data.get("domain")),
            content=content if isinstance(content, str) else None,
            cancelled=bool(data.get("cancelled", False)),
            truncated=bool(data.get("truncated", False)),
        )


@dataclass
class CancelRequestPayload:
    request_id: str
    domain: StreamingDomain

    def to_dict(self) -> Dict[str, Any]:
        return {"requestId": self.request_id, "domain": self.domain.value}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CancelRequestPayload":
        return cls(request_id=_require_str(data, "requestId"), domain=_domain(data.get("domain")))


@dataclass
class ErrorPayload:
    """Error report; ``source`` is hierarchical, e.g. ``settings.model``."""

    source: str
    message: str
    details: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"source": self.source, "message": self.message}
        if self.details is not None:
            data["details"] = self.details
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ErrorPayload":
        details = data.get("details")
        return cls(
            source=str(data.get("source") or "unknown"),
            message=str(data.get("message") or ""),
            details=str(details) if details is not None else None,
        )


@dataclass
class StatusPayload:
    message: str
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"message": self.message, **self.extra}
