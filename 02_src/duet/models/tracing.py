"""Tracing and observability data models."""

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from .timestamps import parse_timestamp


@dataclass
class TraceEvent:
    """A single recorded mutation or lifecycle event."""

    id: str
    event_type: str  # e.g. "message_sent", "list_deleted"
    actor: str  # identity or component that caused it
    data: dict  # self-contained details for display
    timestamp: datetime | None

    @classmethod
    def from_document(cls, doc: Any) -> "TraceEvent":
        data = doc.data
        return cls(
            id=doc.id,
            event_type=data["eventType"],
            actor=data["actor"],
            data=data.get("data") or {},
            timestamp=parse_timestamp(data.get("timestamp")),
        )
