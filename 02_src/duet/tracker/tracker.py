"""Tracker implementation for recording TraceEvents."""

from typing import Protocol

from ..logging_config import get_logger
from ..models import TraceEvent
from ..store import TRACE_EVENTS, IDocumentStore, Query

logger = get_logger(__name__)


class ITracker(Protocol):
    """Records TraceEvents for mutations and session lifecycle."""

    async def track(self, event_type: str, actor: str, data: dict) -> None:
        """Create TraceEvent and save it to the store."""
        ...

    async def get_events(
        self,
        event_type: str | None = None,
        actor: str | None = None,
        limit: int = 100,
    ) -> list[TraceEvent]:
        """Recent TraceEvents, newest first."""
        ...


class Tracker:
    """Writes TraceEvents into the traceEvents collection."""

    def __init__(self, store: IDocumentStore):
        self._store = store

    async def track(self, event_type: str, actor: str, data: dict) -> None:
        """Create TraceEvent and save it to the store.

        Tracking never fails the operation being tracked.
        """
        try:
            await self._store.insert(
                TRACE_EVENTS,
                {"eventType": event_type, "actor": actor, "data": data},
                server_timestamp="timestamp",
            )
        except Exception as e:
            logger.error("Failed to track %s by %s: %s", event_type, actor, e)

    async def get_events(
        self,
        event_type: str | None = None,
        actor: str | None = None,
        limit: int = 100,
    ) -> list[TraceEvent]:
        """Recent TraceEvents, newest first."""
        query = Query(TRACE_EVENTS).order("timestamp", descending=True).take(limit)
        if event_type:
            query = query.where("eventType", event_type)
        if actor:
            query = query.where("actor", actor)

        documents = await self._store.query(query)
        return [TraceEvent.from_document(doc) for doc in documents]
