"""Observability API routes."""

from datetime import datetime
from typing import Any

from fastapi import APIRouter, Query
from pydantic import BaseModel

from ...app import IApplication
from ...errors import DuetError
from ...models import TraceEvent
from ..deps import http_error


class TraceEventResponse(BaseModel):
    """A recorded mutation or session event."""

    id: str
    event_type: str
    actor: str
    data: dict[str, Any]
    timestamp: datetime | None

    @classmethod
    def from_event(cls, event: TraceEvent) -> "TraceEventResponse":
        return cls(
            id=event.id,
            event_type=event.event_type,
            actor=event.actor,
            data=event.data,
            timestamp=event.timestamp,
        )


def create_observability_router(app: IApplication) -> APIRouter:
    """Create observability router."""
    router = APIRouter(prefix="/api", tags=["observability"])

    @router.get("/trace-events", response_model=list[TraceEventResponse])
    async def get_trace_events(
        limit: int = Query(100, ge=1, le=1000),
        event_type: str | None = Query(None, description="e.g. message_sent, list_deleted"),
        actor: str | None = Query(None, description="Identity, or 'sim'"),
    ) -> list[TraceEventResponse]:
        """Recent trace events, newest first."""
        try:
            events = await app.tracker.get_events(
                event_type=event_type, actor=actor, limit=limit
            )
        except DuetError as e:
            raise http_error(e)
        return [TraceEventResponse.from_event(event) for event in events]

    return router
