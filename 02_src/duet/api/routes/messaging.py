"""Messaging API routes."""

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from ...app import IApplication
from ...errors import DuetError
from ...feed import MessageFeed
from ...models import Drawing
from ...session import ChatSession
from ..deps import http_error, session_dependency


class MessageRequest(BaseModel):
    """Request model for sending a text message."""

    text: str
    reply_to: str | None = None


class DrawingRequest(BaseModel):
    """Request model for sending a drawing as a canvas data URL."""

    data_url: str
    width: int = 0
    height: int = 0
    reply_to: str | None = None


def feed_view(feed: MessageFeed) -> dict:
    """Serializable snapshot of a feed's consumer-facing state."""
    return {
        "messages": [m.to_dict() for m in feed.messages],
        "loading": feed.loading,
        "loading_more": feed.loading_more,
        "has_more": feed.has_more,
        "error": feed.error,
    }


def create_messaging_router(app: IApplication) -> APIRouter:
    """Create messaging router."""
    router = APIRouter(prefix="/api/messages", tags=["messaging"])
    current_session = session_dependency(app)

    @router.get("")
    async def get_feed(session: ChatSession = Depends(current_session)) -> dict:
        """Visible messages, oldest first, plus pagination state."""
        return feed_view(session.feed)

    @router.post("/load-more")
    async def load_more(session: ChatSession = Depends(current_session)) -> dict:
        """Fetch the next older page."""
        await session.feed.load_more()
        return feed_view(session.feed)

    @router.post("")
    async def send_message(
        request: MessageRequest, session: ChatSession = Depends(current_session)
    ) -> dict:
        """Send a text message, optionally as a reply."""
        try:
            message = await session.feed.send_message(request.text, request.reply_to)
        except DuetError as e:
            raise http_error(e)
        return {"message": message.to_dict() if message else None}

    @router.post("/drawings")
    async def send_drawing(
        request: DrawingRequest, session: ChatSession = Depends(current_session)
    ) -> dict:
        """Upload a drawing and send it as an image message."""
        try:
            drawing = Drawing.from_data_url(request.data_url, request.width, request.height)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))

        try:
            message = await session.feed.send_drawing(drawing, request.reply_to)
        except DuetError as e:
            raise http_error(e)
        return {"message": message.to_dict() if message else None}

    @router.post("/{message_id}/like")
    async def toggle_like(
        message_id: str, session: ChatSession = Depends(current_session)
    ) -> dict:
        """Toggle the caller's like on a message."""
        try:
            message = await session.feed.toggle_like(message_id)
        except DuetError as e:
            raise http_error(e)
        if message is None:
            raise HTTPException(status_code=404, detail="Message not found")
        return message.to_dict()

    @router.get("/{message_id}")
    async def get_message(
        message_id: str, session: ChatSession = Depends(current_session)
    ) -> dict:
        """A visible message by id."""
        message = session.feed.get_message_by_id(message_id)
        if message is None:
            raise HTTPException(status_code=404, detail="Message not found")
        return message.to_dict()

    return router
