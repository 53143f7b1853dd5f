"""List API routes."""

from typing import Literal

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from ...app import IApplication
from ...errors import DuetError
from ...lists import ListEngine
from ...session import ChatSession
from ..deps import http_error, session_dependency


class CreateListRequest(BaseModel):
    """Request model for creating a list."""

    name: str
    visibility: Literal["public", "private"] = "private"
    kind: Literal["collection", "checklist"] = "collection"
    emoji: str | None = None


class UpdateListRequest(BaseModel):
    """Request model for patching a list."""

    name: str | None = None
    visibility: Literal["public", "private"] | None = None
    kind: Literal["collection", "checklist"] | None = None
    emoji: str | None = None


class AddItemRequest(BaseModel):
    """Request model for adding a message to a list."""

    message_id: str


class SelectRequest(BaseModel):
    """Request model for opening a list or marking it for deletion."""

    list_id: str


def lists_view(engine: ListEngine) -> dict:
    """Serializable snapshot of a list engine's consumer-facing state."""
    return {
        "lists": [user_list.to_dict() for user_list in engine.lists],
        "loading": engine.loading,
        "error": engine.error,
    }


def create_lists_router(app: IApplication) -> APIRouter:
    """Create lists router."""
    router = APIRouter(prefix="/api", tags=["lists"])
    current_session = session_dependency(app)

    @router.get("/lists")
    async def get_lists(session: ChatSession = Depends(current_session)) -> dict:
        """Lists visible to the caller, newest first."""
        return lists_view(session.lists)

    @router.post("/lists")
    async def create_list(
        request: CreateListRequest, session: ChatSession = Depends(current_session)
    ) -> dict:
        """Create a list; returns its id (null for a blank name)."""
        try:
            list_id = await session.lists.create_list(
                request.name, request.visibility, request.kind, request.emoji
            )
        except DuetError as e:
            raise http_error(e)
        return {"id": list_id}

    @router.patch("/lists/{list_id}")
    async def update_list(
        list_id: str,
        request: UpdateListRequest,
        session: ChatSession = Depends(current_session),
    ) -> dict:
        """Patch a list's name, visibility, kind or emoji."""
        try:
            await session.lists.update_list(list_id, request.model_dump(exclude_unset=True))
        except DuetError as e:
            raise http_error(e)
        return {"status": "ok"}

    @router.delete("/lists/{list_id}")
    async def delete_list(
        list_id: str, session: ChatSession = Depends(current_session)
    ) -> dict:
        """Delete a list and all of its items."""
        try:
            await session.lists.delete_list(list_id)
        except DuetError as e:
            raise http_error(e)
        return {"status": "ok"}

    @router.get("/lists/{list_id}/items")
    async def get_list_items(
        list_id: str, session: ChatSession = Depends(current_session)
    ) -> list[dict]:
        """Items of a list with their messages resolved."""
        try:
            items = await session.lists.get_list_items(list_id)
        except DuetError as e:
            raise http_error(e)
        return [item.to_dict() for item in items]

    @router.post("/lists/{list_id}/items")
    async def add_message_to_list(
        list_id: str,
        request: AddItemRequest,
        session: ChatSession = Depends(current_session),
    ) -> dict:
        """Add a message to a list; adding it twice is a no-op."""
        try:
            item = await session.lists.add_message_to_list(list_id, request.message_id)
        except DuetError as e:
            raise http_error(e)
        return {"added": item is not None, "item": item.to_dict() if item else None}

    @router.delete("/lists/{list_id}/items/{message_id}")
    async def remove_from_list(
        list_id: str, message_id: str, session: ChatSession = Depends(current_session)
    ) -> dict:
        """Remove a message from a list."""
        try:
            removed = await session.lists.remove_from_list(list_id, message_id)
        except DuetError as e:
            raise http_error(e)
        return {"removed": removed}

    @router.post("/list-items/{item_id}/toggle")
    async def toggle_item_completed(
        item_id: str, session: ChatSession = Depends(current_session)
    ) -> dict:
        """Flip an item's completed flag."""
        try:
            completed = await session.lists.toggle_item_completed(item_id)
        except DuetError as e:
            raise http_error(e)
        if completed is None:
            raise HTTPException(status_code=404, detail="Item not found")
        return {"completed": completed}

    # Selected list
    @router.get("/selection")
    async def get_selection(session: ChatSession = Depends(current_session)) -> dict:
        """The open list and its items."""
        return session.lists.selection.to_dict()

    @router.post("/selection")
    async def select_list(
        request: SelectRequest, session: ChatSession = Depends(current_session)
    ) -> dict:
        """Open a list and fetch its items."""
        await session.lists.select_list(request.list_id)
        return session.lists.selection.to_dict()

    @router.delete("/selection")
    async def close_list(session: ChatSession = Depends(current_session)) -> dict:
        """Close the open list."""
        session.lists.close_list()
        return session.lists.selection.to_dict()

    @router.post("/selection/pending-delete")
    async def request_delete(
        request: SelectRequest, session: ChatSession = Depends(current_session)
    ) -> dict:
        """Ask for confirmation before deleting a list."""
        session.lists.request_delete(request.list_id)
        return session.lists.selection.to_dict()

    @router.delete("/selection/pending-delete")
    async def cancel_delete(session: ChatSession = Depends(current_session)) -> dict:
        """Drop a pending delete."""
        session.lists.cancel_delete()
        return session.lists.selection.to_dict()

    @router.post("/selection/pending-delete/confirm")
    async def confirm_delete(session: ChatSession = Depends(current_session)) -> dict:
        """Delete the list awaiting confirmation."""
        try:
            deleted = await session.lists.confirm_delete()
        except DuetError as e:
            raise http_error(e)
        return {"deleted": deleted, "selection": session.lists.selection.to_dict()}

    return router
