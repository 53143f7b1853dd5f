"""Collection engine: visible lists and message membership."""

import asyncio
from typing import Any, Protocol

from ..auth import SessionContext
from ..config import DEFAULT_LIST_EMOJI
from ..errors import (
    AddToListFailedError,
    CreateListFailedError,
    DeleteListFailedError,
    DocumentNotFoundError,
    ListItemsFailedError,
    ListNotFoundError,
    RemoveFromListFailedError,
    ToggleItemFailedError,
    UpdateListFailedError,
)
from ..logging_config import bind_logger, get_logger
from ..models import (
    ListItem,
    ListItemWithMessage,
    ListKind,
    Message,
    UserList,
    Visibility,
)
from ..store import LIST_ITEMS, LISTS, MESSAGES, Document, IDocumentStore, ISubscription, Query
from ..sync import resolve_references
from ..tracker import ITracker
from .selection import ListSelection

logger = get_logger(__name__)

# Fields a list owner may change after creation
_UPDATABLE_FIELDS = frozenset({"name", "visibility", "kind", "emoji"})


class IListEngine(Protocol):
    """Lists visible to one identity and their membership items."""

    @property
    def lists(self) -> list[UserList]:
        ...

    async def create_list(
        self,
        name: str,
        visibility: Visibility | str,
        kind: ListKind | str,
        emoji: str | None = None,
    ) -> str | None:
        ...

    async def update_list(self, list_id: str, changes: dict[str, Any]) -> None:
        ...

    async def delete_list(self, list_id: str) -> None:
        ...

    async def add_message_to_list(self, list_id: str, message_id: str) -> ListItem | None:
        ...

    async def remove_from_list(self, list_id: str, message_id: str) -> int:
        ...

    async def toggle_item_completed(self, item_id: str) -> bool | None:
        ...

    async def get_list_items(self, list_id: str) -> list[ListItemWithMessage]:
        ...


class ListEngine:
    """Keeps the visible lists live and manages the selected list's items."""

    def __init__(
        self,
        store: IDocumentStore,
        session: SessionContext,
        tracker: ITracker | None = None,
    ):
        self._store = store
        self._session = session
        self._tracker = tracker
        self._log = bind_logger(logger, identity=session.identity, collection=LISTS)

        self._lists: list[UserList] = []
        self._loading = False
        self._error: str | None = None
        self._subscription: ISubscription | None = None
        self._active = False
        self._selection = ListSelection()

    # State
    @property
    def lists(self) -> list[UserList]:
        """Visible lists, newest first."""
        return list(self._lists)

    @property
    def loading(self) -> bool:
        return self._loading

    @property
    def error(self) -> str | None:
        return self._error

    @property
    def selection(self) -> ListSelection:
        return self._selection

    @property
    def identity(self) -> str:
        return self._session.identity

    def get_list(self, list_id: str) -> UserList | None:
        for user_list in self._lists:
            if user_list.id == list_id:
                return user_list
        return None

    # Lifecycle
    async def activate(self) -> None:
        """Subscribe to public lists plus the identity's own lists."""
        if self._active:
            return

        self._active = True
        self._loading = True
        self._error = None

        visible = (
            Query(LISTS)
            .where_any(("visibility", Visibility.PUBLIC.value), ("ownerId", self.identity))
            .order("createdAt", descending=True)
        )
        try:
            subscription = await self._store.subscribe(
                visible, self._on_lists, self._on_lists_error
            )
        except Exception as e:
            self._log.error("Failed to subscribe to lists: %s", e, exc_info=True)
            self._active = False
            self._error = "Failed to load lists"
            self._loading = False
            return

        self._subscription = self._session.track(subscription)

    async def deactivate(self) -> None:
        self._active = False
        if self._subscription:
            self._subscription.close()
            self._subscription = None
        self._selection.clear()

    async def _on_lists(self, documents: list[Document]) -> None:
        if not self._active:
            return

        try:
            lists = [UserList.from_document(doc) for doc in documents]
        except Exception as e:
            self._log.error("Error parsing lists: %s", e, exc_info=True)
            self._error = "Failed to load lists"
            self._loading = False
            return

        self._lists = lists
        self._loading = False
        self._error = None

        selected = self._selection.list_id
        if selected and self.get_list(selected) is None:
            self._log.info("Selected list %s is gone, closing it", selected)
            self._selection.clear()

    async def _on_lists_error(self, error: Exception) -> None:
        self._log.error("List subscription error: %s", error)
        self._error = "Failed to load lists"
        self._loading = False

    # Lists
    async def create_list(
        self,
        name: str,
        visibility: Visibility | str,
        kind: ListKind | str,
        emoji: str | None = None,
    ) -> str | None:
        """Create a list owned by the current identity and return its id.

        A blank name is ignored and returns None.
        """
        name = (name or "").strip()
        if not name:
            return None

        try:
            data = {
                "name": name,
                "ownerId": self.identity,
                "visibility": Visibility(visibility).value,
                "kind": ListKind(kind).value,
                "emoji": emoji or DEFAULT_LIST_EMOJI,
            }
        except ValueError as e:
            self._log.warning("Ignoring invalid list %r: %s", name, e)
            return None

        try:
            document = await self._store.insert(LISTS, data, server_timestamp="createdAt")
        except Exception as e:
            self._log.error("Error creating list: %s", e, exc_info=True)
            raise CreateListFailedError("Failed to create list") from e

        await self._track("list_created", {"list_id": document.id, "name": name})
        return document.id

    async def update_list(self, list_id: str, changes: dict[str, Any]) -> None:
        """Patch name, visibility, kind and/or emoji; other keys are dropped."""
        patch: dict[str, Any] = {}
        for key, value in changes.items():
            if key not in _UPDATABLE_FIELDS:
                self._log.warning("Ignoring non-updatable list field %r", key)
                continue
            patch[key] = value

        if "name" in patch:
            patch["name"] = (patch["name"] or "").strip()
            if not patch["name"]:
                return
        try:
            if "visibility" in patch:
                patch["visibility"] = Visibility(patch["visibility"]).value
            if "kind" in patch:
                patch["kind"] = ListKind(patch["kind"]).value
        except ValueError as e:
            self._log.warning("Ignoring invalid list update for %s: %s", list_id, e)
            return

        if "emoji" in patch:
            patch["emoji"] = patch["emoji"] or DEFAULT_LIST_EMOJI
        if not patch:
            return

        try:
            await self._store.update(LISTS, list_id, patch)
        except DocumentNotFoundError as e:
            self._log.warning("Cannot update missing list %s", list_id)
            raise ListNotFoundError("List not found", list_id=list_id) from e
        except Exception as e:
            self._log.error("Error updating list %s: %s", list_id, e, exc_info=True)
            raise UpdateListFailedError("Failed to update list", list_id=list_id) from e

        await self._track("list_updated", {"list_id": list_id, "fields": sorted(patch)})

    async def delete_list(self, list_id: str) -> None:
        """Delete every item of a list, then the list itself.

        If any item delete fails the list is kept, so no list disappears while
        members might still exist.
        """
        try:
            items = await self._store.query(Query(LIST_ITEMS).where("listId", list_id))
            results = await asyncio.gather(
                *[self._store.delete(LIST_ITEMS, item.id) for item in items],
                return_exceptions=True,
            )
            failures = [r for r in results if isinstance(r, Exception)]
            if failures:
                raise failures[0]
            await self._store.delete(LISTS, list_id)
        except Exception as e:
            self._log.error("Error deleting list %s: %s", list_id, e, exc_info=True)
            raise DeleteListFailedError("Failed to delete list", list_id=list_id) from e

        if self._selection.list_id == list_id:
            self._selection.clear()
        elif self._selection.pending_delete == list_id:
            self._selection.pending_delete = None

        await self._track("list_deleted", {"list_id": list_id, "item_count": len(items)})

    # Membership
    async def add_message_to_list(self, list_id: str, message_id: str) -> ListItem | None:
        """Add a message to a list unless it is already a member.

        Returns the new item, or None when the message was already there.
        """
        try:
            existing = await self._store.query(self._membership(list_id, message_id).take(1))
            if existing:
                return None

            document = await self._store.insert(
                LIST_ITEMS,
                {"listId": list_id, "messageId": message_id, "completed": False},
                server_timestamp="addedAt",
            )
        except Exception as e:
            self._log.error(
                "Error adding %s to list %s: %s", message_id, list_id, e, exc_info=True
            )
            raise AddToListFailedError(
                "Failed to add to list", list_id=list_id, message_id=message_id
            ) from e

        await self._track("item_added", {"list_id": list_id, "message_id": message_id})
        await self._refresh_if_selected(list_id)
        return ListItem.from_document(document)

    async def remove_from_list(self, list_id: str, message_id: str) -> int:
        """Remove every item linking the message to the list; returns how many."""
        try:
            matches = await self._store.query(self._membership(list_id, message_id))
            results = await asyncio.gather(
                *[self._store.delete(LIST_ITEMS, d.id) for d in matches],
                return_exceptions=True,
            )
            failures = [r for r in results if isinstance(r, Exception)]
            if failures:
                self._log.warning(
                    "%d of %d item deletes failed", len(failures), len(matches)
                )
                raise failures[0]
        except Exception as e:
            self._log.error(
                "Error removing %s from list %s: %s", message_id, list_id, e, exc_info=True
            )
            raise RemoveFromListFailedError(
                "Failed to remove from list", list_id=list_id, message_id=message_id
            ) from e

        await self._track(
            "item_removed",
            {"list_id": list_id, "message_id": message_id, "count": len(matches)},
        )
        await self._refresh_if_selected(list_id)
        return len(matches)

    async def toggle_item_completed(self, item_id: str) -> bool | None:
        """Negate an item's completed flag; returns the new value, None if missing."""
        try:
            document = await self._store.get(LIST_ITEMS, item_id)
            if document is None:
                return None
            completed = not bool(document.get("completed", False))
            await self._store.update(LIST_ITEMS, item_id, {"completed": completed})
        except Exception as e:
            self._log.error("Error toggling item %s: %s", item_id, e, exc_info=True)
            raise ToggleItemFailedError("Failed to update item", item_id=item_id) from e

        await self._track("item_toggled", {"item_id": item_id, "completed": completed})
        await self._refresh_if_selected(document.get("listId"))
        return completed

    async def get_list_items(self, list_id: str) -> list[ListItemWithMessage]:
        """Items of a list, newest first, each with its message resolved."""
        try:
            documents = await self._store.query(
                Query(LIST_ITEMS).where("listId", list_id).order("addedAt", descending=True)
            )
            items = [ListItem.from_document(doc) for doc in documents]
            messages = await resolve_references(
                self._store,
                MESSAGES,
                (item.message_id for item in items),
                Message.from_document,
            )
        except Exception as e:
            self._log.error("Error fetching items of %s: %s", list_id, e, exc_info=True)
            raise ListItemsFailedError("Failed to load list items", list_id=list_id) from e

        return [ListItemWithMessage.project(item, messages.get(item.message_id)) for item in items]

    # Selection
    async def select_list(self, list_id: str) -> list[ListItemWithMessage]:
        """Open a list and fetch its items."""
        if self._selection.list_id is not None:
            self.close_list()

        generation = self._selection.select(list_id)
        await self._load_selection(generation)
        return list(self._selection.items)

    def close_list(self) -> None:
        self._selection.clear()

    def request_delete(self, list_id: str) -> None:
        """Mark a list as awaiting delete confirmation."""
        self._selection.pending_delete = list_id

    def cancel_delete(self) -> None:
        self._selection.pending_delete = None

    async def confirm_delete(self) -> str | None:
        """Delete the list awaiting confirmation; returns its id."""
        list_id = self._selection.pending_delete
        if list_id is None:
            return None
        await self.delete_list(list_id)
        self._selection.pending_delete = None
        return list_id

    async def _refresh_if_selected(self, list_id: str | None) -> None:
        if list_id and self._selection.list_id == list_id:
            await self._load_selection(self._selection.generation)

    async def _load_selection(self, generation: int) -> None:
        list_id = self._selection.list_id
        if list_id is None:
            return

        self._selection.loading = True
        try:
            items = await self.get_list_items(list_id)
        except ListItemsFailedError as e:
            if generation == self._selection.generation:
                self._selection.error = e.message
                self._selection.loading = False
            return

        # A later select/close supersedes this fetch
        if generation != self._selection.generation:
            return
        self._selection.items = items
        self._selection.error = None
        self._selection.loading = False

    # Internals
    def _membership(self, list_id: str, message_id: str) -> Query:
        return Query(LIST_ITEMS).where("listId", list_id).where("messageId", message_id)

    async def _track(self, event_type: str, data: dict) -> None:
        if self._tracker:
            await self._tracker.track(event_type=event_type, actor=self.identity, data=data)
