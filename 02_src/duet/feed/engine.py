"""Message feed: live newest window plus cursor pagination into history."""

import time
import uuid
from dataclasses import replace
from typing import Awaitable, Callable, Protocol

from ..auth import SessionContext
from ..blobs import IObjectStorage
from ..config import PAGE_SIZE
from ..errors import LikeFailedError, SendFailedError
from ..logging_config import bind_logger, get_logger
from ..models import Drawing, Message, MessageWithReply
from ..store import MESSAGES, Document, IDocumentStore, ISubscription, Query
from ..sync import Page, dedupe_by_id, resolve_references
from ..tracker import ITracker

logger = get_logger(__name__)

FeedListener = Callable[["MessageFeed"], Awaitable[None]]


class IMessageFeed(Protocol):
    """Ordered conversation as seen by one session."""

    @property
    def messages(self) -> list[MessageWithReply]:
        """Visible messages, oldest first."""
        ...

    async def activate(self) -> None:
        """Open the live subscription on the newest page."""
        ...

    async def deactivate(self) -> None:
        """Close the live subscription."""
        ...

    async def load_more(self) -> None:
        """Fetch the next older page."""
        ...

    async def send_message(
        self, content: str, reply_to: str | None = None
    ) -> Message | None:
        """Append a text message."""
        ...

    async def send_drawing(
        self, drawing: Drawing, reply_to: str | None = None
    ) -> Message | None:
        """Upload a drawing, then append it as an image message."""
        ...

    async def toggle_like(self, message_id: str) -> Message | None:
        """Flip the current identity's like on a message."""
        ...

    def get_message_by_id(self, message_id: str) -> MessageWithReply | None:
        """Look up a visible message."""
        ...


class MessageFeed:
    """Keeps a local, oldest-first view of the conversation in sync with the store.

    The newest ``page_size`` messages form the live window, replaced wholesale
    on every delivery. Older pages are one-shot snapshots prepended by
    ``load_more`` and never re-synchronized.
    """

    def __init__(
        self,
        store: IDocumentStore,
        object_storage: IObjectStorage,
        session: SessionContext,
        tracker: ITracker | None = None,
        page_size: int = PAGE_SIZE,
    ):
        self._store = store
        self._objects = object_storage
        self._session = session
        self._tracker = tracker
        self._page_size = page_size
        self._log = bind_logger(logger, identity=session.identity, collection=MESSAGES)

        self._window: list[MessageWithReply] = []  # live, oldest first
        self._history: list[MessageWithReply] = []  # older pages, oldest first
        self._cursor: Document | None = None
        self._has_more = True
        self._loading = False
        self._loading_more = False
        self._error: str | None = None
        self._subscription: ISubscription | None = None
        self._active = False
        self._listeners: list[FeedListener] = []

    # State
    @property
    def messages(self) -> list[MessageWithReply]:
        """Visible messages, oldest first, each id at most once."""
        # Walk newest first so the live copy of a message wins over its history copy
        newest_first = dedupe_by_id(reversed(self._history + self._window), key=lambda m: m.id)
        return newest_first[::-1]

    @property
    def loading(self) -> bool:
        return self._loading

    @property
    def loading_more(self) -> bool:
        return self._loading_more

    @property
    def has_more(self) -> bool:
        return self._has_more

    @property
    def error(self) -> str | None:
        return self._error

    @property
    def identity(self) -> str:
        return self._session.identity

    def add_listener(self, listener: FeedListener) -> None:
        """Call ``listener`` after every change to the visible messages."""
        self._listeners.append(listener)

    # Lifecycle
    async def activate(self) -> None:
        """Open the live subscription on the newest page."""
        if self._active:
            return

        self._active = True
        self._loading = True
        self._error = None

        newest = Query(MESSAGES).order("timestamp", descending=True).take(self._page_size)
        try:
            subscription = await self._store.subscribe(
                newest, self._on_window, self._on_window_error
            )
        except Exception as e:
            self._log.error("Failed to subscribe to messages: %s", e, exc_info=True)
            self._active = False
            self._error = "Failed to connect to messages"
            self._loading = False
            return

        self._subscription = self._session.track(subscription)

    async def deactivate(self) -> None:
        """Close the live subscription."""
        self._active = False
        if self._subscription:
            self._subscription.close()
            self._subscription = None

    # Live window
    async def _on_window(self, documents: list[Document]) -> None:
        page = Page(documents, self._page_size)
        try:
            window = await self._resolve(documents)
        except Exception as e:
            self._log.error("Error resolving message window: %s", e, exc_info=True)
            self._error = "Failed to load messages"
            self._loading = False
            return

        if not self._active:
            return

        if self._history or self._loading_more:
            # History owns the cursor; keep messages that scrolled out of the window
            window_ids = {m.id for m in window}
            floor = window[0].timestamp if window else None
            evicted = [
                m
                for m in self._window
                if m.id not in window_ids and (floor is None or m.timestamp < floor)
            ]
            self._history.extend(evicted)
        else:
            self._cursor = page.cursor
            self._has_more = page.has_more

        self._window = window
        self._loading = False
        self._error = None
        await self._notify()

    async def _on_window_error(self, error: Exception) -> None:
        self._log.error("Message subscription error: %s", error)
        self._error = "Failed to connect to messages"
        self._loading = False

    # Pagination
    async def load_more(self) -> None:
        """Fetch the next older page and prepend it.

        No-op without a cursor, while a page is in flight, or once history is
        known to be exhausted.
        """
        if self._cursor is None or self._loading_more or not self._has_more:
            return

        self._loading_more = True
        older_than = (
            Query(MESSAGES)
            .order("timestamp", descending=True)
            .after(self._cursor)
            .take(self._page_size)
        )
        try:
            documents = await self._store.query(older_than)
            page = Page(documents, self._page_size)
            older = await self._resolve(documents)
        except Exception as e:
            self._log.error("Error loading more messages: %s", e, exc_info=True)
            self._error = "Failed to load more messages"
            return
        finally:
            self._loading_more = False

        if not self._active:
            return

        if page.cursor is not None:
            self._cursor = page.cursor
        self._has_more = page.has_more
        self._history = older + self._history
        await self._notify()

    # Mutations
    async def send_message(
        self, content: str, reply_to: str | None = None
    ) -> Message | None:
        """Append a text message. Blank text is ignored."""
        text = (content or "").strip()
        if not text:
            return None

        message = await self._append(content=text, image_url=None, reply_to=reply_to)
        await self._track("message_sent", {"message_id": message.id, "reply_to": reply_to})
        return message

    async def send_drawing(
        self, drawing: Drawing, reply_to: str | None = None
    ) -> Message | None:
        """Upload a drawing, then append it as an image message.

        The message is only created once the upload has completed.
        """
        if drawing is None or drawing.is_empty:
            return None

        millis = int(time.time() * 1000)
        path = f"drawings/{self.identity}_{millis}_{uuid.uuid4().hex[:8]}.png"
        try:
            await self._objects.put(path, drawing.data, drawing.content_type)
            image_url = await self._objects.url_for(path)
        except Exception as e:
            self._log.error("Error uploading drawing: %s", e, exc_info=True)
            raise SendFailedError("Failed to send drawing", path=path) from e

        message = await self._append(content=None, image_url=image_url, reply_to=reply_to)
        await self._track(
            "drawing_sent",
            {"message_id": message.id, "image_url": image_url, "reply_to": reply_to},
        )
        return message

    async def toggle_like(self, message_id: str) -> Message | None:
        """Flip the current identity's like on a message.

        Returns the updated message, or None if it does not exist.
        """
        try:
            document = await self._store.get(MESSAGES, message_id)
            if document is None:
                return None

            liked = self.identity in (document.get("likes") or [])
            if liked:
                updated = await self._store.array_remove(
                    MESSAGES, message_id, "likes", self.identity
                )
            else:
                updated = await self._store.array_union(
                    MESSAGES, message_id, "likes", self.identity
                )
        except Exception as e:
            self._log.error("Error toggling like on %s: %s", message_id, e, exc_info=True)
            raise LikeFailedError("Failed to toggle like", message_id=message_id) from e

        message = Message.from_document(updated)
        self._patch_likes(message_id, message.likes)
        await self._track("like_toggled", {"message_id": message_id, "liked": not liked})
        return message

    def get_message_by_id(self, message_id: str) -> MessageWithReply | None:
        """Look up a visible message."""
        for message in self.messages:
            if message.id == message_id:
                return message
        return None

    # Internals
    async def _resolve(self, documents: list[Document]) -> list[MessageWithReply]:
        """Project a newest-first batch into oldest-first MessageWithReply."""
        messages = [Message.from_document(doc) for doc in documents]
        replies = await resolve_references(
            self._store,
            MESSAGES,
            (m.reply_to for m in messages),
            Message.from_document,
        )
        return [
            MessageWithReply.project(m, replies.get(m.reply_to) if m.reply_to else None)
            for m in reversed(messages)
        ]

    async def _append(
        self, content: str | None, image_url: str | None, reply_to: str | None
    ) -> Message:
        data = {
            "senderId": self.identity,
            "content": content,
            "imageUrl": image_url,
            "replyTo": reply_to or None,
            "likes": [],
        }
        try:
            document = await self._store.insert(MESSAGES, data, server_timestamp="timestamp")
        except Exception as e:
            self._log.error("Error sending message: %s", e, exc_info=True)
            raise SendFailedError("Failed to send message") from e
        return Message.from_document(document)

    def _patch_likes(self, message_id: str, likes: frozenset[str]) -> None:
        self._window = [
            replace(m, likes=likes) if m.id == message_id else m for m in self._window
        ]
        self._history = [
            replace(m, likes=likes) if m.id == message_id else m for m in self._history
        ]

    async def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                await listener(self)
            except Exception as e:
                self._log.error("Feed listener failed: %s", e, exc_info=True)

    async def _track(self, event_type: str, data: dict) -> None:
        if self._tracker:
            await self._tracker.track(event_type=event_type, actor=self.identity, data=data)
