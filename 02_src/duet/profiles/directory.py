"""User profiles: sign-in upsert, avatars and the counterpart's live profile."""

from typing import Protocol

from ..auth import SessionContext
from ..blobs import IObjectStorage
from ..errors import AvatarUploadFailedError
from ..logging_config import get_logger
from ..models import MessageWithReply, UserProfile
from ..store import USERS, Document, IDocumentStore, ISubscription
from ..tracker import ITracker

logger = get_logger(__name__)


class IProfileDirectory(Protocol):
    """Reads and writes documents in the users collection."""

    async def record_sign_in(
        self,
        identity: str,
        email: str,
        display_name: str | None = None,
        photo_url: str | None = None,
    ) -> UserProfile:
        ...

    async def get(self, identity: str) -> UserProfile | None:
        ...

    async def upload_avatar(
        self, identity: str, data: bytes, content_type: str = "image/png"
    ) -> UserProfile:
        ...


class ProfileDirectory:
    """Profiles stored in the users collection, keyed by identity."""

    def __init__(
        self,
        store: IDocumentStore,
        object_storage: IObjectStorage,
        tracker: ITracker | None = None,
    ):
        self._store = store
        self._objects = object_storage
        self._tracker = tracker

    async def record_sign_in(
        self,
        identity: str,
        email: str,
        display_name: str | None = None,
        photo_url: str | None = None,
    ) -> UserProfile:
        """Upsert the profile and stamp lastSeen; a custom avatar is kept."""
        document = await self._store.set(
            USERS,
            identity,
            {
                "email": email,
                "displayName": display_name or "Anonymous",
                "photoURL": photo_url or "",
            },
            merge=True,
            server_timestamp="lastSeen",
        )
        return UserProfile.from_document(document)

    async def get(self, identity: str) -> UserProfile | None:
        document = await self._store.get(USERS, identity)
        return UserProfile.from_document(document) if document else None

    async def upload_avatar(
        self, identity: str, data: bytes, content_type: str = "image/png"
    ) -> UserProfile:
        """Store a custom avatar and point the profile at it."""
        if not data:
            raise AvatarUploadFailedError("Avatar image is empty", identity=identity)

        path = f"avatars/{identity}"
        try:
            await self._objects.put(path, data, content_type)
            url = await self._objects.url_for(path)
            document = await self._store.set(
                USERS, identity, {"customPhotoURL": url}, merge=True
            )
        except Exception as e:
            logger.error("Error uploading avatar for %s: %s", identity, e, exc_info=True)
            raise AvatarUploadFailedError("Failed to upload avatar", identity=identity) from e

        if self._tracker:
            await self._tracker.track(
                event_type="avatar_uploaded", actor=identity, data={"url": url}
            )
        return UserProfile.from_document(document)


class CounterpartWatcher:
    """Follows the other participant's profile once they show up in the feed."""

    def __init__(self, store: IDocumentStore, session: SessionContext):
        self._store = store
        self._session = session
        self._counterpart_id: str | None = None
        self._counterpart: UserProfile | None = None
        self._subscription: ISubscription | None = None

    @property
    def counterpart(self) -> UserProfile | None:
        return self._counterpart

    async def on_feed_change(self, feed) -> None:
        """Feed listener: start watching the first sender that is not us."""
        if self._counterpart_id or self._session.closed:
            return

        other = _other_sender(feed.messages, self._session.identity)
        if other is None:
            return

        self._counterpart_id = other
        logger.info("Watching counterpart profile %s", other)
        subscription = await self._store.subscribe_document(USERS, other, self._on_profile)
        self._subscription = self._session.track(subscription)

    async def _on_profile(self, documents: list[Document]) -> None:
        self._counterpart = UserProfile.from_document(documents[0]) if documents else None

    def close(self) -> None:
        if self._subscription:
            self._subscription.close()
            self._subscription = None


def _other_sender(messages: list[MessageWithReply], identity: str) -> str | None:
    for message in messages:
        if message.sender_id != identity:
            return message.sender_id
    return None
