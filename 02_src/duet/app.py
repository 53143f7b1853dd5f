"""Application bootstrap and lifecycle management."""

import os
from pathlib import Path
from typing import Iterable, Protocol

from .auth import AllowListAuthorizer, IAuthorizer, SessionContext
from .blobs import IObjectStorage, LocalObjectStorage
from .config import PAGE_SIZE, resolve_blob_dir, resolve_db_path
from .errors import NotPermittedError
from .feed import MessageFeed
from .lists import ListEngine
from .logging_config import get_logger
from .profiles import CounterpartWatcher, ProfileDirectory
from .session import ChatSession
from .store import IDocumentStore, SqliteDocumentStore
from .tracker import ITracker, Tracker

logger = get_logger(__name__)


class IApplication(Protocol):
    """Bootstrap, lifecycle and sign-in."""

    async def start(self) -> None:
        """Initialize components in dependency order."""
        ...

    async def stop(self) -> None:
        """Close sessions, then shut components down."""
        ...

    async def reset(self) -> None:
        """Drop all sessions and data."""
        ...

    async def sign_in(
        self,
        identity: str,
        email: str,
        display_name: str | None = None,
        photo_url: str | None = None,
    ) -> ChatSession:
        """Open (or replace) the session for an identity."""
        ...

    async def sign_out(self, identity: str) -> bool:
        """Close the session for an identity."""
        ...

    def get_session(self, identity: str) -> ChatSession | None:
        ...

    @property
    def tracker(self) -> ITracker:
        ...

    @property
    def profiles(self) -> ProfileDirectory:
        ...


class Application:
    """Main application bootstrap."""

    def __init__(
        self,
        db_path: str | None = None,
        blob_dir: str | Path | None = None,
        allowed_identities: Iterable[str] | None = None,
        page_size: int = PAGE_SIZE,
    ):
        env_db_path = os.getenv("DATABASE_URL") if db_path is None else db_path
        self._db_path = resolve_db_path(env_db_path)
        self._blob_dir = blob_dir if blob_dir is not None else os.getenv("BLOB_DIR")
        self._allowed_identities = allowed_identities
        self._page_size = page_size

        # Components (initialized in start())
        self._store: IDocumentStore | None = None
        self._objects: IObjectStorage | None = None
        self._tracker: ITracker | None = None
        self._authorizer: IAuthorizer | None = None
        self._profiles: ProfileDirectory | None = None
        self._sessions: dict[str, ChatSession] = {}

    async def start(self) -> None:
        """Initialize components in dependency order."""
        logger.info("Starting application")

        # 1. Document store (no dependencies)
        self._store = SqliteDocumentStore(self._db_path)
        await self._store.init()
        logger.info("Document store initialized")

        # 2. Object storage (no dependencies)
        self._objects = LocalObjectStorage(self._blob_dir)
        logger.info("Object storage at %s", self._objects.root)

        # 3. Tracker (depends on store)
        self._tracker = Tracker(self._store)

        # 4. Authorizer and profiles
        self._authorizer = AllowListAuthorizer(self._allowed_identities)
        self._profiles = ProfileDirectory(self._store, self._objects, self._tracker)
        logger.info("All components initialized successfully")

    async def stop(self) -> None:
        """Close sessions, then shut components down."""
        for identity in list(self._sessions):
            await self.sign_out(identity)
        if self._store:
            await self._store.close()
            logger.info("Document store closed")

    async def reset(self) -> None:
        """Drop all sessions and data."""
        for identity in list(self._sessions):
            await self.sign_out(identity)
        if self._store:
            await self._store.clear()
            logger.info("Document store cleared")

    async def sign_in(
        self,
        identity: str,
        email: str,
        display_name: str | None = None,
        photo_url: str | None = None,
    ) -> ChatSession:
        """Open (or replace) the session for an identity.

        Raises:
            NotPermittedError: If the identity is not on the allow-list.
        """
        store = self.store
        if not self._authorizer or not self._authorizer.is_permitted(identity):
            logger.warning("Rejected sign-in for %s", identity)
            raise NotPermittedError(
                "Your identity is not authorized to use this app.", identity=identity
            )

        if identity in self._sessions:
            await self.sign_out(identity)

        profile = await self.profiles.record_sign_in(identity, email, display_name, photo_url)

        context = SessionContext(identity)
        session = ChatSession(
            context=context,
            profile=profile,
            feed=MessageFeed(
                store,
                self.object_storage,
                context,
                tracker=self._tracker,
                page_size=self._page_size,
            ),
            lists=ListEngine(store, context, tracker=self._tracker),
            counterpart=CounterpartWatcher(store, context),
        )
        self._sessions[identity] = session
        await session.activate()

        await self.tracker.track(
            event_type="session_opened", actor=identity, data={"email": email}
        )
        return session

    async def sign_out(self, identity: str) -> bool:
        """Close the session for an identity."""
        session = self._sessions.pop(identity, None)
        if session is None:
            return False

        await session.close()
        if self._tracker:
            await self._tracker.track(event_type="session_closed", actor=identity, data={})
        return True

    def get_session(self, identity: str) -> ChatSession | None:
        return self._sessions.get(identity)

    @property
    def blob_dir(self) -> Path:
        """Directory LocalObjectStorage writes to (known before start())."""
        return resolve_blob_dir(self._blob_dir)

    @property
    def sessions(self) -> dict[str, ChatSession]:
        return dict(self._sessions)

    @property
    def store(self) -> IDocumentStore:
        """Get document store instance."""
        if not self._store:
            raise RuntimeError("Application not started")
        return self._store

    @property
    def object_storage(self) -> IObjectStorage:
        """Get object storage instance."""
        if not self._objects:
            raise RuntimeError("Application not started")
        return self._objects

    @property
    def tracker(self) -> ITracker:
        """Get tracker instance."""
        if not self._tracker:
            raise RuntimeError("Application not started")
        return self._tracker

    @property
    def profiles(self) -> ProfileDirectory:
        """Get profile directory instance."""
        if not self._profiles:
            raise RuntimeError("Application not started")
        return self._profiles
