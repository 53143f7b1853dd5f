"""Pytest configuration and fixtures."""

import sys
from pathlib import Path

import pytest
import pytest_asyncio

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))


@pytest_asyncio.fixture
async def store():
    """Create in-memory document store for testing."""
    from duet.store import SqliteDocumentStore

    st = SqliteDocumentStore(":memory:")
    await st.init()
    yield st
    await st.close()


@pytest.fixture
def object_storage(tmp_path):
    """Create object storage under a temporary directory."""
    from duet.blobs import LocalObjectStorage

    return LocalObjectStorage(tmp_path / "blobs", base_url="/blobs")


@pytest.fixture
def tracker(store):
    """Create Tracker on the test store."""
    from duet.tracker import Tracker

    return Tracker(store)


@pytest.fixture
def alice_session():
    """Session context for the first participant."""
    from duet.auth import SessionContext

    return SessionContext("alice")


@pytest.fixture
def bob_session():
    """Session context for the second participant."""
    from duet.auth import SessionContext

    return SessionContext("bob")


@pytest_asyncio.fixture
async def alice_feed(store, object_storage, alice_session, tracker):
    """MessageFeed for alice with a small page size. Not activated."""
    from duet.feed import MessageFeed

    feed = MessageFeed(store, object_storage, alice_session, tracker=tracker, page_size=5)
    yield feed
    await feed.deactivate()


@pytest_asyncio.fixture
async def bob_feed(store, object_storage, bob_session, tracker):
    """MessageFeed for bob with a small page size. Not activated."""
    from duet.feed import MessageFeed

    feed = MessageFeed(store, object_storage, bob_session, tracker=tracker, page_size=5)
    yield feed
    await feed.deactivate()


@pytest_asyncio.fixture
async def alice_lists(store, alice_session, tracker):
    """Activated ListEngine for alice."""
    from duet.lists import ListEngine

    engine = ListEngine(store, alice_session, tracker=tracker)
    await engine.activate()
    yield engine
    await engine.deactivate()


@pytest_asyncio.fixture
async def bob_lists(store, bob_session, tracker):
    """Activated ListEngine for bob."""
    from duet.lists import ListEngine

    engine = ListEngine(store, bob_session, tracker=tracker)
    await engine.activate()
    yield engine
    await engine.deactivate()


@pytest.fixture
def seed_messages(store):
    """Insert text messages directly into the store, oldest first."""
    from duet.store import MESSAGES

    async def seed(count: int, sender: str = "alice", prefix: str = "m", reply_to=None):
        documents = []
        for i in range(count):
            documents.append(
                await store.insert(
                    MESSAGES,
                    {
                        "senderId": sender,
                        "content": f"{prefix}{i}",
                        "imageUrl": None,
                        "replyTo": reply_to,
                        "likes": [],
                    },
                    server_timestamp="timestamp",
                )
            )
        return documents

    return seed


@pytest_asyncio.fixture
async def application(tmp_path):
    """Started Application on an in-memory store for alice and bob."""
    from duet.app import Application

    app = Application(
        db_path=":memory:",
        blob_dir=tmp_path / "blobs",
        allowed_identities=["alice", "bob"],
        page_size=5,
    )
    await app.start()
    yield app
    await app.stop()
