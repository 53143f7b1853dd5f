"""Tests for MessageFeed."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from duet.errors import LikeFailedError, SendFailedError, StoreError
from duet.feed import MessageFeed
from duet.models import Drawing
from duet.store import MESSAGES, Query

PNG = b"\x89PNG\r\n\x1a\n-fake-"


def contents(feed: MessageFeed) -> list:
    return [m.content for m in feed.messages]


class TestFeedWindow:
    """Tests for the live newest window."""

    async def test_activate_empty(self, alice_feed):
        """Test that an empty conversation loads with nothing more to fetch."""
        await alice_feed.activate()

        assert alice_feed.messages == []
        assert not alice_feed.loading
        assert not alice_feed.has_more
        assert alice_feed.error is None

    async def test_window_holds_newest_page_oldest_first(self, alice_feed, seed_messages):
        """Test that the window is the newest page in chronological order."""
        await seed_messages(8)
        await alice_feed.activate()

        assert contents(alice_feed) == ["m3", "m4", "m5", "m6", "m7"]
        assert alice_feed.has_more

    async def test_new_messages_reach_both_sides(self, alice_feed, bob_feed):
        """Test that a sent message appears in every active feed."""
        await alice_feed.activate()
        await bob_feed.activate()

        await alice_feed.send_message("hi")
        await bob_feed.send_message("hello")

        assert contents(alice_feed) == ["hi", "hello"]
        assert contents(bob_feed) == ["hi", "hello"]
        assert [m.sender_id for m in bob_feed.messages] == ["alice", "bob"]

    async def test_deactivate_stops_updates(self, alice_feed, bob_feed):
        """Test that a deactivated feed no longer receives deliveries."""
        await alice_feed.activate()
        await bob_feed.activate()
        await alice_feed.deactivate()

        await bob_feed.send_message("hello")

        assert alice_feed.messages == []
        assert contents(bob_feed) == ["hello"]

    async def test_activate_twice_is_noop(self, alice_feed, store, monkeypatch):
        """Test that activate opens a single subscription."""
        spy = AsyncMock(wraps=store.subscribe)
        monkeypatch.setattr(store, "subscribe", spy)

        await alice_feed.activate()
        await alice_feed.activate()

        assert spy.await_count == 1

    async def test_subscribe_failure_sets_error(self, alice_feed, store, monkeypatch):
        """Test that a failed subscription is surfaced as the feed error."""
        monkeypatch.setattr(store, "subscribe", AsyncMock(side_effect=StoreError("offline")))

        await alice_feed.activate()

        assert alice_feed.error == "Failed to connect to messages"
        assert not alice_feed.loading

    async def test_activate_retries_after_subscribe_failure(
        self, alice_feed, store, seed_messages, monkeypatch
    ):
        """Test that activating again after a failed subscribe loads the window."""
        await seed_messages(2)
        subscribe = store.subscribe
        monkeypatch.setattr(store, "subscribe", AsyncMock(side_effect=StoreError("offline")))
        await alice_feed.activate()

        monkeypatch.setattr(store, "subscribe", subscribe)
        await alice_feed.activate()

        assert contents(alice_feed) == ["m0", "m1"]
        assert alice_feed.error is None

    async def test_listeners_called_on_change(self, alice_feed):
        """Test that listeners are awaited after each delivery."""
        listener = AsyncMock()
        alice_feed.add_listener(listener)
        await alice_feed.activate()

        await alice_feed.send_message("hi")

        listener.assert_awaited_with(alice_feed)
        assert listener.await_count == 2

    async def test_get_message_by_id(self, alice_feed, seed_messages):
        """Test lookup of a visible message."""
        docs = await seed_messages(2)
        await alice_feed.activate()

        assert alice_feed.get_message_by_id(docs[1].id).content == "m1"
        assert alice_feed.get_message_by_id("missing") is None


class TestFeedReplies:
    """Tests for reply resolution."""

    async def test_reply_target_resolved(self, alice_feed, bob_feed):
        """Test that a reply carries its target message."""
        await alice_feed.activate()
        await bob_feed.activate()

        hi = await alice_feed.send_message("hi")
        await bob_feed.send_message("hello", reply_to=hi.id)

        reply = alice_feed.messages[-1]
        assert reply.reply_to == hi.id
        assert reply.reply_to_message.content == "hi"
        assert alice_feed.messages[0].reply_to_message is None

    async def test_reply_target_outside_window(self, alice_feed, store, seed_messages):
        """Test that a reply to an old message resolves by point read."""
        docs = await seed_messages(10)
        await store.insert(
            MESSAGES,
            {
                "senderId": "bob",
                "content": "re",
                "imageUrl": None,
                "replyTo": docs[0].id,
                "likes": [],
            },
            server_timestamp="timestamp",
        )
        await alice_feed.activate()

        assert alice_feed.get_message_by_id(docs[0].id) is None
        assert alice_feed.messages[-1].reply_to_message.content == "m0"

    async def test_deleted_reply_target_resolves_to_none(self, alice_feed, store):
        """Test that a reply to a deleted message keeps the id but no target."""
        await alice_feed.activate()
        hi = await alice_feed.send_message("hi")
        reply = await alice_feed.send_message("re", reply_to=hi.id)

        await store.delete(MESSAGES, hi.id)

        message = alice_feed.get_message_by_id(reply.id)
        assert message.reply_to == hi.id
        assert message.reply_to_message is None


class TestFeedPagination:
    """Tests for load_more."""

    async def test_load_more_prepends_older_pages(self, alice_feed, seed_messages):
        """Test paging back to the first message."""
        await seed_messages(12)
        await alice_feed.activate()

        await alice_feed.load_more()
        assert contents(alice_feed) == [f"m{i}" for i in range(2, 12)]
        assert alice_feed.has_more

        await alice_feed.load_more()
        assert contents(alice_feed) == [f"m{i}" for i in range(12)]
        assert not alice_feed.has_more
        assert not alice_feed.loading_more

    async def test_default_page_size_reaches_every_message(
        self, store, object_storage, alice_session, seed_messages
    ):
        """Test that 100 messages page in at 50 with no gaps or duplicates."""
        await seed_messages(100)
        feed = MessageFeed(store, object_storage, alice_session)
        await feed.activate()
        try:
            assert len(feed.messages) == 50
            while feed.has_more:
                await feed.load_more()

            ids = [m.id for m in feed.messages]
            assert len(ids) == 100
            assert len(set(ids)) == 100
            assert contents(feed) == [f"m{i}" for i in range(100)]
        finally:
            await feed.deactivate()

    async def test_load_more_noop_when_exhausted(
        self, alice_feed, store, seed_messages, monkeypatch
    ):
        """Test that load_more does not query once history is exhausted."""
        await seed_messages(3)
        await alice_feed.activate()
        assert not alice_feed.has_more

        spy = AsyncMock(wraps=store.query)
        monkeypatch.setattr(store, "query", spy)
        await alice_feed.load_more()

        spy.assert_not_awaited()

    async def test_load_more_noop_before_activate(self, alice_feed, store, monkeypatch):
        """Test that load_more without a cursor does nothing."""
        spy = AsyncMock(wraps=store.query)
        monkeypatch.setattr(store, "query", spy)

        await alice_feed.load_more()

        spy.assert_not_awaited()

    async def test_load_more_single_flight(
        self, alice_feed, store, seed_messages, monkeypatch
    ):
        """Test that a second load_more while one is in flight is ignored."""
        await seed_messages(12)
        await alice_feed.activate()

        gate = asyncio.Event()
        original = store.query
        calls = []

        async def slow_query(query):
            calls.append(query)
            await gate.wait()
            return await original(query)

        monkeypatch.setattr(store, "query", slow_query)

        first = asyncio.create_task(alice_feed.load_more())
        await asyncio.sleep(0)
        assert alice_feed.loading_more

        await alice_feed.load_more()
        gate.set()
        await first

        assert len(calls) == 1
        assert len(alice_feed.messages) == 10

    async def test_load_more_failure_sets_error(
        self, alice_feed, store, seed_messages, monkeypatch
    ):
        """Test that a failed page fetch is surfaced and clears loading_more."""
        await seed_messages(8)
        await alice_feed.activate()
        monkeypatch.setattr(store, "query", AsyncMock(side_effect=StoreError("offline")))

        await alice_feed.load_more()

        assert alice_feed.error == "Failed to load more messages"
        assert not alice_feed.loading_more
        assert len(alice_feed.messages) == 5

    async def test_new_arrivals_before_paging_keep_continuity(
        self, alice_feed, bob_feed, seed_messages
    ):
        """Test that messages pushed out of the window remain reachable."""
        await seed_messages(7)
        await alice_feed.activate()
        await bob_feed.activate()

        await bob_feed.send_message("n0")
        await bob_feed.send_message("n1")
        assert contents(alice_feed) == ["m4", "m5", "m6", "n0", "n1"]

        await alice_feed.load_more()
        assert contents(alice_feed) == [f"m{i}" for i in range(7)] + ["n0", "n1"]
        assert not alice_feed.has_more

    async def test_new_arrivals_after_paging_keep_evicted(
        self, alice_feed, bob_feed, seed_messages
    ):
        """Test that window evictions move into loaded history."""
        await seed_messages(7)
        await alice_feed.activate()
        await alice_feed.load_more()
        assert contents(alice_feed) == [f"m{i}" for i in range(7)]

        await bob_feed.activate()
        for i in range(3):
            await bob_feed.send_message(f"n{i}")

        assert contents(alice_feed) == [f"m{i}" for i in range(7)] + ["n0", "n1", "n2"]
        ids = [m.id for m in alice_feed.messages]
        assert len(ids) == len(set(ids))

    async def test_message_back_in_window_shows_live_copy(
        self, alice_feed, bob_feed, store, seed_messages
    ):
        """Test that a message in both history and window appears once, as its live copy."""
        docs = await seed_messages(7)
        await alice_feed.activate()
        await alice_feed.load_more()

        # Deleting the newest pulls m1 back into the window while history still holds it
        await store.delete(MESSAGES, docs[6].id)
        await bob_feed.toggle_like(docs[1].id)

        assert contents(alice_feed) == [f"m{i}" for i in range(6)]
        assert alice_feed.get_message_by_id(docs[1].id).likes == frozenset({"bob"})


class TestFeedSending:
    """Tests for send_message and send_drawing."""

    async def test_send_message_trims_and_stores(self, alice_feed, store):
        """Test that text is trimmed and stored with an empty likes set."""
        await alice_feed.activate()
        message = await alice_feed.send_message("  hi  ")

        doc = await store.get(MESSAGES, message.id)
        assert doc.get("content") == "hi"
        assert doc.get("senderId") == "alice"
        assert doc.get("likes") == []
        assert doc.get("imageUrl") is None
        assert message.timestamp is not None

    @pytest.mark.parametrize("text", ["", "   ", "\n\t"])
    async def test_blank_text_is_ignored(self, alice_feed, store, monkeypatch, text):
        """Test that blank text sends nothing."""
        spy = AsyncMock(wraps=store.insert)
        monkeypatch.setattr(store, "insert", spy)

        assert await alice_feed.send_message(text) is None
        spy.assert_not_awaited()

    async def test_send_failure_raises(self, alice_feed, store, monkeypatch):
        """Test that a rejected write raises SendFailedError."""
        monkeypatch.setattr(store, "insert", AsyncMock(side_effect=StoreError("offline")))

        with pytest.raises(SendFailedError) as exc_info:
            await alice_feed.send_message("hi")
        assert isinstance(exc_info.value.__cause__, StoreError)

    async def test_send_drawing_uploads_then_appends(self, alice_feed, object_storage):
        """Test that a drawing is stored and sent as an image message."""
        await alice_feed.activate()
        message = await alice_feed.send_drawing(Drawing(data=PNG, width=2, height=2))

        assert message.content is None
        assert message.image_url.startswith("/blobs/drawings/alice_")
        assert message.image_url.endswith(".png")
        relative = message.image_url[len("/blobs/"):]
        assert (object_storage.root / relative).read_bytes() == PNG
        assert alice_feed.messages[-1].image_url == message.image_url

    async def test_send_drawing_upload_precedes_insert(
        self, store, alice_session, monkeypatch
    ):
        """Test that the message is only created after the upload."""
        order = []
        objects = AsyncMock()
        objects.put.side_effect = lambda *args: order.append("put")
        objects.url_for.return_value = "/blobs/drawings/x.png"
        original_insert = store.insert

        async def insert(*args, **kwargs):
            order.append("insert")
            return await original_insert(*args, **kwargs)

        monkeypatch.setattr(store, "insert", insert)
        feed = MessageFeed(store, objects, alice_session, page_size=5)

        message = await feed.send_drawing(Drawing(data=PNG), reply_to="m1")

        assert order == ["put", "insert"]
        assert message.image_url == "/blobs/drawings/x.png"
        assert message.reply_to == "m1"

    async def test_send_drawing_upload_failure(self, store, alice_session):
        """Test that a failed upload raises and creates no message."""
        objects = AsyncMock()
        objects.put.side_effect = OSError("disk full")
        feed = MessageFeed(store, objects, alice_session, page_size=5)

        with pytest.raises(SendFailedError):
            await feed.send_drawing(Drawing(data=PNG))

        assert await store.query(Query(MESSAGES)) == []

    async def test_empty_drawing_is_ignored(self, alice_feed):
        """Test that an empty drawing sends nothing."""
        assert await alice_feed.send_drawing(Drawing(data=b"")) is None

    async def test_sends_are_tracked(self, alice_feed, tracker):
        """Test that sends record trace events."""
        await alice_feed.send_message("hi")
        await alice_feed.send_drawing(Drawing(data=PNG))

        assert len(await tracker.get_events(event_type="message_sent", actor="alice")) == 1
        assert len(await tracker.get_events(event_type="drawing_sent", actor="alice")) == 1


class TestFeedLikes:
    """Tests for toggle_like."""

    async def test_toggle_like_is_self_inverse(self, alice_feed, bob_feed):
        """Test that liking twice restores the original state."""
        await alice_feed.activate()
        await bob_feed.activate()
        hi = await bob_feed.send_message("hi")

        liked = await alice_feed.toggle_like(hi.id)
        assert liked.likes == frozenset({"alice"})
        assert bob_feed.get_message_by_id(hi.id).is_liked_by("alice")

        unliked = await alice_feed.toggle_like(hi.id)
        assert unliked.likes == frozenset()
        assert not alice_feed.get_message_by_id(hi.id).is_liked_by("alice")

    async def test_concurrent_likes_both_land(self, alice_feed, bob_feed, store):
        """Test that simultaneous likes from both sides merge."""
        await alice_feed.activate()
        hi = await alice_feed.send_message("hi")

        await asyncio.gather(alice_feed.toggle_like(hi.id), bob_feed.toggle_like(hi.id))

        doc = await store.get(MESSAGES, hi.id)
        assert sorted(doc.get("likes")) == ["alice", "bob"]

    async def test_like_patches_loaded_history(self, alice_feed, seed_messages):
        """Test that liking an older, paged-in message updates it locally."""
        docs = await seed_messages(8)
        await alice_feed.activate()
        await alice_feed.load_more()

        await alice_feed.toggle_like(docs[0].id)

        assert alice_feed.get_message_by_id(docs[0].id).is_liked_by("alice")

    async def test_toggle_like_missing_message(self, alice_feed):
        """Test that liking a missing message returns None."""
        assert await alice_feed.toggle_like("missing") is None

    async def test_toggle_like_failure_raises(self, alice_feed, store, monkeypatch):
        """Test that a rejected like raises LikeFailedError."""
        hi = await alice_feed.send_message("hi")
        monkeypatch.setattr(
            store, "array_union", AsyncMock(side_effect=StoreError("offline"))
        )

        with pytest.raises(LikeFailedError):
            await alice_feed.toggle_like(hi.id)
