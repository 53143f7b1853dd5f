"""Tests for Tracker."""

from unittest.mock import AsyncMock

from duet.errors import StoreError
from duet.tracker import Tracker


class TestTracker:
    """Tests for Tracker."""

    async def test_track_saves_event(self, tracker):
        """Test that track stores a TraceEvent."""
        await tracker.track("message_sent", "alice", {"message_id": "m1"})

        events = await tracker.get_events()
        assert len(events) == 1
        assert events[0].event_type == "message_sent"
        assert events[0].actor == "alice"
        assert events[0].data == {"message_id": "m1"}
        assert events[0].timestamp is not None

    async def test_get_events_newest_first(self, tracker):
        """Test that events come back newest first."""
        for i in range(3):
            await tracker.track("tick", "sim", {"n": i})

        events = await tracker.get_events()
        assert [e.data["n"] for e in events] == [2, 1, 0]

    async def test_get_events_filters(self, tracker):
        """Test filtering by event type and actor, and the limit."""
        await tracker.track("message_sent", "alice", {})
        await tracker.track("message_sent", "bob", {})
        await tracker.track("list_created", "alice", {})

        assert len(await tracker.get_events(event_type="message_sent")) == 2
        assert len(await tracker.get_events(actor="alice")) == 2
        assert len(await tracker.get_events(event_type="list_created", actor="bob")) == 0
        assert len(await tracker.get_events(limit=1)) == 1

    async def test_track_failure_is_logged_not_raised(self):
        """Test that tracking never fails the caller."""
        store = AsyncMock()
        store.insert.side_effect = StoreError("offline")
        tracker = Tracker(store)

        await tracker.track("message_sent", "alice", {})

        store.insert.assert_awaited_once()
