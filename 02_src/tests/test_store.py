"""Tests for SqliteDocumentStore."""

import pytest

from duet.errors import DocumentNotFoundError, StoreError
from duet.store import LISTS, MESSAGES, Query, SqliteDocumentStore


class TestStoreInit:
    """Tests for store initialization."""

    async def test_init_creates_documents_table(self, store):
        """Test that init creates the documents table."""
        async with store._conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table'"
        ) as cursor:
            tables = [row[0] for row in await cursor.fetchall()]
        assert "documents" in tables

    async def test_use_before_init_raises(self):
        """Test that an unopened store raises StoreError."""
        st = SqliteDocumentStore(":memory:")
        with pytest.raises(StoreError):
            await st.get(MESSAGES, "x")


class TestStoreWrites:
    """Tests for insert/set/update/delete."""

    async def test_insert_assigns_id_and_timestamp(self, store):
        """Test that insert assigns a fresh id and a server timestamp."""
        doc = await store.insert(MESSAGES, {"content": "hi"}, server_timestamp="timestamp")

        assert doc.id
        assert doc.get("timestamp")
        fetched = await store.get(MESSAGES, doc.id)
        assert fetched.data == doc.data

    async def test_server_timestamps_strictly_increase(self, store):
        """Test that consecutive server timestamps never tie."""
        stamps = []
        for i in range(20):
            doc = await store.insert(MESSAGES, {"n": i}, server_timestamp="timestamp")
            stamps.append(doc.get("timestamp"))

        assert stamps == sorted(stamps)
        assert len(set(stamps)) == len(stamps)

    async def test_get_missing_returns_none(self, store):
        """Test that get on a missing id returns None."""
        assert await store.get(MESSAGES, "missing") is None

    async def test_set_merge_keeps_other_fields(self, store):
        """Test that set with merge keeps fields it does not mention."""
        await store.set("users", "alice", {"email": "a@x", "customPhotoURL": "/blobs/a"})
        doc = await store.set("users", "alice", {"email": "new@x"}, merge=True)

        assert doc.get("email") == "new@x"
        assert doc.get("customPhotoURL") == "/blobs/a"

    async def test_set_without_merge_overwrites(self, store):
        """Test that set without merge replaces the document."""
        await store.set("users", "alice", {"email": "a@x", "customPhotoURL": "/blobs/a"})
        doc = await store.set("users", "alice", {"email": "new@x"}, merge=False)

        assert doc.data == {"email": "new@x"}

    async def test_update_is_field_level(self, store):
        """Test that update leaves omitted fields untouched."""
        doc = await store.insert(LISTS, {"name": "A", "emoji": "x"})
        await store.update(LISTS, doc.id, {"name": "B"})

        fetched = await store.get(LISTS, doc.id)
        assert fetched.data == {"name": "B", "emoji": "x"}

    async def test_update_missing_raises(self, store):
        """Test that updating a missing document raises DocumentNotFoundError."""
        with pytest.raises(DocumentNotFoundError):
            await store.update(LISTS, "missing", {"name": "B"})

    async def test_update_rejects_bad_field_names(self, store):
        """Test that field names are validated."""
        doc = await store.insert(LISTS, {"name": "A"})
        with pytest.raises(ValueError):
            await store.update(LISTS, doc.id, {"name') --": "B"})

    async def test_delete_missing_is_not_an_error(self, store):
        """Test that deleting a missing document is silent."""
        await store.delete(MESSAGES, "missing")

    async def test_clear_removes_everything(self, store):
        """Test that clear drops every document."""
        await store.insert(MESSAGES, {"n": 1})
        await store.insert(LISTS, {"n": 2})
        await store.clear()

        assert await store.query(Query(MESSAGES)) == []
        assert await store.query(Query(LISTS)) == []


class TestStoreArrays:
    """Tests for atomic array membership."""

    async def test_array_union_has_set_semantics(self, store):
        """Test that array_union does not duplicate members."""
        doc = await store.insert(MESSAGES, {"likes": []})
        await store.array_union(MESSAGES, doc.id, "likes", "alice")
        updated = await store.array_union(MESSAGES, doc.id, "likes", "alice", "bob")

        assert updated.get("likes") == ["alice", "bob"]

    async def test_array_remove(self, store):
        """Test that array_remove drops only the named members."""
        doc = await store.insert(MESSAGES, {"likes": ["alice", "bob"]})
        updated = await store.array_remove(MESSAGES, doc.id, "likes", "alice")

        assert updated.get("likes") == ["bob"]

    async def test_array_union_missing_field(self, store):
        """Test that array_union creates a missing field."""
        doc = await store.insert(MESSAGES, {})
        updated = await store.array_union(MESSAGES, doc.id, "likes", "alice")

        assert updated.get("likes") == ["alice"]

    async def test_array_ops_on_missing_document_raise(self, store):
        """Test that array ops on a missing document raise."""
        with pytest.raises(DocumentNotFoundError):
            await store.array_union(MESSAGES, "missing", "likes", "alice")


class TestStoreQueries:
    """Tests for filtered, ordered, cursor queries."""

    async def test_equality_filters(self, store):
        """Test AND-ed equality filters."""
        await store.insert("listItems", {"listId": "L1", "messageId": "m1"})
        await store.insert("listItems", {"listId": "L1", "messageId": "m2"})
        await store.insert("listItems", {"listId": "L2", "messageId": "m1"})

        docs = await store.query(
            Query("listItems").where("listId", "L1").where("messageId", "m1")
        )
        assert len(docs) == 1

    async def test_boolean_filter(self, store):
        """Test that booleans filter the way they are stored."""
        await store.insert("listItems", {"completed": True})
        await store.insert("listItems", {"completed": False})

        docs = await store.query(Query("listItems").where("completed", True))
        assert len(docs) == 1
        assert docs[0].get("completed") is True

    async def test_any_of_disjunction(self, store):
        """Test that where_any matches either alternative."""
        await store.insert(LISTS, {"visibility": "public", "ownerId": "bob"})
        await store.insert(LISTS, {"visibility": "private", "ownerId": "alice"})
        await store.insert(LISTS, {"visibility": "private", "ownerId": "bob"})

        docs = await store.query(
            Query(LISTS).where_any(("visibility", "public"), ("ownerId", "alice"))
        )
        assert len(docs) == 2

    async def test_descending_order_and_limit(self, store):
        """Test newest-first ordering with a limit."""
        for i in range(5):
            await store.insert(MESSAGES, {"n": i}, server_timestamp="timestamp")

        docs = await store.query(Query(MESSAGES).order("timestamp", descending=True).take(3))
        assert [d.get("n") for d in docs] == [4, 3, 2]

    async def test_start_after_continues_past_cursor(self, store):
        """Test that start_after resumes strictly after the cursor document."""
        for i in range(7):
            await store.insert(MESSAGES, {"n": i}, server_timestamp="timestamp")

        newest = Query(MESSAGES).order("timestamp", descending=True).take(3)
        first = await store.query(newest)
        second = await store.query(newest.after(first[-1]))
        third = await store.query(newest.after(second[-1]))

        assert [d.get("n") for d in first] == [6, 5, 4]
        assert [d.get("n") for d in second] == [3, 2, 1]
        assert [d.get("n") for d in third] == [0]

    async def test_start_after_breaks_ties_by_id(self, store):
        """Test that documents sharing an order value are not skipped."""
        for doc_id in ("a", "b", "c"):
            await store.set(LISTS, doc_id, {"createdAt": "same"})

        query = Query(LISTS).order("createdAt", descending=True).take(1)
        seen = []
        page = await store.query(query)
        while page:
            seen.append(page[0].id)
            page = await store.query(query.after(page[0]))

        assert seen == ["c", "b", "a"]

    async def test_start_after_requires_order(self, store):
        """Test that a cursor without ordering is rejected."""
        doc = await store.insert(MESSAGES, {"n": 1})
        with pytest.raises(ValueError):
            await store.query(Query(MESSAGES).after(doc))


class TestStoreSubscriptions:
    """Tests for live query subscriptions."""

    async def test_subscribe_delivers_initial_snapshot(self, store):
        """Test that subscribing delivers the current result set immediately."""
        await store.insert(MESSAGES, {"n": 1}, server_timestamp="timestamp")
        snapshots = []

        async def on_snapshot(docs):
            snapshots.append([d.get("n") for d in docs])

        await store.subscribe(Query(MESSAGES).order("timestamp"), on_snapshot)
        assert snapshots == [[1]]

    async def test_writes_redeliver_full_result(self, store):
        """Test that each write re-delivers the whole result set in order."""
        snapshots = []

        async def on_snapshot(docs):
            snapshots.append([d.get("n") for d in docs])

        await store.subscribe(Query(MESSAGES).order("timestamp"), on_snapshot)
        await store.insert(MESSAGES, {"n": 1}, server_timestamp="timestamp")
        await store.insert(MESSAGES, {"n": 2}, server_timestamp="timestamp")

        assert snapshots == [[], [1], [1, 2]]

    async def test_other_collections_do_not_notify(self, store):
        """Test that writes elsewhere do not trigger deliveries."""
        snapshots = []

        async def on_snapshot(docs):
            snapshots.append(docs)

        await store.subscribe(Query(MESSAGES), on_snapshot)
        await store.insert(LISTS, {"n": 1})

        assert len(snapshots) == 1

    async def test_closed_subscription_stops_delivering(self, store):
        """Test that close() stops deliveries and is idempotent."""
        snapshots = []

        async def on_snapshot(docs):
            snapshots.append(docs)

        subscription = await store.subscribe(Query(MESSAGES), on_snapshot)
        subscription.close()
        subscription.close()
        await store.insert(MESSAGES, {"n": 1})

        assert subscription.closed
        assert len(snapshots) == 1

    async def test_subscribe_document(self, store):
        """Test single-document subscriptions, including a missing document."""
        snapshots = []

        async def on_snapshot(docs):
            snapshots.append([d.get("displayName") for d in docs])

        await store.subscribe_document("users", "bob", on_snapshot)
        await store.set("users", "bob", {"displayName": "Bob"})
        await store.set("users", "alice", {"displayName": "Alice"})

        assert snapshots[0] == []
        assert snapshots[1] == ["Bob"]
        assert snapshots[-1] == ["Bob"]

    async def test_failing_handler_does_not_break_writes(self, store):
        """Test that a subscriber error is logged, not raised to the writer."""

        async def on_snapshot(docs):
            if docs:
                raise RuntimeError("boom")

        await store.subscribe(Query(MESSAGES), on_snapshot)
        doc = await store.insert(MESSAGES, {"n": 1})

        assert await store.get(MESSAGES, doc.id) is not None

    async def test_failed_first_delivery_leaves_nothing_live(self, store):
        """Test that a handler failing on the initial snapshot closes its subscription."""
        calls = []

        async def on_snapshot(docs):
            calls.append(docs)
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            await store.subscribe(Query(MESSAGES), on_snapshot)
        with pytest.raises(RuntimeError):
            await store.subscribe_document("users", "bob", on_snapshot)
        await store.insert(MESSAGES, {"n": 1})
        await store.set("users", "bob", {"displayName": "Bob"})

        assert len(calls) == 2
        assert store._subscriptions.get(MESSAGES, []) == []
        assert store._subscriptions.get("users", []) == []

    async def test_fetch_failure_calls_error_handler(self, store, monkeypatch):
        """Test that a failed re-query is reported to on_error."""
        errors = []

        async def on_snapshot(docs):
            pass

        async def on_error(error):
            errors.append(error)

        subscription = await store.subscribe(Query(MESSAGES), on_snapshot, on_error)

        async def broken():
            raise StoreError("offline")

        monkeypatch.setattr(subscription, "_fetch", broken)
        await store.insert(MESSAGES, {"n": 1})

        assert len(errors) == 1
        assert isinstance(errors[0], StoreError)

    async def test_close_store_closes_subscriptions(self):
        """Test that closing the store closes every subscription."""
        st = SqliteDocumentStore(":memory:")
        await st.init()

        async def on_snapshot(docs):
            pass

        subscription = await st.subscribe(Query(MESSAGES), on_snapshot)
        await st.close()

        assert subscription.closed
