"""SQLite-backed document store with live query subscriptions."""

import asyncio
import json
import re
import uuid
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Awaitable, Callable, Protocol

import aiosqlite

from ..config import resolve_db_path
from ..errors import DocumentNotFoundError, StoreError
from ..logging_config import get_logger
from ..models.timestamps import encode_timestamp
from .query import Document, Query

logger = get_logger(__name__)

_FIELD_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

SnapshotHandler = Callable[[list[Document]], Awaitable[None]]
ErrorHandler = Callable[[Exception], Awaitable[None]]


class ISubscription(Protocol):
    """Handle for a live subscription."""

    @property
    def closed(self) -> bool:
        ...

    def close(self) -> None:
        """Stop deliveries. Idempotent."""
        ...


class IDocumentStore(Protocol):
    """Remote document store consumed by the engines."""

    async def init(self) -> None:
        """Open the store."""
        ...

    async def close(self) -> None:
        """Close the store and every open subscription."""
        ...

    async def query(self, query: Query) -> list[Document]:
        """One-shot ordered range query."""
        ...

    async def get(self, collection: str, doc_id: str) -> Document | None:
        """Point read by id."""
        ...

    async def insert(
        self, collection: str, data: dict, server_timestamp: str | None = None
    ) -> Document:
        """Insert with a store-assigned id and optional server timestamp field."""
        ...

    async def set(
        self,
        collection: str,
        doc_id: str,
        data: dict,
        merge: bool = True,
        server_timestamp: str | None = None,
    ) -> Document:
        """Create or overwrite a document under a caller-chosen id."""
        ...

    async def update(self, collection: str, doc_id: str, fields: dict) -> Document:
        """Field-level partial update; omitted fields are untouched."""
        ...

    async def array_union(
        self, collection: str, doc_id: str, field_name: str, *values: Any
    ) -> Document:
        """Atomically add elements to an array field (set semantics)."""
        ...

    async def array_remove(
        self, collection: str, doc_id: str, field_name: str, *values: Any
    ) -> Document:
        """Atomically remove elements from an array field."""
        ...

    async def delete(self, collection: str, doc_id: str) -> None:
        """Delete by id; deleting a missing document is not an error."""
        ...

    async def subscribe(
        self,
        query: Query,
        on_snapshot: SnapshotHandler,
        on_error: ErrorHandler | None = None,
    ) -> ISubscription:
        """Deliver the full result set now and after every change to the collection."""
        ...

    async def subscribe_document(
        self,
        collection: str,
        doc_id: str,
        on_snapshot: SnapshotHandler,
        on_error: ErrorHandler | None = None,
    ) -> ISubscription:
        """Deliver ``[doc]`` (or ``[]`` while missing) now and after every change."""
        ...

    async def clear(self) -> None:
        """Delete every document."""
        ...


class Subscription:
    """A live query: re-runs its fetch and re-delivers the full result set."""

    def __init__(
        self,
        collection: str,
        fetch: Callable[[], Awaitable[list[Document]]],
        on_snapshot: SnapshotHandler,
        on_error: ErrorHandler | None,
        detach: Callable[["Subscription"], None],
    ):
        self.collection = collection
        self._fetch = fetch
        self._on_snapshot = on_snapshot
        self._on_error = on_error
        self._detach = detach
        # FIFO lock: deliveries are applied strictly in arrival order
        self._lock = asyncio.Lock()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def refresh(self) -> None:
        """Fetch the current result set and deliver it."""
        async with self._lock:
            if self._closed:
                return
            try:
                documents = await self._fetch()
            except Exception as e:
                logger.warning(
                    "Subscription on %s failed: %s", self.collection, e
                )
                if self._on_error and not self._closed:
                    await self._on_error(e)
                return

            if self._closed:
                return
            await self._on_snapshot(documents)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._detach(self)


class SqliteDocumentStore:
    """Document store implementation on a single aiosqlite connection."""

    def __init__(self, db_path: str | Path | None = None):
        if db_path is None:
            self._db_path = resolve_db_path()
        else:
            self._db_path = resolve_db_path(db_path)
        self._conn: aiosqlite.Connection | None = None
        self._write_lock = asyncio.Lock()
        self._subscriptions: dict[str, list[Subscription]] = {}
        self._last_timestamp: datetime | None = None

    async def init(self) -> None:
        """Open the database and create tables."""
        self._conn = await aiosqlite.connect(self._db_path)

        schema_path = Path(__file__).parent / "schema.sql"
        with open(schema_path, "r", encoding="utf-8") as f:
            schema_sql = f.read()
        await self._conn.executescript(schema_sql)
        await self._conn.commit()

    async def close(self) -> None:
        """Close every subscription and the database connection."""
        for subscriptions in list(self._subscriptions.values()):
            for subscription in list(subscriptions):
                subscription.close()
        self._subscriptions.clear()

        if self._conn:
            await self._conn.close()
            self._conn = None

    # Reads
    async def query(self, query: Query) -> list[Document]:
        """One-shot ordered range query."""
        sql, params = self._compile(query)
        rows = await self._fetchall(sql, params)
        return [
            Document(collection=query.collection, id=row[0], data=json.loads(row[1]))
            for row in rows
        ]

    async def get(self, collection: str, doc_id: str) -> Document | None:
        """Point read by id."""
        rows = await self._fetchall(
            "SELECT id, data FROM documents WHERE collection = ? AND id = ?",
            (collection, doc_id),
        )
        if not rows:
            return None
        return Document(collection=collection, id=rows[0][0], data=json.loads(rows[0][1]))

    # Writes
    async def insert(
        self, collection: str, data: dict, server_timestamp: str | None = None
    ) -> Document:
        """Insert with a store-assigned id and optional server timestamp field."""
        async with self._write_lock:
            doc_data = dict(data)
            if server_timestamp:
                doc_data[_check_field(server_timestamp)] = self._next_timestamp()
            document = Document(collection=collection, id=uuid.uuid4().hex, data=doc_data)
            await self._execute(
                """
                INSERT INTO documents (collection, id, data)
                VALUES (?, ?, ?)
                """,
                (collection, document.id, json.dumps(doc_data)),
            )

        await self._notify(collection)
        return document

    async def set(
        self,
        collection: str,
        doc_id: str,
        data: dict,
        merge: bool = True,
        server_timestamp: str | None = None,
    ) -> Document:
        """Create or overwrite a document under a caller-chosen id."""
        async with self._write_lock:
            doc_data = {}
            if merge:
                existing = await self.get(collection, doc_id)
                if existing:
                    doc_data.update(existing.data)
            doc_data.update(data)
            if server_timestamp:
                doc_data[_check_field(server_timestamp)] = self._next_timestamp()
            await self._write(collection, doc_id, doc_data)

        await self._notify(collection)
        return Document(collection=collection, id=doc_id, data=doc_data)

    async def update(self, collection: str, doc_id: str, fields: dict) -> Document:
        """Field-level partial update; omitted fields are untouched.

        Raises:
            DocumentNotFoundError: If the document does not exist.
        """
        async with self._write_lock:
            existing = await self._require(collection, doc_id)
            doc_data = dict(existing.data)
            doc_data.update({_check_field(k): v for k, v in fields.items()})
            await self._write(collection, doc_id, doc_data)

        await self._notify(collection)
        return Document(collection=collection, id=doc_id, data=doc_data)

    async def array_union(
        self, collection: str, doc_id: str, field_name: str, *values: Any
    ) -> Document:
        """Atomically add elements to an array field (set semantics)."""
        return await self._modify_array(collection, doc_id, field_name, values, add=True)

    async def array_remove(
        self, collection: str, doc_id: str, field_name: str, *values: Any
    ) -> Document:
        """Atomically remove elements from an array field."""
        return await self._modify_array(collection, doc_id, field_name, values, add=False)

    async def delete(self, collection: str, doc_id: str) -> None:
        """Delete by id; deleting a missing document is not an error."""
        async with self._write_lock:
            await self._execute(
                "DELETE FROM documents WHERE collection = ? AND id = ?",
                (collection, doc_id),
            )

        await self._notify(collection)

    # Subscriptions
    async def subscribe(
        self,
        query: Query,
        on_snapshot: SnapshotHandler,
        on_error: ErrorHandler | None = None,
    ) -> Subscription:
        """Deliver the full result set now and after every change to the collection."""
        subscription = Subscription(
            collection=query.collection,
            fetch=lambda: self.query(query),
            on_snapshot=on_snapshot,
            on_error=on_error,
            detach=self._detach,
        )
        return await self._start(subscription)

    async def subscribe_document(
        self,
        collection: str,
        doc_id: str,
        on_snapshot: SnapshotHandler,
        on_error: ErrorHandler | None = None,
    ) -> Subscription:
        """Deliver ``[doc]`` (or ``[]`` while missing) now and after every change."""

        async def fetch() -> list[Document]:
            document = await self.get(collection, doc_id)
            return [document] if document else []

        subscription = Subscription(
            collection=collection,
            fetch=fetch,
            on_snapshot=on_snapshot,
            on_error=on_error,
            detach=self._detach,
        )
        return await self._start(subscription)

    # Lifecycle
    async def clear(self) -> None:
        """Delete every document."""
        async with self._write_lock:
            await self._execute("DELETE FROM documents", ())

        for collection in list(self._subscriptions):
            await self._notify(collection)

    # Internals
    def _compile(self, query: Query) -> tuple[str, list]:
        conditions = ["collection = ?"]
        params: list = [query.collection]

        for f in query.filters:
            conditions.append(f"{_json_field(f.field)} IS ?")
            params.append(f.sql_value)

        if query.any_of:
            alternatives = []
            for f in query.any_of:
                alternatives.append(f"{_json_field(f.field)} IS ?")
                params.append(f.sql_value)
            conditions.append(f"({' OR '.join(alternatives)})")

        order_clause = ""
        if query.order_by:
            expr = _json_field(query.order_by)
            direction = "DESC" if query.descending else "ASC"
            if query.start_after is not None:
                op = "<" if query.descending else ">"
                cursor_value = query.start_after.data.get(query.order_by)
                conditions.append(f"({expr} {op} ? OR ({expr} = ? AND id {op} ?))")
                params.extend([cursor_value, cursor_value, query.start_after.id])
            order_clause = f"ORDER BY {expr} {direction}, id {direction}"
        elif query.start_after is not None:
            raise ValueError("start_after requires order_by")

        sql = f"""
            SELECT id, data
            FROM documents
            WHERE {' AND '.join(conditions)}
            {order_clause}
        """
        if query.limit is not None:
            sql += " LIMIT ?"
            params.append(query.limit)

        return sql, params

    async def _modify_array(
        self,
        collection: str,
        doc_id: str,
        field_name: str,
        values: tuple,
        add: bool,
    ) -> Document:
        async with self._write_lock:
            existing = await self._require(collection, doc_id)
            doc_data = dict(existing.data)
            current = list(doc_data.get(_check_field(field_name)) or [])
            if add:
                for value in values:
                    if value not in current:
                        current.append(value)
            else:
                current = [value for value in current if value not in values]
            doc_data[field_name] = current
            await self._write(collection, doc_id, doc_data)

        await self._notify(collection)
        return Document(collection=collection, id=doc_id, data=doc_data)

    async def _require(self, collection: str, doc_id: str) -> Document:
        document = await self.get(collection, doc_id)
        if document is None:
            raise DocumentNotFoundError(
                f"No document {collection}/{doc_id}",
                collection=collection,
                doc_id=doc_id,
            )
        return document

    async def _write(self, collection: str, doc_id: str, data: dict) -> None:
        await self._execute(
            """
            INSERT INTO documents (collection, id, data)
            VALUES (?, ?, ?)
            ON CONFLICT (collection, id)
            DO UPDATE SET data = excluded.data, updated_at = CURRENT_TIMESTAMP
            """,
            (collection, doc_id, json.dumps(data)),
        )

    async def _execute(self, sql: str, params) -> None:
        conn = self._require_conn()
        try:
            await conn.execute(sql, params)
            await conn.commit()
        except aiosqlite.Error as e:
            raise StoreError(f"Store write failed: {e}") from e

    async def _fetchall(self, sql: str, params) -> list:
        conn = self._require_conn()
        try:
            cursor = await conn.execute(sql, params)
            return list(await cursor.fetchall())
        except aiosqlite.Error as e:
            raise StoreError(f"Store read failed: {e}") from e

    def _require_conn(self) -> aiosqlite.Connection:
        if not self._conn:
            raise StoreError("Store not initialized")
        return self._conn

    def _next_timestamp(self) -> str:
        """Server timestamp, strictly increasing across writes."""
        now = datetime.now(timezone.utc)
        if self._last_timestamp and now <= self._last_timestamp:
            now = self._last_timestamp + timedelta(microseconds=1)
        self._last_timestamp = now
        return encode_timestamp(now)

    async def _notify(self, collection: str) -> None:
        subscriptions = list(self._subscriptions.get(collection, []))
        if not subscriptions:
            return

        results = await asyncio.gather(
            *[subscription.refresh() for subscription in subscriptions],
            return_exceptions=True,
        )
        for i, result in enumerate(results):
            if isinstance(result, Exception):
                logger.error(
                    "Error delivering %s snapshot to subscriber %s: %s",
                    collection,
                    i,
                    result,
                )

    async def _start(self, subscription: Subscription) -> Subscription:
        """Register and deliver the first snapshot; a failed start leaves nothing live."""
        self._subscriptions.setdefault(subscription.collection, []).append(subscription)
        try:
            await subscription.refresh()
        except Exception:
            subscription.close()
            raise
        return subscription

    def _detach(self, subscription: Subscription) -> None:
        subscriptions = self._subscriptions.get(subscription.collection, [])
        if subscription in subscriptions:
            subscriptions.remove(subscription)


def _check_field(name: str) -> str:
    if not _FIELD_RE.match(name):
        raise ValueError(f"Invalid field name: {name!r}")
    return name


def _json_field(name: str) -> str:
    return f"json_extract(data, '$.{_check_field(name)}')"
