"""Document store module."""

from .query import Document, FieldFilter, Query
from .store import (
    ErrorHandler,
    IDocumentStore,
    ISubscription,
    SnapshotHandler,
    SqliteDocumentStore,
    Subscription,
)

# Collection names
MESSAGES = "messages"
LISTS = "lists"
LIST_ITEMS = "listItems"
USERS = "users"
TRACE_EVENTS = "traceEvents"

__all__ = [
    "Document",
    "FieldFilter",
    "Query",
    "IDocumentStore",
    "ISubscription",
    "SqliteDocumentStore",
    "Subscription",
    "SnapshotHandler",
    "ErrorHandler",
    "MESSAGES",
    "LISTS",
    "LIST_ITEMS",
    "USERS",
    "TRACE_EVENTS",
]
