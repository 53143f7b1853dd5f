"""Duet core module."""

from .app import Application, IApplication
from .auth import AllowListAuthorizer, IAuthorizer, SessionContext
from .blobs import IObjectStorage, LocalObjectStorage
from .errors import DuetError, NotPermittedError, SendFailedError, StoreError
from .feed import IMessageFeed, MessageFeed
from .lists import IListEngine, ListEngine, ListSelection, SelectionState
from .models import (
    Drawing,
    ListItem,
    ListItemWithMessage,
    ListKind,
    Message,
    MessageWithReply,
    TraceEvent,
    UserList,
    UserProfile,
    Visibility,
)
from .profiles import CounterpartWatcher, ProfileDirectory
from .session import ChatSession
from .store import Document, IDocumentStore, Query, SqliteDocumentStore
from .tracker import ITracker, Tracker

__all__ = [
    # Application
    "Application",
    "IApplication",
    "ChatSession",
    # Models
    "Message",
    "MessageWithReply",
    "Drawing",
    "UserList",
    "ListItem",
    "ListItemWithMessage",
    "ListKind",
    "Visibility",
    "UserProfile",
    "TraceEvent",
    # Components
    "IDocumentStore",
    "SqliteDocumentStore",
    "Document",
    "Query",
    "IObjectStorage",
    "LocalObjectStorage",
    "IAuthorizer",
    "AllowListAuthorizer",
    "SessionContext",
    "ITracker",
    "Tracker",
    "IMessageFeed",
    "MessageFeed",
    "IListEngine",
    "ListEngine",
    "ListSelection",
    "SelectionState",
    "ProfileDirectory",
    "CounterpartWatcher",
    # Errors
    "DuetError",
    "StoreError",
    "NotPermittedError",
    "SendFailedError",
]
