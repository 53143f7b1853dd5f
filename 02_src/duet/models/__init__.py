"""Core data models for Duet."""

from .lists import ListItem, ListItemWithMessage, ListKind, UserList, Visibility
from .messages import Drawing, Message, MessageWithReply
from .timestamps import encode_timestamp, parse_timestamp
from .tracing import TraceEvent
from .users import UserProfile

__all__ = [
    # Messages
    "Message",
    "MessageWithReply",
    "Drawing",
    # Lists
    "UserList",
    "ListItem",
    "ListItemWithMessage",
    "ListKind",
    "Visibility",
    # Users
    "UserProfile",
    # Tracing
    "TraceEvent",
    # Helpers
    "encode_timestamp",
    "parse_timestamp",
]
