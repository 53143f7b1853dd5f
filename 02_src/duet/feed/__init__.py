"""Message feed module."""

from .engine import FeedListener, IMessageFeed, MessageFeed

__all__ = ["FeedListener", "IMessageFeed", "MessageFeed"]
