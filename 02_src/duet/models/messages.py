"""Message-related data models."""

import base64
import binascii
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from .timestamps import encode_timestamp, parse_timestamp


@dataclass
class Message:
    """A single message in the conversation.

    Exactly one of ``content`` and ``image_url`` is set.
    """

    id: str
    sender_id: str
    timestamp: datetime | None
    content: str | None = None
    image_url: str | None = None
    reply_to: str | None = None
    likes: frozenset[str] = field(default_factory=frozenset)

    @classmethod
    def from_document(cls, doc: Any) -> "Message":
        data = doc.data
        return cls(
            id=doc.id,
            sender_id=data["senderId"],
            timestamp=parse_timestamp(data.get("timestamp")),
            content=data.get("content"),
            image_url=data.get("imageUrl"),
            reply_to=data.get("replyTo"),
            likes=frozenset(data.get("likes") or ()),
        )

    def is_liked_by(self, identity: str) -> bool:
        return identity in self.likes

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sender_id": self.sender_id,
            "content": self.content,
            "image_url": self.image_url,
            "reply_to": self.reply_to,
            "likes": sorted(self.likes),
            "timestamp": encode_timestamp(self.timestamp) if self.timestamp else None,
        }


@dataclass
class MessageWithReply(Message):
    """A Message with its reply target resolved at read time."""

    reply_to_message: Message | None = None

    @classmethod
    def project(
        cls, message: Message, reply_to_message: Message | None
    ) -> "MessageWithReply":
        return cls(
            id=message.id,
            sender_id=message.sender_id,
            timestamp=message.timestamp,
            content=message.content,
            image_url=message.image_url,
            reply_to=message.reply_to,
            likes=message.likes,
            reply_to_message=reply_to_message,
        )

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["reply_to_message"] = (
            self.reply_to_message.to_dict() if self.reply_to_message else None
        )
        return data


@dataclass
class Drawing:
    """A finished canvas drawing, PNG-encoded."""

    data: bytes
    width: int = 0
    height: int = 0
    content_type: str = "image/png"

    @classmethod
    def from_data_url(cls, data_url: str, width: int = 0, height: int = 0) -> "Drawing":
        """Decode a ``data:image/png;base64,...`` URL as produced by a canvas.

        Raises:
            ValueError: If the URL is not a base64 data URL.
        """
        header, sep, payload = data_url.partition(",")
        if not sep or not header.startswith("data:") or ";base64" not in header:
            raise ValueError("Expected a base64 data URL")
        content_type = header[len("data:"):].split(";", 1)[0] or "image/png"
        try:
            data = base64.b64decode(payload, validate=True)
        except binascii.Error as e:
            raise ValueError(f"Invalid base64 payload: {e}") from e
        return cls(data=data, width=width, height=height, content_type=content_type)

    @property
    def is_empty(self) -> bool:
        return not self.data
