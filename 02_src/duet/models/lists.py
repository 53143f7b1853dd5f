"""List (collection/checklist) data models."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

from .messages import Message
from .timestamps import encode_timestamp, parse_timestamp


class Visibility(str, Enum):
    """Who can see a list."""

    PUBLIC = "public"
    PRIVATE = "private"


class ListKind(str, Enum):
    """What a list is used for."""

    COLLECTION = "collection"
    CHECKLIST = "checklist"


@dataclass
class UserList:
    """A named list of messages owned by one identity."""

    id: str
    name: str
    owner_id: str
    visibility: Visibility
    kind: ListKind
    emoji: str
    created_at: datetime | None = None

    @classmethod
    def from_document(cls, doc: Any) -> "UserList":
        data = doc.data
        return cls(
            id=doc.id,
            name=data["name"],
            owner_id=data["ownerId"],
            visibility=Visibility(data["visibility"]),
            kind=ListKind(data["kind"]),
            emoji=data.get("emoji") or "",
            created_at=parse_timestamp(data.get("createdAt")),
        )

    def is_visible_to(self, identity: str) -> bool:
        return self.visibility is Visibility.PUBLIC or self.owner_id == identity

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "owner_id": self.owner_id,
            "visibility": self.visibility.value,
            "kind": self.kind.value,
            "emoji": self.emoji,
            "created_at": encode_timestamp(self.created_at) if self.created_at else None,
        }


@dataclass
class ListItem:
    """Membership of one message in one list."""

    id: str
    list_id: str
    message_id: str
    added_at: datetime | None = None
    completed: bool = False

    @classmethod
    def from_document(cls, doc: Any) -> "ListItem":
        data = doc.data
        return cls(
            id=doc.id,
            list_id=data["listId"],
            message_id=data["messageId"],
            added_at=parse_timestamp(data.get("addedAt")),
            completed=bool(data.get("completed", False)),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "list_id": self.list_id,
            "message_id": self.message_id,
            "added_at": encode_timestamp(self.added_at) if self.added_at else None,
            "completed": self.completed,
        }


@dataclass
class ListItemWithMessage(ListItem):
    """A ListItem with its message resolved; None once the message is gone."""

    message: Message | None = None

    @classmethod
    def project(cls, item: ListItem, message: Message | None) -> "ListItemWithMessage":
        return cls(
            id=item.id,
            list_id=item.list_id,
            message_id=item.message_id,
            added_at=item.added_at,
            completed=item.completed,
            message=message,
        )

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["message"] = self.message.to_dict() if self.message else None
        return data
