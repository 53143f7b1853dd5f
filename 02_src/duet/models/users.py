"""User profile data model."""

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from .timestamps import encode_timestamp, parse_timestamp


@dataclass
class UserProfile:
    """Public profile of one of the two participants."""

    id: str
    email: str
    display_name: str
    photo_url: str = ""
    custom_photo_url: str | None = None
    last_seen: datetime | None = None

    @classmethod
    def from_document(cls, doc: Any) -> "UserProfile":
        data = doc.data
        return cls(
            id=doc.id,
            email=data.get("email", ""),
            display_name=data.get("displayName") or "Anonymous",
            photo_url=data.get("photoURL") or "",
            custom_photo_url=data.get("customPhotoURL"),
            last_seen=parse_timestamp(data.get("lastSeen")),
        )

    @property
    def avatar_url(self) -> str:
        """Custom avatar when one was uploaded, provider photo otherwise."""
        return self.custom_photo_url or self.photo_url

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "email": self.email,
            "display_name": self.display_name,
            "photo_url": self.photo_url,
            "custom_photo_url": self.custom_photo_url,
            "avatar_url": self.avatar_url,
            "last_seen": encode_timestamp(self.last_seen) if self.last_seen else None,
        }
