"""Timestamp encoding shared by the store and the models."""

from datetime import datetime, timezone


def encode_timestamp(value: datetime) -> str:
    """Encode a datetime as a fixed-width UTC ISO string (sortable as text)."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def parse_timestamp(value: str | datetime | None) -> datetime | None:
    """Decode a stored timestamp; None stays None."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    return datetime.fromisoformat(value).replace(tzinfo=timezone.utc)
