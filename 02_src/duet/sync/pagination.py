"""Cursor pagination helpers shared by the engines."""

from dataclasses import dataclass
from typing import Callable, Iterable, TypeVar

from ..store import Document

T = TypeVar("T")


@dataclass(frozen=True)
class Page:
    """One newest-first batch of documents as returned by the store."""

    documents: list[Document]
    page_size: int

    @property
    def cursor(self) -> Document | None:
        """Oldest document of the batch; pagination continues past it."""
        return self.documents[-1] if self.documents else None

    @property
    def has_more(self) -> bool:
        """A full page means older documents may remain."""
        return len(self.documents) == self.page_size

    def __len__(self) -> int:
        return len(self.documents)


def dedupe_by_id(items: Iterable[T], key: Callable[[T], str]) -> list[T]:
    """Drop later occurrences of an id, keeping the first."""
    seen: set[str] = set()
    unique = []
    for item in items:
        item_id = key(item)
        if item_id in seen:
            continue
        seen.add(item_id)
        unique.append(item)
    return unique
