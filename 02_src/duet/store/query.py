"""Query description for the document store."""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any


@dataclass(frozen=True)
class Document:
    """A stored document snapshot: store-assigned id plus its JSON data."""

    collection: str
    id: str
    data: dict = field(default_factory=dict)

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)


@dataclass(frozen=True)
class FieldFilter:
    """Equality predicate on a single top-level field."""

    field: str
    value: Any

    @property
    def sql_value(self) -> Any:
        if isinstance(self.value, Enum):
            return self.value.value
        if isinstance(self.value, bool):
            return int(self.value)
        return self.value


@dataclass(frozen=True)
class Query:
    """Ordered range query over one collection.

    ``filters`` are AND-ed equalities, ``any_of`` is a disjunction of
    equalities. ``start_after`` is a document previously returned for the
    same ordering; results continue strictly past it.
    """

    collection: str
    filters: tuple[FieldFilter, ...] = ()
    any_of: tuple[FieldFilter, ...] = ()
    order_by: str | None = None
    descending: bool = False
    limit: int | None = None
    start_after: Document | None = None

    def where(self, field_name: str, value: Any) -> "Query":
        return replace(self, filters=self.filters + (FieldFilter(field_name, value),))

    def where_any(self, *pairs: tuple[str, Any]) -> "Query":
        return replace(
            self, any_of=self.any_of + tuple(FieldFilter(f, v) for f, v in pairs)
        )

    def order(self, field_name: str, descending: bool = False) -> "Query":
        return replace(self, order_by=field_name, descending=descending)

    def take(self, limit: int) -> "Query":
        return replace(self, limit=limit)

    def after(self, document: Document) -> "Query":
        return replace(self, start_after=document)
