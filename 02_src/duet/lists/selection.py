"""Selected-list state for the collection view."""

from dataclasses import dataclass, field
from enum import Enum

from ..models import ListItemWithMessage


class SelectionState(str, Enum):
    """Whether a list is open."""

    UNSELECTED = "unselected"
    SELECTED = "selected"


@dataclass
class ListSelection:
    """The open list, its items and any delete awaiting confirmation.

    ``generation`` increases on every transition so that an item fetch
    started for an earlier selection can be recognized as stale.
    """

    list_id: str | None = None
    items: list[ListItemWithMessage] = field(default_factory=list)
    loading: bool = False
    error: str | None = None
    pending_delete: str | None = None
    generation: int = 0

    @property
    def state(self) -> SelectionState:
        if self.list_id is None:
            return SelectionState.UNSELECTED
        return SelectionState.SELECTED

    def select(self, list_id: str) -> int:
        self.list_id = list_id
        self.items = []
        self.loading = True
        self.error = None
        self.generation += 1
        return self.generation

    def clear(self) -> None:
        self.list_id = None
        self.items = []
        self.loading = False
        self.error = None
        self.pending_delete = None
        self.generation += 1

    def to_dict(self) -> dict:
        return {
            "state": self.state.value,
            "list_id": self.list_id,
            "items": [item.to_dict() for item in self.items],
            "loading": self.loading,
            "error": self.error,
            "pending_delete": self.pending_delete,
        }
