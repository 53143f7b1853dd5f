"""Collection engine module."""

from .engine import IListEngine, ListEngine
from .selection import ListSelection, SelectionState

__all__ = ["IListEngine", "ListEngine", "ListSelection", "SelectionState"]
