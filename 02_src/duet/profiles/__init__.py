"""User profile module."""

from .directory import CounterpartWatcher, IProfileDirectory, ProfileDirectory

__all__ = ["CounterpartWatcher", "IProfileDirectory", "ProfileDirectory"]
