"""Object storage module."""

from .blobs import IObjectStorage, LocalObjectStorage

__all__ = ["IObjectStorage", "LocalObjectStorage"]
