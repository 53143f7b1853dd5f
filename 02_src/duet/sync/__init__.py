"""Pagination and reference-resolution helpers."""

from .pagination import Page, dedupe_by_id
from .resolve import resolve_references

__all__ = ["Page", "dedupe_by_id", "resolve_references"]
