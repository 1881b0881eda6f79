"""Durable record stores for pages and blocks."""

from .base import RecordCollection, RecordStore, Row
from .sqlite import SqliteStore

__all__ = [
    "RecordCollection",
    "RecordStore",
    "Row",
    "SqliteStore",
]
