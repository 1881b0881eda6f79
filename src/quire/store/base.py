"""Record store contract.

The document engine talks to durable storage only through these five
primitives per collection. Implementations scope every call to the owner
the collection was opened for; the engine never filters by owner itself.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

Row = dict[str, Any]


class RecordCollection(ABC):
    """One owner-scoped table of records."""

    @abstractmethod
    def select(self, filters: dict[str, Any] | None = None, order_by: str = "position") -> list[Row]:
        """Return matching rows ordered by ``order_by`` ascending.

        A filter value of None matches NULL. Rows sharing an ``order_by``
        value come back in insertion order.
        """

    @abstractmethod
    def insert(self, row: Row) -> Row:
        """Insert a row and return it with server-assigned fields (id, timestamps)."""

    @abstractmethod
    def update(self, row_id: str, partial: Row) -> Row:
        """Apply a partial update, refresh ``updated_at``, return the stored row."""

    @abstractmethod
    def delete_by_id(self, row_id: str) -> bool:
        """Delete one row (and whatever the store cascades). True if it existed."""


class RecordStore(ABC):
    """Factory for owner-scoped page and block collections."""

    @abstractmethod
    def pages(self, owner_id: str | None) -> RecordCollection:
        """Pages visible to ``owner_id``."""

    @abstractmethod
    def blocks(self, owner_id: str | None) -> RecordCollection:
        """Blocks whose page belongs to ``owner_id``."""

    def close(self) -> None:
        """Release any held resources."""
