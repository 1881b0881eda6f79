"""One owner's editing session: the page tree plus the open page's blocks.

PageTree and BlockList know nothing about each other. The Workspace is the
caller that ties them together: it decides which page is open and, when a
delete removes the open page, drops that page's blocks.
"""

from __future__ import annotations

import logging
from pathlib import Path

from .block_list import BlockList
from .errors import NotFoundError
from .models import Block, Page
from .page_tree import PageTree
from .session import Session
from .store.base import RecordStore
from .store.sqlite import SqliteStore

logger = logging.getLogger(__name__)


class Workspace:
    """PageTree + BlockList for a single session."""

    def __init__(self, store: RecordStore, owner_id: str | None = None) -> None:
        self.store = store
        self.session = Session(owner_id=owner_id)
        self.pages = PageTree(store, self.session)
        self.blocks = BlockList(store, self.session)
        self.pages.refresh()

    @classmethod
    def open(cls, db_path: Path | str | None = None, owner_id: str | None = None) -> Workspace:
        """Build a workspace over a SQLite file (default: settings db path)."""
        return cls(SqliteStore(db_path), owner_id=owner_id)

    @property
    def active_page(self) -> Page | None:
        page_id = self.blocks.page_id
        return self.pages.get(page_id) if page_id else None

    def open_page(self, page_id: str) -> list[Block]:
        """Make ``page_id`` the active page and load its blocks."""
        if self.pages.get(page_id) is None:
            raise NotFoundError(f"Page not found: {page_id}", resource_type="page", resource_id=page_id)
        return self.blocks.open(page_id)

    def close_page(self) -> None:
        self.blocks.open(None)

    def delete_page(self, page_id: str) -> set[str]:
        """Delete a page subtree; close the block list if it showed one of them."""
        closure = self.pages.delete(page_id)
        if self.blocks.page_id in closure:
            logger.debug("Active page %s removed by delete of %s", self.blocks.page_id, page_id)
            self.close_page()
        return closure

    def close(self) -> None:
        self.store.close()
