"""Page forest for one owner.

PageTree keeps the owner's pages as a flat, keyed cache (the last result
the store confirmed) and derives every tree-shaped view from it on demand:
children, ancestors, descendants, and the nested tree. Nothing holds
parent/child pointers, so a corrupt parent chain can only make a walk stop
early, never loop.

Mutations go to the store first; the cache changes only after the store
call succeeds.
"""

from __future__ import annotations

import logging
from operator import attrgetter
from typing import Any

from .errors import InvalidMoveError, NotFoundError, ValidationError
from .models import Page, PageTreeNode, normalize_title
from .session import Session
from .store.base import RecordCollection, RecordStore

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = frozenset({"title", "icon", "cover_image", "is_favorite", "position", "parent_id"})


class PageTree:
    """Cached, owner-scoped page forest with cycle-safe mutation."""

    def __init__(self, store: RecordStore, session: Session) -> None:
        self._store = store
        self._session = session
        # Insertion order doubles as the tie-break for equal positions
        self._pages: dict[str, Page] = {}
        self._children: dict[str | None, list[str]] | None = None

    @property
    def session(self) -> Session:
        return self._session

    def _records(self) -> RecordCollection:
        return self._store.pages(self._session.owner_id)

    def _invalidate(self) -> None:
        self._children = None

    def _child_index(self) -> dict[str | None, list[str]]:
        """parent_id -> ordered child ids, rebuilt after each cache change."""
        if self._children is None:
            index: dict[str | None, list[str]] = {}
            for page in self.list():
                index.setdefault(page.parent_id, []).append(page.id)
            self._children = index
        return self._children

    # =========================================================================
    # Loading
    # =========================================================================

    def refresh(self) -> list[Page]:
        """Reload every page of the owner from the store.

        With no owner the cache is simply emptied. On store failure the
        previous cache is kept and the error propagates.
        """
        if not self._session.is_authenticated:
            self._pages = {}
            self._invalidate()
            return []

        rows = self._records().select({}, order_by="position")
        self._pages = {row["id"]: Page.from_dict(row) for row in rows}
        self._invalidate()
        logger.debug("Loaded %d pages for %s", len(self._pages), self._session.owner_id)
        return self.list()

    # =========================================================================
    # Derived views
    # =========================================================================

    def list(self) -> list[Page]:
        """All pages, ascending position, ties in insertion order."""
        if not self._session.is_authenticated:
            return []
        return sorted(self._pages.values(), key=attrgetter("position"))

    def get(self, page_id: str) -> Page | None:
        return self._pages.get(page_id)

    def __contains__(self, page_id: object) -> bool:
        return page_id in self._pages

    def __len__(self) -> int:
        return len(self._pages)

    def children_of(self, parent_id: str | None) -> list[Page]:
        """Pages whose parent is ``parent_id`` (None for the root group)."""
        return [self._pages[i] for i in self._child_index().get(parent_id, [])]

    def root_pages(self) -> list[Page]:
        return self.children_of(None)

    def favorites(self) -> list[Page]:
        return [page for page in self.list() if page.is_favorite]

    def ancestors_of(self, page_id: str) -> list[Page]:
        """Ancestors ordered from the root down to the immediate parent.

        The walk stops at a root, at a parent missing from the cache, or
        at a page it has already visited.
        """
        ancestors: list[Page] = []
        current = self._pages.get(page_id)
        seen = {page_id}

        while current is not None and current.parent_id is not None:
            if current.parent_id in seen:
                logger.warning("Parent cycle detected at page %s", current.parent_id)
                break
            parent = self._pages.get(current.parent_id)
            if parent is None:
                break
            ancestors.insert(0, parent)
            seen.add(parent.id)
            current = parent

        return ancestors

    def ancestor_ids(self, page_id: str) -> list[str]:
        return [page.id for page in self.ancestors_of(page_id)]

    def breadcrumbs(self, page_id: str) -> list[Page]:
        """Ancestors followed by the page itself; empty for unknown pages."""
        page = self._pages.get(page_id)
        if page is None:
            return []
        return [*self.ancestors_of(page_id), page]

    def descendant_ids(self, page_id: str) -> set[str]:
        """Every page below ``page_id``, excluding the page itself."""
        index = self._child_index()
        found: set[str] = set()
        stack = list(index.get(page_id, []))

        while stack:
            child_id = stack.pop()
            if child_id in found or child_id == page_id:
                continue
            found.add(child_id)
            stack.extend(index.get(child_id, []))

        return found

    def descendants_count(self, page_id: str) -> int:
        return len(self.descendant_ids(page_id))

    def build_tree(self, root_id: str | None = None) -> list[PageTreeNode]:
        """Nest the children of ``root_id`` recursively with depth counters."""
        return self._build(root_id, 0, set() if root_id is None else {root_id})

    def _build(self, parent_id: str | None, depth: int, seen: set[str]) -> list[PageTreeNode]:
        nodes = []
        for page in self.children_of(parent_id):
            if page.id in seen:
                continue
            seen.add(page.id)
            nodes.append(PageTreeNode(
                page=page,
                depth=depth,
                children=self._build(page.id, depth + 1, seen),
            ))
        return nodes

    # =========================================================================
    # Mutations
    # =========================================================================

    def _require(self, page_id: str) -> Page:
        page = self._pages.get(page_id)
        if page is None:
            raise NotFoundError(f"Page not found: {page_id}", resource_type="page", resource_id=page_id)
        return page

    def _merge(self, page: Page) -> Page:
        self._pages[page.id] = page
        self._invalidate()
        return page

    def create(self, title: str = "Untitled", parent_id: str | None = None) -> Page:
        """Create a page at the end of its sibling group.

        Raises:
            NotAuthenticatedError: No owner is established.
            NotFoundError: ``parent_id`` is not one of the owner's pages.
        """
        owner_id = self._session.require_owner("pages.create")
        if parent_id is not None:
            self._require(parent_id)

        row = self._records().insert({
            "title": normalize_title(title),
            "owner_id": owner_id,
            "parent_id": parent_id,
            "position": len(self.children_of(parent_id)),
        })
        page = self._merge(Page.from_dict(row))
        logger.debug("Created page %s under %s at %d", page.id, parent_id, page.position)
        return page

    def update(self, page_id: str, **fields: Any) -> Page:
        """Apply a partial update.

        Only title, icon, cover_image, is_favorite, position and parent_id
        may change. A parent_id change is validated like ``move``.
        """
        self._session.require_owner("pages.update")
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(
                f"Page fields not updatable: {', '.join(sorted(unknown))}",
                field=sorted(unknown)[0],
                constraint="updatable_fields",
            )
        # Self-parenting is invalid whether or not the page exists
        if "parent_id" in fields and fields["parent_id"] == page_id:
            raise InvalidMoveError(
                "Cannot move page to itself",
                page_id=page_id,
                target_id=page_id,
                reason="self",
            )
        self._require(page_id)

        if "title" in fields:
            fields["title"] = normalize_title(fields["title"])
        if "parent_id" in fields:
            self._check_move(page_id, fields["parent_id"])

        row = self._records().update(page_id, fields)
        return self._merge(Page.from_dict(row))

    def _check_move(self, page_id: str, new_parent_id: str | None) -> None:
        if new_parent_id is None:
            return
        if new_parent_id in self.descendant_ids(page_id):
            raise InvalidMoveError(
                "Cannot move page to its descendant",
                page_id=page_id,
                target_id=new_parent_id,
                reason="descendant",
            )
        self._require(new_parent_id)

    def move(self, page_id: str, new_parent_id: str | None, position: int | None = None) -> Page:
        """Reparent a page (None moves it to the root group).

        Raises:
            InvalidMoveError: ``new_parent_id`` is the page or one of its descendants.
        """
        fields: dict[str, Any] = {"parent_id": new_parent_id}
        if position is not None:
            fields["position"] = position
        page = self.update(page_id, **fields)
        logger.debug("Moved page %s under %s", page_id, new_parent_id)
        return page

    def delete(self, page_id: str) -> set[str]:
        """Delete a page and its whole subtree.

        The closure is computed before the store call and pruned from the
        cache afterwards, whatever the store reports about its cascade.

        Returns:
            The ids removed from the cache (the page and its descendants).
        """
        self._session.require_owner("pages.delete")
        self._require(page_id)
        closure = self.descendant_ids(page_id) | {page_id}

        existed = self._records().delete_by_id(page_id)
        if not existed:
            logger.warning("Page %s was already gone from the store", page_id)

        for removed in closure:
            self._pages.pop(removed, None)
        self._invalidate()
        logger.info("Deleted page %s with %d descendants", page_id, len(closure) - 1)
        return closure
