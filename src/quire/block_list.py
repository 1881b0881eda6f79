"""Ordered blocks of the active page.

BlockList mirrors the blocks of exactly one page, sorted by position. The
cache is replaced wholesale when the active page changes and is otherwise
updated only with rows the store has confirmed.
"""

from __future__ import annotations

import logging
from operator import attrgetter
from typing import Any

from .errors import (
    NoPageSelectedError,
    NotFoundError,
    PartialShiftError,
    QuireError,
    StoreError,
    ValidationError,
)
from .markdown import parse_markdown, render_markdown
from .models import Block, BlockType
from .session import Session
from .store.base import RecordCollection, RecordStore

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = frozenset({"type", "content", "checked", "position"})


def _coerce_type(value: BlockType | str) -> BlockType:
    try:
        return BlockType(value)
    except ValueError as exc:
        raise ValidationError(
            f"Unknown block type: {value}",
            field="type",
            constraint="block_type",
        ) from exc


class BlockList:
    """Position-ordered block cache for one page at a time."""

    def __init__(self, store: RecordStore, session: Session, page_id: str | None = None) -> None:
        self._store = store
        self._session = session
        self._page_id: str | None = None
        self._blocks: list[Block] = []
        if page_id is not None:
            self.open(page_id)

    @property
    def page_id(self) -> str | None:
        return self._page_id

    def _records(self) -> RecordCollection:
        return self._store.blocks(self._session.owner_id)

    def _require_page(self, operation: str) -> str:
        if self._page_id is None:
            raise NoPageSelectedError(operation=operation)
        self._session.require_owner(operation)
        return self._page_id

    def _require(self, block_id: str) -> Block:
        for block in self._blocks:
            if block.id == block_id:
                return block
        raise NotFoundError(f"Block not found: {block_id}", resource_type="block", resource_id=block_id)

    def _merge(self, block: Block) -> Block:
        """Insert or replace a confirmed block, then restore position order."""
        for i, existing in enumerate(self._blocks):
            if existing.id == block.id:
                self._blocks[i] = block
                break
        else:
            self._blocks.append(block)
        # Stable: equal positions keep their current relative order
        self._blocks.sort(key=attrgetter("position"))
        return block

    # =========================================================================
    # Loading
    # =========================================================================

    def open(self, page_id: str | None) -> list[Block]:
        """Scope the list to ``page_id`` and load its blocks.

        The previous page's blocks are dropped even if loading fails.
        """
        self._page_id = page_id
        self._blocks = []
        if page_id is None:
            return []
        return self.refresh()

    def refresh(self) -> list[Block]:
        """Reload the current page's blocks from the store."""
        if self._page_id is None or not self._session.is_authenticated:
            self._blocks = []
            return []

        rows = self._records().select({"page_id": self._page_id}, order_by="position")
        self._blocks = [Block.from_dict(row) for row in rows]
        logger.debug("Loaded %d blocks for page %s", len(self._blocks), self._page_id)
        return self.list()

    # =========================================================================
    # Reads
    # =========================================================================

    def list(self) -> list[Block]:
        """Blocks of the active page, ascending position."""
        if self._page_id is None:
            return []
        return list(self._blocks)

    def get(self, block_id: str) -> Block | None:
        for block in self._blocks:
            if block.id == block_id:
                return block
        return None

    def __len__(self) -> int:
        return len(self._blocks)

    # =========================================================================
    # Mutations
    # =========================================================================

    def create(
        self,
        block_type: BlockType | str = BlockType.PARAGRAPH,
        content: str = "",
        position: int | None = None,
        *,
        checked: bool = False,
    ) -> Block:
        """Create a block; without ``position`` it goes after the last one.

        Raises:
            NoPageSelectedError: No page is open.
        """
        page_id = self._require_page("blocks.create")
        block_type = _coerce_type(block_type)
        if position is None:
            position = len(self._blocks)

        row: dict[str, Any] = {
            "page_id": page_id,
            "type": block_type.value,
            "content": content,
            "position": position,
        }
        if checked:
            row["checked"] = True

        block = self._merge(Block.from_dict(self._records().insert(row)))
        logger.debug("Created %s block %s at %d", block.type.value, block.id, block.position)
        return block

    def update(self, block_id: str, **fields: Any) -> Block:
        """Apply a partial update to type, content, checked or position."""
        self._require_page("blocks.update")
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(
                f"Block fields not updatable: {', '.join(sorted(unknown))}",
                field=sorted(unknown)[0],
                constraint="updatable_fields",
            )
        if "type" in fields:
            fields["type"] = _coerce_type(fields["type"]).value
        self._require(block_id)

        row = self._records().update(block_id, fields)
        return self._merge(Block.from_dict(row))

    def change_type(self, block_id: str, block_type: BlockType | str) -> Block:
        """Convert a block in place (slash command): new type, empty content."""
        return self.update(block_id, type=block_type, content="")

    def delete(self, block_id: str) -> None:
        """Delete exactly one block."""
        self._require_page("blocks.delete")
        self._require(block_id)

        if not self._records().delete_by_id(block_id):
            logger.warning("Block %s was already gone from the store", block_id)
        self._blocks = [block for block in self._blocks if block.id != block_id]

    def insert_after(self, after_id: str, block_type: BlockType | str = BlockType.PARAGRAPH) -> Block:
        """Create a block directly after ``after_id``.

        Every later block is shifted down by one, each with its own store
        update, then the new block is created. Its slot is the anchor's
        position + 1, not the anchor's index + 1, so gaps in positions keep
        the order intact.

        The shifts are not atomic. A failed shift (store failure, or a
        sibling that vanished from the store) does not stop the others, the
        new block is still created, and PartialShiftError lists the blocks
        that kept their old positions. An unknown ``after_id`` appends
        instead.
        """
        self._require_page("blocks.insert_after")
        block_type = _coerce_type(block_type)

        ordered = self.list()
        index = next((i for i, block in enumerate(ordered) if block.id == after_id), None)
        if index is None:
            return self.create(block_type)

        later = ordered[index + 1:]
        shifted: list[str] = []
        unshifted: list[str] = []
        failure: QuireError | None = None
        for block in later:
            try:
                row = self._records().update(block.id, {"position": block.position + 1})
            except (StoreError, NotFoundError) as exc:
                logger.warning("Could not shift block %s: %s", block.id, exc)
                unshifted.append(block.id)
                failure = failure or exc
                continue
            self._merge(Block.from_dict(row))
            shifted.append(block.id)

        new_block = self.create(block_type, "", position=ordered[index].position + 1)

        if failure is not None:
            raise PartialShiftError(
                f"Inserted block {new_block.id} but {len(unshifted)} block(s) kept their positions",
                block=new_block,
                shifted=shifted,
                unshifted=unshifted,
            ) from failure
        return new_block

    # =========================================================================
    # Markdown
    # =========================================================================

    def to_markdown(self) -> str:
        return render_markdown(self.list())

    def append_markdown(self, text: str) -> list[Block]:
        """Parse Markdown and append one block per construct, in order."""
        self._require_page("blocks.append_markdown")
        created = []
        for entry in parse_markdown(text):
            created.append(self.create(entry["type"], entry["content"], checked=entry["checked"]))
        logger.info("Imported %d blocks into page %s", len(created), self._page_id)
        return created
