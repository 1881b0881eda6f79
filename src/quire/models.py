"""Data models for pages and blocks.

Pages form a forest through ``parent_id``; blocks belong to exactly one
page and are ordered by ``position``. Both are flat records: trees are
derived views (``PageTreeNode``) and never hold back references.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

DEFAULT_TITLE = "Untitled"


class BlockType(str, Enum):
    """The closed set of block variants."""

    PARAGRAPH = "paragraph"
    HEADING_1 = "heading1"
    HEADING_2 = "heading2"
    HEADING_3 = "heading3"
    BULLETED_LIST = "bulleted_list"
    NUMBERED_LIST = "numbered_list"
    QUOTE = "quote"
    CODE = "code"
    DIVIDER = "divider"
    TODO = "todo"

    @property
    def uses_checked(self) -> bool:
        """Only to-do blocks give meaning to ``checked``."""
        return self is BlockType.TODO


@dataclass(frozen=True)
class BlockTypeInfo:
    """Menu metadata for a block type."""

    type: BlockType
    label: str
    description: str
    keywords: tuple[str, ...]

    def matches(self, query: str) -> bool:
        query = query.lower()
        return query in self.label.lower() or any(query in k for k in self.keywords)

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type.value,
            "label": self.label,
            "description": self.description,
            "keywords": list(self.keywords),
        }


# Slash-command catalog, in menu order
BLOCK_TYPE_CATALOG: tuple[BlockTypeInfo, ...] = (
    BlockTypeInfo(BlockType.PARAGRAPH, "Text", "Just start writing with plain text.",
                  ("text", "paragraph", "plain")),
    BlockTypeInfo(BlockType.HEADING_1, "Heading 1", "Big section heading.",
                  ("h1", "heading", "title", "large")),
    BlockTypeInfo(BlockType.HEADING_2, "Heading 2", "Medium section heading.",
                  ("h2", "heading", "subtitle")),
    BlockTypeInfo(BlockType.HEADING_3, "Heading 3", "Small section heading.",
                  ("h3", "heading", "small")),
    BlockTypeInfo(BlockType.BULLETED_LIST, "Bulleted List", "Create a simple bulleted list.",
                  ("bullet", "list", "ul", "unordered")),
    BlockTypeInfo(BlockType.NUMBERED_LIST, "Numbered List", "Create a list with numbering.",
                  ("number", "list", "ol", "ordered")),
    BlockTypeInfo(BlockType.TODO, "To-do List", "Track tasks with a to-do list.",
                  ("todo", "task", "checkbox", "check")),
    BlockTypeInfo(BlockType.QUOTE, "Quote", "Capture a quote or callout.",
                  ("quote", "callout", "blockquote")),
    BlockTypeInfo(BlockType.CODE, "Code", "Capture a code snippet.",
                  ("code", "snippet", "programming")),
    BlockTypeInfo(BlockType.DIVIDER, "Divider", "Visually divide blocks.",
                  ("divider", "line", "separator", "hr")),
)


def search_block_types(query: str = "") -> list[BlockTypeInfo]:
    """Filter the catalog by label or keyword substring (case-insensitive)."""
    return [info for info in BLOCK_TYPE_CATALOG if info.matches(query.strip())]


def normalize_title(title: str | None) -> str:
    if title is None or not title.strip():
        return DEFAULT_TITLE
    return title


@dataclass
class Page:
    """A node in an owner's page forest."""

    id: str
    owner_id: str
    title: str = DEFAULT_TITLE
    icon: str | None = None
    cover_image: str | None = None
    parent_id: str | None = None
    is_favorite: bool = False
    position: int = 0
    created_at: str = ""
    updated_at: str = ""

    @property
    def is_root(self) -> bool:
        return self.parent_id is None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "owner_id": self.owner_id,
            "title": self.title,
            "icon": self.icon,
            "cover_image": self.cover_image,
            "parent_id": self.parent_id,
            "is_favorite": self.is_favorite,
            "position": self.position,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Page:
        """Create from dictionary (store row or RPC payload)."""
        return cls(
            id=data["id"],
            owner_id=data["owner_id"],
            title=data.get("title") or DEFAULT_TITLE,
            icon=data.get("icon"),
            cover_image=data.get("cover_image"),
            parent_id=data.get("parent_id"),
            is_favorite=bool(data.get("is_favorite", False)),
            position=data.get("position", 0),
            created_at=data.get("created_at", ""),
            updated_at=data.get("updated_at", ""),
        )


@dataclass
class Block:
    """One typed unit of content on a page."""

    id: str
    page_id: str
    type: BlockType = BlockType.PARAGRAPH
    content: str = ""
    checked: bool = False
    position: int = 0
    created_at: str = ""
    updated_at: str = ""

    @property
    def is_done(self) -> bool:
        """Checked state as it should be displayed; False for non-todos."""
        return self.type.uses_checked and self.checked

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "page_id": self.page_id,
            "type": self.type.value,
            "content": self.content,
            "checked": self.checked,
            "position": self.position,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Block:
        """Create from dictionary."""
        return cls(
            id=data["id"],
            page_id=data["page_id"],
            type=BlockType(data.get("type", BlockType.PARAGRAPH.value)),
            content=data.get("content") or "",
            checked=bool(data.get("checked", False)),
            position=data.get("position", 0),
            created_at=data.get("created_at", ""),
            updated_at=data.get("updated_at", ""),
        )


@dataclass
class PageTreeNode:
    """A page with its ordered children and depth, derived from the flat cache."""

    page: Page
    depth: int = 0
    children: list[PageTreeNode] = field(default_factory=list)

    @property
    def id(self) -> str:
        return self.page.id

    def to_dict(self) -> dict[str, Any]:
        return {
            **self.page.to_dict(),
            "depth": self.depth,
            "children": [child.to_dict() for child in self.children],
        }

    def walk(self) -> list[PageTreeNode]:
        """Flatten this subtree depth-first, self first."""
        result = [self]
        for child in self.children:
            result.extend(child.walk())
        return result
