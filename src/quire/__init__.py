"""quire - pages and blocks for a Notion-style editor.

PageTree holds an owner's page forest, BlockList the ordered blocks of the
open page, and Workspace ties the two together over a RecordStore.
"""

from __future__ import annotations

__version__ = "0.1.0"

from .block_list import BlockList
from .errors import (
    InvalidMoveError,
    NoPageSelectedError,
    NotAuthenticatedError,
    NotFoundError,
    PartialShiftError,
    QuireError,
    StoreError,
    ValidationError,
)
from .models import Block, BlockType, Page, PageTreeNode, search_block_types
from .page_tree import PageTree
from .session import Session
from .store import RecordCollection, RecordStore, SqliteStore
from .workspace import Workspace

__all__ = [
    "__version__",
    # Core
    "PageTree",
    "BlockList",
    "Workspace",
    "Session",
    # Models
    "Page",
    "Block",
    "BlockType",
    "PageTreeNode",
    "search_block_types",
    # Stores
    "RecordStore",
    "RecordCollection",
    "SqliteStore",
    # Errors
    "QuireError",
    "ValidationError",
    "NotAuthenticatedError",
    "NoPageSelectedError",
    "InvalidMoveError",
    "NotFoundError",
    "StoreError",
    "PartialShiftError",
]
