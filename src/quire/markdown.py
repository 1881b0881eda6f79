"""Markdown export and import for a page's blocks.

Blocks carry plain text and a type tag only, so inline formatting is
flattened to text on import and nothing but block-level syntax is written
on export.
"""

from __future__ import annotations

import re
from typing import Any, Iterable

from mistletoe import Document
from mistletoe.block_token import (
    BlockCode,
    CodeFence,
    Heading,
    List,
    ListItem,
    Paragraph,
    Quote,
    ThematicBreak,
)
from mistletoe.span_token import LineBreak, RawText

from .models import Block, BlockType

_CHECKBOX = re.compile(r"^\[([xX ])\]\s*(.*)$", re.DOTALL)

_HEADING_PREFIX = {
    BlockType.HEADING_1: "#",
    BlockType.HEADING_2: "##",
    BlockType.HEADING_3: "###",
}

_HEADING_TYPE = {1: BlockType.HEADING_1, 2: BlockType.HEADING_2}


# =============================================================================
# Blocks -> Markdown
# =============================================================================


def render_markdown(blocks: Iterable[Block]) -> str:
    """Render blocks in the given order, separated by blank lines."""
    return "\n\n".join(render_block(block) for block in blocks)


def render_block(block: Block) -> str:
    """Render a single block to Markdown."""
    text = block.content

    if block.type in _HEADING_PREFIX:
        return f"{_HEADING_PREFIX[block.type]} {text}"
    if block.type == BlockType.BULLETED_LIST:
        return f"- {text}"
    if block.type == BlockType.NUMBERED_LIST:
        return f"1. {text}"
    if block.type == BlockType.TODO:
        return f"- [{'x' if block.is_done else ' '}] {text}"
    if block.type == BlockType.QUOTE:
        return "\n".join(f"> {line}" if line else ">" for line in text.split("\n"))
    if block.type == BlockType.CODE:
        return f"```\n{text}\n```"
    if block.type == BlockType.DIVIDER:
        return "---"
    return text


# =============================================================================
# Markdown -> block entries
# =============================================================================


def parse_markdown(markdown: str) -> list[dict[str, Any]]:
    """Parse Markdown into block entries.

    Returns:
        ``{"type", "content", "checked"}`` dicts in document order, ready
        for ``BlockList.create``.
    """
    doc = Document(markdown)
    entries: list[dict[str, Any]] = []
    for token in doc.children:
        entries.extend(_convert_token(token))
    return entries


def _entry(block_type: BlockType, content: str = "", checked: bool = False) -> dict[str, Any]:
    return {"type": block_type, "content": content, "checked": checked}


def _convert_token(token: Any) -> list[dict[str, Any]]:
    """Convert a mistletoe block token to zero or more block entries."""
    if isinstance(token, Heading):
        block_type = _HEADING_TYPE.get(token.level, BlockType.HEADING_3)
        return [_entry(block_type, _extract_text(token))]
    if isinstance(token, Paragraph):
        return [_convert_text(_extract_text(token), BlockType.PARAGRAPH)]
    if isinstance(token, (BlockCode, CodeFence)):
        return [_entry(BlockType.CODE, _extract_text(token).rstrip("\n"))]
    if isinstance(token, List):
        return _convert_list(token)
    if isinstance(token, Quote):
        lines = [_extract_text(child) for child in token.children]
        return [_entry(BlockType.QUOTE, "\n".join(line for line in lines if line))]
    if isinstance(token, ThematicBreak):
        return [_entry(BlockType.DIVIDER)]

    # Unknown token type - keep its text as a paragraph
    text = _extract_text(token)
    return [_entry(BlockType.PARAGRAPH, text)] if text.strip() else []


def _convert_list(token: List) -> list[dict[str, Any]]:
    """Each list item becomes its own block; nested lists are flattened."""
    item_type = BlockType.NUMBERED_LIST if token.start is not None else BlockType.BULLETED_LIST
    entries = []
    for item in token.children:
        if not isinstance(item, ListItem):
            continue
        texts = []
        nested: list[dict[str, Any]] = []
        for child in item.children:
            if isinstance(child, List):
                nested.extend(_convert_list(child))
            else:
                texts.append(_extract_text(child))
        entries.append(_convert_text("\n".join(texts), item_type))
        entries.extend(nested)
    return entries


def _convert_text(text: str, default: BlockType) -> dict[str, Any]:
    """Turn ``[ ] task`` / ``[x] task`` into a todo, anything else into ``default``."""
    match = _CHECKBOX.match(text)
    if match:
        return _entry(BlockType.TODO, match.group(2), match.group(1).lower() == "x")
    return _entry(default, text)


def _extract_text(token: Any) -> str:
    """Extract plain text from a token."""
    if isinstance(token, RawText):
        return token.content
    if isinstance(token, LineBreak):
        return "\n"
    if hasattr(token, "children") and token.children is not None:
        return "".join(_extract_text(child) for child in token.children)
    return ""
