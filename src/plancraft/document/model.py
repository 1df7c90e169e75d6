"""Typed block tree for lesson documents.

Blocks are frozen; every edit produces a new :class:`Document` that shares
untouched blocks with the old one by identity. Parsed blocks keep the
markup they were parsed from in ``source`` so they render back unchanged.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterator, Sequence
from dataclasses import dataclass, field, replace
from enum import Enum

HeadingMatcher = Callable[[str], bool]


class BlockKind(Enum):
    """Classification of block-level document nodes."""

    HEADING = "heading"
    PARAGRAPH = "paragraph"
    BULLET_LIST = "bullet_list"
    ORDERED_LIST = "ordered_list"
    LIST_ITEM = "list_item"
    CONTAINER = "container"
    BLOCKQUOTE = "blockquote"
    CODE = "code"
    RAW = "raw"


LIST_KINDS: frozenset[BlockKind] = frozenset({BlockKind.BULLET_LIST, BlockKind.ORDERED_LIST})


@dataclass(frozen=True, slots=True)
class Block:
    """A block-level node.

    Args:
        kind: Node type.
        text: Inline markup for headings, paragraphs, code and raw blocks.
        level: Heading rank (1 is highest); 0 for non-headings.
        name: Container name (``problem``, ``solution``); empty otherwise.
        children: Child blocks in document order.
        source: Markup the block was parsed from. None for blocks built in
            code. Not part of equality.
    """

    kind: BlockKind
    text: str = ""
    level: int = 0
    name: str = ""
    children: tuple[Block, ...] = ()
    source: str | None = field(default=None, compare=False, repr=False)

    @classmethod
    def heading(cls, text: str, level: int = 2) -> Block:
        return cls(BlockKind.HEADING, text=text, level=level)

    @classmethod
    def paragraph(cls, text: str) -> Block:
        return cls(BlockKind.PARAGRAPH, text=text)

    @classmethod
    def ordered_list(cls, items: Sequence[str]) -> Block:
        return cls(
            BlockKind.ORDERED_LIST,
            children=tuple(
                cls(BlockKind.LIST_ITEM, children=(cls.paragraph(text),)) for text in items
            ),
        )

    @classmethod
    def container(cls, name: str, children: Sequence[Block]) -> Block:
        return cls(BlockKind.CONTAINER, name=name, children=tuple(children))

    @property
    def is_heading(self) -> bool:
        return self.kind is BlockKind.HEADING

    @property
    def is_list(self) -> bool:
        return self.kind in LIST_KINDS

    def is_container(self, name: str) -> bool:
        """Return True if this block is a container with the given name."""
        return self.kind is BlockKind.CONTAINER and self.name == name

    def with_children(self, children: Sequence[Block]) -> Block:
        """Return a copy with new children; the stale source is dropped."""
        children = tuple(children)
        if len(children) == len(self.children) and all(
            new is old for new, old in zip(children, self.children)
        ):
            return self
        return replace(self, children=children, source=None)

    def plain_text(self) -> str:
        """Concatenate inline text of this block and its descendants."""
        parts = [self.text] if self.text else []
        parts.extend(child.plain_text() for child in self.children)
        return "\n".join(p for p in parts if p)


@dataclass(frozen=True, slots=True)
class Document:
    """An ordered sequence of top-level blocks."""

    blocks: tuple[Block, ...] = ()

    def __len__(self) -> int:
        return len(self.blocks)

    def __iter__(self) -> Iterator[Block]:
        return iter(self.blocks)

    def splice(self, start: int, end: int, new_blocks: Sequence[Block]) -> Document:
        """Return a document with ``blocks[start:end]`` replaced by ``new_blocks``."""
        return Document(self.blocks[:start] + tuple(new_blocks) + self.blocks[end:])

    def headings(self) -> Iterator[tuple[int, Block]]:
        """Yield ``(index, block)`` for every top-level heading."""
        for i, block in enumerate(self.blocks):
            if block.is_heading:
                yield i, block


# ---------------------------------------------------------------------------
# Structural queries
# ---------------------------------------------------------------------------


def heading_matcher(pattern: str) -> HeadingMatcher:
    """Build a case-insensitive heading predicate from a regular expression."""
    regex = re.compile(pattern, re.IGNORECASE)

    def matches(text: str) -> bool:
        return regex.search(_strip_inline_markup(text)) is not None

    return matches


def find_heading(document: Document, matcher: HeadingMatcher) -> int | None:
    """Return the index of the first top-level heading whose text matches."""
    for i, block in document.headings():
        if matcher(block.text):
            return i
    return None


def section_bounds(document: Document, heading_index: int) -> tuple[int, int]:
    """Return the ``[start, end)`` body range of the section under a heading.

    The body runs from the block after the heading up to the next heading of
    equal or higher rank (lower or equal ``level``), or the document end.

    Raises:
        ValueError: If ``heading_index`` does not point at a heading.
    """
    heading = document.blocks[heading_index]
    if not heading.is_heading:
        raise ValueError(f"Block {heading_index} is {heading.kind.value}, not a heading")

    end = len(document.blocks)
    for i in range(heading_index + 1, len(document.blocks)):
        block = document.blocks[i]
        if block.is_heading and block.level <= heading.level:
            end = i
            break
    return heading_index + 1, end


def section_body(document: Document, matcher: HeadingMatcher) -> tuple[int, int, int] | None:
    """Locate a section by heading predicate.

    Returns:
        ``(heading_index, start, end)`` or None if no heading matches.
    """
    index = find_heading(document, matcher)
    if index is None:
        return None
    start, end = section_bounds(document, index)
    return index, start, end


_INLINE_MARKUP_RE = re.compile(r"[*_`]+")


def _strip_inline_markup(text: str) -> str:
    return _INLINE_MARKUP_RE.sub("", text).strip()
