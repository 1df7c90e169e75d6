"""Markdown codec for lesson documents using markdown-it-py.

Item containers use the mdit-py-plugins fenced container syntax; an outer
container takes one more colon than the deepest container nested in it::

    :::: problem
    What is 3/4 of 12?

    ::: solution
    **Solution**

    1. Divide 12 by 4.
    2. Multiply by 3.

    **Answer:** 9
    :::
    ::::
"""

from __future__ import annotations

from typing import Any

from markdown_it import MarkdownIt
from mdit_py_plugins.container import container_plugin

from plancraft.document.model import Block, BlockKind, Document

CONTAINER_NAMES: tuple[str, ...] = ("problem", "solution")

_CONTAINER_PREFIX = "container_"

# Block tokens kept verbatim as RAW blocks
_RAW_OPEN_TOKENS: frozenset[str] = frozenset({"table_open"})


class MarkdownDocumentAdapter:
    """Parse Markdown into a :class:`Document` tree and render it back.

    Top-level blocks and blocks directly inside containers keep their source
    lines, so unmodified blocks render exactly as they were parsed. Blocks
    inside lists and blockquotes are re-rendered from structure.
    """

    def __init__(self, container_names: tuple[str, ...] = CONTAINER_NAMES) -> None:
        self._md = MarkdownIt("commonmark").enable("table")
        for name in container_names:
            container_plugin(self._md, name)

    def parse(self, content: str) -> Document:
        """Parse Markdown content into a block tree.

        Args:
            content: Full Markdown document as a string.

        Returns:
            Document whose top-level blocks follow source order.
        """
        tokens = self._md.parse(content)
        lines = content.split("\n")
        blocks = self._build_blocks(tokens, 0, len(tokens), lines, keep_source=True)
        return Document(tuple(blocks))

    def render(self, document: Document) -> str:
        """Serialize a document to Markdown, one blank line between blocks."""
        if not document.blocks:
            return ""
        return "\n\n".join(render_block(block) for block in document.blocks) + "\n"

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _build_blocks(
        self,
        tokens: list[Any],
        start: int,
        stop: int,
        lines: list[str],
        keep_source: bool,
    ) -> list[Block]:
        """Convert the token run ``tokens[start:stop]`` into sibling blocks."""
        blocks: list[Block] = []
        i = start
        while i < stop:
            token = tokens[i]
            if token.nesting == 1:
                close_idx = self._find_close(tokens, i)
                blocks.append(self._open_block(tokens, i, close_idx, lines, keep_source))
                i = close_idx + 1
                continue
            if token.nesting == 0 and token.map is not None:
                blocks.append(self._leaf_block(token, lines, keep_source))
            i += 1
        return blocks

    def _open_block(
        self,
        tokens: list[Any],
        open_idx: int,
        close_idx: int,
        lines: list[str],
        keep_source: bool,
    ) -> Block:
        token = tokens[open_idx]
        source = self._source(token, lines) if keep_source else None

        if token.type == "heading_open":
            return Block(
                BlockKind.HEADING,
                text=self._inline_text(tokens, open_idx, close_idx),
                level=int(token.tag[1:]),
                source=source,
            )

        if token.type == "paragraph_open":
            return Block(
                BlockKind.PARAGRAPH,
                text=self._inline_text(tokens, open_idx, close_idx),
                source=source,
            )

        if token.type in _RAW_OPEN_TOKENS:
            return Block(BlockKind.RAW, text=self._source(token, lines) or "", source=source)

        if token.type.startswith(_CONTAINER_PREFIX) and token.type.endswith("_open"):
            name = token.type[len(_CONTAINER_PREFIX) : -len("_open")]
            source = self._container_source(token, lines) if keep_source else None
            children = self._build_blocks(tokens, open_idx + 1, close_idx, lines, keep_source)
            return Block(BlockKind.CONTAINER, name=name, children=tuple(children), source=source)

        kind = {
            "bullet_list_open": BlockKind.BULLET_LIST,
            "ordered_list_open": BlockKind.ORDERED_LIST,
            "list_item_open": BlockKind.LIST_ITEM,
            "blockquote_open": BlockKind.BLOCKQUOTE,
        }.get(token.type)
        if kind is None:
            return Block(BlockKind.RAW, text=self._source(token, lines) or "", source=source)

        # List and quote children carry marker/prefix characters in their lines
        children = self._build_blocks(tokens, open_idx + 1, close_idx, lines, keep_source=False)
        return Block(kind, children=tuple(children), source=source)

    def _leaf_block(self, token: Any, lines: list[str], keep_source: bool) -> Block:
        source = self._source(token, lines) if keep_source else None
        if token.type in ("fence", "code_block"):
            return Block(BlockKind.CODE, text=token.content, name=token.info.strip(), source=source)
        return Block(BlockKind.RAW, text=self._source(token, lines) or token.content, source=source)

    @staticmethod
    def _source(token: Any, lines: list[str]) -> str | None:
        if token.map is None:
            return None
        start_line, end_line = token.map
        return "\n".join(lines[start_line:end_line]).rstrip("\n")

    @staticmethod
    def _container_source(token: Any, lines: list[str]) -> str | None:
        """Source of a container, including its closing fence line."""
        if token.map is None:
            return None
        start_line, end_line = token.map
        # Token map stops before the closing marker
        if end_line < len(lines) and lines[end_line].strip().startswith(token.markup):
            if set(lines[end_line].strip()) == {token.markup[0]}:
                end_line += 1
        return "\n".join(lines[start_line:end_line])

    @staticmethod
    def _inline_text(tokens: list[Any], open_idx: int, close_idx: int) -> str:
        for j in range(open_idx + 1, close_idx):
            if tokens[j].type == "inline":
                return tokens[j].content.strip()
        return ""

    @staticmethod
    def _find_close(tokens: list[Any], open_idx: int) -> int:
        """Find the token that closes ``tokens[open_idx]``."""
        depth = 0
        for j in range(open_idx, len(tokens)):
            depth += tokens[j].nesting
            if depth == 0:
                return j
        return len(tokens) - 1


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------


def render_block(block: Block, use_source: bool = True) -> str:
    """Render one block to Markdown.

    Args:
        block: Block to render.
        use_source: Reuse parsed source when present. Nested containers are
            always re-rendered so their fences stay shorter than the parent's.
    """
    if use_source and block.source is not None:
        return block.source

    kind = block.kind
    if kind is BlockKind.HEADING:
        return f"{'#' * max(1, min(block.level, 6))} {block.text}"
    if kind is BlockKind.PARAGRAPH:
        return block.text
    if kind is BlockKind.CODE:
        body = block.text if block.text.endswith("\n") else block.text + "\n"
        return f"```{block.name}\n{body}```"
    if kind is BlockKind.RAW:
        return block.text
    if kind in (BlockKind.BULLET_LIST, BlockKind.ORDERED_LIST):
        return _render_list(block)
    if kind is BlockKind.LIST_ITEM:
        return _render_list_item(block, "- ")
    if kind is BlockKind.BLOCKQUOTE:
        inner = "\n\n".join(render_block(child) for child in block.children)
        return "\n".join(f"> {line}" if line else ">" for line in inner.split("\n"))
    if kind is BlockKind.CONTAINER:
        return _render_container(block)
    raise ValueError(f"Unknown block kind: {kind!r}")


def _render_list(block: Block) -> str:
    rendered: list[str] = []
    for n, item in enumerate(block.children, start=1):
        marker = f"{n}. " if block.kind is BlockKind.ORDERED_LIST else "- "
        rendered.append(_render_list_item(item, marker))
    loose = any(len(item.children) > 1 for item in block.children)
    return ("\n\n" if loose else "\n").join(rendered)


def _render_list_item(item: Block, marker: str) -> str:
    indent = " " * len(marker)
    body = "\n\n".join(render_block(child, use_source=False) for child in item.children)
    out: list[str] = []
    for i, line in enumerate(body.split("\n")):
        if i == 0:
            out.append(marker + line)
        else:
            out.append(indent + line if line else "")
    return "\n".join(out)


def _container_height(block: Block) -> int:
    nested = [_container_height(child) for child in block.children]
    height = max(nested, default=0)
    return height + 1 if block.kind is BlockKind.CONTAINER else height


def _render_container(block: Block) -> str:
    fence = ":" * (2 + _container_height(block))
    parts = [
        render_block(child, use_source=child.kind is not BlockKind.CONTAINER)
        for child in block.children
    ]
    if not parts:
        return f"{fence} {block.name}\n{fence}"
    return f"{fence} {block.name}\n" + "\n\n".join(parts) + f"\n{fence}"


_default_adapter: MarkdownDocumentAdapter | None = None


def _adapter() -> MarkdownDocumentAdapter:
    global _default_adapter
    if _default_adapter is None:
        _default_adapter = MarkdownDocumentAdapter()
    return _default_adapter


def parse_document(content: str) -> Document:
    """Parse Markdown with the default adapter."""
    return _adapter().parse(content)


def render_document(document: Document) -> str:
    """Render a document with the default adapter."""
    return _adapter().render(document)
