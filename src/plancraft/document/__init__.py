"""Lesson document model: typed block tree and Markdown codec."""

from __future__ import annotations

from plancraft.document.markdown import (
    MarkdownDocumentAdapter,
    parse_document,
    render_block,
    render_document,
)
from plancraft.document.model import (
    Block,
    BlockKind,
    Document,
    HeadingMatcher,
    find_heading,
    heading_matcher,
    section_body,
    section_bounds,
)
from plancraft.document.template import LessonOutline, render_lesson_plan

__all__ = [
    "Block",
    "BlockKind",
    "Document",
    "HeadingMatcher",
    "LessonOutline",
    "MarkdownDocumentAdapter",
    "find_heading",
    "heading_matcher",
    "parse_document",
    "render_block",
    "render_document",
    "render_lesson_plan",
    "section_body",
    "section_bounds",
]
