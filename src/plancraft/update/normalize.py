"""Normalize the practice-problems section into canonical problem items."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING

from plancraft.document.model import Block, BlockKind, section_body
from plancraft.update.merge import has_item_structure
from plancraft.update.templates import template_problem

if TYPE_CHECKING:
    from collections.abc import Iterator, Sequence

    from plancraft.document.model import Document, HeadingMatcher

logger = logging.getLogger(__name__)

PROBLEM = "problem"
SOLUTION = "solution"

# "1.", "2)", "Problem 3:", "**Question 4.**"; a bare number needs a space
# after its delimiter so decimals like "2.5" stay intact
_NUMBERING_RE = re.compile(
    r"^\s*(?:\*\*)?"
    r"(?:(?:problem|question|exercise)\s*\d+\s*[.):]|\d+[.)])"
    r"(?=\s|\*\*|$)(?:\*\*)?\s*",
    re.IGNORECASE,
)
_SOLUTION_LINE_RE = re.compile(r"^\W*(solution|answer|steps?)\b", re.IGNORECASE)
_PLACEHOLDER_RE = re.compile(r"^\W*item\s*\d+\s*:?", re.IGNORECASE)
_FIRST_WORD_RE = re.compile(r"[A-Za-z]+")

OBJECTIVE_VERBS: frozenset[str] = frozenset(
    {
        "understand",
        "learn",
        "identify",
        "explain",
        "describe",
        "recognize",
        "apply",
        "demonstrate",
        "develop",
        "review",
        "explore",
        "master",
        "build",
    }
)

MIN_ITEM_LENGTH = 12


@dataclass(frozen=True, slots=True)
class _Candidate:
    text: str
    block: Block


def strip_numbering(text: str) -> str:
    """Remove a leading item number or ``Problem N:`` label."""
    return _NUMBERING_RE.sub("", text, count=1).strip()


def is_solution_line(text: str) -> bool:
    """Return True for text that opens a solution, answer or steps block."""
    return _SOLUTION_LINE_RE.match(text) is not None


def is_objective(text: str) -> bool:
    """Return True for learning-objective phrasing rather than a problem."""
    stripped = text.strip()
    if stripped.endswith("?"):
        return False
    first = _FIRST_WORD_RE.search(stripped)
    return first is not None and first.group(0).lower() in OBJECTIVE_VERBS


def is_placeholder(text: str) -> bool:
    """Return True for stub items too short or generic to be a problem."""
    stripped = text.strip()
    return len(stripped) < MIN_ITEM_LENGTH or _PLACEHOLDER_RE.match(stripped) is not None


def problem_text(item: Block) -> str:
    """Return the prompt text of a ``problem`` container."""
    for child in item.children:
        if child.kind is BlockKind.PARAGRAPH:
            return child.text
        if not child.is_container(SOLUTION):
            return child.plain_text()
    return ""


def _from_list(block: Block) -> Iterator[_Candidate]:
    for item in block.children:
        if not item.children:
            continue
        head, *rest = item.children
        if head.kind is not BlockKind.PARAGRAPH:
            continue
        text = strip_numbering(head.text)
        if text:
            yield _Candidate(text, Block.container(PROBLEM, [Block.paragraph(text), *rest]))


def _from_paragraph(block: Block) -> Iterator[_Candidate]:
    for line in block.text.split("\n"):
        text = strip_numbering(line)
        if text and not is_solution_line(text):
            yield _Candidate(text, Block.container(PROBLEM, [Block.paragraph(text)]))


def collect_items(body: Sequence[Block]) -> list[_Candidate]:
    """Collect candidate problem items from a section body in document order.

    Standalone paragraphs count only when the section has no list or
    container structure.
    """
    structured = has_item_structure(body)
    candidates: list[_Candidate] = []
    for block in body:
        if block.is_container(PROBLEM):
            candidates.append(_Candidate(problem_text(block), block))
        elif block.is_list:
            candidates.extend(_from_list(block))
        elif block.kind is BlockKind.PARAGRAPH and not structured:
            candidates.extend(_from_paragraph(block))
    return candidates


def normalize_section(
    document: Document,
    required_count: int | None,
    matcher: HeadingMatcher,
) -> Document:
    """Rebuild the matched section as a flat run of ``problem`` containers.

    Objective-shaped and placeholder items are dropped. With
    ``required_count`` set the items are truncated from the end or padded
    with template problems. Returns ``document`` itself when there is no
    matching section or nothing changes.
    """
    located = section_body(document, matcher)
    if located is None:
        logger.debug("No section to normalize")
        return document

    _, start, end = located
    body = document.blocks[start:end]
    candidates = collect_items(body)
    if not candidates and required_count is None:
        logger.debug("Section has no items and no required count; leaving it as is")
        return document

    kept = [c for c in candidates if not is_objective(c.text) and not is_placeholder(c.text)]
    dropped = len(candidates) - len(kept)
    if dropped:
        logger.info("Dropped %d objective or placeholder items", dropped)

    items = [c.block for c in kept]
    if required_count is not None:
        if len(items) > required_count:
            logger.info("Truncating %d items to %d", len(items), required_count)
            del items[required_count:]
        for index in range(len(items), required_count):
            items.append(Block.container(PROBLEM, [Block.paragraph(template_problem(index))]))

    if len(items) == len(body) and all(new is old for new, old in zip(items, body)):
        return document
    return document.splice(start, end, items)
