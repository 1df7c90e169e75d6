"""Splice one regenerated section into the original document.

Only the body of the target section changes; the original heading and every
block outside the section are carried over by identity, so they render back
exactly as they were stored.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from plancraft.document.model import Block, find_heading, section_body

if TYPE_CHECKING:
    from collections.abc import Sequence

    from plancraft.document.model import Document, HeadingMatcher

logger = logging.getLogger(__name__)


def has_item_structure(blocks: Sequence[Block]) -> bool:
    """Return True if any block is a list or a ``problem`` container."""
    return any(block.is_list or block.is_container("problem") for block in blocks)


def merge_section(
    original: Document,
    generated: Document,
    matcher: HeadingMatcher,
    anchor_matcher: HeadingMatcher,
    title: str,
) -> Document:
    """Replace the matched section of ``original`` with the one in ``generated``.

    Args:
        original: Document the request was run against.
        generated: Full replacement document from the generation service.
        matcher: Predicate selecting the section heading in both documents.
        anchor_matcher: Predicate for the heading a new section is inserted
            before when ``original`` has no matching section.
        title: Heading text for a newly inserted section.

    Returns:
        The merged document, or ``original`` itself when ``generated`` has no
        usable section.
    """
    located = section_body(generated, matcher)
    if located is None:
        logger.warning("Generated document has no section matching the target heading")
        return original

    gen_heading_index, gen_start, gen_end = located
    body = generated.blocks[gen_start:gen_end]
    if not has_item_structure(body):
        logger.warning(
            "Generated section %r has no list or problem items; keeping original",
            generated.blocks[gen_heading_index].text,
        )
        return original

    target = section_body(original, matcher)
    if target is not None:
        _, start, end = target
        logger.debug("Replacing section body blocks [%d, %d) with %d blocks", start, end, len(body))
        return original.splice(start, end, body)

    anchor = find_heading(original, anchor_matcher)
    if anchor is not None:
        position = anchor
        level = original.blocks[anchor].level
    else:
        position = len(original.blocks)
        level = generated.blocks[gen_heading_index].level

    logger.info("Inserting new %r section at block %d", title, position)
    return original.splice(position, position, (Block.heading(title, level), *body))
