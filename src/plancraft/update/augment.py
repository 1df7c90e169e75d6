"""Attach exactly one worked solution to every practice problem."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from plancraft.document.model import Block, BlockKind, section_body
from plancraft.update.normalize import PROBLEM, SOLUTION, is_solution_line, problem_text

if TYPE_CHECKING:
    from plancraft.core.protocols import GenerationService
    from plancraft.document.model import Document, HeadingMatcher
    from plancraft.models.results import Solution

logger = logging.getLogger(__name__)

SOLUTION_HEADER = "**Solution**"
ANSWER_PREFIX = "**Answer:**"


def build_solution_block(solution: Solution) -> Block:
    """Build the canonical solution container for one problem."""
    children = [Block.paragraph(SOLUTION_HEADER)]
    steps = [" ".join(step.split()) for step in solution.steps]
    steps = [step for step in steps if step]
    if steps:
        children.append(Block.ordered_list(steps))
    children.append(Block.paragraph(f"{ANSWER_PREFIX} {' '.join(solution.answer.split())}"))
    return Block.container(SOLUTION, children)


def is_canonical_solution(block: Block) -> bool:
    """Return True for a solution container of header, optional steps, answer."""
    if not block.is_container(SOLUTION):
        return False
    children = block.children
    if len(children) not in (2, 3):
        return False
    header, answer = children[0], children[-1]
    if header.kind is not BlockKind.PARAGRAPH or header.text.strip() != SOLUTION_HEADER:
        return False
    if answer.kind is not BlockKind.PARAGRAPH or not answer.text.startswith(ANSWER_PREFIX):
        return False
    if not answer.text[len(ANSWER_PREFIX) :].strip():
        return False
    return len(children) == 2 or children[1].kind is BlockKind.ORDERED_LIST


def clean_item(item: Block) -> Block:
    """Strip non-canonical solution artifacts, keeping the first canonical one.

    A solution-shaped paragraph drops everything after it up to the next
    container, since trailing steps and answers belong to it.
    """
    if not item.children:
        return item
    head, *rest = item.children
    kept: list[Block] = [head]
    seen_solution = False
    in_artifact = False
    for child in rest:
        if child.kind is BlockKind.CONTAINER:
            in_artifact = False
            if is_canonical_solution(child) and not seen_solution:
                kept.append(child)
                seen_solution = True
            elif not child.is_container(SOLUTION):
                kept.append(child)
            continue
        if child.kind is BlockKind.PARAGRAPH and is_solution_line(child.text):
            in_artifact = True
            continue
        if not in_artifact:
            kept.append(child)
    return item.with_children(kept)


def has_solution(item: Block) -> bool:
    return any(is_canonical_solution(child) for child in item.children)


async def augment_section(
    document: Document,
    service: GenerationService,
    matcher: HeadingMatcher,
) -> Document:
    """Give every problem in the matched section one canonical solution.

    Items that already carry one are left alone, so running this twice is a
    no-op the second time. The remaining items are solved in one batched
    call; a failed call or a ``None`` entry leaves those items unsolved.
    """
    located = section_body(document, matcher)
    if located is None:
        return document

    _, start, end = located
    body = [clean_item(b) if b.is_container(PROBLEM) else b for b in document.blocks[start:end]]

    unsolved = [i for i, b in enumerate(body) if b.is_container(PROBLEM) and not has_solution(b)]
    if unsolved:
        problems = [problem_text(body[i]) for i in unsolved]
        solutions: list[Solution | None]
        try:
            solutions = list(await service.generate_solutions(problems))
        except Exception as exc:
            logger.warning("Solution generation failed for %d problems: %s", len(problems), exc)
            solutions = []
        if len(solutions) != len(problems):
            if solutions:
                logger.warning(
                    "Expected %d solutions, received %d", len(problems), len(solutions)
                )
            solutions = (solutions + [None] * len(problems))[: len(problems)]

        for i, solution in zip(unsolved, solutions):
            if solution is None:
                continue
            body[i] = body[i].with_children((*body[i].children, build_solution_block(solution)))

        solved = sum(1 for s in solutions if s is not None)
        logger.info("Attached %d of %d solutions", solved, len(problems))

    original = document.blocks[start:end]
    if all(new is old for new, old in zip(body, original)):
        return document
    return document.splice(start, end, body)
