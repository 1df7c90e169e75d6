"""Tests for the section merge engine."""

from __future__ import annotations

import logging

import pytest
from conftest import LESSON_MD, LESSON_WITHOUT_PRACTICE_MD

from plancraft.document.markdown import MarkdownDocumentAdapter
from plancraft.document.model import Document, heading_matcher
from plancraft.update.merge import has_item_structure, merge_section

PRACTICE = heading_matcher(r"practice\s*problems")
NOTES = heading_matcher(r"^notes$")

GENERATED_MD = """\
# Fractions Review (rewritten)

## Lesson Objectives

- Something the model changed

## Practice Problems

1. What is 2/3 + 1/6?
2. Write 0.75 as a fraction.

## Notes

The model rewrote the notes too.
"""


def _merge(original: Document, generated: Document) -> Document:
    return merge_section(original, generated, PRACTICE, NOTES, "Practice Problems")


class TestMergeExistingSection:
    """Replacing the body of an existing section."""

    def test_blocks_outside_section_are_reused(
        self, adapter: MarkdownDocumentAdapter, lesson: Document
    ) -> None:
        merged = _merge(lesson, adapter.parse(GENERATED_MD))
        assert len(merged) == len(lesson)
        for i in (0, 1, 2, 3, 4, 6, 7):
            assert merged.blocks[i] is lesson.blocks[i]

    def test_only_section_body_changes_in_output(
        self, adapter: MarkdownDocumentAdapter, lesson: Document
    ) -> None:
        merged = _merge(lesson, adapter.parse(GENERATED_MD))
        expected = LESSON_MD.replace(
            "1. What is 1/2 + 1/4?\n2. Simplify the fraction 6/8.\n3. Which is larger, 2/3 or 3/5?",
            "1. What is 2/3 + 1/6?\n2. Write 0.75 as a fraction.",
        )
        assert adapter.render(merged) == expected

    def test_original_heading_kept(self, adapter: MarkdownDocumentAdapter) -> None:
        original = adapter.parse("## practice problems!\n\n- old item one here\n")
        generated = adapter.parse("## Practice Problems\n\n- new item one here\n")
        merged = _merge(original, generated)
        assert merged.blocks[0] is original.blocks[0]
        assert merged.blocks[1] is generated.blocks[1]

    def test_subsections_replaced_with_section(self, adapter: MarkdownDocumentAdapter) -> None:
        original = adapter.parse(
            "## Practice Problems\n\n### Warm-up\n\n- old\n\n## Notes\n\nKeep.\n"
        )
        generated = adapter.parse("## Practice Problems\n\n1. new problem text\n")
        merged = _merge(original, generated)
        assert adapter.render(merged) == (
            "## Practice Problems\n\n1. new problem text\n\n## Notes\n\nKeep.\n"
        )


class TestMergeNewSection:
    """Inserting a section the original does not have."""

    def test_inserted_before_notes(self, adapter: MarkdownDocumentAdapter) -> None:
        original = adapter.parse(LESSON_WITHOUT_PRACTICE_MD)
        merged = _merge(original, adapter.parse(GENERATED_MD))
        headings = [b.text for _, b in merged.headings()]
        assert headings == [
            "Fractions Review",
            "Lesson Objectives",
            "Lesson Steps",
            "Practice Problems",
            "Notes",
        ]
        notes_index = next(i for i, b in merged.headings() if b.text == "Notes")
        assert merged.blocks[notes_index] is original.blocks[-2]

    def test_inserted_at_end_without_notes(self, adapter: MarkdownDocumentAdapter) -> None:
        original = adapter.parse("# Lesson\n\n## Warm-up\n\nStretch.\n")
        merged = _merge(original, adapter.parse(GENERATED_MD))
        assert adapter.render(merged) == (
            "# Lesson\n\n## Warm-up\n\nStretch.\n\n## Practice Problems\n\n"
            "1. What is 2/3 + 1/6?\n2. Write 0.75 as a fraction.\n"
        )

    def test_heading_level_follows_anchor(self, adapter: MarkdownDocumentAdapter) -> None:
        original = adapter.parse("# Lesson\n\n### Notes\n\nKeep.\n")
        merged = _merge(original, adapter.parse(GENERATED_MD))
        assert merged.blocks[1].text == "Practice Problems"
        assert merged.blocks[1].level == 3

    def test_uses_configured_title(self, adapter: MarkdownDocumentAdapter) -> None:
        original = adapter.parse("# Lesson\n")
        merged = merge_section(
            original, adapter.parse(GENERATED_MD), PRACTICE, NOTES, "Practice Questions"
        )
        assert merged.blocks[1].text == "Practice Questions"
        assert merged.blocks[1].level == 2


class TestMergeNoOp:
    """Generated output without a usable section."""

    def test_missing_generated_section(
        self,
        adapter: MarkdownDocumentAdapter,
        lesson: Document,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        generated = adapter.parse("# Rewritten\n\nNo practice here.\n")
        with caplog.at_level(logging.WARNING, logger="plancraft.update.merge"):
            merged = _merge(lesson, generated)
        assert merged is lesson
        assert "no section" in caplog.text

    def test_generated_section_without_items(
        self, adapter: MarkdownDocumentAdapter, lesson: Document
    ) -> None:
        generated = adapter.parse("## Practice Problems\n\nTry some problems on your own.\n")
        assert _merge(lesson, generated) is lesson


class TestHasItemStructure:
    """has_item_structure detection."""

    def test_list(self, adapter: MarkdownDocumentAdapter) -> None:
        assert has_item_structure(adapter.parse("- a\n").blocks)

    def test_problem_container(self, adapter: MarkdownDocumentAdapter) -> None:
        assert has_item_structure(adapter.parse("::: problem\nWhat is 2 + 2?\n:::\n").blocks)

    def test_paragraphs_only(self, adapter: MarkdownDocumentAdapter) -> None:
        assert not has_item_structure(adapter.parse("a\n\nb\n").blocks)
