"""Tests for result data models."""

from __future__ import annotations

import pytest

from plancraft.document.markdown import MarkdownDocumentAdapter
from plancraft.models.results import PendingChange, Solution, StoredLesson, UpdateFailure


class TestSolution:
    """Solution validation and serialization."""

    def test_empty_answer_raises(self) -> None:
        with pytest.raises(ValueError, match="answer"):
            Solution(steps=("a",), answer="  ")

    def test_to_dict(self) -> None:
        solution = Solution(steps=("Add.", "Simplify."), answer="3/4")
        assert solution.to_dict() == {"steps": ["Add.", "Simplify."], "answer": "3/4"}

    def test_from_dict_strips_and_drops_blank_steps(self) -> None:
        solution = Solution.from_dict({"steps": [" Add. ", "", "  "], "answer": " 3/4 "})
        assert solution == Solution(steps=("Add.",), answer="3/4")

    def test_from_dict_numeric_answer(self) -> None:
        assert Solution.from_dict({"steps": [], "answer": 2.5}).answer == "2.5"

    def test_from_dict_missing_steps(self) -> None:
        assert Solution.from_dict({"answer": "x"}).steps == ()

    @pytest.mark.parametrize(
        "data",
        [
            {"steps": ["a"]},
            {"steps": ["a"], "answer": True},
            {"steps": ["a"], "answer": None},
            {"steps": [1, 2], "answer": "x"},
            {"steps": "a", "answer": "x"},
        ],
    )
    def test_from_dict_invalid(self, data: dict[str, object]) -> None:
        with pytest.raises(ValueError):
            Solution.from_dict(data)


class TestStoredLesson:
    """StoredLesson validation."""

    def test_negative_version_raises(self) -> None:
        with pytest.raises(ValueError, match="version"):
            StoredLesson(content="", version=-1)


class TestPendingChange:
    """PendingChange diffing."""

    def test_diff_and_has_changes(self, adapter: MarkdownDocumentAdapter) -> None:
        before = adapter.parse("# Lesson\n\nOld notes.\n")
        after = adapter.parse("# Lesson\n\nNew notes.\n")
        change = PendingChange(before=before, after=after, description="Updated lesson plan")
        assert change.has_changes
        diff = change.diff()
        assert diff.startswith("--- before\n+++ after\n")
        assert "-Old notes.\n" in diff
        assert "+New notes.\n" in diff

    def test_identical_documents(self, adapter: MarkdownDocumentAdapter) -> None:
        doc = adapter.parse("# Lesson\n")
        change = PendingChange(before=doc, after=adapter.parse("# Lesson\n"), description="none")
        assert not change.has_changes
        assert change.diff() == ""


class TestUpdateFailure:
    """UpdateFailure fields."""

    def test_defaults(self) -> None:
        failure = UpdateFailure("Update request is empty")
        assert failure.reason == "Update request is empty"
        assert failure.error is None
