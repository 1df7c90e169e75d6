"""Shared test fixtures."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from pathlib import Path

import pytest

from plancraft.config import PlancraftConfig, load_config
from plancraft.document.markdown import MarkdownDocumentAdapter
from plancraft.document.model import Document
from plancraft.models.results import Solution, StoredLesson

CORPUS_DIR = Path(__file__).parent / "corpus"

LESSON_MD = """\
# Fractions Review

*Lesson plan prepared 2025-03-01 for Ada*

## Lesson Objectives

- Understand equivalent fractions
- Add fractions with unlike denominators

## Practice Problems

1. What is 1/2 + 1/4?
2. Simplify the fraction 6/8.
3. Which is larger, 2/3 or 3/5?

## Notes

Bring fraction strips.
"""

LESSON_WITHOUT_PRACTICE_MD = """\
# Fractions Review

## Lesson Objectives

- Understand equivalent fractions

## Lesson Steps

1. Warm-up with fraction strips
2. Guided examples

## Notes

Bring fraction strips.
"""


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakeGenerationService:
    """In-memory GenerationService returning scripted completions."""

    def __init__(
        self,
        documents: Sequence[str] = (),
        solutions: Callable[[list[str]], list[Solution | None]] | None = None,
        error: Exception | None = None,
        solutions_error: Exception | None = None,
    ) -> None:
        self._documents = list(documents)
        self._solutions = solutions
        self._error = error
        self._solutions_error = solutions_error
        self.prompts: list[str] = []
        self.solution_requests: list[list[str]] = []

    async def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self._error is not None:
            raise self._error
        return self._documents.pop(0)

    async def generate_solutions(self, problems: list[str]) -> list[Solution | None]:
        self.solution_requests.append(list(problems))
        if self._solutions_error is not None:
            raise self._solutions_error
        if self._solutions is not None:
            return self._solutions(problems)
        return [
            Solution(steps=("Work it out.",), answer=f"answer {i}") for i in range(len(problems))
        ]


class MemoryLessonStore:
    """In-memory LessonStore; ``failures`` are raised by successive saves."""

    def __init__(self, failures: Sequence[BaseException] = ()) -> None:
        self.lessons: dict[str, StoredLesson] = {}
        self.saves: list[tuple[str, str]] = []
        self.attempts = 0
        self._failures = list(failures)

    async def save(self, lesson_id: str, content: str) -> None:
        self.attempts += 1
        if self._failures:
            raise self._failures.pop(0)
        previous = self.lessons.get(lesson_id)
        version = previous.version + 1 if previous else 1
        self.lessons[lesson_id] = StoredLesson(content=content, version=version)
        self.saves.append((lesson_id, content))

    async def load(self, lesson_id: str) -> StoredLesson | None:
        return self.lessons.get(lesson_id)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def default_config() -> PlancraftConfig:
    """Load default config (balanced profile)."""
    return load_config(profile="balanced")


@pytest.fixture
def fast_config() -> PlancraftConfig:
    """Load fast profile config."""
    return load_config(profile="fast")


@pytest.fixture
def adapter() -> MarkdownDocumentAdapter:
    """Create a default Markdown adapter."""
    return MarkdownDocumentAdapter()


@pytest.fixture
def lesson(adapter: MarkdownDocumentAdapter) -> Document:
    """Parsed lesson with a three-item practice section."""
    return adapter.parse(LESSON_MD)


@pytest.fixture
def corpus_dir() -> Path:
    """Path to the lesson test corpus."""
    return CORPUS_DIR
