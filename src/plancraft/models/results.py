"""Result data models for generation, persistence and update runs."""

from __future__ import annotations

import difflib
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from plancraft.document.markdown import render_document

if TYPE_CHECKING:
    from plancraft.document.model import Document


@dataclass(frozen=True, slots=True)
class Solution:
    """A generated worked solution for one practice problem.

    Args:
        steps: Ordered solution steps, one line each.
        answer: Final answer line.
    """

    steps: tuple[str, ...]
    answer: str

    def __post_init__(self) -> None:
        if not self.answer.strip():
            raise ValueError("answer must be a non-empty string")

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary."""
        return {"steps": list(self.steps), "answer": self.answer}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Solution:
        """Deserialize from dictionary.

        Raises:
            ValueError: If ``steps`` is not a list of strings or ``answer``
                is missing or empty.
        """
        steps = data.get("steps", [])
        answer = data.get("answer")
        if not isinstance(steps, list) or not all(isinstance(s, str) for s in steps):
            raise ValueError(f"steps must be a list of strings, got {steps!r}")
        if not isinstance(answer, str | int | float) or isinstance(answer, bool):
            raise ValueError(f"answer must be a string, got {answer!r}")
        return cls(steps=tuple(s.strip() for s in steps if s.strip()), answer=str(answer).strip())


@dataclass(frozen=True, slots=True)
class StoredLesson:
    """A lesson document as returned by a persistence backend."""

    content: str
    version: int

    def __post_init__(self) -> None:
        if self.version < 0:
            raise ValueError(f"version must be >= 0, got {self.version}")


@dataclass(frozen=True, slots=True)
class PendingChange:
    """An uncommitted before/after document pair awaiting Accept or Undo.

    Args:
        before: Document the update request was run against.
        after: Candidate document produced by the update pipeline.
        description: Short human-readable summary of the change.
    """

    before: Document
    after: Document
    description: str

    @property
    def has_changes(self) -> bool:
        return render_document(self.before) != render_document(self.after)

    def diff(self, context: int = 3) -> str:
        """Unified diff between the rendered before and after documents."""
        lines = difflib.unified_diff(
            render_document(self.before).splitlines(keepends=True),
            render_document(self.after).splitlines(keepends=True),
            fromfile="before",
            tofile="after",
            n=context,
        )
        return "".join(lines)


@dataclass(frozen=True, slots=True)
class UpdateFailure:
    """An update run that aborted before producing a candidate document.

    Args:
        reason: User-facing message for the inline error state.
        error: The underlying exception, when there was one.
    """

    reason: str
    error: Exception | None = None
