"""Interface contracts for plancraft's external collaborators.

The update pipeline and the auto-save scheduler only talk to the
content-generation service and the persistence backend through these
protocols.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from plancraft.models.results import Solution, StoredLesson


@runtime_checkable
class GenerationService(Protocol):
    """Rewrite documents and solve practice problems."""

    async def generate(self, prompt: str) -> str: ...

    async def generate_solutions(self, problems: list[str]) -> list[Solution | None]: ...


@runtime_checkable
class LessonStore(Protocol):
    """Durable storage for lesson documents."""

    async def save(self, lesson_id: str, content: str) -> None: ...

    async def load(self, lesson_id: str) -> StoredLesson | None: ...
