"""Lesson plan template used when a lesson has no stored document yet."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class LessonOutline:
    """Structured inputs for a freshly synthesized lesson plan."""

    title: str
    student: str = "Unknown Student"
    date: str = ""
    objectives: tuple[str, ...] = ()
    key_concepts: tuple[str, ...] = ()
    time_breakdown: str = ""
    lesson_steps: tuple[str, ...] = ()
    notes: str = ""


def _bullets(items: tuple[str, ...]) -> str:
    return "\n".join(f"- {item}" for item in items) or "- To be decided"


def _numbered(items: tuple[str, ...]) -> str:
    return "\n".join(f"{n}. {item}" for n, item in enumerate(items, start=1)) or "1. To be decided"


def render_lesson_plan(outline: LessonOutline) -> str:
    """Render a lesson outline as a Markdown lesson document."""
    prepared = "Lesson plan prepared"
    if outline.date:
        prepared += f" {outline.date}"
    prepared += f" for {outline.student}"

    sections = [
        f"# {outline.title}",
        f"*{prepared}*",
        "## Lesson Objectives",
        _bullets(outline.objectives),
        "## Key Concepts",
        _bullets(outline.key_concepts),
        "## Time Breakdown",
        outline.time_breakdown or "60 minutes total.",
        "## Lesson Steps",
        _numbered(outline.lesson_steps),
        "## Notes",
        outline.notes or "No notes yet.",
    ]
    return "\n\n".join(sections) + "\n"
