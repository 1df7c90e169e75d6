"""Prompt construction for lesson updates and practice-problem solutions."""

from __future__ import annotations

import json
from collections.abc import Sequence

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_UPDATE_SYSTEM_PROMPT = (
    "You are an expert instructional designer helping a tutor refine a lesson "
    "plan. Apply the tutor's request to the lesson plan below and return the "
    "FULL UPDATED LESSON PLAN."
)

_UPDATE_RULES = (
    "RULES:\n"
    "- Return the complete lesson plan as Markdown, not only the changed part\n"
    "- Keep every section the request does not mention unchanged\n"
    "- Keep the existing section headings and their order\n"
    "- Write practice problems as a numbered list under the practice problems heading\n"
    "- Do NOT wrap the answer in code fences\n"
    "- Do NOT add commentary, explanations or a diff; return only the document"
)

_SOLUTIONS_SYSTEM_PROMPT = (
    "You are a patient math and science tutor. Solve each practice problem "
    "below with short, numbered reasoning steps and a final answer."
)

_SOLUTIONS_RULES = (
    "RULES:\n"
    '- Respond with a JSON object: {"solutions": [...]}\n'
    "- Return exactly one entry per problem, in the same order\n"
    '- Each entry is {"steps": ["...", "..."], "answer": "..."}\n'
    "- Keep each step to one sentence; use plain text, no Markdown\n"
    "- Use null for a problem you cannot solve"
)


def build_update_prompt(document_markdown: str, request: str) -> str:
    """Assemble the full-document rewrite prompt.

    Args:
        document_markdown: The current lesson document rendered as Markdown.
        request: The tutor's free-text improvement request.

    Returns:
        Complete prompt string for the generation backend.
    """
    parts = [
        _UPDATE_SYSTEM_PROMPT,
        "",
        _UPDATE_RULES,
        "",
        "CURRENT LESSON PLAN:",
        document_markdown.strip(),
        "",
        "REQUEST:",
        request.strip(),
        "",
        "UPDATED LESSON PLAN:",
    ]
    return "\n".join(parts)


def build_solutions_prompt(problems: Sequence[str]) -> str:
    """Assemble a single prompt asking for solutions to every problem."""
    numbered = {"problems": [{"index": i, "problem": p} for i, p in enumerate(problems, 1)]}
    parts = [
        _SOLUTIONS_SYSTEM_PROMPT,
        "",
        _SOLUTIONS_RULES,
        "",
        "PROBLEMS:",
        json.dumps(numbered, indent=2, ensure_ascii=False),
        "",
        "JSON:",
    ]
    return "\n".join(parts)
