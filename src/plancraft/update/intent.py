"""Keyword classification of free-text update requests."""

from __future__ import annotations

import re
from dataclasses import dataclass

_SCOPE_RE = re.compile(r"\b(practice(\s*problems?)?|questions?|exercises?)\b", re.IGNORECASE)

_NUMBER_WORDS: dict[str, int] = {
    "one": 1,
    "two": 2,
    "three": 3,
    "four": 4,
    "five": 5,
    "six": 6,
    "seven": 7,
    "eight": 8,
    "nine": 9,
    "ten": 10,
    "eleven": 11,
    "twelve": 12,
    "thirteen": 13,
    "fourteen": 14,
    "fifteen": 15,
    "sixteen": 16,
    "seventeen": 17,
    "eighteen": 18,
    "nineteen": 19,
    "twenty": 20,
}

# "5 practice problems", "5 practice-questions", "five more questions"
_COUNT_RE = re.compile(
    r"\b(?P<count>\d+|" + "|".join(_NUMBER_WORDS) + r")\s+"
    r"(?:(?:more|new|extra|additional|different|harder|easier|simple|word|challenging)\s+){0,3}"
    r"(?:practice[\s-]+(?:problems?|questions?|exercises?)|problems?|questions?|exercises?)\b",
    re.IGNORECASE,
)


@dataclass(frozen=True, slots=True)
class UpdateIntent:
    """Classification of one update request.

    Args:
        section_scoped: The request targets the practice-problems section.
        required_count: Exact number of items requested, when stated.
    """

    section_scoped: bool
    required_count: int | None = None


def classify_intent(request: str) -> UpdateIntent:
    """Classify a request by keyword.

    A mention of practice, practice problems, questions or exercises makes
    the request section-scoped. A number (digits or a word up to twenty)
    directly before the item noun sets the required count.
    """
    if not _SCOPE_RE.search(request):
        return UpdateIntent(section_scoped=False)

    match = _COUNT_RE.search(request)
    if match is None:
        return UpdateIntent(section_scoped=True)

    raw = match.group("count").lower()
    count = int(raw) if raw.isdigit() else _NUMBER_WORDS[raw]
    return UpdateIntent(section_scoped=True, required_count=count if count > 0 else None)
