"""Lesson update pipeline: generate, merge, normalize and augment."""

from __future__ import annotations

from plancraft.update.augment import augment_section, build_solution_block, is_canonical_solution
from plancraft.update.intent import UpdateIntent, classify_intent
from plancraft.update.merge import merge_section
from plancraft.update.normalize import normalize_section
from plancraft.update.orchestrator import UpdateOrchestrator, UpdateState

__all__ = [
    "UpdateIntent",
    "UpdateOrchestrator",
    "UpdateState",
    "augment_section",
    "build_solution_block",
    "classify_intent",
    "is_canonical_solution",
    "merge_section",
    "normalize_section",
]
