#!/usr/bin/env python3
"""Rewrite the practice problems of a stored lesson with a local model.

Demonstrates:
- Opening a LessonSession against the file store
- Submitting a scoped update request and inspecting the pending diff
- Accepting the change and forcing a save

Usage:
    uv run python examples/update_practice_problems.py <lesson-id> [lessons-dir]
"""
from __future__ import annotations

import asyncio
import sys

from plancraft.config import load_config
from plancraft.generation import OllamaGenerationService
from plancraft.models.results import UpdateFailure
from plancraft.session import LessonSession
from plancraft.storage import get_store
from plancraft.update import UpdateOrchestrator


async def run(lesson_id: str, lessons_dir: str) -> int:
    config = load_config(
        profile="fast",
        cli_overrides={"storage.directory": lessons_dir},
    )
    service = OllamaGenerationService(
        config.ollama, config.generation, profile=config.general.profile
    )
    store = get_store(config.storage)
    if await store.load(lesson_id) is None:
        print(f"Lesson not found: {lesson_id}")
        return 1

    orchestrator = UpdateOrchestrator(service, config.pipeline)
    async with await LessonSession.open(
        lesson_id, store, orchestrator, autosave=config.autosave
    ) as session:
        outcome = await session.submit_update_request("Add 5 practice problems")
        if isinstance(outcome, UpdateFailure):
            print(outcome.reason)
            return 1
        if session.pending_change is None:
            print("Lesson already up to date.")
            return 0

        print(outcome.diff())
        await session.accept()
        print(f"Saved version {session.version}")
    return 0


def main() -> None:
    if len(sys.argv) < 2:
        print("Usage: python examples/update_practice_problems.py <lesson-id> [lessons-dir]")
        sys.exit(1)
    lessons_dir = sys.argv[2] if len(sys.argv) > 2 else "./lessons"
    sys.exit(asyncio.run(run(sys.argv[1], lessons_dir)))


if __name__ == "__main__":
    main()
