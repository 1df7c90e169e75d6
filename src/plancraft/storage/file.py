"""Lesson persistence as one JSON record per lesson on local disk."""

from __future__ import annotations

import asyncio
import json
import logging
import os
import re
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from plancraft.errors import StorageError
from plancraft.models.results import StoredLesson

logger = logging.getLogger(__name__)

_LESSON_ID_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.-]*$")


class FileLessonStore:
    """Stores each lesson as ``{directory}/{lesson_id}.json``.

    Records hold ``id``, ``content``, ``version`` and ``last_modified``.
    Writes go to a temporary file first and then replace the target, so a
    crash never leaves a partial record. Disk I/O runs in a worker thread.
    """

    def __init__(self, directory: Path) -> None:
        self._directory = directory

    @property
    def directory(self) -> Path:
        return self._directory

    def path_for(self, lesson_id: str) -> Path:
        """Return the record path for a lesson.

        Raises:
            ValueError: If ``lesson_id`` is not a safe file name.
        """
        if not _LESSON_ID_RE.match(lesson_id):
            raise ValueError(f"Invalid lesson id: {lesson_id!r}")
        return self._directory / f"{lesson_id}.json"

    async def save(self, lesson_id: str, content: str) -> None:
        """Write ``content`` as the next version of the lesson.

        Raises:
            StorageError: The record could not be written.
        """
        path = self.path_for(lesson_id)
        try:
            await asyncio.to_thread(self._write, lesson_id, path, content)
        except OSError as exc:
            raise StorageError(f"Cannot write lesson {lesson_id!r}: {exc}") from exc

    async def load(self, lesson_id: str) -> StoredLesson | None:
        """Read the stored lesson, or None if it was never saved.

        Raises:
            StorageError: The record exists but cannot be read or decoded.
        """
        path = self.path_for(lesson_id)
        try:
            raw = await asyncio.to_thread(self._read, path)
        except OSError as exc:
            raise StorageError(f"Cannot read lesson {lesson_id!r}: {exc}") from exc
        if raw is None:
            return None
        try:
            return StoredLesson(content=raw["content"], version=int(raw.get("version", 0)))
        except (KeyError, TypeError, ValueError) as exc:
            raise StorageError(f"Corrupt lesson record {path}: {exc}") from exc

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _read(self, path: Path) -> dict[str, Any] | None:
        if not path.is_file():
            return None
        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as exc:
            raise StorageError(f"Corrupt lesson record {path}: {exc}") from exc
        if not isinstance(data, dict):
            raise StorageError(f"Corrupt lesson record {path}: expected an object")
        return data

    def _write(self, lesson_id: str, path: Path, content: str) -> None:
        self._directory.mkdir(parents=True, exist_ok=True)
        try:
            previous = self._read(path)
        except StorageError:
            logger.warning("Overwriting unreadable lesson record %s", path)
            previous = None
        version = int(previous.get("version", 0)) + 1 if previous else 1

        data: dict[str, Any] = {
            "id": lesson_id,
            "content": content,
            "version": version,
            "last_modified": datetime.now(UTC).isoformat(),
        }

        tmp_path = path.with_suffix(".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
        os.replace(tmp_path, path)
        logger.debug("Wrote lesson %s version %d", lesson_id, version)
