"""Lesson persistence backends."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

from plancraft.storage.file import FileLessonStore
from plancraft.storage.rest import RestLessonStore

if TYPE_CHECKING:
    from plancraft.config import StorageConfig
    from plancraft.core.protocols import LessonStore

__all__ = ["FileLessonStore", "RestLessonStore", "get_store"]


def get_store(config: StorageConfig) -> LessonStore:
    """Return the storage backend selected by ``config.backend``.

    Raises:
        ValueError: If the backend name is not recognized.
    """
    if config.backend == "file":
        return FileLessonStore(Path(config.directory).expanduser())
    if config.backend == "rest":
        return RestLessonStore(config.rest_url, config.rest_api_key, table=config.table)
    raise ValueError(f"Unsupported storage backend: {config.backend!r}")
