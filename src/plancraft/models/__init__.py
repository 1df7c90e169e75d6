"""Result data models shared between the pipeline, storage and session layers."""

from __future__ import annotations

from plancraft.models.results import PendingChange, Solution, StoredLesson, UpdateFailure

__all__ = ["PendingChange", "Solution", "StoredLesson", "UpdateFailure"]
