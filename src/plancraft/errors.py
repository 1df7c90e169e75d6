"""Exception hierarchy shared across plancraft components."""

from __future__ import annotations


class PlancraftError(Exception):
    """Base exception for plancraft errors."""


# ---------------------------------------------------------------------------
# Generation service
# ---------------------------------------------------------------------------


class GenerationError(PlancraftError):
    """Content generation failed or produced unusable output."""


class GenerationConnectionError(GenerationError):
    """Generation server is unreachable."""


class GenerationTimeoutError(GenerationError):
    """Generation request exceeded the configured timeout."""


class EmptyGenerationError(GenerationError):
    """Generation returned an empty completion."""


class MalformedGenerationError(GenerationError):
    """Generation response had invalid JSON or missing required fields."""


class ModelNotFoundError(GenerationError):
    """Requested model is not available on the server.

    Attributes:
        model: The model that was requested.
        available_models: Models currently pulled on the server.
    """

    def __init__(self, model: str, available_models: list[str]) -> None:
        self.model = model
        self.available_models = available_models
        super().__init__(
            f"Model {model!r} not found. Available: {', '.join(available_models) or 'none'}"
        )


# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------


class StorageError(PlancraftError):
    """Lesson persistence failed permanently (bad request, disk error, ...)."""


class StorageTransientError(StorageError):
    """Lesson persistence failed in a way that is likely to succeed on retry."""


class SaveFailedError(PlancraftError):
    """Auto-save gave up on a save, either after retries or on a permanent error.

    Attributes:
        attempts: Number of persistence calls made for the content.
    """

    def __init__(self, message: str, attempts: int) -> None:
        self.attempts = attempts
        super().__init__(message)


# ---------------------------------------------------------------------------
# Editing session
# ---------------------------------------------------------------------------


class PendingChangeError(PlancraftError):
    """Operation conflicts with the presence (or absence) of a pending change."""
