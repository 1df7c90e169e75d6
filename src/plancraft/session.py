"""Editing session for one open lesson document.

A :class:`LessonSession` owns the current document, at most one pending
change from the update pipeline, and the auto-save scheduler that is the
document's only path to storage.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Self

from plancraft.autosave import AutoSaveScheduler
from plancraft.config import AutoSaveConfig
from plancraft.document.markdown import MarkdownDocumentAdapter
from plancraft.document.model import Document
from plancraft.document.template import LessonOutline, render_lesson_plan
from plancraft.errors import PendingChangeError
from plancraft.models.results import PendingChange, UpdateFailure

if TYPE_CHECKING:
    from plancraft.autosave import SaveStatus
    from plancraft.core.protocols import LessonStore
    from plancraft.update.orchestrator import ProgressCallback, UpdateOrchestrator

logger = logging.getLogger(__name__)


class LessonSession:
    """One lesson open for editing.

    Args:
        lesson_id: Storage key of the lesson.
        document: Current document.
        store: Persistence backend.
        orchestrator: Update pipeline for improvement requests.
        autosave: Debounce and retry settings.
        adapter: Markdown codec.
        version: Stored version the document was loaded from; 0 if new.
    """

    def __init__(
        self,
        lesson_id: str,
        document: Document,
        store: LessonStore,
        orchestrator: UpdateOrchestrator,
        autosave: AutoSaveConfig | None = None,
        adapter: MarkdownDocumentAdapter | None = None,
        version: int = 0,
    ) -> None:
        autosave = autosave or AutoSaveConfig()
        self._lesson_id = lesson_id
        self._document = document
        self._store = store
        self._orchestrator = orchestrator
        self._adapter = adapter or MarkdownDocumentAdapter()
        self._version = version
        self._pending: PendingChange | None = None
        self._update_error: str | None = None
        self._scheduler = AutoSaveScheduler(
            self._persist,
            delay=autosave.delay_seconds,
            max_retries=autosave.max_retries,
            retry_delay=autosave.retry_delay_seconds,
            enabled=autosave.enabled,
        )

    @classmethod
    async def open(
        cls,
        lesson_id: str,
        store: LessonStore,
        orchestrator: UpdateOrchestrator,
        outline: LessonOutline | None = None,
        autosave: AutoSaveConfig | None = None,
        adapter: MarkdownDocumentAdapter | None = None,
    ) -> Self:
        """Load a lesson from storage, or synthesize it from the template.

        Args:
            outline: Template inputs used when nothing is stored yet.
                Defaults to an outline titled with the lesson id.
        """
        adapter = adapter or MarkdownDocumentAdapter()
        stored = await store.load(lesson_id)
        if stored is not None:
            logger.info("Opened lesson %s at version %d", lesson_id, stored.version)
            document = adapter.parse(stored.content)
            version = stored.version
        else:
            logger.info("Lesson %s not found; starting from template", lesson_id)
            document = adapter.parse(render_lesson_plan(outline or LessonOutline(title=lesson_id)))
            version = 0
        return cls(lesson_id, document, store, orchestrator, autosave, adapter, version)

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, *_: Any) -> None:
        await self.close()

    # -- State -----------------------------------------------------------------

    @property
    def lesson_id(self) -> str:
        return self._lesson_id

    @property
    def document(self) -> Document:
        return self._document

    @property
    def content(self) -> str:
        """The current document rendered as Markdown."""
        return self._adapter.render(self._document)

    @property
    def version(self) -> int:
        return self._version

    @property
    def pending_change(self) -> PendingChange | None:
        return self._pending

    @property
    def update_error(self) -> str | None:
        """Message from the last failed update request, cleared by the next one."""
        return self._update_error

    @property
    def scheduler(self) -> AutoSaveScheduler:
        return self._scheduler

    def save_status(self) -> SaveStatus:
        return self._scheduler.status()

    # -- Editing ---------------------------------------------------------------

    def edit(self, content: str | Document) -> None:
        """Replace the document with an edited version and schedule a save.

        Edits are refused while an update awaits Accept or Undo; callers do
        not need to block the editor themselves.

        Raises:
            PendingChangeError: A pending change must be accepted or undone first.
        """
        self._require_no_pending("edit the lesson")
        self._document = content if isinstance(content, Document) else self._adapter.parse(content)
        self._scheduler.trigger_save(self.content)

    async def submit_update_request(
        self,
        request: str,
        progress_callback: ProgressCallback | None = None,
    ) -> PendingChange | UpdateFailure:
        """Run the update pipeline against the current document.

        A change that alters the document becomes the session's pending
        change. A failure is recorded in :attr:`update_error`.

        Raises:
            PendingChangeError: A pending change is already outstanding.
        """
        self._require_no_pending("submit another update request")
        self._update_error = None

        outcome = await self._orchestrator.run(request, self._document, progress_callback)
        if isinstance(outcome, UpdateFailure):
            self._update_error = outcome.reason
            return outcome

        if outcome.has_changes:
            self._pending = outcome
        else:
            logger.info("Update request produced no changes")
        return outcome

    async def accept(self) -> bool:
        """Commit the pending change and save it immediately.

        Returns:
            True if the accepted document reached storage.

        Raises:
            PendingChangeError: There is no pending change.
        """
        change = self._take_pending("accept")
        self._document = change.after
        logger.info("Accepted change: %s", change.description)
        return await self._scheduler.force_save(self.content)

    def undo(self) -> None:
        """Discard the pending change; the document is left as it was.

        Raises:
            PendingChangeError: There is no pending change.
        """
        change = self._take_pending("undo")
        logger.info("Discarded change: %s", change.description)

    # -- Saving ----------------------------------------------------------------

    async def save_now(self) -> bool:
        """Save the current document immediately."""
        return await self._scheduler.force_save(self.content)

    async def retry_save(self) -> bool:
        """Replay the last failed save."""
        return await self._scheduler.retry()

    async def close(self) -> None:
        """Flush scheduled saves and stop the scheduler."""
        await self._scheduler.flush()
        self._scheduler.close()

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _persist(self, content: str) -> None:
        await self._store.save(self._lesson_id, content)
        self._version += 1

    def _require_no_pending(self, action: str) -> None:
        if self._pending is not None:
            raise PendingChangeError(f"Accept or undo the pending change before you {action}")

    def _take_pending(self, action: str) -> PendingChange:
        if self._pending is None:
            raise PendingChangeError(f"There is no pending change to {action}")
        change, self._pending = self._pending, None
        return change
