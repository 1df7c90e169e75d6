"""Update orchestrator for the generate-merge-normalize-augment flow."""

from __future__ import annotations

import enum
import logging
from collections.abc import Callable
from typing import TYPE_CHECKING

from plancraft.config import PipelineConfig
from plancraft.document.markdown import MarkdownDocumentAdapter
from plancraft.document.model import heading_matcher
from plancraft.errors import GenerationError
from plancraft.generation.prompts import build_update_prompt
from plancraft.models.results import PendingChange, UpdateFailure
from plancraft.progress import PipelineEvent
from plancraft.update.augment import augment_section
from plancraft.update.intent import classify_intent
from plancraft.update.merge import merge_section
from plancraft.update.normalize import normalize_section

if TYPE_CHECKING:
    from plancraft.core.protocols import GenerationService
    from plancraft.document.model import Document

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[PipelineEvent], None]

_TOTAL_STEPS = 5


class UpdateState(enum.Enum):
    """Stages of an update run."""

    GENERATING = "GENERATING"
    MERGING = "MERGING"
    NORMALIZING = "NORMALIZING"
    AUGMENTING = "AUGMENTING"
    COMPLETE = "COMPLETE"
    FAILED = "FAILED"


class UpdateOrchestrator:
    """Turn a free-text request into a reviewable pending change.

    Nothing is persisted here; the caller decides whether to accept the
    returned :class:`PendingChange`.

    Args:
        service: Generation backend for rewrites and solutions.
        config: Section and anchor heading settings.
        adapter: Markdown codec. Defaults to a fresh adapter.
    """

    def __init__(
        self,
        service: GenerationService,
        config: PipelineConfig | None = None,
        adapter: MarkdownDocumentAdapter | None = None,
    ) -> None:
        self._service = service
        self._config = config or PipelineConfig()
        self._adapter = adapter or MarkdownDocumentAdapter()
        self._matcher = heading_matcher(self._config.section_pattern)
        self._anchor_matcher = heading_matcher(self._config.anchor_pattern)

    async def run(
        self,
        request: str,
        document: Document,
        progress_callback: ProgressCallback | None = None,
    ) -> PendingChange | UpdateFailure:
        """Run one update request against ``document``.

        Args:
            request: The tutor's free-text request.
            document: Current lesson document.
            progress_callback: Optional callback for progress events.

        Returns:
            PendingChange with the candidate document, or UpdateFailure if
            generation produced nothing usable. ``document`` is never changed.
        """
        request = request.strip()
        if not request:
            return UpdateFailure("Update request is empty")

        intent = classify_intent(request)
        logger.info(
            "Update request classified: section_scoped=%s required_count=%s",
            intent.section_scoped,
            intent.required_count,
        )

        self._emit(progress_callback, UpdateState.GENERATING, 0, "Requesting updated lesson plan")
        prompt = build_update_prompt(self._adapter.render(document), request)
        try:
            text = await self._service.generate(prompt)
        except GenerationError as exc:
            logger.error("Generation failed: %s", exc)
            self._emit(progress_callback, UpdateState.FAILED, 0, str(exc))
            return UpdateFailure(f"Could not update the lesson plan: {exc}", exc)

        generated = self._adapter.parse(text)
        if not generated.blocks:
            self._emit(progress_callback, UpdateState.FAILED, 0, "Empty document")
            return UpdateFailure("The generated lesson plan was empty")

        if intent.section_scoped:
            self._emit(progress_callback, UpdateState.MERGING, 1, "Merging practice problems")
            merged = merge_section(
                document,
                generated,
                self._matcher,
                self._anchor_matcher,
                self._config.section_title,
            )
        else:
            self._emit(progress_callback, UpdateState.MERGING, 1, "Using full rewrite")
            merged = generated

        self._emit(progress_callback, UpdateState.NORMALIZING, 2, "Normalizing practice problems")
        normalized = normalize_section(merged, intent.required_count, self._matcher)

        self._emit(progress_callback, UpdateState.AUGMENTING, 3, "Generating solutions")
        augmented = await augment_section(normalized, self._service, self._matcher)

        self._emit(progress_callback, UpdateState.COMPLETE, 4, "Update ready for review")
        scope = "practice problems" if intent.section_scoped else "lesson plan"
        return PendingChange(
            before=document,
            after=augmented,
            description=f"Updated {scope}: {request}",
        )

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _emit(
        callback: ProgressCallback | None,
        state: UpdateState,
        step_index: int,
        detail: str,
    ) -> None:
        """Emit a progress event if a callback is registered."""
        if callback is not None:
            callback(
                PipelineEvent(
                    state=state.value,
                    step_index=step_index,
                    total_steps=_TOTAL_STEPS,
                    detail=detail,
                )
            )
