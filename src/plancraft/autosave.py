"""Debounced auto-save with bounded retries for one open lesson document.

The scheduler is the only path to storage for its document. Edits call
:meth:`AutoSaveScheduler.trigger_save`; explicit commits call
:meth:`AutoSaveScheduler.force_save`. At most one save runs at a time.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, datetime

import httpx

from plancraft.errors import SaveFailedError, StorageTransientError

logger = logging.getLogger(__name__)

SaveCallable = Callable[[str], Awaitable[None]]

_TRANSIENT_TYPES: tuple[type[BaseException], ...] = (
    httpx.TransportError,
    ConnectionError,
    TimeoutError,
    StorageTransientError,
)
_TRANSIENT_KEYWORDS: tuple[str, ...] = ("network", "fetch", "connection", "timeout", "offline")


def is_transient_error(exc: BaseException) -> bool:
    """Classify a save failure as worth retrying.

    Connection and timeout exception types are transient, as is any error
    whose message mentions a network-shaped keyword.
    """
    if isinstance(exc, _TRANSIENT_TYPES):
        return True
    message = str(exc).lower()
    return any(keyword in message for keyword in _TRANSIENT_KEYWORDS)


class SaveState(enum.Enum):
    """Externally visible auto-save states."""

    IDLE = "IDLE"
    SCHEDULED = "SCHEDULED"
    SAVING = "SAVING"
    FAILING = "FAILING"
    SAVED = "SAVED"
    ERROR = "ERROR"


@dataclass(slots=True)
class SaveRecord:
    """Mutable save bookkeeping for one document."""

    pending_content: str | None = None
    is_saving: bool = False
    is_retrying: bool = False
    retry_count: int = 0
    last_saved: datetime | None = None
    last_error: str | None = None
    last_failed_content: str | None = None


@dataclass(frozen=True, slots=True)
class SaveStatus:
    """Snapshot of the scheduler for status displays."""

    state: SaveState
    is_saving: bool
    is_retrying: bool
    retry_count: int
    max_retries: int
    last_saved: datetime | None
    error: str | None
    has_pending: bool


class AutoSaveScheduler:
    """Debounce edits into single-flight saves with exponential-backoff retries.

    Args:
        save: Coroutine function persisting one content string.
        delay: Debounce delay in seconds.
        max_retries: Retries after the first attempt for transient failures.
        retry_delay: Base backoff in seconds; retry ``n`` waits
            ``retry_delay * 2 ** (n - 1)``.
        enabled: When False, :meth:`trigger_save` does nothing. Explicit
            saves still go through.
        is_transient: Failure classifier deciding whether to retry.
    """

    def __init__(
        self,
        save: SaveCallable,
        delay: float = 2.0,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        enabled: bool = True,
        is_transient: Callable[[BaseException], bool] = is_transient_error,
    ) -> None:
        if delay < 0 or retry_delay < 0:
            raise ValueError("delay and retry_delay must be >= 0")
        if max_retries < 0:
            raise ValueError(f"max_retries must be >= 0, got {max_retries}")
        self._save = save
        self._delay = delay
        self._max_retries = max_retries
        self._retry_delay = retry_delay
        self._enabled = enabled
        self._is_transient = is_transient

        self._record = SaveRecord()
        self._timer: asyncio.TimerHandle | None = None
        self._in_flight: asyncio.Task[bool] | None = None
        self._last_failure: SaveFailedError | None = None
        self._closed = False
        # Explicit saves waiting on the in-flight save; they own the next start
        self._explicit_waiting = 0

    # -- Read surface ----------------------------------------------------------

    @property
    def state(self) -> SaveState:
        record = self._record
        if record.is_saving:
            return SaveState.FAILING if record.is_retrying else SaveState.SAVING
        if self._timer is not None:
            return SaveState.SCHEDULED
        if record.last_error is not None:
            return SaveState.ERROR
        if record.last_saved is not None:
            return SaveState.SAVED
        return SaveState.IDLE

    @property
    def is_saving(self) -> bool:
        return self._record.is_saving

    @property
    def is_retrying(self) -> bool:
        return self._record.is_retrying

    @property
    def retry_count(self) -> int:
        return self._record.retry_count

    @property
    def max_retries(self) -> int:
        return self._max_retries

    @property
    def last_saved(self) -> datetime | None:
        return self._record.last_saved

    @property
    def has_error(self) -> bool:
        return self._record.last_error is not None

    @property
    def error(self) -> str | None:
        return self._record.last_error

    @property
    def last_failure(self) -> SaveFailedError | None:
        """The failure behind :attr:`error`, with the attempt count."""
        return self._last_failure

    @property
    def pending_content(self) -> str | None:
        return self._record.pending_content

    @property
    def last_failed_content(self) -> str | None:
        return self._record.last_failed_content

    def status(self) -> SaveStatus:
        """Return an immutable snapshot of the current save state."""
        record = self._record
        return SaveStatus(
            state=self.state,
            is_saving=record.is_saving,
            is_retrying=record.is_retrying,
            retry_count=record.retry_count,
            max_retries=self._max_retries,
            last_saved=record.last_saved,
            error=record.last_error,
            has_pending=record.pending_content is not None,
        )

    # -- Scheduling ------------------------------------------------------------

    def trigger_save(self, content: str) -> None:
        """Record ``content`` as pending and (re)start the debounce timer.

        While a save is in flight only the pending content is updated; it is
        re-scheduled once that save finishes.

        Raises:
            RuntimeError: Called after :meth:`close` or outside a running loop.
        """
        if not self._enabled:
            return
        if self._closed:
            raise RuntimeError("AutoSaveScheduler is closed")
        self._record.pending_content = content
        if self._in_flight is not None:
            logger.debug("Save in flight; queued %d characters", len(content))
            return
        self._arm()

    async def force_save(self, content: str) -> bool:
        """Save ``content`` now, bypassing the debounce.

        Waits for any in-flight save first, then runs the normal retry path.

        Returns:
            True if the content reached storage.
        """
        self._record.pending_content = content
        return await self._save_now(content)

    async def retry(self) -> bool:
        """Replay the last failed content after an ``ERROR``.

        Returns:
            True if the content reached storage; False if there was nothing
            to retry or the replay failed again.
        """
        content = self._record.last_failed_content
        if content is None:
            return False
        logger.info("Manual retry of failed save")
        return await self._save_now(content, retrying=True)

    async def flush(self) -> None:
        """Save scheduled content immediately and wait for in-flight saves."""
        if self._timer is not None:
            self._cancel_timer()
            content = self._record.pending_content
            if content is not None:
                await self._save_now(content)
                return
        await self._wait_in_flight()

    async def wait_idle(self) -> None:
        """Wait until no timer is armed and no save is in flight."""
        loop = asyncio.get_running_loop()
        while self._timer is not None or self._in_flight is not None:
            if self._in_flight is not None:
                await self._wait_in_flight()
            elif self._timer is not None:
                await asyncio.sleep(max(0.0, self._timer.when() - loop.time()))

    def close(self) -> None:
        """Cancel the debounce timer and refuse further triggers."""
        self._cancel_timer()
        self._closed = True

    # -- Internals -------------------------------------------------------------

    def _arm(self) -> None:
        self._cancel_timer()
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(self._delay, self._on_timer)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _on_timer(self) -> None:
        self._timer = None
        content = self._record.pending_content
        if content is None or self._in_flight is not None:
            return
        self._start(content)

    def _start(self, content: str, retrying: bool = False) -> asyncio.Task[bool]:
        task = asyncio.get_running_loop().create_task(self._run(content, retrying))
        self._in_flight = task
        return task

    async def _wait_in_flight(self) -> None:
        while self._in_flight is not None:
            await asyncio.shield(self._in_flight)

    async def _save_now(self, content: str, retrying: bool = False) -> bool:
        self._cancel_timer()
        self._explicit_waiting += 1
        try:
            await self._wait_in_flight()
        finally:
            self._explicit_waiting -= 1
        self._cancel_timer()
        return await self._start(content, retrying)

    async def _run(self, content: str, retrying: bool = False) -> bool:
        try:
            saved = await self._save_with_retry(content, retrying)
        finally:
            self._in_flight = None

        pending = self._record.pending_content
        if (
            not self._closed
            and self._enabled
            and not self._explicit_waiting
            and self._timer is None
            and pending is not None
            and pending != content
        ):
            logger.debug("Newer content arrived during save; rescheduling")
            self._arm()
        return saved

    async def _save_with_retry(self, content: str, retrying: bool) -> bool:
        record = self._record
        record.is_saving = True
        record.is_retrying = retrying
        record.retry_count = 0
        attempt = 0

        while True:
            try:
                await self._save(content)
            except Exception as exc:
                transient = self._is_transient(exc)
                if transient and attempt < self._max_retries:
                    backoff = self._retry_delay * 2**attempt
                    attempt += 1
                    record.retry_count = attempt
                    record.is_retrying = True
                    logger.warning(
                        "Save failed (%s); retrying %d/%d in %.1fs",
                        exc,
                        attempt,
                        self._max_retries,
                        backoff,
                    )
                    await asyncio.sleep(backoff)
                    continue

                attempts = attempt + 1
                if transient:
                    message = (
                        f"Save failed after {attempts} attempts. Please check your connection."
                    )
                else:
                    message = f"Save failed: {exc}"
                self._last_failure = SaveFailedError(message, attempts=attempts)
                record.is_saving = False
                record.is_retrying = False
                record.last_error = message
                record.last_failed_content = content
                logger.error("%s (%d attempts)", message, attempts)
                return False

            record.is_saving = False
            record.is_retrying = False
            record.retry_count = 0
            record.last_saved = datetime.now(UTC)
            record.last_error = None
            record.last_failed_content = None
            self._last_failure = None
            if record.pending_content == content:
                record.pending_content = None
            logger.debug("Saved %d characters after %d attempts", len(content), attempt + 1)
            return True
