"""
Debounced per-page autosave.

Every edit overwrites a page's pending document and restarts its debounce
timer. When the timer fires (or on an explicit flush) the whole document is
handed to the save capability. Only one write per page is ever in flight;
requests that arrive meanwhile are queued and issued on completion.
"""
import logging
from enum import Enum
from typing import Callable, Dict, Optional, Set

from PyQt5.QtCore import QObject, pyqtSignal

from mangaink.core.annotations.models import PageAnnotationsDoc, utc_now_iso
from .scheduler import Scheduler

logger = logging.getLogger(__name__)

DEBOUNCE_MS = 700

SaveDone = Callable[[Optional[Exception]], None]
SaveFn = Callable[[str, dict, SaveDone], None]


class SaveStatus(Enum):
    IDLE = "idle"
    DIRTY = "dirty"
    SAVING = "saving"
    SAVED = "saved"
    ERROR = "error"


class AutosavePipeline(QObject):
    """
    Tracks dirty pages and writes them through ``save_fn``.

    Failures leave the pending document in place and are reported through
    ``save_failed``; nothing is retried until the page is edited or flushed
    again.
    """

    status_changed = pyqtSignal(str, object)  # page_id, SaveStatus
    saved = pyqtSignal(str)  # page_id
    save_failed = pyqtSignal(str, str)  # page_id, message

    def __init__(
        self,
        save_fn: SaveFn,
        scheduler: Scheduler,
        debounce_ms: int = DEBOUNCE_MS,
        parent=None,
    ):
        """
        Args:
            save_fn: ``save_fn(page_id, annotations_dict, done)``; ``done`` is
                called with None on success or the error
            scheduler: Timer source for the debounce
            debounce_ms: Quiet period before a dirty page is written
        """
        super().__init__(parent)
        self._save_fn = save_fn
        self._scheduler = scheduler
        self.debounce_ms = debounce_ms

        self._pending: Dict[str, PageAnnotationsDoc] = {}
        self._timers: Dict[str, int] = {}
        self._in_flight: Dict[str, PageAnnotationsDoc] = {}
        self._followup: Set[str] = set()
        self._status: Dict[str, SaveStatus] = {}
        self._saved_at: Dict[str, str] = {}
        self._last_error: Dict[str, str] = {}

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def status(self, page_id: str) -> SaveStatus:
        return self._status.get(page_id, SaveStatus.IDLE)

    def is_dirty(self, page_id: str) -> bool:
        return page_id in self._pending

    def dirty_ids(self) -> Set[str]:
        return set(self._pending)

    def has_dirty(self) -> bool:
        return bool(self._pending)

    def is_saving(self, page_id: str) -> bool:
        return page_id in self._in_flight

    def saved_at(self, page_id: str) -> Optional[str]:
        return self._saved_at.get(page_id)

    def last_error(self, page_id: str) -> Optional[str]:
        return self._last_error.get(page_id)

    def pending_document(self, page_id: str) -> Optional[PageAnnotationsDoc]:
        return self._pending.get(page_id)

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------

    def schedule(self, page_id: str, doc: PageAnnotationsDoc) -> None:
        """Mark a page dirty with its latest document and restart the debounce."""
        self._pending[page_id] = doc
        self._set_status(page_id, SaveStatus.DIRTY)
        self._cancel_timer(page_id)
        self._timers[page_id] = self._scheduler.call_later(
            self.debounce_ms, lambda: self._on_timer(page_id)
        )

    def flush(self, page_id: str) -> None:
        """Write a dirty page now, or as soon as its in-flight write finishes."""
        self._cancel_timer(page_id)
        if page_id not in self._pending:
            return
        if page_id in self._in_flight:
            self._followup.add(page_id)
            return
        self._write(page_id)

    def flush_all(self) -> None:
        for page_id in sorted(self._pending):
            self.flush(page_id)

    def teardown(self) -> None:
        """Cancel every pending timer; in-flight writes still complete."""
        for page_id in list(self._timers):
            self._cancel_timer(page_id)
        self._followup.clear()

    def discard(self, page_id: Optional[str] = None) -> None:
        """Forget unsaved changes for one page, or all pages."""
        page_ids = [page_id] if page_id is not None else list(self._pending)
        for pid in page_ids:
            self._cancel_timer(pid)
            self._pending.pop(pid, None)
            self._followup.discard(pid)
            self._set_status(pid, SaveStatus.IDLE)

    def _cancel_timer(self, page_id: str) -> None:
        handle = self._timers.pop(page_id, None)
        if handle is not None:
            self._scheduler.cancel(handle)

    def _on_timer(self, page_id: str) -> None:
        self._timers.pop(page_id, None)
        self.flush(page_id)

    # ------------------------------------------------------------------
    # Writing
    # ------------------------------------------------------------------

    def _write(self, page_id: str) -> None:
        doc = self._pending[page_id]
        self._in_flight[page_id] = doc
        self._set_status(page_id, SaveStatus.SAVING)
        logger.debug("Saving annotations for page %s", page_id)

        completed = []

        def done(error: Optional[Exception] = None) -> None:
            if completed:
                logger.warning("Save completion for page %s reported twice", page_id)
                return
            completed.append(True)
            self._on_done(page_id, doc, error)

        try:
            self._save_fn(page_id, doc.to_dict(), done)
        except Exception as e:
            logger.exception("Save capability raised for page %s", page_id)
            if not completed:
                done(e)

    def _on_done(self, page_id: str, doc: PageAnnotationsDoc, error: Optional[Exception]) -> None:
        self._in_flight.pop(page_id, None)
        followup = page_id in self._followup
        self._followup.discard(page_id)

        if error is not None:
            message = str(error) or error.__class__.__name__
            logger.error("Failed to save page %s: %s", page_id, message)
            self._last_error[page_id] = message
            self._set_status(page_id, SaveStatus.ERROR)
            self.save_failed.emit(page_id, message)
        elif self._pending.get(page_id) is doc:
            del self._pending[page_id]
            self._last_error.pop(page_id, None)
            self._saved_at[page_id] = utc_now_iso()
            self._set_status(page_id, SaveStatus.SAVED)
            self.saved.emit(page_id)
        elif page_id in self._pending:
            # A newer edit arrived while this write was in flight.
            self._set_status(page_id, SaveStatus.DIRTY)
        else:
            self._set_status(page_id, SaveStatus.IDLE)

        newer = self._pending.get(page_id)
        if followup and newer is not None and newer is not doc:
            self._write(page_id)

    def _set_status(self, page_id: str, status: SaveStatus) -> None:
        if self._status.get(page_id) != status:
            self._status[page_id] = status
            self.status_changed.emit(page_id, status)

    def dismiss_error(self, page_id: str) -> None:
        """Acknowledge a save error; the page stays dirty."""
        self._last_error.pop(page_id, None)
        if self.status(page_id) == SaveStatus.ERROR:
            self._set_status(page_id, SaveStatus.DIRTY if self.is_dirty(page_id) else SaveStatus.IDLE)
