"""
Undo/Redo history for page annotation documents.
"""
import copy
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from .models import PageAnnotationsDoc


def monotonic_ms() -> float:
    return time.monotonic() * 1000.0


@dataclass
class PageHistory:
    """Undo/redo stacks for a single page."""

    past: List[PageAnnotationsDoc] = field(default_factory=list)
    future: List[PageAnnotationsDoc] = field(default_factory=list)
    last_mark_at: Optional[float] = None


class HistoryManager:
    """
    Manages per-page undo/redo stacks with time-coalesced snapshots.

    Edits that arrive within ``coalesce_ms`` of the previous snapshot are
    folded into it, so a continuous drag or a typing burst becomes a single
    undo step.
    """

    def __init__(
        self,
        max_size: int = 200,
        coalesce_ms: float = 650.0,
        clock: Callable[[], float] = monotonic_ms,
    ):
        """
        Initialize the history manager.

        Args:
            max_size: Maximum number of states to keep per page
            coalesce_ms: Window in which consecutive edits share one snapshot
            clock: Millisecond clock, injectable for tests
        """
        self.max_size = max_size
        self.coalesce_ms = coalesce_ms
        self._clock = clock
        self._pages: Dict[str, PageHistory] = {}

    def _page(self, page_id: str) -> PageHistory:
        if page_id not in self._pages:
            self._pages[page_id] = PageHistory()
        return self._pages[page_id]

    def record(self, page_id: str, before: PageAnnotationsDoc) -> bool:
        """
        Record the pre-patch state of a page.

        Must be called before every patch. Always discards the redo branch.

        Args:
            page_id: Page being edited
            before: Document as it was before the edit

        Returns:
            True if a new undo entry was pushed, False if the edit was folded
            into the current burst
        """
        history = self._page(page_id)
        history.future.clear()

        now = self._clock()
        if history.last_mark_at is not None and now - history.last_mark_at <= self.coalesce_ms:
            return False

        history.past.append(copy.deepcopy(before))
        history.last_mark_at = now

        # Limit stack size
        if len(history.past) > self.max_size:
            del history.past[: len(history.past) - self.max_size]
        return True

    def can_undo(self, page_id: str) -> bool:
        return bool(self._page(page_id).past)

    def can_redo(self, page_id: str) -> bool:
        return bool(self._page(page_id).future)

    def undo(
        self, page_id: str, current: PageAnnotationsDoc
    ) -> Optional[PageAnnotationsDoc]:
        """
        Step back one entry.

        Args:
            page_id: Page to undo on
            current: Current document, moved onto the redo stack

        Returns:
            Previous document, or None if undo is not available
        """
        history = self._page(page_id)
        if not history.past:
            return None

        history.future.append(copy.deepcopy(current))
        # The next edit after an undo starts a fresh entry.
        history.last_mark_at = None
        return history.past.pop()

    def redo(
        self, page_id: str, current: PageAnnotationsDoc
    ) -> Optional[PageAnnotationsDoc]:
        """
        Step forward one entry.

        Args:
            page_id: Page to redo on
            current: Current document, moved back onto the undo stack

        Returns:
            Next document, or None if redo is not available
        """
        history = self._page(page_id)
        if not history.future:
            return None

        history.past.append(copy.deepcopy(current))
        history.last_mark_at = None
        return history.future.pop()

    def clear(self, page_id: Optional[str] = None) -> None:
        """Clear one page's history, or every page when ``page_id`` is None."""
        if page_id is None:
            self._pages.clear()
        else:
            self._pages.pop(page_id, None)

    def depth(self, page_id: str) -> int:
        return len(self._page(page_id).past)
