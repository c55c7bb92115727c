"""
Chapter editor session: page list, current page, modes, and the single
choke point through which every annotation change flows.
"""
import logging
from dataclasses import dataclass, replace
from typing import Callable, List, Optional

from PyQt5.QtCore import QObject, pyqtSignal

from mangaink.config import EditorConfig
from mangaink.core.annotations.document import (
    DocUpdater,
    ElementUpdater,
    elements_in_reading_order,
    ensure_document,
    patch,
    update_element,
    visible_elements,
)
from mangaink.core.annotations.models import (
    ChapterInfo,
    EditorPageItem,
    LangMode,
    PageAnnotationsDoc,
    PageElement,
    ViewMode,
    WorkInfo,
)
from mangaink.core.annotations.undo_redo import HistoryManager, monotonic_ms
from mangaink.core.rendering.scene_renderer import RenderHandleRegistry
from mangaink.core.selection.manipulation import ManipulationController
from mangaink.core.sync.autosave import AutosavePipeline, SaveFn, SaveStatus
from mangaink.core.sync.reconcile import reconcile_pages
from mangaink.core.sync.scheduler import QtScheduler, Scheduler
from mangaink.core.viewport import Viewport
from mangaink.errors import LoadError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChapterStats:
    analyzed_pages: int
    total_pages: int
    translated_elements: int
    alive_elements: int


class ChapterEditorSession(QObject):
    """
    Owns the editor state for one chapter.

    All annotation changes go through ``update_page_annotations``, which
    records history, patches the document, schedules autosave and notifies
    listeners, in that order.
    """

    # Signals
    loaded = pyqtSignal()
    load_failed = pyqtSignal(str)
    pages_changed = pyqtSignal()
    current_page_changed = pyqtSignal(object)  # page id or None
    document_changed = pyqtSignal(str)  # page id
    selection_changed = pyqtSignal(object)  # element id or None
    view_mode_changed = pyqtSignal(object)  # ViewMode
    lang_mode_changed = pyqtSignal(object)  # LangMode
    show_deleted_changed = pyqtSignal(bool)
    save_status_changed = pyqtSignal(str, object)  # page id, SaveStatus
    save_failed = pyqtSignal(str, str)  # page id, message

    def __init__(
        self,
        fetch_draft: Callable,
        save_annotations: SaveFn,
        chapter_id: Optional[str] = None,
        config: Optional[EditorConfig] = None,
        scheduler: Optional[Scheduler] = None,
        clock: Callable[[], float] = monotonic_ms,
        parent=None,
    ):
        """
        Args:
            fetch_draft: ``fetch_draft(chapter_id) -> EditorPayload``; raises on failure
            save_annotations: ``save_annotations(page_id, annotations_dict, done)``
            chapter_id: Chapter to edit
            config: Editor tunables
            scheduler: Timer source for autosave; defaults to QTimers
            clock: Millisecond clock for history coalescing
        """
        super().__init__(parent)
        self.config = config or EditorConfig()
        self.chapter_id = chapter_id
        self._fetch_draft = fetch_draft

        self.work: Optional[WorkInfo] = None
        self.chapter: Optional[ChapterInfo] = None
        self.pages: List[EditorPageItem] = []
        self.current_page_id: Optional[str] = None
        self.load_error: Optional[LoadError] = None
        self.is_loaded = False

        self.view_mode = ViewMode.EDIT
        self.lang_mode = LangMode.ORIGINAL
        self.show_deleted = False

        self.viewport = Viewport(self.config.zoom_step, self.config.zoom_min, self.config.zoom_max)
        self.registry = RenderHandleRegistry()
        self.history = HistoryManager(
            max_size=self.config.history_max_depth,
            coalesce_ms=self.config.history_coalesce_ms,
            clock=clock,
        )
        self.autosave = AutosavePipeline(
            save_annotations,
            scheduler if scheduler is not None else QtScheduler(self),
            debounce_ms=self.config.autosave_debounce_ms,
            parent=self,
        )
        self.manipulation = ManipulationController(
            self.viewport,
            self.registry,
            self.current_document,
            self.update_element,
            min_resize_px=self.config.min_resize_px,
            snap_threshold_px=self.config.snap_threshold_px,
            nudge_small=self.config.nudge_small,
            nudge_large=self.config.nudge_large,
            min_font_size=self.config.min_font_size,
            max_font_size=self.config.max_font_size,
            parent=self,
        )

        self.manipulation.selection_changed.connect(self.selection_changed)
        self.autosave.status_changed.connect(self.save_status_changed)
        self.autosave.save_failed.connect(self.save_failed)

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def load(self) -> bool:
        """
        Fetch the chapter draft and merge it into the page list.

        Unsaved local edits survive a reload. On failure ``load_error`` is
        set and ``load_failed`` is emitted.

        Returns:
            True if the draft was fetched
        """
        try:
            payload = self._fetch_draft(self.chapter_id)
        except LoadError as e:
            return self._fail_load(e)
        except Exception as e:
            logger.exception("Draft fetch failed")
            return self._fail_load(LoadError(str(e)))

        self.load_error = None
        self.work = payload.work
        self.chapter = payload.chapter
        self.pages = reconcile_pages(payload.pages, self.pages, self.autosave.dirty_ids())
        self.is_loaded = True
        logger.info(
            "Loaded chapter %s with %d pages", payload.chapter.id or self.chapter_id, len(self.pages)
        )

        current = self.current_page_id
        if current is None or self.page(current) is None:
            self.current_page_id = None
            if self.pages:
                self._enter_page(self.pages[0].id)
        else:
            self.sync_registry()
            self.manipulation.validate_selection()

        self.pages_changed.emit()
        self.loaded.emit()
        return True

    def _fail_load(self, error: LoadError) -> bool:
        logger.error("Failed to load chapter %s: %s", self.chapter_id, error)
        self.load_error = error
        self.load_failed.emit(str(error))
        return False

    def retry(self) -> bool:
        return self.load()

    def refresh(self) -> bool:
        """Refetch the draft; dirty pages keep their local annotations."""
        return self.load()

    # ------------------------------------------------------------------
    # Pages
    # ------------------------------------------------------------------

    def page(self, page_id: Optional[str]) -> Optional[EditorPageItem]:
        for p in self.pages:
            if p.id == page_id:
                return p
        return None

    @property
    def current_page(self) -> Optional[EditorPageItem]:
        return self.page(self.current_page_id)

    @property
    def current_index(self) -> int:
        for idx, p in enumerate(self.pages):
            if p.id == self.current_page_id:
                return idx
        return -1

    def current_document(self) -> Optional[PageAnnotationsDoc]:
        page = self.current_page
        if page is None:
            return None
        return page.annotations

    def go_to_page(self, page_id: str) -> bool:
        """Switch pages, flushing unsaved edits on the page being left."""
        if page_id == self.current_page_id or self.page(page_id) is None:
            return False
        if self.current_page_id is not None:
            self.autosave.flush(self.current_page_id)
        self._enter_page(page_id)
        return True

    def _enter_page(self, page_id: str) -> None:
        self.manipulation.clear_selection()
        self.current_page_id = page_id
        page = self.page(page_id)
        self.viewport.set_image_size(page.image.width, page.image.height)
        self.registry.clear()
        self.sync_registry()
        self.current_page_changed.emit(page_id)

    def next_page(self) -> bool:
        idx = self.current_index
        if 0 <= idx < len(self.pages) - 1:
            return self.go_to_page(self.pages[idx + 1].id)
        return False

    def previous_page(self) -> bool:
        idx = self.current_index
        if idx > 0:
            return self.go_to_page(self.pages[idx - 1].id)
        return False

    def sync_registry(self) -> None:
        """Rebuild render handles for the current page and transform."""
        self.registry.sync(self.current_page_id or "", self.current_document(), self.viewport)

    # ------------------------------------------------------------------
    # Document changes
    # ------------------------------------------------------------------

    def update_page_annotations(self, page_id: str, updater: DocUpdater) -> bool:
        """
        Apply ``updater`` to a page's annotations.

        Args:
            page_id: Page to change
            updater: Pure function from the current document to the next one

        Returns:
            True if the document changed
        """
        page = self.page(page_id)
        if page is None:
            logger.warning("Ignoring update for unknown page %s", page_id)
            return False

        before = ensure_document(page_id, page.annotations)
        after = patch(before, updater)
        if after is before:
            return False

        self.history.record(page_id, before)
        self._set_document(page_id, after)
        self.autosave.schedule(page_id, after)
        self._after_change(page_id)
        return True

    def update_current(self, updater: DocUpdater) -> bool:
        if self.current_page_id is None:
            return False
        return self.update_page_annotations(self.current_page_id, updater)

    def update_element(self, element_id: str, fn: ElementUpdater) -> bool:
        """Apply ``fn`` to one element of the current page."""
        return self.update_current(lambda doc: update_element(doc, element_id, fn))

    def _set_document(self, page_id: str, doc: PageAnnotationsDoc) -> None:
        self.pages = [replace(p, annotations=doc) if p.id == page_id else p for p in self.pages]

    def _after_change(self, page_id: str) -> None:
        if page_id == self.current_page_id:
            self.sync_registry()
            self.manipulation.validate_selection()
        self.document_changed.emit(page_id)

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    def can_undo(self) -> bool:
        return self.current_page_id is not None and self.history.can_undo(self.current_page_id)

    def can_redo(self) -> bool:
        return self.current_page_id is not None and self.history.can_redo(self.current_page_id)

    def undo(self) -> bool:
        return self._step_history(self.history.undo)

    def redo(self) -> bool:
        return self._step_history(self.history.redo)

    def _step_history(self, step) -> bool:
        page_id = self.current_page_id
        if page_id is None:
            return False
        current = ensure_document(page_id, self.current_page.annotations)
        restored = step(page_id, current)
        if restored is None:
            return False
        self._set_document(page_id, restored)
        self.autosave.schedule(page_id, restored)
        self._after_change(page_id)
        return True

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    @property
    def selected_id(self) -> Optional[str]:
        return self.manipulation.selected_id

    def selected_element(self) -> Optional[PageElement]:
        return self.manipulation.selected_element()

    def select(self, element_id: Optional[str]) -> None:
        self.manipulation.select(element_id)

    def clear_selection(self) -> None:
        self.manipulation.clear_selection()

    def list_elements(self) -> List[PageElement]:
        """Elements for the element list, honoring the show-deleted toggle."""
        return visible_elements(self.current_document(), self.show_deleted)

    def reading_order(self) -> List[PageElement]:
        doc = self.current_document()
        return elements_in_reading_order(doc) if doc is not None else []

    # ------------------------------------------------------------------
    # Modes
    # ------------------------------------------------------------------

    def set_view_mode(self, mode: ViewMode) -> None:
        if mode != self.view_mode:
            self.view_mode = mode
            if mode == ViewMode.PREVIEW:
                self.manipulation.cancel()
            self.view_mode_changed.emit(mode)

    def set_lang_mode(self, mode: LangMode) -> None:
        if mode != self.lang_mode:
            self.lang_mode = mode
            self.lang_mode_changed.emit(mode)

    def set_show_deleted(self, show: bool) -> None:
        if show != self.show_deleted:
            self.show_deleted = show
            self.show_deleted_changed.emit(show)

    @property
    def is_edit_mode(self) -> bool:
        return self.view_mode == ViewMode.EDIT

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    def stats(self) -> ChapterStats:
        """Analyzed/total pages and translated/alive elements on the current page."""
        analyzed = sum(1 for p in self.pages if p.annotations is not None and p.annotations.elements)
        alive = self.reading_order()
        translated = sum(1 for el in alive if (el.text.translated or "").strip())
        return ChapterStats(analyzed, len(self.pages), translated, len(alive))

    def save_badge(self, page_id: Optional[str] = None) -> str:
        """Short save-state label for a page (defaults to the current one)."""
        page_id = page_id or self.current_page_id
        if page_id is None:
            return "-"
        status = self.autosave.status(page_id)
        if status == SaveStatus.IDLE:
            return "dirty" if self.autosave.is_dirty(page_id) else "saved"
        return status.value

    def has_dirty(self) -> bool:
        return self.autosave.has_dirty()

    def save_current(self) -> None:
        if self.current_page_id is not None:
            self.autosave.flush(self.current_page_id)

    def save_all(self) -> None:
        self.autosave.flush_all()

    def discard_changes(self) -> None:
        """Drop every unsaved edit; used when the user chooses Discard on close."""
        self.autosave.discard()

    def shutdown(self) -> None:
        """Flush dirty pages, then stop every pending timer."""
        self.manipulation.cancel()
        self.autosave.flush_all()
        self.autosave.teardown()
