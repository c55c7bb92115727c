"""
Chapter editor main window.
"""
import logging

from PyQt5.QtCore import Qt
from PyQt5.QtWidgets import (
    QCheckBox, QComboBox, QFrame, QHBoxLayout, QLabel, QMainWindow,
    QMessageBox, QPushButton, QSizePolicy, QSpacerItem, QStackedWidget,
    QVBoxLayout, QWidget,
)

from mangaink.controllers.commands import CommandDispatcher, ShortcutEventFilter
from mangaink.controllers.editor_session import ChapterEditorSession
from mangaink.core.annotations.document import (
    add_to_document,
    auto_reading_order,
    create_element,
    ensure_document,
)
from mangaink.core.annotations.models import LangMode, ViewMode
from mangaink.utils.warning_manager import WarningType, warning_manager
from .canvas_widget import PageCanvas
from .styles import apply_style, badge_style

logger = logging.getLogger(__name__)


class EditorWindow(QMainWindow):
    def __init__(self, session: ChapterEditorSession, dark_mode: bool = True):
        super().__init__()
        self.setWindowTitle("MangaInk")

        self.session = session
        self.dispatcher = CommandDispatcher(session, self)
        self.shortcut_filter = ShortcutEventFilter(self.dispatcher, self)
        self.dark_mode = dark_mode

        self.setup_ui()
        apply_style(self, self.dark_mode)

        session.loaded.connect(self._on_loaded)
        session.load_failed.connect(self._on_load_failed)
        session.pages_changed.connect(self._rebuild_page_list)
        session.current_page_changed.connect(self._on_current_page_changed)
        session.document_changed.connect(lambda _page_id: self._update_status())
        session.selection_changed.connect(lambda _element_id: self._update_status())
        session.save_status_changed.connect(lambda _page_id, _status: self._update_status())
        session.save_failed.connect(self._on_save_failed)

        self.shortcut_filter.install()

    def setup_ui(self):
        self.stack = QStackedWidget(self)
        self.setCentralWidget(self.stack)

        # ERROR PANEL
        self.error_panel = QWidget()
        error_layout = QVBoxLayout(self.error_panel)
        error_layout.setAlignment(Qt.AlignCenter)
        self.error_label = QLabel("", self.error_panel)
        self.error_label.setObjectName("ErrorMessage")
        self.error_label.setAlignment(Qt.AlignCenter)
        self.error_label.setWordWrap(True)
        error_layout.addWidget(self.error_label)
        self.retry_button = QPushButton("Retry", self.error_panel)
        self.retry_button.clicked.connect(self.session.retry)
        error_layout.addWidget(self.retry_button, alignment=Qt.AlignCenter)

        # EDITOR
        self.editor_panel = QWidget()
        editor_layout = QVBoxLayout(self.editor_panel)
        editor_layout.setContentsMargins(0, 0, 0, 0)
        editor_layout.setSpacing(0)

        self.top_frame = QFrame()
        self.top_frame.setObjectName("TopFrame")
        top_layout = QHBoxLayout(self.top_frame)
        top_layout.setContentsMargins(10, 8, 10, 8)
        top_layout.setSpacing(8)

        self.title_label = QLabel("Loading...", self.top_frame)
        self.title_label.setObjectName("ChapterTitle")
        top_layout.addWidget(self.title_label)

        top_layout.addSpacerItem(QSpacerItem(40, 20, QSizePolicy.Expanding, QSizePolicy.Minimum))

        self.prev_button = QPushButton("<", self.top_frame)
        self.prev_button.setToolTip("Previous page")
        self.prev_button.clicked.connect(self.session.previous_page)
        top_layout.addWidget(self.prev_button)

        self.page_combo = QComboBox(self.top_frame)
        self.page_combo.activated.connect(self._on_page_selected)
        top_layout.addWidget(self.page_combo)

        self.next_button = QPushButton(">", self.top_frame)
        self.next_button.setToolTip("Next page")
        self.next_button.clicked.connect(self.session.next_page)
        top_layout.addWidget(self.next_button)

        top_layout.addSpacerItem(QSpacerItem(15, 20, QSizePolicy.Fixed, QSizePolicy.Minimum))

        self.add_button = QPushButton("Add bubble", self.top_frame)
        self.add_button.clicked.connect(self.add_bubble)
        top_layout.addWidget(self.add_button)

        self.order_button = QPushButton("Auto order", self.top_frame)
        self.order_button.setToolTip("Renumber reading order from the page layout")
        self.order_button.clicked.connect(lambda: self.session.update_current(auto_reading_order))
        top_layout.addWidget(self.order_button)

        self.preview_button = QPushButton("Preview", self.top_frame)
        self.preview_button.setCheckable(True)
        self.preview_button.toggled.connect(
            lambda on: self.session.set_view_mode(ViewMode.PREVIEW if on else ViewMode.EDIT)
        )
        top_layout.addWidget(self.preview_button)

        self.translated_button = QPushButton("Translated", self.top_frame)
        self.translated_button.setCheckable(True)
        self.translated_button.toggled.connect(
            lambda on: self.session.set_lang_mode(LangMode.TRANSLATED if on else LangMode.ORIGINAL)
        )
        top_layout.addWidget(self.translated_button)

        self.show_deleted_box = QCheckBox("Show deleted", self.top_frame)
        self.show_deleted_box.toggled.connect(self.session.set_show_deleted)
        top_layout.addWidget(self.show_deleted_box)

        top_layout.addSpacerItem(QSpacerItem(15, 20, QSizePolicy.Fixed, QSizePolicy.Minimum))

        self.stats_label = QLabel("", self.top_frame)
        top_layout.addWidget(self.stats_label)

        self.badge_label = QLabel("-", self.top_frame)
        top_layout.addWidget(self.badge_label)

        editor_layout.addWidget(self.top_frame)

        self.canvas = PageCanvas(self.session, parent=self.editor_panel)
        editor_layout.addWidget(self.canvas, 1)

        self.stack.addWidget(self.editor_panel)
        self.stack.addWidget(self.error_panel)

    # ------------------------------------------------------------------
    # Session events
    # ------------------------------------------------------------------

    def _on_loaded(self):
        self.stack.setCurrentWidget(self.editor_panel)
        work = self.session.work
        chapter = self.session.chapter
        parts = [p for p in (work.title if work else "", chapter.title if chapter else "") if p]
        self.title_label.setText(" / ".join(parts) or "Untitled chapter")
        self._update_status()

    def _on_load_failed(self, message: str):
        self.error_label.setText(f"Could not load the chapter.\n\n{message}")
        self.stack.setCurrentWidget(self.error_panel)

    def _rebuild_page_list(self):
        self.page_combo.blockSignals(True)
        self.page_combo.clear()
        for page in self.session.pages:
            self.page_combo.addItem(f"Page {page.order_index + 1}", page.id)
        self.page_combo.setCurrentIndex(max(self.session.current_index, 0))
        self.page_combo.blockSignals(False)
        self._update_status()

    def _on_page_selected(self, index: int):
        page_id = self.page_combo.itemData(index)
        if page_id is not None:
            self.session.go_to_page(page_id)

    def _on_current_page_changed(self, _page_id):
        self.page_combo.blockSignals(True)
        self.page_combo.setCurrentIndex(max(self.session.current_index, 0))
        self.page_combo.blockSignals(False)
        self._update_status()

    def _on_save_failed(self, page_id: str, message: str):
        self._update_status()
        warning_manager.show_notice(
            self,
            WarningType.SAVE_FAILED,
            "Save Failed",
            f"Changes to {page_id} could not be saved and are kept locally.\n\n{message}",
        )

    def _update_status(self):
        session = self.session
        stats = session.stats()
        self.stats_label.setText(
            f"Pages {stats.analyzed_pages}/{stats.total_pages} | "
            f"Translated {stats.translated_elements}/{stats.alive_elements}"
        )
        badge = session.save_badge()
        self.badge_label.setText(badge)
        self.badge_label.setStyleSheet(badge_style(badge))

        index = session.current_index
        self.prev_button.setEnabled(index > 0)
        self.next_button.setEnabled(0 <= index < len(session.pages) - 1)
        has_page = session.current_page is not None
        self.add_button.setEnabled(has_page)
        self.order_button.setEnabled(has_page)

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    def add_bubble(self):
        """Insert a speech bubble at the default position and select it."""
        page_id = self.session.current_page_id
        if page_id is None:
            return
        doc = ensure_document(page_id, self.session.current_document())
        element = create_element(doc)
        if self.session.update_current(lambda d: add_to_document(d, element)):
            self.session.select(element.id)

    def closeEvent(self, event):
        """Handle window close event - check for unsaved changes."""
        if not self.session.has_dirty():
            self._close_session()
            event.accept()
            return

        reply = warning_manager.show_save_discard_cancel(self)
        if reply == QMessageBox.Save:
            self._close_session()
            event.accept()
        elif reply == QMessageBox.Discard:
            logger.info("Discarding unsaved changes on close")
            self.session.discard_changes()
            self._close_session()
            event.accept()
        else:  # Cancel
            event.ignore()

    def _close_session(self):
        self.shortcut_filter.uninstall()
        self.session.shutdown()
