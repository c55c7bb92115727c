"""
Canvas widget: paints the current page and forwards pointer input to the
manipulation controller.
"""
import logging
import os
from typing import Optional
from urllib.parse import urlparse

from PyQt5.QtCore import Qt
from PyQt5.QtGui import QColor, QImage, QPainter
from PyQt5.QtWidgets import QWidget

from mangaink.controllers.editor_session import ChapterEditorSession
from mangaink.core.annotations.models import ViewMode
from mangaink.core.rendering.scene_renderer import SceneRenderer, SceneState
from mangaink.errors import AssetLoadError

logger = logging.getLogger(__name__)

CANVAS_BACKGROUND = QColor(38, 38, 44)


def load_page_image(url: str) -> QImage:
    """
    Decode a page image from a local path or ``file://`` URL.

    Raises:
        AssetLoadError: If the image cannot be read or decoded
    """
    parsed = urlparse(url)
    path = parsed.path if parsed.scheme == "file" else url
    if parsed.scheme not in ("", "file") and not os.path.exists(url):
        raise AssetLoadError(f"Unsupported image location: {url}", url=url)

    image = QImage(path)
    if image.isNull():
        raise AssetLoadError(f"Could not decode image: {url}", url=url)
    return image


class PageCanvas(QWidget):
    """
    Display surface for one page at a time.

    Left button selects, drags and resizes in edit mode; the middle button
    (or Space + left button) pans; the wheel zooms around the pointer.
    """

    def __init__(self, session: ChapterEditorSession, renderer: Optional[SceneRenderer] = None, parent=None):
        super().__init__(parent)
        self.session = session
        self.renderer = renderer or SceneRenderer()
        self.background: Optional[QImage] = None

        self._pan_origin = None
        self._space_down = False
        self._wheel_remainder = 0

        self.setMouseTracking(True)
        self.setFocusPolicy(Qt.StrongFocus)
        self.setMinimumSize(400, 300)

        session.current_page_changed.connect(self._on_page_changed)
        session.document_changed.connect(lambda _page_id: self.update())
        session.view_mode_changed.connect(lambda _mode: self.update())
        session.lang_mode_changed.connect(lambda _mode: self.update())
        session.manipulation.scene_changed.connect(self.update)

    def _on_page_changed(self, page_id):
        self.background = None
        page = self.session.page(page_id)
        if page is not None and page.image.url:
            try:
                self.background = load_page_image(page.image.url)
            except AssetLoadError as e:
                # Editing continues on an empty background.
                logger.warning("Page %s image unavailable: %s", page_id, e)
        self.update()

    def reset_view(self):
        self.session.viewport.reset()
        self.update()

    # ------------------------------------------------------------------
    # Painting
    # ------------------------------------------------------------------

    def resizeEvent(self, event):
        self.session.viewport.set_container_size(self.width(), self.height())
        super().resizeEvent(event)

    def paintEvent(self, event):
        painter = QPainter(self)
        try:
            painter.fillRect(self.rect(), CANVAS_BACKGROUND)
            session = self.session
            session.sync_registry()
            manipulation = session.manipulation
            state = SceneState(
                view_mode=session.view_mode,
                lang_mode=session.lang_mode,
                selected_id=session.selected_id,
                hover_id=manipulation.hover_id,
                guides=manipulation.guides,
                drag_offsets=manipulation.drag_offsets,
                tail_tips=manipulation.transient_tail_tips(),
            )
            self.renderer.paint(
                painter,
                session.current_document(),
                session.viewport,
                session.registry,
                state,
                self.background,
            )
        finally:
            painter.end()

    # ------------------------------------------------------------------
    # Pointer input
    # ------------------------------------------------------------------

    def _editing(self) -> bool:
        return self.session.view_mode == ViewMode.EDIT

    def mousePressEvent(self, event):
        pos = event.pos()
        if event.button() == Qt.MiddleButton or (event.button() == Qt.LeftButton and self._space_down):
            self._pan_origin = (pos.x(), pos.y())
            self.setCursor(Qt.ClosedHandCursor)
            return
        if event.button() == Qt.LeftButton and self._editing():
            self.setFocus()
            self.session.manipulation.press(pos.x(), pos.y())

    def mouseMoveEvent(self, event):
        pos = event.pos()
        if self._pan_origin is not None:
            self.session.viewport.pan_by(pos.x() - self._pan_origin[0], pos.y() - self._pan_origin[1])
            self._pan_origin = (pos.x(), pos.y())
            self.update()
            return
        if self._editing():
            disable_snap = bool(event.modifiers() & Qt.AltModifier)
            self.session.manipulation.move(pos.x(), pos.y(), disable_snap)

    def mouseReleaseEvent(self, event):
        pos = event.pos()
        if self._pan_origin is not None:
            self._pan_origin = None
            self.unsetCursor()
            return
        if event.button() == Qt.LeftButton and self._editing():
            disable_snap = bool(event.modifiers() & Qt.AltModifier)
            self.session.manipulation.release(pos.x(), pos.y(), disable_snap)

    def wheel_notches(self, angle_delta: int) -> int:
        """
        Whole wheel notches (120 units each) from an angle delta.

        High-resolution wheels and trackpads send partial deltas; those are
        carried over until they add up to a notch.
        """
        self._wheel_remainder += angle_delta
        notches = int(self._wheel_remainder / 120)
        self._wheel_remainder -= notches * 120
        return notches

    def wheelEvent(self, event):
        notches = self.wheel_notches(event.angleDelta().y())
        if notches == 0:
            event.accept()
            return
        pos = event.pos()
        self.session.viewport.wheel(notches, (pos.x(), pos.y()))
        self.update()
        event.accept()

    def keyPressEvent(self, event):
        if event.key() == Qt.Key_Space and not event.isAutoRepeat():
            self._space_down = True
            self.setCursor(Qt.OpenHandCursor)
            return
        super().keyPressEvent(event)

    def keyReleaseEvent(self, event):
        if event.key() == Qt.Key_Space and not event.isAutoRepeat():
            self._space_down = False
            self.unsetCursor()
            return
        super().keyReleaseEvent(event)
