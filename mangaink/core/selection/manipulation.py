"""
Selection and direct manipulation of page elements.

Pointer interaction is tracked in display pixels and only converted to
normalized geometry once, when the gesture is committed.
"""
import logging
from dataclasses import replace
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple

from PyQt5.QtCore import QObject, pyqtSignal

from mangaink.core.annotations.document import ElementUpdater, set_bbox, set_tail_tip, update_content
from mangaink.core.annotations.models import NormalizedBBox, NormalizedPoint, PageAnnotationsDoc, PageElement
from mangaink.core.rendering.scene_renderer import (
    HANDLE_SIZE,
    Guides,
    RenderHandleRegistry,
    handle_rects,
    tail_tip_display,
)
from mangaink.core.rendering.text_layout import MAX_FONT_SIZE, MIN_FONT_SIZE, scaled_font_size
from mangaink.core.viewport import DisplayRect, Viewport

logger = logging.getLogger(__name__)

MIN_RESIZE_PX = 24.0
SNAP_THRESHOLD_PX = 8.0
NUDGE_SMALL = 1
NUDGE_LARGE = 10


class InteractionState(Enum):
    IDLE = "idle"
    SELECTED = "selected"
    DRAGGING = "dragging"
    RESIZING = "resizing"
    DRAGGING_TAIL = "dragging_tail"


def compute_snap(
    box: DisplayRect, guides_x: List[float], guides_y: List[float], threshold: float
) -> Tuple[float, float, Guides]:
    """
    Snap a box's edges or center to the nearest guide on each axis.

    Args:
        box: Proposed box in display pixels
        guides_x: Vertical guide positions
        guides_y: Horizontal guide positions
        threshold: Snapping distance in display pixels (exclusive)

    Returns:
        Snapped (x, y) origin and the guides that were hit
    """

    def best(guides: List[float], start: float, size: float):
        match = None
        for g in guides:
            for offset in (0.0, size / 2, size):
                d = abs(g - (start + offset))
                if d < threshold and (match is None or d < match[0]):
                    match = (d, g, offset)
        return match

    x, y = box.x, box.y
    active = Guides()
    mx = best(guides_x, box.x, box.w)
    if mx is not None:
        x = mx[1] - mx[2]
        active.vertical.append(mx[1])
    my = best(guides_y, box.y, box.h)
    if my is not None:
        y = my[1] - my[2]
        active.horizontal.append(my[1])
    return x, y, active


def clip_to(box: DisplayRect, bounds: DisplayRect) -> DisplayRect:
    """Intersect a box with ``bounds``; edges already inside stay put."""
    x0 = max(box.x, bounds.x)
    y0 = max(box.y, bounds.y)
    x1 = min(box.x + box.w, bounds.x + bounds.w)
    y1 = min(box.y + box.h, bounds.y + bounds.h)
    return DisplayRect(x0, y0, max(0.0, x1 - x0), max(0.0, y1 - y0))


def clamp_inside(box: DisplayRect, bounds: DisplayRect) -> DisplayRect:
    """Keep a box's origin inside ``bounds`` (size unchanged)."""
    max_x = bounds.x + max(0.0, bounds.w - box.w)
    max_y = bounds.y + max(0.0, bounds.h - box.h)
    return DisplayRect(
        min(max(box.x, bounds.x), max_x), min(max(box.y, bounds.y), max_y), box.w, box.h
    )


def resize_rect(start: DisplayRect, handle: str, dx: float, dy: float) -> DisplayRect:
    """Apply a corner-handle drag to ``start``."""
    x, y, w, h = start.x, start.y, start.w, start.h
    if "left" in handle:
        x, w = x + dx, w - dx
    else:
        w = w + dx
    if "top" in handle:
        y, h = y + dy, h - dy
    else:
        h = h + dy
    return DisplayRect(x, y, w, h)


class ManipulationController(QObject):
    """
    Click / drag / resize / nudge state machine for the active page.

    Changes are committed through ``commit(element_id, updater)``, which the
    editor session routes into its document choke point.
    """

    selection_changed = pyqtSignal(object)  # element id or None
    state_changed = pyqtSignal(object)  # InteractionState
    scene_changed = pyqtSignal()

    def __init__(
        self,
        viewport: Viewport,
        registry: RenderHandleRegistry,
        document: Callable[[], Optional[PageAnnotationsDoc]],
        commit: Callable[[str, ElementUpdater], None],
        min_resize_px: float = MIN_RESIZE_PX,
        snap_threshold_px: float = SNAP_THRESHOLD_PX,
        nudge_small: int = NUDGE_SMALL,
        nudge_large: int = NUDGE_LARGE,
        min_font_size: float = MIN_FONT_SIZE,
        max_font_size: float = MAX_FONT_SIZE,
        parent=None,
    ):
        super().__init__(parent)
        self.viewport = viewport
        self.registry = registry
        self._document = document
        self._commit = commit

        self.min_resize_px = min_resize_px
        self.snap_threshold_px = snap_threshold_px
        self.nudge_small = nudge_small
        self.nudge_large = nudge_large
        self.min_font_size = min_font_size
        self.max_font_size = max_font_size

        self.state = InteractionState.IDLE
        self.selected_id: Optional[str] = None
        self.hover_id: Optional[str] = None

        # Gesture state
        self._press: Optional[Tuple[float, float]] = None
        self._start_rect: Optional[DisplayRect] = None
        self._proposed: Optional[DisplayRect] = None
        self._handle: Optional[str] = None
        self._tail_tip: Optional[Tuple[float, float]] = None

        # Transient display state for the renderer
        self.drag_offsets: Dict[str, Tuple[float, float]] = {}
        self.guides = Guides()

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    def selected_element(self) -> Optional[PageElement]:
        doc = self._document()
        if doc is None or self.selected_id is None:
            return None
        return doc.get_element(self.selected_id)

    def select(self, element_id: Optional[str]) -> None:
        if element_id == self.selected_id:
            return
        self._reset_gesture()
        self.selected_id = element_id
        self._set_state(InteractionState.SELECTED if element_id else InteractionState.IDLE)
        self.selection_changed.emit(element_id)
        self.scene_changed.emit()

    def clear_selection(self) -> None:
        self.select(None)

    def validate_selection(self) -> None:
        """Drop the selection if the element is gone or deleted."""
        el = self.selected_element()
        if self.selected_id is not None and (el is None or el.is_deleted):
            self.clear_selection()

    def _set_state(self, state: InteractionState) -> None:
        if state != self.state:
            self.state = state
            self.state_changed.emit(state)

    # ------------------------------------------------------------------
    # Pointer gestures
    # ------------------------------------------------------------------

    def hover(self, px: float, py: float) -> None:
        hover_id = self.registry.hit_test(px, py)
        if hover_id != self.hover_id:
            self.hover_id = hover_id
            self.scene_changed.emit()

    def press(self, px: float, py: float) -> None:
        """Pointer down: start a resize/tail drag, select and start a drag, or clear."""
        el = self.selected_element()
        handle = self.registry.get(self.selected_id)
        if el is not None and handle is not None and not el.locked:
            for name, rect in handle_rects(handle.rect).items():
                if rect.contains(px, py):
                    self._begin(px, py, handle.rect, InteractionState.RESIZING)
                    self._handle = name
                    return
            tip = tail_tip_display(el, self.viewport)
            if tip is not None and abs(px - tip[0]) <= HANDLE_SIZE and abs(py - tip[1]) <= HANDLE_SIZE:
                self._begin(px, py, handle.rect, InteractionState.DRAGGING_TAIL)
                self._tail_tip = tip
                return

        hit = self.registry.hit_test(px, py)
        if hit is None:
            self.clear_selection()
            return

        self.select(hit)
        el = self.selected_element()
        if el is not None and not el.locked:
            self._begin(px, py, self.registry.get(hit).rect, InteractionState.DRAGGING)

    def _begin(self, px: float, py: float, rect: DisplayRect, state: InteractionState) -> None:
        self._press = (px, py)
        self._start_rect = rect
        self._proposed = rect
        self._set_state(state)

    def move(self, px: float, py: float, disable_snap: bool = False) -> None:
        if self._press is None:
            self.hover(px, py)
            return
        dx = px - self._press[0]
        dy = py - self._press[1]

        if self.state == InteractionState.DRAGGING:
            self._drag_to(dx, dy, disable_snap)
        elif self.state == InteractionState.RESIZING:
            self._resize_to(dx, dy)
        elif self.state == InteractionState.DRAGGING_TAIL:
            bounds = self.viewport.image_rect()
            self._tail_tip = (
                min(max(px, bounds.x), bounds.x + bounds.w),
                min(max(py, bounds.y), bounds.y + bounds.h),
            )
        self.scene_changed.emit()

    def _drag_to(self, dx: float, dy: float, disable_snap: bool) -> None:
        start = self._start_rect
        if dx == 0 and dy == 0:
            self._proposed = start
            self.drag_offsets = {}
            self.guides = Guides()
            return
        bounds = self.viewport.image_rect()
        box = clamp_inside(start.translated(dx, dy), bounds)

        self.guides = Guides()
        if not disable_snap:
            guides_x = [bounds.x, bounds.x + bounds.w / 2, bounds.x + bounds.w]
            guides_y = [bounds.y, bounds.y + bounds.h / 2, bounds.y + bounds.h]
            for other in self.registry.handles():
                if other.element_id == self.selected_id:
                    continue
                r = other.rect
                guides_x.extend((r.x, r.x + r.w / 2, r.x + r.w))
                guides_y.extend((r.y, r.y + r.h / 2, r.y + r.h))
            x, y, self.guides = compute_snap(box, guides_x, guides_y, self.snap_threshold_px)
            box = clamp_inside(DisplayRect(x, y, box.w, box.h), bounds)

        self._proposed = box
        self.drag_offsets = {self.selected_id: (box.x - start.x, box.y - start.y)}

    def _resize_to(self, dx: float, dy: float) -> None:
        start = self._start_rect
        box = clip_to(resize_rect(start, self._handle, dx, dy), self.viewport.image_rect())
        self._proposed = box
        if start.w > 0 and start.h > 0 and box.w > 0 and box.h > 0:
            self.registry.set_transient_scale(self.selected_id, box.w / start.w, box.h / start.h)
            self.drag_offsets = {self.selected_id: (box.x - start.x, box.y - start.y)}

    def release(self, px: float, py: float, disable_snap: bool = False) -> None:
        """Pointer up: commit the gesture, if any."""
        if self._press is None:
            return
        if (px, py) == self._press:
            # A click without movement only selects
            self._reset_gesture()
            self.scene_changed.emit()
            return
        self.move(px, py, disable_snap)
        element_id = self.selected_id
        state = self.state
        start = self._start_rect
        proposed = self._proposed
        tail_tip = self._tail_tip
        self._reset_gesture()

        if state == InteractionState.DRAGGING:
            if (proposed.x, proposed.y) != (start.x, start.y):
                self._commit_rect(element_id, proposed)
        elif state == InteractionState.RESIZING:
            self._commit_resize(element_id, start, proposed)
        elif state == InteractionState.DRAGGING_TAIL and tail_tip is not None:
            tip = self.viewport.point_to_normalized(*tail_tip)
            self._commit(element_id, lambda el: _with_tail(el, tip))
        self.scene_changed.emit()

    def cancel(self) -> None:
        """Abort the gesture in progress without committing."""
        if self._press is None:
            return
        self._reset_gesture()
        self.scene_changed.emit()

    def _reset_gesture(self) -> None:
        if self.selected_id is not None:
            self.registry.reset_transient(self.selected_id)
        self._press = None
        self._start_rect = None
        self._proposed = None
        self._handle = None
        self._tail_tip = None
        self.drag_offsets = {}
        self.guides = Guides()
        if self.state not in (InteractionState.IDLE, InteractionState.SELECTED):
            self._set_state(InteractionState.SELECTED if self.selected_id else InteractionState.IDLE)

    def _commit_rect(self, element_id: str, rect: DisplayRect, **style_changes) -> None:
        bbox = self.viewport.to_normalized(rect)
        if bbox.w <= 0 or bbox.h <= 0:
            return

        def apply(el: PageElement) -> PageElement:
            el = set_bbox(el, bbox)
            if style_changes:
                el = update_content(el, style=replace(el.style, **style_changes))
            return el

        self._commit(element_id, apply)

    def _commit_resize(self, element_id: str, start: DisplayRect, rect: DisplayRect) -> None:
        rect = clip_to(rect, self.viewport.image_rect())
        if rect.w < self.min_resize_px or rect.h < self.min_resize_px:
            logger.debug("Rejected resize of %s below %spx floor", element_id, self.min_resize_px)
            return
        if start.w <= 0 or start.h <= 0 or (rect.w, rect.h, rect.x, rect.y) == (start.w, start.h, start.x, start.y):
            return

        el = self.selected_element()
        if el is None:
            return
        font_size = scaled_font_size(
            el.style.font_size,
            rect.w / start.w,
            rect.h / start.h,
            el.style.font_size_mode or "auto",
            self.min_font_size,
            self.max_font_size,
        )
        self._commit_rect(element_id, rect, font_size=font_size)

    # ------------------------------------------------------------------
    # Keyboard
    # ------------------------------------------------------------------

    def nudge(self, dx: int, dy: int, large: bool = False) -> bool:
        """
        Move the selection by whole native-image pixels.

        Args:
            dx: -1, 0 or 1 horizontally
            dy: -1, 0 or 1 vertically
            large: Use the large step

        Returns:
            True if a change was committed
        """
        el = self.selected_element()
        if el is None or el.locked or el.is_deleted:
            return False
        px_w, px_h = self.viewport.native_pixel_size()
        if px_w <= 0 or px_h <= 0:
            return False

        step = self.nudge_large if large else self.nudge_small
        b = el.bbox
        moved = NormalizedBBox(b.x + dx * step * px_w, b.y + dy * step * px_h, b.w, b.h).clamped()
        if (moved.x, moved.y) == (b.x, b.y):
            return False
        self._commit(el.id, lambda e: set_bbox(e, moved))
        return True

    # ------------------------------------------------------------------
    # Tails
    # ------------------------------------------------------------------

    def transient_tail_tips(self) -> Dict[str, Tuple[float, float]]:
        """Tail tip being dragged, keyed by element id, for the renderer."""
        if self.state != InteractionState.DRAGGING_TAIL or self._tail_tip is None:
            return {}
        return {self.selected_id: self._tail_tip}


def _with_tail(el: PageElement, tip: NormalizedPoint) -> PageElement:
    el = set_tail_tip(el, tip)
    if el.container.params.get("tailEnabled"):
        return el
    params = dict(el.container.params, tailEnabled=True)
    return update_content(el, container=replace(el.container, params=params))
