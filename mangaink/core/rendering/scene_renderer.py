"""
Scene rendering for a page: background image, element containers and text,
and the edit-mode affordances (selection outline, handles, order badges,
snap guides).
"""
import logging
from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional, Tuple

from PyQt5.QtCore import QPointF, QRectF, Qt
from PyQt5.QtGui import QBrush, QColor, QFont, QImage, QPainter, QPainterPath, QPen

from mangaink.core.annotations.models import (
    ContainerShape,
    LangMode,
    PageAnnotationsDoc,
    PageElement,
    ViewMode,
    WritingDirection,
)
from mangaink.core.viewport import DisplayRect, Viewport, ViewTransform
from .shapes import container_path, tail_path
from .templates import get_template
from .text_layout import (
    DEFAULT_FONT_FAMILY,
    DEFAULT_LINE_HEIGHT,
    QtTextMeasurer,
    TextMeasurer,
    auto_fit_font_size,
    make_font,
    to_ttb_text,
    wrap_text,
)

logger = logging.getLogger(__name__)

EDIT_OUTLINE = "#d946ef"
HOVER_OUTLINE = "#a855f7"
GUIDE_COLOR = "#22d3ee"
HANDLE_SIZE = 8.0
BADGE_RADIUS = 9.0
DEFAULT_PADDING = 12

# Handle names, in (x, y) fractions of the element rect
RESIZE_HANDLES = {
    "top_left": (0.0, 0.0),
    "top_right": (1.0, 0.0),
    "bottom_left": (0.0, 1.0),
    "bottom_right": (1.0, 1.0),
}


def css_color(value: Optional[str], fallback: str = "#000000") -> QColor:
    """Parse CSS-style colors; 8-digit hex is ``#RRGGBBAA``."""
    value = (value or fallback).strip()
    if value.startswith("#") and len(value) == 9:
        color = QColor(value[:7])
        color.setAlpha(int(value[7:9], 16))
        return color
    color = QColor(value)
    if not color.isValid():
        logger.debug("Unrecognized color %r, using %s", value, fallback)
        color = QColor(fallback)
    return color


def visible_for_paint(doc: Optional[PageAnnotationsDoc]) -> List[PageElement]:
    """Elements that are drawn: not hidden, not deleted."""
    if doc is None:
        return []
    return [el for el in doc.elements if not el.hidden and not el.is_deleted]


def tail_tip_display(el: PageElement, viewport: Viewport) -> Optional[Tuple[float, float]]:
    """Display position of a bubble's tail tip, or None when it has no tail."""
    tip = el.geometry.tail_tip
    if tip is None or not el.container.params.get("tailEnabled"):
        return None
    if not get_template(el.container.template_id).is_bubble:
        return None
    t = viewport.transform
    return (
        t.offset_x + tip.x * viewport.image_w * t.scale,
        t.offset_y + tip.y * viewport.image_h * t.scale,
    )


def handle_rects(rect: DisplayRect, size: float = HANDLE_SIZE) -> Dict[str, DisplayRect]:
    """Resize-handle squares centered on the corners of ``rect``."""
    half = size / 2
    return {
        name: DisplayRect(rect.x + fx * rect.w - half, rect.y + fy * rect.h - half, size, size)
        for name, (fx, fy) in RESIZE_HANDLES.items()
    }


@dataclass
class RenderHandle:
    """Display-side state of one element; never written to the document."""

    element_id: str
    rect: DisplayRect
    scale_x: float = 1.0
    scale_y: float = 1.0

    @property
    def display_rect(self) -> DisplayRect:
        """Rect with the transient resize scale applied from the top-left corner."""
        return DisplayRect(self.rect.x, self.rect.y, self.rect.w * self.scale_x, self.rect.h * self.scale_y)


@dataclass
class Guides:
    """Active snap guides in display pixels."""

    vertical: List[float] = field(default_factory=list)
    horizontal: List[float] = field(default_factory=list)

    def __bool__(self):
        return bool(self.vertical or self.horizontal)


class RenderHandleRegistry:
    """
    Maps element ids to their render handles for the active page.

    Handles are rebuilt when the page or the view transform changes; between
    rebuilds, transient scales set during a resize are kept.
    """

    def __init__(self):
        self._handles: Dict[str, RenderHandle] = {}
        self._order: List[str] = []
        self._key: Optional[Tuple[str, ViewTransform]] = None

    def sync(self, page_id: str, doc: Optional[PageAnnotationsDoc], viewport: Viewport) -> None:
        key = (page_id, viewport.transform)
        if key != self._key:
            self._handles.clear()
            self._key = key

        order = []
        handles = {}
        for el in visible_for_paint(doc):
            rect = viewport.to_display(el.bbox)
            previous = self._handles.get(el.id)
            if previous is not None:
                handles[el.id] = replace(previous, rect=rect)
            else:
                handles[el.id] = RenderHandle(el.id, rect)
            order.append(el.id)
        self._handles = handles
        self._order = order

    def get(self, element_id: Optional[str]) -> Optional[RenderHandle]:
        return self._handles.get(element_id)

    def handles(self) -> List[RenderHandle]:
        """Handles in paint order."""
        return [self._handles[i] for i in self._order]

    def set_transient_scale(self, element_id: str, scale_x: float, scale_y: float) -> None:
        handle = self._handles.get(element_id)
        if handle is not None:
            handle.scale_x = scale_x
            handle.scale_y = scale_y

    def reset_transient(self, element_id: str) -> None:
        self.set_transient_scale(element_id, 1.0, 1.0)

    def hit_test(self, px: float, py: float) -> Optional[str]:
        """Topmost element under a display point (reverse paint order)."""
        for element_id in reversed(self._order):
            if self._handles[element_id].display_rect.contains(px, py):
                return element_id
        return None

    def clear(self) -> None:
        self._handles.clear()
        self._order = []
        self._key = None


@dataclass
class SceneState:
    """Everything besides the document that affects a paint."""

    view_mode: ViewMode = ViewMode.EDIT
    lang_mode: LangMode = LangMode.ORIGINAL
    selected_id: Optional[str] = None
    hover_id: Optional[str] = None
    guides: Guides = field(default_factory=Guides)
    drag_offsets: Dict[str, Tuple[float, float]] = field(default_factory=dict)
    tail_tips: Dict[str, Tuple[float, float]] = field(default_factory=dict)


class SceneRenderer:
    """Paints a page document with QPainter."""

    def __init__(self, measurer: Optional[TextMeasurer] = None):
        self.measurer = measurer or QtTextMeasurer()

    def paint(
        self,
        painter: QPainter,
        doc: Optional[PageAnnotationsDoc],
        viewport: Viewport,
        registry: RenderHandleRegistry,
        state: SceneState,
        background: Optional[QImage] = None,
    ) -> None:
        painter.setRenderHint(QPainter.Antialiasing, True)
        painter.setRenderHint(QPainter.TextAntialiasing, True)

        image_rect = viewport.image_rect()
        if background is not None and not background.isNull():
            painter.drawImage(QRectF(image_rect.x, image_rect.y, image_rect.w, image_rect.h), background)

        if doc is None:
            return

        scale = viewport.transform.scale
        edit_mode = state.view_mode == ViewMode.EDIT
        for el in doc.elements:
            handle = registry.get(el.id)
            if handle is None:
                continue
            rect = handle.display_rect
            if el.id in state.drag_offsets:
                rect = rect.translated(*state.drag_offsets[el.id])
            tip = self._tail_tip_display(el, viewport, state)
            self.paint_element(painter, el, rect, scale, state.lang_mode, tip)

            if edit_mode:
                self._paint_affordances(painter, el, rect, state)

        if edit_mode and state.guides:
            self._paint_guides(painter, state.guides, image_rect)

    def _tail_tip_display(
        self, el: PageElement, viewport: Viewport, state: SceneState
    ) -> Optional[Tuple[float, float]]:
        if el.id in state.tail_tips and get_template(el.container.template_id).is_bubble:
            return state.tail_tips[el.id]
        return tail_tip_display(el, viewport)

    def paint_element(
        self,
        painter: QPainter,
        el: PageElement,
        rect: DisplayRect,
        scale: float,
        lang_mode: LangMode,
        tail_tip: Optional[Tuple[float, float]] = None,
    ) -> None:
        """Paint one element's container, tail and text into ``rect``."""
        style = el.style
        shape = el.container.shape

        painter.save()
        painter.setOpacity(style.opacity)
        if shape != ContainerShape.NONE:
            pen = QPen(css_color(style.stroke), max(0.0, style.stroke_width * scale))
            if el.container.template_id == "sfx_outline":
                pen.setStyle(Qt.DashLine)
            if style.stroke_width <= 0:
                pen = QPen(Qt.NoPen)

            outline = container_path(shape, rect, el.container.params, scale)
            if tail_tip is not None:
                outline = outline.united(tail_path(shape, rect, tail_tip))
            painter.setPen(pen)
            painter.setBrush(QBrush(css_color(style.fill)))
            painter.drawPath(outline)
        painter.restore()

        self.paint_text(painter, el, rect, scale, lang_mode)

    def paint_text(
        self, painter: QPainter, el: PageElement, rect: DisplayRect, scale: float, lang_mode: LangMode
    ) -> None:
        text = el.text.display_text(lang_mode)
        if not text.strip() or scale <= 0:
            return

        style = el.style
        padding = float(el.container.params.get("padding", DEFAULT_PADDING)) * scale
        inner = DisplayRect(
            rect.x + padding, rect.y + padding, max(0.0, rect.w - padding * 2), max(0.0, rect.h - padding * 2)
        )
        family = style.font_family or DEFAULT_FONT_FAMILY
        font_style = style.font_style or "normal"
        line_height = style.line_height or DEFAULT_LINE_HEIGHT
        direction = el.text.writing_direction

        font_size = style.font_size * scale
        if (style.font_size_mode or "auto") == "auto":
            font_size = auto_fit_font_size(
                text, inner.w, inner.h, self.measurer,
                max_font_size=max(1, round(font_size)),
                min_font_size=min(8, max(1, round(font_size))),
                font_family=family, font_style=font_style,
                line_height=line_height, writing_direction=direction,
            )

        if direction == WritingDirection.TTB:
            lines = to_ttb_text(text).split("\n")
        else:
            lines = wrap_text(text, inner.w, self.measurer, font_size, family, font_style)

        font = make_font(font_size, family, font_style)
        if style.letter_spacing:
            font.setLetterSpacing(QFont.AbsoluteSpacing, style.letter_spacing * scale)

        painter.save()
        painter.setFont(font)
        painter.setOpacity(style.opacity)
        if direction == WritingDirection.RTL:
            painter.setLayoutDirection(Qt.RightToLeft)

        center = QPointF(inner.x + inner.w / 2, inner.y + inner.h / 2)
        if style.text_rotation:
            painter.translate(center)
            painter.rotate(style.text_rotation)
            painter.translate(-center)

        line_px = font_size * line_height
        top = inner.y + (inner.h - line_px * len(lines)) / 2
        align = self._alignment(style.align, direction)
        for i, line in enumerate(lines):
            line_rect = QRectF(inner.x, top + i * line_px, inner.w, line_px)
            self._draw_line(painter, el, line, line_rect, align, font, scale)
        painter.restore()

    @staticmethod
    def _alignment(align: str, direction: WritingDirection) -> int:
        if direction == WritingDirection.TTB or align == "center":
            return Qt.AlignHCenter | Qt.AlignVCenter
        if align == "right":
            return Qt.AlignRight | Qt.AlignVCenter
        return Qt.AlignLeft | Qt.AlignVCenter

    def _draw_line(
        self, painter: QPainter, el: PageElement, line: str, rect: QRectF, align: int, font: QFont, scale: float
    ) -> None:
        style = el.style
        shadow = style.text_shadow
        if shadow is not None:
            color = css_color(shadow.color)
            color.setAlphaF(max(0.0, min(1.0, shadow.opacity)))
            painter.setPen(color)
            painter.drawText(rect.translated(shadow.offset_x * scale, shadow.offset_y * scale), align, line)

        fill = css_color(style.text_fill, "#111111")
        stroke_width = (style.text_stroke_width or 0) * scale
        if style.text_stroke and stroke_width > 0:
            # Outline text needs a path; position it where drawText would.
            bounds = painter.boundingRect(rect, align, line)
            path = QPainterPath()
            path.addText(bounds.left(), bounds.top() + painter.fontMetrics().ascent(), font, line)
            painter.strokePath(path, QPen(css_color(style.text_stroke), stroke_width))
            painter.fillPath(path, QBrush(fill))
            return

        painter.setPen(fill)
        painter.drawText(rect, align, line)

    def _paint_affordances(
        self, painter: QPainter, el: PageElement, rect: DisplayRect, state: SceneState
    ) -> None:
        selected = el.id == state.selected_id
        hovered = el.id == state.hover_id
        painter.save()
        painter.setBrush(Qt.NoBrush)
        if selected or hovered:
            pen = QPen(css_color(EDIT_OUTLINE if selected else HOVER_OUTLINE), 1.5)
            pen.setStyle(Qt.DashLine)
            painter.setPen(pen)
            painter.drawRect(QRectF(rect.x, rect.y, rect.w, rect.h))

        if selected and not el.locked:
            painter.setPen(QPen(css_color(EDIT_OUTLINE), 1))
            painter.setBrush(QBrush(Qt.white))
            for handle in handle_rects(rect).values():
                painter.drawRect(QRectF(handle.x, handle.y, handle.w, handle.h))

        # Reading-order badge
        badge = QRectF(rect.x - BADGE_RADIUS, rect.y - BADGE_RADIUS, BADGE_RADIUS * 2, BADGE_RADIUS * 2)
        painter.setPen(Qt.NoPen)
        painter.setBrush(QBrush(css_color(EDIT_OUTLINE)))
        painter.drawEllipse(badge)
        painter.setPen(Qt.white)
        font = QFont(DEFAULT_FONT_FAMILY)
        font.setPixelSize(10)
        painter.setFont(font)
        painter.drawText(badge, Qt.AlignCenter, str(el.reading_order))
        painter.restore()

    def _paint_guides(self, painter: QPainter, guides: Guides, image_rect: DisplayRect) -> None:
        painter.save()
        pen = QPen(css_color(GUIDE_COLOR), 1)
        pen.setStyle(Qt.DashLine)
        painter.setPen(pen)
        for x in guides.vertical:
            painter.drawLine(QPointF(x, image_rect.y), QPointF(x, image_rect.y + image_rect.h))
        for y in guides.horizontal:
            painter.drawLine(QPointF(image_rect.x, y), QPointF(image_rect.x + image_rect.w, y))
        painter.restore()
