"""
Coordinate transforms between normalized page space and display pixels.

Stored geometry is a fraction of the image's native size; the display maps
native pixels through ``scale`` (fit-scale times zoom) and an offset.
"""
from dataclasses import dataclass
from typing import Tuple

from mangaink.core.annotations.models import (
    ZERO_BBOX,
    NormalizedBBox,
    NormalizedPoint,
    clamp,
    clamp01,
)

ZOOM_STEP = 0.1
ZOOM_MIN = 0.25
ZOOM_MAX = 4.0


@dataclass(frozen=True)
class DisplayRect:
    """A rectangle in display (widget) pixels."""

    x: float
    y: float
    w: float
    h: float

    def contains(self, px: float, py: float) -> bool:
        return self.x <= px <= self.x + self.w and self.y <= py <= self.y + self.h

    def translated(self, dx: float, dy: float) -> "DisplayRect":
        return DisplayRect(self.x + dx, self.y + dy, self.w, self.h)


@dataclass(frozen=True)
class ViewTransform:
    """Native-pixel to display-pixel mapping: ``display = offset + native * scale``."""

    scale: float
    offset_x: float
    offset_y: float

    @property
    def is_measured(self) -> bool:
        return self.scale > 0


def fit(
    container_w: float, container_h: float, image_w: float, image_h: float
) -> ViewTransform:
    """
    Fit an image inside a container, preserving aspect ratio.

    Args:
        container_w: Display region width in pixels
        container_h: Display region height in pixels
        image_w: Native image width
        image_h: Native image height

    Returns:
        Scale and centering offsets. Scale is 0 when either the image or the
        container has not been measured yet; callers must not divide by it.
    """
    if image_w <= 0 or image_h <= 0 or container_w <= 0 or container_h <= 0:
        return ViewTransform(0.0, 0.0, 0.0)
    scale = min(container_w / image_w, container_h / image_h)
    offset_x = (container_w - image_w * scale) / 2
    offset_y = (container_h - image_h * scale) / 2
    return ViewTransform(scale, offset_x, offset_y)


def normalized_to_display(
    bbox: NormalizedBBox,
    image_w: float,
    image_h: float,
    scale: float,
    offset_x: float = 0.0,
    offset_y: float = 0.0,
) -> DisplayRect:
    return DisplayRect(
        x=offset_x + bbox.x * image_w * scale,
        y=offset_y + bbox.y * image_h * scale,
        w=bbox.w * image_w * scale,
        h=bbox.h * image_h * scale,
    )


def display_to_normalized(
    rect: DisplayRect,
    image_w: float,
    image_h: float,
    scale: float,
    offset_x: float = 0.0,
    offset_y: float = 0.0,
) -> NormalizedBBox:
    """
    Inverse of ``normalized_to_display``.

    Each component is clamped to [0, 1]. Returns the zero rect when the
    scaled image has no extent.
    """
    sw = image_w * scale
    sh = image_h * scale
    if sw <= 0 or sh <= 0:
        return ZERO_BBOX
    return NormalizedBBox(
        x=clamp01((rect.x - offset_x) / sw),
        y=clamp01((rect.y - offset_y) / sh),
        w=clamp01(rect.w / sw),
        h=clamp01(rect.h / sh),
    )


def display_point_to_normalized(
    px: float,
    py: float,
    image_w: float,
    image_h: float,
    scale: float,
    offset_x: float = 0.0,
    offset_y: float = 0.0,
) -> NormalizedPoint:
    sw = image_w * scale
    sh = image_h * scale
    if sw <= 0 or sh <= 0:
        return NormalizedPoint(0.0, 0.0)
    return NormalizedPoint(clamp01((px - offset_x) / sw), clamp01((py - offset_y) / sh))


class Viewport:
    """
    Fit, zoom and pan state for one canvas.

    Zoom multiplies the fit-scale and moves in 0.1 steps per wheel notch
    within [0.25, 4.0]. Pan is a display-space offset added on top of the
    centering offsets.
    """

    def __init__(
        self,
        zoom_step: float = ZOOM_STEP,
        zoom_min: float = ZOOM_MIN,
        zoom_max: float = ZOOM_MAX,
    ):
        self.zoom_step = zoom_step
        self.zoom_min = zoom_min
        self.zoom_max = zoom_max

        self.container_w = 0.0
        self.container_h = 0.0
        self.image_w = 0.0
        self.image_h = 0.0
        self.zoom = 1.0
        self.pan_x = 0.0
        self.pan_y = 0.0

    def set_container_size(self, width: float, height: float) -> None:
        self.container_w = width
        self.container_h = height

    def set_image_size(self, width: float, height: float) -> None:
        """Switch to a new page image; zoom and pan reset to fit."""
        self.image_w = width
        self.image_h = height
        self.reset()

    def reset(self) -> None:
        self.zoom = 1.0
        self.pan_x = 0.0
        self.pan_y = 0.0

    @property
    def fit_transform(self) -> ViewTransform:
        return fit(self.container_w, self.container_h, self.image_w, self.image_h)

    @property
    def transform(self) -> ViewTransform:
        """Current mapping including zoom and pan."""
        base = self.fit_transform
        if not base.is_measured:
            return base
        scale = base.scale * self.zoom
        offset_x = (self.container_w - self.image_w * scale) / 2 + self.pan_x
        offset_y = (self.container_h - self.image_h * scale) / 2 + self.pan_y
        return ViewTransform(scale, offset_x, offset_y)

    def set_zoom(self, zoom: float, anchor: Tuple[float, float] = None) -> None:
        """
        Set zoom, keeping the image point under ``anchor`` fixed on screen.

        Args:
            zoom: New zoom factor, clamped to the allowed range
            anchor: Display point to keep fixed; defaults to the container center
        """
        zoom = clamp(round(zoom, 4), self.zoom_min, self.zoom_max)
        before = self.transform
        self.zoom = zoom
        if anchor is None or not before.is_measured:
            return

        # Image-space point under the anchor must stay under it.
        ax, ay = anchor
        native_x = (ax - before.offset_x) / before.scale
        native_y = (ay - before.offset_y) / before.scale
        after = self.transform
        self.pan_x += ax - (after.offset_x + native_x * after.scale)
        self.pan_y += ay - (after.offset_y + native_y * after.scale)

    def wheel(self, notches: int, anchor: Tuple[float, float] = None) -> float:
        """Apply pointer-wheel notches (positive zooms in); returns the new zoom."""
        self.set_zoom(self.zoom + notches * self.zoom_step, anchor)
        return self.zoom

    def pan_by(self, dx: float, dy: float) -> None:
        self.pan_x += dx
        self.pan_y += dy

    def to_display(self, bbox: NormalizedBBox) -> DisplayRect:
        t = self.transform
        return normalized_to_display(
            bbox, self.image_w, self.image_h, t.scale, t.offset_x, t.offset_y
        )

    def to_normalized(self, rect: DisplayRect) -> NormalizedBBox:
        t = self.transform
        return display_to_normalized(
            rect, self.image_w, self.image_h, t.scale, t.offset_x, t.offset_y
        )

    def point_to_normalized(self, px: float, py: float) -> NormalizedPoint:
        t = self.transform
        return display_point_to_normalized(
            px, py, self.image_w, self.image_h, t.scale, t.offset_x, t.offset_y
        )

    def image_rect(self) -> DisplayRect:
        """Display rectangle covered by the whole page image."""
        return self.to_display(NormalizedBBox(0.0, 0.0, 1.0, 1.0))

    def native_pixel_size(self) -> Tuple[float, float]:
        """One native image pixel as a normalized (dx, dy)."""
        if self.image_w <= 0 or self.image_h <= 0:
            return 0.0, 0.0
        return 1.0 / self.image_w, 1.0 / self.image_h
