"""
Container geometry: burst polygons, cloud outlines, speech tails.

The math helpers work on plain tuples in display pixels so they can be
tested without a paint device; ``container_path`` turns them into a
QPainterPath.
"""
import math
from typing import List, Optional, Tuple

from PyQt5.QtCore import QPointF, QRectF
from PyQt5.QtGui import QPainterPath, QPolygonF

from mangaink.core.annotations.models import ContainerShape, clamp
from mangaink.core.viewport import DisplayRect

Point = Tuple[float, float]

DEFAULT_SPIKES = 10
MIN_SPIKES = 3
MAX_SPIKES = 32
BURST_INNER_RATIO = 0.6
DEFAULT_CORNER_RADIUS = 18
CLOUD_LOBES = 10
TAIL_HALF_WIDTH = 10.0


def burst_points(rect: DisplayRect, spikes=DEFAULT_SPIKES) -> List[Point]:
    """
    Vertices of a spiky burst centered on ``rect``.

    Args:
        rect: Container rectangle
        spikes: Spike count; clamped to [3, 32], non-numeric means 10

    Returns:
        ``2 * spikes`` points alternating outer radius ``min(w, h) / 2`` and
        inner radius ``0.6`` of that, starting straight up
    """
    try:
        s = int(math.floor(float(spikes)))
    except (TypeError, ValueError):
        s = DEFAULT_SPIKES
    s = int(clamp(s, MIN_SPIKES, MAX_SPIKES))

    cx = rect.x + rect.w / 2
    cy = rect.y + rect.h / 2
    outer = min(rect.w, rect.h) / 2
    inner = outer * BURST_INNER_RATIO
    steps = s * 2

    points = []
    for i in range(steps):
        r = outer if i % 2 == 0 else inner
        a = (math.pi * 2 * i) / steps - math.pi / 2
        points.append((cx + math.cos(a) * r, cy + math.sin(a) * r))
    return points


def tail_base_ellipse(rect: DisplayRect, tip: Point) -> Point:
    """Point where the ray from the ellipse center towards ``tip`` leaves the ellipse."""
    cx = rect.x + rect.w / 2
    cy = rect.y + rect.h / 2
    rx = max(1.0, rect.w / 2)
    ry = max(1.0, rect.h / 2)
    vx = tip[0] - cx
    vy = tip[1] - cy

    denom = math.sqrt((vx * vx) / (rx * rx) + (vy * vy) / (ry * ry))
    if denom == 0 or not math.isfinite(denom):
        return cx, cy
    t = 1 / denom
    return cx + vx * t, cy + vy * t


def tail_base_rect(rect: DisplayRect, tip: Point) -> Point:
    """Nearest rectangle-edge intersection on the ray from the center towards ``tip``."""
    cx = rect.x + rect.w / 2
    cy = rect.y + rect.h / 2
    vx = tip[0] - cx
    vy = tip[1] - cy
    left, right = rect.x, rect.x + rect.w
    top, bottom = rect.y, rect.y + rect.h

    candidates = []
    if vx != 0:
        for edge in (left, right):
            t = (edge - cx) / vx
            y = cy + t * vy
            if t > 0 and top <= y <= bottom:
                candidates.append((t, edge, y))
    if vy != 0:
        for edge in (top, bottom):
            t = (edge - cy) / vy
            x = cx + t * vx
            if t > 0 and left <= x <= right:
                candidates.append((t, x, edge))

    if not candidates:
        return cx, cy
    _, x, y = min(candidates)
    return x, y


def tail_base(shape: ContainerShape, rect: DisplayRect, tip: Point) -> Point:
    if shape in (ContainerShape.ELLIPSE, ContainerShape.CLOUD, ContainerShape.BURST):
        return tail_base_ellipse(rect, tip)
    return tail_base_rect(rect, tip)


def tail_polygon(base: Point, tip: Point, half_width: float = TAIL_HALF_WIDTH) -> List[Point]:
    """Triangle with its wide side at ``base``, perpendicular to the tail."""
    dx = tip[0] - base[0]
    dy = tip[1] - base[1]
    length = math.hypot(dx, dy)
    if length == 0:
        return [base, base, tip]
    nx = -dy / length * half_width
    ny = dx / length * half_width
    return [(base[0] + nx, base[1] + ny), tip, (base[0] - nx, base[1] - ny)]


def _qrect(rect: DisplayRect) -> QRectF:
    return QRectF(rect.x, rect.y, rect.w, rect.h)


def _polygon(points: List[Point]) -> QPolygonF:
    return QPolygonF([QPointF(x, y) for x, y in points])


def cloud_path(rect: DisplayRect, lobes: int = CLOUD_LOBES) -> QPainterPath:
    """A thought bubble: ring of circular lobes around an inner ellipse."""
    path = QPainterPath()
    cx = rect.x + rect.w / 2
    cy = rect.y + rect.h / 2
    lobe_r = max(2.0, min(rect.w, rect.h) * 0.18)
    rx = max(1.0, rect.w / 2 - lobe_r)
    ry = max(1.0, rect.h / 2 - lobe_r)

    path.addEllipse(QPointF(cx, cy), rx, ry)
    for i in range(lobes):
        a = (math.pi * 2 * i) / lobes
        path.addEllipse(QPointF(cx + math.cos(a) * rx, cy + math.sin(a) * ry), lobe_r, lobe_r)
    return path.simplified()


def container_path(
    shape: ContainerShape, rect: DisplayRect, params: Optional[dict] = None, scale: float = 1.0
) -> QPainterPath:
    """
    Outline of an element container in display space.

    Args:
        shape: Container shape
        rect: Container rectangle in display pixels
        params: Template params (``cornerRadius``, ``spikes``)
        scale: Display scale, applied to pixel-valued params

    Returns:
        The outline path; empty for ``ContainerShape.NONE``
    """
    params = params or {}
    path = QPainterPath()
    if shape == ContainerShape.NONE:
        return path

    if shape == ContainerShape.ELLIPSE:
        path.addEllipse(_qrect(rect))
    elif shape == ContainerShape.ROUNDRECT:
        radius = float(params.get("cornerRadius", DEFAULT_CORNER_RADIUS)) * scale
        radius = min(radius, rect.w / 2, rect.h / 2)
        path.addRoundedRect(_qrect(rect), radius, radius)
    elif shape == ContainerShape.BURST:
        path.addPolygon(_polygon(burst_points(rect, params.get("spikes", DEFAULT_SPIKES))))
        path.closeSubpath()
    elif shape == ContainerShape.CLOUD:
        path = cloud_path(rect)
    else:
        path.addRect(_qrect(rect))
    return path


def tail_path(shape: ContainerShape, rect: DisplayRect, tip: Point) -> QPainterPath:
    path = QPainterPath()
    path.addPolygon(_polygon(tail_polygon(tail_base(shape, rect, tip), tip)))
    path.closeSubpath()
    return path
