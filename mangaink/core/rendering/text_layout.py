"""
Text wrapping and auto-fit font sizing for element containers.
"""
from abc import ABC, abstractmethod
from typing import Dict, List, Tuple

from PyQt5.QtGui import QFont, QFontMetricsF

from mangaink.core.annotations.models import WritingDirection, clamp

DEFAULT_FONT_FAMILY = "Arial"
DEFAULT_LINE_HEIGHT = 1.2
MIN_FONT_SIZE = 8
MAX_FONT_SIZE = 220


class TextMeasurer(ABC):
    """Measures the advance width of a single line of text."""

    @abstractmethod
    def width(self, text: str, font_size: float, font_family: str, font_style: str) -> float:
        pass


def make_font(font_size: float, font_family: str, font_style: str) -> QFont:
    """Build a QFont from the stored style fields."""
    font = QFont(font_family or DEFAULT_FONT_FAMILY)
    font.setPixelSize(max(1, int(round(font_size))))
    style = (font_style or "normal").lower()
    font.setBold("bold" in style)
    font.setItalic("italic" in style)
    return font


class QtTextMeasurer(TextMeasurer):
    """Measures with QFontMetricsF; needs a running QGuiApplication."""

    def __init__(self):
        self._metrics: Dict[Tuple[int, str, str], QFontMetricsF] = {}

    def _metrics_for(self, font_size: float, font_family: str, font_style: str) -> QFontMetricsF:
        key = (int(round(font_size)), font_family or "", font_style or "")
        metrics = self._metrics.get(key)
        if metrics is None:
            metrics = QFontMetricsF(make_font(font_size, font_family, font_style))
            self._metrics[key] = metrics
        return metrics

    def width(self, text: str, font_size: float, font_family: str, font_style: str) -> float:
        return self._metrics_for(font_size, font_family, font_style).horizontalAdvance(text)


def to_ttb_text(text: str) -> str:
    """Naive vertical layout: one glyph per line."""
    return "\n".join(text or "")


def wrap_text(
    text: str,
    max_width: float,
    measurer: TextMeasurer,
    font_size: float,
    font_family: str = DEFAULT_FONT_FAMILY,
    font_style: str = "normal",
) -> List[str]:
    """
    Greedily word-wrap ``text`` to ``max_width``.

    Words wider than the line are broken between characters.
    """
    max_width = max(1.0, max_width)

    def measure(s: str) -> float:
        return measurer.width(s, font_size, font_family, font_style)

    lines: List[str] = []
    current = ""
    for word in (text or "").split():
        candidate = f"{current} {word}" if current else word
        if measure(candidate) <= max_width:
            current = candidate
            continue

        if current:
            lines.append(current)

        if measure(word) > max_width:
            chunk = ""
            for ch in word:
                if measure(chunk + ch) <= max_width:
                    chunk += ch
                else:
                    if chunk:
                        lines.append(chunk)
                    chunk = ch
            current = chunk
        else:
            current = word

    if current:
        lines.append(current)
    return lines


def auto_fit_font_size(
    text: str,
    width: float,
    height: float,
    measurer: TextMeasurer,
    max_font_size: float,
    min_font_size: float = MIN_FONT_SIZE,
    font_family: str = DEFAULT_FONT_FAMILY,
    font_style: str = "normal",
    line_height: float = DEFAULT_LINE_HEIGHT,
    writing_direction: WritingDirection = WritingDirection.LTR,
) -> int:
    """
    Find the largest integer font size whose wrapped text fits a box.

    Args:
        text: Text to lay out
        width: Inner (padding-inset) width in pixels
        height: Inner height in pixels
        measurer: Line-width measurement capability
        max_font_size: Upper bound of the search
        min_font_size: Lower bound; returned when nothing fits

    Returns:
        Font size in [min_font_size, max_font_size]. Empty and vertical (TTB)
        text skip the search and get the clamped maximum.
    """
    top = clamp(round(max_font_size), min_font_size, max_font_size)
    safe_text = (text or "").strip()
    if not safe_text or writing_direction == WritingDirection.TTB:
        return int(top)

    w = max(1.0, width)
    h = max(1.0, height)
    line_height = line_height or DEFAULT_LINE_HEIGHT

    def fits(size: int) -> bool:
        lines = wrap_text(safe_text, w, measurer, size, font_family, font_style)
        return len(lines) * size * line_height <= h

    lo = int(round(min_font_size))
    hi = int(round(max_font_size))
    best = lo
    while lo <= hi:
        mid = (lo + hi) // 2
        if fits(mid):
            best = mid
            lo = mid + 1
        else:
            hi = mid - 1

    return int(clamp(best, min_font_size, max_font_size))


def scaled_font_size(
    font_size: float,
    scale_x: float,
    scale_y: float,
    mode: str = "auto",
    min_font_size: float = MIN_FONT_SIZE,
    max_font_size: float = MAX_FONT_SIZE,
) -> float:
    """Font size after a resize: auto mode scales by the mean factor, manual keeps it."""
    if (mode or "auto") == "manual":
        return font_size
    return clamp(round(font_size * (scale_x + scale_y) / 2), min_font_size, max_font_size)
