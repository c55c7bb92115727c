import math
from dataclasses import replace

import pytest
from PyQt5.QtGui import QColor, QImage, QPainter

from mangaink.core.annotations.document import set_tail_tip
from mangaink.core.annotations.models import (
    ContainerShape,
    ElementType,
    LangMode,
    NormalizedBBox,
    NormalizedPoint,
    ViewMode,
    WritingDirection,
)
from mangaink.core.rendering.scene_renderer import (
    RenderHandleRegistry,
    SceneRenderer,
    SceneState,
    css_color,
    tail_tip_display,
)
from mangaink.core.rendering.shapes import (
    burst_points,
    container_path,
    tail_base_ellipse,
    tail_base_rect,
)
from mangaink.core.rendering.templates import (
    TEMPLATES,
    default_template_for,
    get_template,
    templates_for,
)
from mangaink.core.rendering.text_layout import (
    TextMeasurer,
    auto_fit_font_size,
    scaled_font_size,
    to_ttb_text,
    wrap_text,
)
from mangaink.core.viewport import DisplayRect, Viewport

from conftest import make_doc


# ---------------------------------------------------------------------------
# Templates
# ---------------------------------------------------------------------------

def test_every_element_type_has_a_default_template():
    for element_type in ElementType:
        template = default_template_for(element_type)
        assert element_type in template.allowed_types


def test_unknown_template_falls_back_to_ellipse_bubble():
    assert get_template("nope").id == "bubble_ellipse"


def test_templates_for_sfx():
    ids = {t.id for t in templates_for(ElementType.SFX)}
    assert ids == {"sfx_burst", "sfx_outline", "plain_text"}


def test_only_bubble_templates_carry_tails():
    bubbles = {t.id for t in TEMPLATES.values() if t.is_bubble}
    assert bubbles == {"bubble_ellipse", "bubble_roundrect", "bubble_cloud", "bubble_burst"}


# ---------------------------------------------------------------------------
# Shapes
# ---------------------------------------------------------------------------

def test_burst_points_alternate_radii_starting_up():
    rect = DisplayRect(0, 0, 100, 60)
    points = burst_points(rect, 10)
    assert len(points) == 20
    # First vertex sits straight above the center at the outer radius
    assert points[0][0] == pytest.approx(50)
    assert points[0][1] == pytest.approx(0)
    inner = math.hypot(points[1][0] - 50, points[1][1] - 30)
    assert inner == pytest.approx(30 * 0.6)


@pytest.mark.parametrize("spikes,expected", [(1, 3), (99, 32), ("many", 10), (7.9, 7)])
def test_burst_spike_count_is_sanitized(spikes, expected):
    assert len(burst_points(DisplayRect(0, 0, 50, 50), spikes)) == expected * 2


def test_tail_base_lies_on_ellipse():
    rect = DisplayRect(0, 0, 200, 100)
    x, y = tail_base_ellipse(rect, (100, 400))
    assert x == pytest.approx(100)
    assert y == pytest.approx(100)


def test_tail_base_on_rect_edge():
    rect = DisplayRect(0, 0, 200, 100)
    x, y = tail_base_rect(rect, (500, 50))
    assert (x, y) == (pytest.approx(200), pytest.approx(50))
    # Tip at the center has no direction
    assert tail_base_rect(rect, (100, 50)) == (100, 50)


def test_container_path_none_is_empty():
    assert container_path(ContainerShape.NONE, DisplayRect(0, 0, 10, 10), {}, 1.0).isEmpty()
    assert not container_path(ContainerShape.CLOUD, DisplayRect(0, 0, 80, 40), {}, 1.0).isEmpty()


# ---------------------------------------------------------------------------
# Text layout
# ---------------------------------------------------------------------------

def test_wrap_text_greedy(measurer):
    # 10px per char at size 20
    lines = wrap_text("aa bb cc dd", 50, measurer, 20)
    assert lines == ["aa bb", "cc dd"]


def test_wrap_text_breaks_long_words(measurer):
    lines = wrap_text("abcdefghij", 40, measurer, 20)
    assert lines == ["abcd", "efgh", "ij"]


def test_auto_fit_finds_largest_fitting_size(measurer):
    size = auto_fit_font_size("hello world", 100, 30, measurer, max_font_size=60)
    # Any larger size must overflow the box
    lines = wrap_text("hello world", 100, measurer, size + 1)
    assert len(lines) * (size + 1) * 1.2 > 30
    lines = wrap_text("hello world", 100, measurer, size)
    assert len(lines) * size * 1.2 <= 30


def test_auto_fit_bounds(measurer):
    assert auto_fit_font_size("", 100, 100, measurer, max_font_size=40) == 40
    assert auto_fit_font_size("x" * 500, 10, 10, measurer, max_font_size=40) == 8
    assert auto_fit_font_size(
        "縦書き", 10, 10, measurer, max_font_size=48, writing_direction=WritingDirection.TTB
    ) == 48


def test_ttb_text_is_one_glyph_per_line():
    assert to_ttb_text("ドン") == "ド\nン"


def test_scaled_font_size_modes():
    assert scaled_font_size(20, 2.0, 1.0) == 30
    assert scaled_font_size(20, 2.0, 1.0, mode="manual") == 20
    assert scaled_font_size(200, 3.0, 3.0) == 220
    assert scaled_font_size(10, 0.1, 0.1) == 8


# ---------------------------------------------------------------------------
# Scene
# ---------------------------------------------------------------------------

def test_css_color_reads_alpha_suffix():
    color = css_color("#ff000080")
    assert (color.red(), color.green(), color.blue()) == (255, 0, 0)
    assert color.alpha() == 0x80
    assert css_color("not-a-color", "#123456") == QColor("#123456")


def make_viewport():
    vp = Viewport()
    vp.set_container_size(1000, 800)
    vp.set_image_size(1000, 800)
    return vp


def test_registry_hit_test_prefers_topmost():
    doc = make_doc("p1", NormalizedBBox(0.1, 0.1, 0.4, 0.4), NormalizedBBox(0.3, 0.3, 0.4, 0.4))
    registry = RenderHandleRegistry()
    registry.sync("p1", doc, make_viewport())

    bottom, top = (el.id for el in doc.elements)
    assert registry.hit_test(350, 300) == top
    assert registry.hit_test(150, 120) == bottom
    assert registry.hit_test(990, 790) is None


def test_registry_skips_hidden_and_deleted():
    doc = make_doc("p1", NormalizedBBox(0.1, 0.1, 0.2, 0.2), NormalizedBBox(0.5, 0.5, 0.2, 0.2))
    hidden = replace(doc.elements[0], hidden=True)
    doc = replace(doc, elements=(hidden, doc.elements[1]))
    registry = RenderHandleRegistry()
    registry.sync("p1", doc, make_viewport())
    assert [h.element_id for h in registry.handles()] == [doc.elements[1].id]


def test_registry_rebuild_drops_transient_scale_on_transform_change():
    doc = make_doc("p1", NormalizedBBox(0.1, 0.1, 0.2, 0.2))
    el_id = doc.elements[0].id
    vp = make_viewport()
    registry = RenderHandleRegistry()
    registry.sync("p1", doc, vp)
    registry.set_transient_scale(el_id, 2.0, 2.0)

    registry.sync("p1", doc, vp)
    assert registry.get(el_id).scale_x == 2.0

    vp.set_zoom(2.0)
    registry.sync("p1", doc, vp)
    assert registry.get(el_id).scale_x == 1.0


def test_tail_tip_only_for_bubbles_with_tail_enabled():
    vp = make_viewport()
    doc = make_doc("p1", NormalizedBBox(0.1, 0.1, 0.2, 0.2))
    el = set_tail_tip(doc.elements[0], NormalizedPoint(0.5, 0.5))
    assert tail_tip_display(el, vp) is None

    enabled = replace(el, container=replace(el.container, params={"tailEnabled": True}))
    assert tail_tip_display(enabled, vp) == (pytest.approx(500), pytest.approx(400))

    narration = replace(enabled, container=replace(enabled.container, template_id="narration_rect"))
    assert tail_tip_display(narration, vp) is None


@pytest.mark.parametrize("view_mode", [ViewMode.EDIT, ViewMode.PREVIEW])
def test_scene_paints_every_template(measurer, view_mode):
    vp = make_viewport()
    doc = make_doc("p1", *(NormalizedBBox(0.05 * i, 0.05 * i, 0.2, 0.15) for i in range(len(TEMPLATES))))
    elements = []
    for el, template in zip(doc.elements, TEMPLATES.values()):
        container = template.make_container(tailEnabled=True)
        el = replace(el, container=container, text=replace(el.text, original="Hello there"))
        elements.append(set_tail_tip(el, NormalizedPoint(0.9, 0.9)))
    doc = replace(doc, elements=tuple(elements))

    registry = RenderHandleRegistry()
    registry.sync("p1", doc, vp)
    image = QImage(1000, 800, QImage.Format_ARGB32)
    image.fill(QColor("blue"))
    painter = QPainter(image)
    try:
        SceneRenderer(measurer).paint(
            painter, doc, vp, registry,
            SceneState(view_mode=view_mode, lang_mode=LangMode.ORIGINAL, selected_id=elements[0].id),
        )
    finally:
        painter.end()
    # The first bubble is filled just inside its left edge
    assert image.pixelColor(8, 60) != QColor("blue")


def test_text_measurer_interface_is_abstract():
    with pytest.raises(TypeError):
        TextMeasurer()
