from dataclasses import replace

import pytest

from mangaink.core.annotations.document import (
    add_element,
    auto_reading_order,
    duplicate_element,
    edit_text,
    elements_in_reading_order,
    empty_document,
    ensure_document,
    move_reading_order,
    patch,
    restore,
    set_bbox,
    set_template,
    soft_delete,
    update_element,
    update_meta,
    visible_elements,
)
from mangaink.core.annotations.models import (
    SCHEMA_VERSION,
    ContainerShape,
    ElementStatus,
    ElementType,
    LangMode,
    NormalizedBBox,
    PageAnnotationsDoc,
    PageMeta,
    TextLang,
    WritingDirection,
)

from conftest import make_doc


# ---------------------------------------------------------------------------
# ensure_document / patch
# ---------------------------------------------------------------------------

def test_ensure_document_returns_current_document_unchanged():
    doc = make_doc("p1", NormalizedBBox(0.1, 0.1, 0.2, 0.2))
    assert ensure_document("p1", doc) is doc


def test_ensure_document_creates_empty_for_missing_and_legacy():
    assert ensure_document("p1", None).elements == ()
    legacy = ensure_document("p1", {"bubbles": [{"x": 1}]})
    assert legacy.page_id == "p1"
    assert legacy.version == SCHEMA_VERSION
    assert legacy.elements == ()


def test_ensure_document_fills_missing_fields_of_current_schema_dict():
    doc = ensure_document("p9", {"version": SCHEMA_VERSION, "elements": [{"id": "a"}]})
    assert doc.page_id == "p9"
    el = doc.elements[0]
    assert el.id == "a"
    assert el.container.template_id == "bubble_ellipse"
    assert el.status == ElementStatus.NEEDS_REVIEW


def test_patch_stamps_updated_at_and_keeps_no_ops():
    doc = replace(empty_document("p1"), updated_at="2000-01-01T00:00:00.000Z")
    assert patch(doc, lambda d: d) is doc

    changed = patch(doc, add_element)
    assert changed is not doc
    assert changed.updated_at != doc.updated_at
    assert len(changed.elements) == 1
    # Original is untouched
    assert doc.elements == ()


def test_update_element_unknown_id_is_noop():
    doc = make_doc("p1", NormalizedBBox(0.1, 0.1, 0.2, 0.2))
    assert update_element(doc, "missing", lambda el: el) is doc


# ---------------------------------------------------------------------------
# Element mutations
# ---------------------------------------------------------------------------

def test_content_mutation_flips_status_to_edited():
    doc = make_doc("p1", NormalizedBBox(0.1, 0.1, 0.2, 0.2))
    el = replace(doc.elements[0], status=ElementStatus.DETECTED)
    moved = set_bbox(el, NormalizedBBox(0.5, 0.5, 0.2, 0.2))
    assert moved.status == ElementStatus.EDITED
    assert moved.geometry.anchor.x == pytest.approx(0.6)
    assert moved.geometry.anchor.y == pytest.approx(0.6)


def test_meta_mutation_keeps_status():
    doc = make_doc("p1", NormalizedBBox(0.1, 0.1, 0.2, 0.2))
    el = replace(doc.elements[0], status=ElementStatus.CONFIRMED)
    locked = update_meta(el, locked=True, notes="check tone")
    assert locked.locked
    assert locked.notes == "check tone"
    assert locked.status == ElementStatus.CONFIRMED

    with pytest.raises(ValueError):
        update_meta(el, text=None)


def test_set_bbox_clamps_into_unit_square():
    doc = make_doc("p1", NormalizedBBox(0.1, 0.1, 0.2, 0.2))
    el = set_bbox(doc.elements[0], NormalizedBBox(0.95, -0.2, 0.3, 1.5))
    b = el.bbox
    assert b.w == pytest.approx(0.3)
    assert b.h == pytest.approx(1.0)
    assert b.x == pytest.approx(0.7)
    assert b.y == pytest.approx(0.0)


def test_edit_text_detects_language_and_direction():
    doc = make_doc("p1", NormalizedBBox(0.1, 0.1, 0.2, 0.2))
    el = edit_text(doc.elements[0], "original", "مرحبا")
    assert el.text.lang == TextLang.AR
    assert el.text.writing_direction == WritingDirection.RTL

    el = edit_text(el, "original", "こんにちは")
    assert el.text.lang == TextLang.JA
    assert el.text.writing_direction == WritingDirection.LTR


def test_edit_text_keeps_vertical_direction_unless_rtl():
    doc = make_doc("p1", NormalizedBBox(0.1, 0.1, 0.2, 0.2))
    el = doc.elements[0]
    el = replace(el, text=replace(el.text, writing_direction=WritingDirection.TTB))
    assert edit_text(el, "original", "ドン").text.writing_direction == WritingDirection.TTB
    assert edit_text(el, "original", "سلام").text.writing_direction == WritingDirection.RTL


def test_edit_translated_text_falls_back_for_display():
    doc = make_doc("p1", NormalizedBBox(0.1, 0.1, 0.2, 0.2))
    el = edit_text(doc.elements[0], "original", "Hello")
    assert el.text.display_text(LangMode.TRANSLATED) == "Hello"
    el = edit_text(el, "translated", "Bonjour")
    assert el.text.display_text(LangMode.TRANSLATED) == "Bonjour"
    assert el.text.display_text(LangMode.ORIGINAL) == "Hello"

    with pytest.raises(ValueError):
        edit_text(el, "notes", "x")


def test_set_template_keeps_known_params():
    doc = make_doc("p1", NormalizedBBox(0.1, 0.1, 0.2, 0.2))
    el = doc.elements[0]
    el = replace(el, container=replace(el.container, params={"padding": 20, "tailEnabled": True}))
    switched = set_template(el, "bubble_burst")
    assert switched.container.shape == ContainerShape.BURST
    assert switched.container.params["padding"] == 20
    assert switched.container.params["spikes"] == 10
    assert "tailEnabled" not in switched.container.params


# ---------------------------------------------------------------------------
# Soft delete
# ---------------------------------------------------------------------------

def test_soft_delete_keeps_element_in_document():
    doc = make_doc("p1", NormalizedBBox(0.1, 0.1, 0.2, 0.2), NormalizedBBox(0.5, 0.5, 0.2, 0.2))
    target = doc.elements[0].id
    deleted = soft_delete(doc, target)

    assert len(deleted.elements) == 2
    assert deleted.get_element(target).status == ElementStatus.DELETED
    assert [el.id for el in visible_elements(deleted)] == [doc.elements[1].id]
    assert len(visible_elements(deleted, show_deleted=True)) == 2

    restored = restore(deleted, target)
    assert restored.get_element(target).status == ElementStatus.EDITED


# ---------------------------------------------------------------------------
# Duplicate and reading order
# ---------------------------------------------------------------------------

def test_duplicate_offsets_and_caps_origin():
    doc = make_doc("p1", NormalizedBBox(0.9, 0.9, 0.05, 0.05))
    source = doc.elements[0]
    copy = duplicate_element(source)
    assert copy.id != source.id
    assert copy.bbox.x == pytest.approx(0.91)
    assert copy.bbox.y == pytest.approx(0.91)
    assert copy.bbox.w == pytest.approx(0.05)

    far = make_doc("p1", NormalizedBBox(0.975, 0.975, 0.01, 0.01)).elements[0]
    copy = duplicate_element(far)
    assert copy.bbox.x <= 0.98
    assert copy.bbox.y <= 0.98


def test_auto_reading_order_respects_direction():
    doc = make_doc(
        "p1",
        NormalizedBBox(0.6, 0.1, 0.2, 0.1),
        NormalizedBBox(0.1, 0.1, 0.2, 0.1),
        NormalizedBBox(0.3, 0.6, 0.2, 0.1),
    )
    right, left, bottom = (el.id for el in doc.elements)

    ltr = auto_reading_order(doc)
    assert [el.id for el in elements_in_reading_order(ltr)] == [left, right, bottom]

    rtl = auto_reading_order(replace(doc, meta=PageMeta(language_hint=TextLang.AR)))
    assert [el.id for el in elements_in_reading_order(rtl)] == [right, left, bottom]


def test_move_reading_order_swaps_neighbours():
    doc = make_doc("p1", NormalizedBBox(0.1, 0.1, 0.1, 0.1), NormalizedBBox(0.1, 0.3, 0.1, 0.1))
    first, second = (el.id for el in doc.elements)
    moved = move_reading_order(doc, second, -1)
    assert [el.id for el in elements_in_reading_order(moved)] == [second, first]
    assert move_reading_order(moved, second, -1) is moved


def test_add_element_uses_type_default_template():
    doc = add_element(empty_document("p1"), ElementType.THOUGHT)
    el = doc.elements[0]
    assert el.container.template_id == "bubble_cloud"
    assert el.status == ElementStatus.EDITED
    assert el.reading_order == 1


def test_document_dict_round_trip():
    doc = make_doc("p1", NormalizedBBox(0.1, 0.2, 0.3, 0.4))
    restored = PageAnnotationsDoc.from_dict(doc.to_dict())
    assert restored == doc
