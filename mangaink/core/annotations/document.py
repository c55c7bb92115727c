"""
Patch primitives for page annotation documents.

Every function here is pure: it takes a document (or element) and returns a
new one. Nothing mutates ``doc.elements`` in place; ``patch`` is the single
entry point the editor session uses to apply an update.
"""
import functools
import logging
import re
from dataclasses import replace
from typing import Callable, Iterable, List, Optional, Union

from mangaink.core.annotations.models import (
    SCHEMA_VERSION,
    ElementGeometry,
    ElementSource,
    ElementStatus,
    ElementType,
    NormalizedBBox,
    NormalizedPoint,
    PageAnnotationsDoc,
    PageElement,
    PageMeta,
    TextInfo,
    TextLang,
    WritingDirection,
    clamp,
    new_element_id,
    utc_now_iso,
)
from mangaink.core.rendering.templates import default_template_for, get_template

logger = logging.getLogger(__name__)

DocUpdater = Callable[[PageAnnotationsDoc], PageAnnotationsDoc]
ElementUpdater = Callable[[PageElement], PageElement]

DEFAULT_NEW_BBOX = NormalizedBBox(0.35, 0.35, 0.30, 0.16)
DUPLICATE_OFFSET = 0.01
DUPLICATE_MAX_ORIGIN = 0.98
READING_ROW_TOLERANCE = 0.02


# ==============================================================================
# Documents
# ==============================================================================


def empty_document(page_id: str) -> PageAnnotationsDoc:
    return PageAnnotationsDoc(
        page_id=page_id,
        meta=PageMeta(),
        elements=(),
        updated_at=utc_now_iso(),
    )


def ensure_document(
    page_id: str, maybe: Union[PageAnnotationsDoc, dict, None]
) -> PageAnnotationsDoc:
    """
    Return a valid current-schema document for a page.

    Args:
        page_id: Page the document belongs to
        maybe: Stored annotations; a document, its dict form, or None

    Returns:
        The document itself when already current, an upgraded copy for
        version-1 dicts with missing fields, or an empty document otherwise
    """
    if isinstance(maybe, PageAnnotationsDoc):
        if maybe.version == SCHEMA_VERSION:
            return maybe
        maybe = maybe.to_dict()

    if isinstance(maybe, dict) and maybe.get("version") == SCHEMA_VERSION:
        return PageAnnotationsDoc.from_dict(maybe, page_id=page_id)

    if maybe is not None:
        logger.info("Upgrading legacy annotations for page %s", page_id)
    return empty_document(page_id)


def patch(doc: PageAnnotationsDoc, updater: DocUpdater) -> PageAnnotationsDoc:
    """Apply ``updater`` to ``doc`` and stamp ``updatedAt`` on the result."""
    updated = updater(doc)
    if updated is doc:
        return doc
    return replace(updated, updated_at=utc_now_iso())


def update_element(
    doc: PageAnnotationsDoc, element_id: str, fn: ElementUpdater
) -> PageAnnotationsDoc:
    """Replace one element with ``fn(element)``; unknown ids leave doc as is."""
    if doc.get_element(element_id) is None:
        return doc
    return replace(
        doc,
        elements=tuple(fn(el) if el.id == element_id else el for el in doc.elements),
    )


def add_to_document(doc: PageAnnotationsDoc, element: PageElement) -> PageAnnotationsDoc:
    return replace(doc, elements=doc.elements + (element,))


def visible_elements(
    doc: Optional[PageAnnotationsDoc], show_deleted: bool = False
) -> List[PageElement]:
    """Elements for list views, in reading order."""
    if doc is None:
        return []
    items = [el for el in doc.elements if show_deleted or not el.is_deleted]
    return sorted(items, key=lambda el: el.reading_order)


def elements_in_reading_order(doc: PageAnnotationsDoc) -> List[PageElement]:
    """Non-deleted elements ordered by ``readingOrder``."""
    return visible_elements(doc, show_deleted=False)


# ==============================================================================
# Element mutations
# ==============================================================================


def mark_edited(el: PageElement) -> PageElement:
    if el.status == ElementStatus.DELETED:
        return el
    return replace(el, status=ElementStatus.EDITED)


def update_content(el: PageElement, **changes) -> PageElement:
    """
    Content mutation (text, geometry, container, style).

    Flips status to ``edited`` unless the element is deleted.
    """
    return mark_edited(replace(el, **changes))


def update_meta(el: PageElement, **changes) -> PageElement:
    """Non-content mutation (locked, hidden, notes). Status is untouched."""
    allowed = {"locked", "hidden", "notes"}
    unknown = set(changes) - allowed
    if unknown:
        raise ValueError(f"Not a meta field: {', '.join(sorted(unknown))}")
    return replace(el, **changes)


def set_status(el: PageElement, status: ElementStatus) -> PageElement:
    return replace(el, status=status)


def set_bbox(el: PageElement, bbox: NormalizedBBox, **geometry_changes) -> PageElement:
    """Move/resize an element; the bbox is clamped and the anchor recomputed."""
    bbox = bbox.clamped()
    geometry = replace(
        el.geometry, container_bbox=bbox, anchor=bbox.center(), **geometry_changes
    )
    return update_content(el, geometry=geometry)


def set_tail_tip(el: PageElement, tip: Optional[NormalizedPoint]) -> PageElement:
    if tip is not None:
        tip = NormalizedPoint(clamp(tip.x, 0.0, 1.0), clamp(tip.y, 0.0, 1.0))
    return update_content(el, geometry=replace(el.geometry, tail_tip=tip))


def set_template(el: PageElement, template_id: str) -> PageElement:
    """Switch template, keeping params the new template also knows about."""
    template = get_template(template_id)
    kept = {k: v for k, v in el.container.params.items() if k in template.default_params}
    return update_content(el, container=template.make_container(**kept))


def update_style(el: PageElement, **changes) -> PageElement:
    return update_content(el, style=replace(el.style, **changes))


_ARABIC = re.compile(r"[\u0600-\u06FF\u0750-\u077F\u08A0-\u08FF]")
_KANA = re.compile(r"[\u3040-\u30FF]")
_HANGUL = re.compile(r"[\uAC00-\uD7AF]")
_CJK = re.compile(r"[\u4E00-\u9FFF]")
_LATIN = re.compile("[A-Za-z]")


def detect_lang(text: str) -> TextLang:
    """Guess the script of ``text``; kana wins over CJK ideographs."""
    if not text:
        return TextLang.UNKNOWN
    if _ARABIC.search(text):
        return TextLang.AR
    if _KANA.search(text):
        return TextLang.JA
    if _HANGUL.search(text):
        return TextLang.KO
    if _CJK.search(text):
        return TextLang.ZH
    if _LATIN.search(text):
        return TextLang.EN
    return TextLang.UNKNOWN


def dir_for_lang(lang: TextLang) -> WritingDirection:
    return WritingDirection.RTL if lang == TextLang.AR else WritingDirection.LTR


def edit_text(el: PageElement, field: str, value: str) -> PageElement:
    """
    Set ``original`` or ``translated`` text.

    Editing the original re-detects language and direction. A vertical (TTB)
    direction survives re-detection unless the new text is right-to-left.
    """
    if field not in ("original", "translated"):
        raise ValueError(f"Unknown text field: {field}")
    text = el.text
    if field == "original":
        lang = detect_lang(value)
        direction = dir_for_lang(lang)
        if text.writing_direction == WritingDirection.TTB and direction != WritingDirection.RTL:
            direction = WritingDirection.TTB
        text = replace(text, original=value, lang=lang, writing_direction=direction)
    else:
        text = replace(text, translated=value)
    return update_content(el, text=text)


# ==============================================================================
# Document-level operations
# ==============================================================================


def soft_delete(doc: PageAnnotationsDoc, element_id: str) -> PageAnnotationsDoc:
    """Mark an element deleted; the record stays in ``elements``."""
    return update_element(
        doc, element_id, lambda el: set_status(el, ElementStatus.DELETED)
    )


def restore(doc: PageAnnotationsDoc, element_id: str) -> PageAnnotationsDoc:
    def _restore(el: PageElement) -> PageElement:
        if not el.is_deleted:
            return el
        return set_status(el, ElementStatus.EDITED)

    return update_element(doc, element_id, _restore)


def next_reading_order(doc: PageAnnotationsDoc) -> int:
    return max((el.reading_order for el in doc.elements), default=0) + 1


def create_element(
    doc: PageAnnotationsDoc,
    element_type: ElementType = ElementType.SPEECH,
    template_id: Optional[str] = None,
    bbox: NormalizedBBox = DEFAULT_NEW_BBOX,
    text: str = "",
) -> PageElement:
    """Build a user-created element with template defaults (not yet added)."""
    template = get_template(template_id) if template_id else default_template_for(element_type)
    lang = detect_lang(text)
    return PageElement(
        id=new_element_id(),
        source=ElementSource.USER,
        status=ElementStatus.EDITED,
        element_type=element_type,
        reading_order=next_reading_order(doc),
        confidence=1.0,
        geometry=ElementGeometry.for_bbox(bbox),
        container=template.make_container(),
        text=TextInfo(original=text, lang=lang, writing_direction=dir_for_lang(lang)),
        style=template.default_style,
    )


def duplicate_element(el: PageElement, reading_order: Optional[int] = None) -> PageElement:
    """
    Copy an element under a new id, offset by 0.01 on both axes.

    The new origin never exceeds 0.98 and the box stays inside the image.
    """
    b = el.bbox
    x = min(b.x + DUPLICATE_OFFSET, DUPLICATE_MAX_ORIGIN, max(0.0, 1.0 - b.w))
    y = min(b.y + DUPLICATE_OFFSET, DUPLICATE_MAX_ORIGIN, max(0.0, 1.0 - b.h))
    bbox = NormalizedBBox(x, y, b.w, b.h).clamped()
    tail = el.geometry.tail_tip
    if tail is not None:
        tail = NormalizedPoint(
            clamp(tail.x + (bbox.x - b.x), 0.0, 1.0),
            clamp(tail.y + (bbox.y - b.y), 0.0, 1.0),
        )
    geometry = replace(el.geometry, container_bbox=bbox, anchor=bbox.center(), tail_tip=tail)
    return replace(
        el,
        id=new_element_id(),
        source=ElementSource.USER,
        status=ElementStatus.EDITED,
        geometry=geometry,
        reading_order=el.reading_order if reading_order is None else reading_order,
        locked=False,
    )


def normalize_reading_order(elements: Iterable[PageElement]) -> List[PageElement]:
    """Renumber elements 1..n keeping their current relative order."""
    ordered = sorted(elements, key=lambda el: el.reading_order)
    return [replace(el, reading_order=idx + 1) for idx, el in enumerate(ordered)]


def auto_reading_order(doc: PageAnnotationsDoc) -> PageAnnotationsDoc:
    """
    Assign reading order from layout.

    Rows are compared by bbox-center y (within a 0.02 tolerance counts as the
    same row); inside a row, x ascends for left-to-right pages and descends
    for right-to-left pages. Deleted elements keep their order.
    """
    rtl = doc.meta.language_hint == TextLang.AR
    alive = [el for el in doc.elements if not el.is_deleted]

    def _compare(a: PageElement, b: PageElement) -> int:
        ac, bc = a.bbox.center(), b.bbox.center()
        dy = ac.y - bc.y
        if abs(dy) > READING_ROW_TOLERANCE:
            return -1 if dy < 0 else 1
        dx = (bc.x - ac.x) if rtl else (ac.x - bc.x)
        if dx == 0:
            return 0
        return -1 if dx < 0 else 1

    ordered = sorted(alive, key=functools.cmp_to_key(_compare))
    orders = {el.id: idx + 1 for idx, el in enumerate(ordered)}
    return replace(
        doc,
        elements=tuple(
            replace(el, reading_order=orders[el.id]) if el.id in orders else el
            for el in doc.elements
        ),
    )


def move_reading_order(
    doc: PageAnnotationsDoc, element_id: str, direction: int
) -> PageAnnotationsDoc:
    """Swap an element with its neighbour in reading order (-1 up, +1 down)."""
    alive = elements_in_reading_order(doc)
    ids = [el.id for el in alive]
    if element_id not in ids:
        return doc
    idx = ids.index(element_id)
    target = max(0, min(len(alive) - 1, idx + direction))
    if target == idx:
        return doc

    a, b = alive[idx], alive[target]
    swapped = {a.id: b.reading_order, b.id: a.reading_order}
    elements = [
        replace(el, reading_order=swapped[el.id]) if el.id in swapped else el
        for el in doc.elements
    ]
    renumbered = {el.id: el for el in normalize_reading_order(elements)}
    return replace(doc, elements=tuple(renumbered[el.id] for el in doc.elements))


def add_element(
    doc: PageAnnotationsDoc,
    element_type: ElementType = ElementType.SPEECH,
    template_id: Optional[str] = None,
) -> PageAnnotationsDoc:
    """Append a new user element at the default position."""
    return add_to_document(doc, create_element(doc, element_type, template_id))
