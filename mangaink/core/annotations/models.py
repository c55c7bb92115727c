"""
Data models for comic page annotations.

All models are frozen dataclasses. Updates go through ``dataclasses.replace``
so every edit produces a new object and history snapshots stay valid.
"""
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Tuple

SCHEMA_VERSION = 1


def clamp(n: float, lo: float, hi: float) -> float:
    """Clamp ``n`` into ``[lo, hi]``."""
    return max(lo, min(hi, n))


def clamp01(n: float) -> float:
    return clamp(n, 0.0, 1.0)


def utc_now_iso() -> str:
    """Current time as an ISO-8601 UTC string with millisecond precision."""
    now = datetime.now(timezone.utc).isoformat(timespec="milliseconds")
    return now.replace("+00:00", "Z")


def new_element_id() -> str:
    return f"el_{uuid.uuid4().hex[:12]}"


def _enum_value(enum_cls, value, default):
    """Parse an enum value, falling back to ``default`` for unknown input."""
    try:
        return enum_cls(value)
    except ValueError:
        return default


# ==============================================================================
# Enumerations
# ==============================================================================


class ElementSource(Enum):
    AI = "ai"
    USER = "user"


class ElementStatus(Enum):
    DETECTED = "detected"
    EDITED = "edited"
    CONFIRMED = "confirmed"
    NEEDS_REVIEW = "needs_review"
    DELETED = "deleted"


class ElementType(Enum):
    SPEECH = "SPEECH"
    THOUGHT = "THOUGHT"
    NARRATION = "NARRATION"
    CAPTION = "CAPTION"
    SFX = "SFX"
    SCENE_TEXT = "SCENE_TEXT"
    SIGNAGE = "SIGNAGE"
    UI_TEXT = "UI_TEXT"


class ContainerShape(Enum):
    ELLIPSE = "ellipse"
    ROUNDRECT = "roundrect"
    RECT = "rect"
    CLOUD = "cloud"
    BURST = "burst"
    NONE = "none"


class TextLang(Enum):
    AR = "ar"
    EN = "en"
    JA = "ja"
    KO = "ko"
    ZH = "zh"
    UNKNOWN = "unknown"


class WritingDirection(Enum):
    RTL = "RTL"
    LTR = "LTR"
    TTB = "TTB"


class ViewMode(Enum):
    EDIT = "edit"
    PREVIEW = "preview"


class LangMode(Enum):
    ORIGINAL = "original"
    TRANSLATED = "translated"


# ==============================================================================
# Geometry
# ==============================================================================


@dataclass(frozen=True)
class NormalizedPoint:
    """A point as fractions of the native image size."""

    x: float
    y: float

    def to_dict(self) -> Dict[str, float]:
        return {"x": self.x, "y": self.y}

    @staticmethod
    def from_dict(data: Optional[dict]) -> Optional["NormalizedPoint"]:
        if not data:
            return None
        return NormalizedPoint(x=float(data.get("x", 0.0)), y=float(data.get("y", 0.0)))


@dataclass(frozen=True)
class NormalizedBBox:
    """A rectangle as fractions (0-1) of the native image size."""

    x: float
    y: float
    w: float
    h: float

    def center(self) -> NormalizedPoint:
        return NormalizedPoint(self.x + self.w / 2, self.y + self.h / 2)

    def clamped(self) -> "NormalizedBBox":
        """
        Return a copy that lies inside the unit square.

        Size is clamped first, then the origin so that ``x + w <= 1`` and
        ``y + h <= 1``.
        """
        w = clamp01(self.w)
        h = clamp01(self.h)
        return NormalizedBBox(
            x=clamp(self.x, 0.0, 1.0 - w),
            y=clamp(self.y, 0.0, 1.0 - h),
            w=w,
            h=h,
        )

    def to_dict(self) -> Dict[str, float]:
        return {"x": self.x, "y": self.y, "w": self.w, "h": self.h}

    @staticmethod
    def from_dict(data: Optional[dict]) -> "NormalizedBBox":
        data = data or {}
        return NormalizedBBox(
            x=float(data.get("x", 0.0)),
            y=float(data.get("y", 0.0)),
            w=float(data.get("w", 0.0)),
            h=float(data.get("h", 0.0)),
        )


ZERO_BBOX = NormalizedBBox(0.0, 0.0, 0.0, 0.0)


@dataclass(frozen=True)
class ElementGeometry:
    container_bbox: NormalizedBBox
    anchor: NormalizedPoint
    text_bbox: Optional[NormalizedBBox] = None
    tail_tip: Optional[NormalizedPoint] = None
    rotation: Optional[float] = None  # degrees

    @staticmethod
    def for_bbox(bbox: NormalizedBBox, **kwargs) -> "ElementGeometry":
        bbox = bbox.clamped()
        return ElementGeometry(container_bbox=bbox, anchor=bbox.center(), **kwargs)

    def to_dict(self) -> dict:
        data = {
            "container_bbox": self.container_bbox.to_dict(),
            "anchor": self.anchor.to_dict(),
        }
        if self.text_bbox is not None:
            data["text_bbox"] = self.text_bbox.to_dict()
        if self.tail_tip is not None:
            data["tailTip"] = self.tail_tip.to_dict()
        if self.rotation is not None:
            data["rotation"] = self.rotation
        return data

    @staticmethod
    def from_dict(data: Optional[dict]) -> "ElementGeometry":
        data = data or {}
        bbox = NormalizedBBox.from_dict(data.get("container_bbox"))
        text_bbox = data.get("text_bbox")
        rotation = data.get("rotation")
        return ElementGeometry(
            container_bbox=bbox,
            anchor=NormalizedPoint.from_dict(data.get("anchor")) or bbox.center(),
            text_bbox=NormalizedBBox.from_dict(text_bbox) if text_bbox else None,
            tail_tip=NormalizedPoint.from_dict(data.get("tailTip")),
            rotation=float(rotation) if rotation is not None else None,
        )


# ==============================================================================
# Container, text and style
# ==============================================================================


@dataclass(frozen=True)
class ContainerInfo:
    shape: ContainerShape
    template_id: str
    params: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "shape": self.shape.value,
            "template_id": self.template_id,
            "params": dict(self.params),
        }

    @staticmethod
    def from_dict(data: Optional[dict]) -> "ContainerInfo":
        data = data or {}
        return ContainerInfo(
            shape=_enum_value(ContainerShape, data.get("shape"), ContainerShape.ELLIPSE),
            template_id=data.get("template_id") or "bubble_ellipse",
            params=dict(data.get("params") or {}),
        )


@dataclass(frozen=True)
class TextInfo:
    original: str = ""
    translated: Optional[str] = None
    lang: TextLang = TextLang.UNKNOWN
    writing_direction: WritingDirection = WritingDirection.LTR
    size_hint: str = "medium"
    style_hint: str = "normal"

    def display_text(self, lang_mode: LangMode) -> str:
        """Text shown for a language mode; translated falls back to original."""
        if lang_mode == LangMode.TRANSLATED and (self.translated or "").strip():
            return self.translated
        return self.original or ""

    def to_dict(self) -> dict:
        data = {
            "original": self.original,
            "lang": self.lang.value,
            "writingDirection": self.writing_direction.value,
            "sizeHint": self.size_hint,
            "styleHint": self.style_hint,
        }
        if self.translated is not None:
            data["translated"] = self.translated
        return data

    @staticmethod
    def from_dict(data: Optional[dict]) -> "TextInfo":
        data = data or {}
        return TextInfo(
            original=data.get("original") or "",
            translated=data.get("translated"),
            lang=_enum_value(TextLang, data.get("lang"), TextLang.UNKNOWN),
            writing_direction=_enum_value(
                WritingDirection, data.get("writingDirection"), WritingDirection.LTR
            ),
            size_hint=data.get("sizeHint") or "medium",
            style_hint=data.get("styleHint") or "normal",
        )


@dataclass(frozen=True)
class TextShadowStyle:
    color: str = "#000000"
    blur: float = 0.0
    offset_x: float = 0.0
    offset_y: float = 0.0
    opacity: float = 1.0

    def to_dict(self) -> dict:
        return {
            "color": self.color,
            "blur": self.blur,
            "offsetX": self.offset_x,
            "offsetY": self.offset_y,
            "opacity": self.opacity,
        }

    @staticmethod
    def from_dict(data: Optional[dict]) -> Optional["TextShadowStyle"]:
        if not data:
            return None
        return TextShadowStyle(
            color=data.get("color", "#000000"),
            blur=float(data.get("blur", 0.0)),
            offset_x=float(data.get("offsetX", 0.0)),
            offset_y=float(data.get("offsetY", 0.0)),
            opacity=float(data.get("opacity", 1.0)),
        )


# Optional style keys: (attribute name, JSON key)
_OPTIONAL_STYLE_KEYS = (
    ("font_family", "fontFamily"),
    ("font_style", "fontStyle"),
    ("line_height", "lineHeight"),
    ("letter_spacing", "letterSpacing"),
    ("text_fill", "textFill"),
    ("text_stroke", "textStroke"),
    ("text_stroke_width", "textStrokeWidth"),
    ("text_rotation", "textRotation"),
    ("font_size_mode", "fontSizeMode"),
)


@dataclass(frozen=True)
class ElementStyle:
    """Container and text styling for an element."""

    # container
    fill: str = "#ffffff"
    stroke: str = "#111111"
    stroke_width: float = 2.0
    opacity: float = 1.0

    # text
    font_size: float = 22.0
    align: str = "center"  # left | center | right
    font_family: Optional[str] = None
    font_style: Optional[str] = None  # normal | bold | italic | bold italic
    line_height: Optional[float] = None
    letter_spacing: Optional[float] = None
    text_fill: Optional[str] = None
    text_stroke: Optional[str] = None
    text_stroke_width: Optional[float] = None
    text_shadow: Optional[TextShadowStyle] = None
    text_rotation: Optional[float] = None
    font_size_mode: Optional[str] = None  # auto | manual

    def to_dict(self) -> dict:
        data = {
            "fill": self.fill,
            "stroke": self.stroke,
            "strokeWidth": self.stroke_width,
            "opacity": self.opacity,
            "fontSize": self.font_size,
            "align": self.align,
        }
        for attr, key in _OPTIONAL_STYLE_KEYS:
            value = getattr(self, attr)
            if value is not None:
                data[key] = value
        if self.text_shadow is not None:
            data["textShadow"] = self.text_shadow.to_dict()
        return data

    @staticmethod
    def from_dict(data: Optional[dict]) -> "ElementStyle":
        data = data or {}
        defaults = ElementStyle()
        kwargs = {attr: data.get(key) for attr, key in _OPTIONAL_STYLE_KEYS}
        return ElementStyle(
            fill=data.get("fill", defaults.fill),
            stroke=data.get("stroke", defaults.stroke),
            stroke_width=float(data.get("strokeWidth", defaults.stroke_width)),
            opacity=float(data.get("opacity", defaults.opacity)),
            font_size=float(data.get("fontSize", defaults.font_size)),
            align=data.get("align", defaults.align),
            text_shadow=TextShadowStyle.from_dict(data.get("textShadow")),
            **kwargs,
        )


# ==============================================================================
# Elements and documents
# ==============================================================================


@dataclass(frozen=True)
class PageElement:
    """A single text element overlaid on a comic page."""

    id: str
    source: ElementSource
    status: ElementStatus
    element_type: ElementType
    reading_order: int
    confidence: float
    geometry: ElementGeometry
    container: ContainerInfo
    text: TextInfo
    style: ElementStyle
    locked: bool = False
    hidden: bool = False
    notes: Optional[str] = None

    @property
    def bbox(self) -> NormalizedBBox:
        return self.geometry.container_bbox

    @property
    def is_deleted(self) -> bool:
        return self.status == ElementStatus.DELETED

    def to_dict(self) -> dict:
        data = {
            "id": self.id,
            "source": self.source.value,
            "status": self.status.value,
            "elementType": self.element_type.value,
            "readingOrder": self.reading_order,
            "confidence": self.confidence,
            "geometry": self.geometry.to_dict(),
            "container": self.container.to_dict(),
            "text": self.text.to_dict(),
            "style": self.style.to_dict(),
        }
        if self.locked:
            data["locked"] = True
        if self.hidden:
            data["hidden"] = True
        if self.notes is not None:
            data["notes"] = self.notes
        return data

    @staticmethod
    def from_dict(data: dict) -> "PageElement":
        return PageElement(
            id=str(data.get("id") or new_element_id()),
            source=_enum_value(ElementSource, data.get("source"), ElementSource.AI),
            status=_enum_value(
                ElementStatus, data.get("status"), ElementStatus.NEEDS_REVIEW
            ),
            element_type=_enum_value(
                ElementType, data.get("elementType"), ElementType.SPEECH
            ),
            reading_order=int(data.get("readingOrder", 0)),
            confidence=float(data.get("confidence", 0.0)),
            geometry=ElementGeometry.from_dict(data.get("geometry")),
            container=ContainerInfo.from_dict(data.get("container")),
            text=TextInfo.from_dict(data.get("text")),
            style=ElementStyle.from_dict(data.get("style")),
            locked=bool(data.get("locked", False)),
            hidden=bool(data.get("hidden", False)),
            notes=data.get("notes"),
        )


@dataclass(frozen=True)
class PageMeta:
    keywords: Tuple[str, ...] = ()
    scene_description: str = ""
    language_hint: TextLang = TextLang.UNKNOWN

    def to_dict(self) -> dict:
        return {
            "keywords": list(self.keywords),
            "sceneDescription": self.scene_description,
            "languageHint": self.language_hint.value,
        }

    @staticmethod
    def from_dict(data: Optional[dict]) -> "PageMeta":
        data = data or {}
        return PageMeta(
            keywords=tuple(data.get("keywords") or ()),
            scene_description=data.get("sceneDescription") or "",
            language_hint=_enum_value(
                TextLang, data.get("languageHint"), TextLang.UNKNOWN
            ),
        )


@dataclass(frozen=True)
class PageAnnotationsDoc:
    """Annotations for one page, as stored in the draft store."""

    page_id: str
    meta: PageMeta
    elements: Tuple[PageElement, ...]
    updated_at: str
    version: int = SCHEMA_VERSION

    def get_element(self, element_id: Optional[str]) -> Optional[PageElement]:
        for el in self.elements:
            if el.id == element_id:
                return el
        return None

    def to_dict(self) -> dict:
        return {
            "version": self.version,
            "pageId": self.page_id,
            "meta": self.meta.to_dict(),
            "elements": [el.to_dict() for el in self.elements],
            "updatedAt": self.updated_at,
        }

    @staticmethod
    def from_dict(data: dict, page_id: Optional[str] = None) -> "PageAnnotationsDoc":
        return PageAnnotationsDoc(
            page_id=data.get("pageId") or page_id or "",
            meta=PageMeta.from_dict(data.get("meta")),
            elements=tuple(
                PageElement.from_dict(el) for el in data.get("elements") or ()
            ),
            updated_at=data.get("updatedAt") or utc_now_iso(),
            version=SCHEMA_VERSION,
        )


# ==============================================================================
# Editor payload
# ==============================================================================


@dataclass(frozen=True)
class ImageDescriptor:
    url: str
    width: int
    height: int
    original_filename: str = ""
    s3_key: str = ""

    def to_dict(self) -> dict:
        return {
            "url": self.url,
            "width": self.width,
            "height": self.height,
            "originalFilename": self.original_filename,
            "s3Key": self.s3_key,
        }

    @staticmethod
    def from_dict(data: Optional[dict]) -> "ImageDescriptor":
        data = data or {}
        return ImageDescriptor(
            url=data.get("url") or "",
            width=int(data.get("width") or 0),
            height=int(data.get("height") or 0),
            original_filename=data.get("originalFilename") or "",
            s3_key=data.get("s3Key") or "",
        )


@dataclass(frozen=True)
class EditorPageItem:
    id: str
    order_index: int
    image: ImageDescriptor
    analysis: Any = None
    annotations: Optional[PageAnnotationsDoc] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "orderIndex": self.order_index,
            "image": self.image.to_dict(),
            "analysis": self.analysis,
            "annotations": self.annotations.to_dict() if self.annotations else None,
        }

    @staticmethod
    def from_dict(data: dict) -> "EditorPageItem":
        raw = data.get("annotations")
        annotations = None
        # Anything that is not a current-schema document is left for
        # ensure_document to upgrade.
        if isinstance(raw, dict) and raw.get("version") == SCHEMA_VERSION:
            annotations = PageAnnotationsDoc.from_dict(raw, page_id=data.get("id"))
        return EditorPageItem(
            id=str(data["id"]),
            order_index=int(data.get("orderIndex", 0)),
            image=ImageDescriptor.from_dict(data.get("image")),
            analysis=data.get("analysis"),
            annotations=annotations,
        )


@dataclass(frozen=True)
class WorkInfo:
    id: str
    title: str = ""
    work_type: str = ""
    art_style_category: str = ""

    @staticmethod
    def from_dict(data: Optional[dict]) -> "WorkInfo":
        data = data or {}
        return WorkInfo(
            id=str(data.get("id", "")),
            title=data.get("title") or "",
            work_type=data.get("workType") or "",
            art_style_category=data.get("artStyleCategory") or "",
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "workType": self.work_type,
            "artStyleCategory": self.art_style_category,
        }


@dataclass(frozen=True)
class ChapterInfo:
    id: str
    title: str = ""
    number: Optional[int] = None

    @staticmethod
    def from_dict(data: Optional[dict]) -> "ChapterInfo":
        data = data or {}
        number = data.get("number")
        return ChapterInfo(
            id=str(data.get("id", "")),
            title=data.get("title") or "",
            number=int(number) if number is not None else None,
        )

    def to_dict(self) -> dict:
        return {"id": self.id, "title": self.title, "number": self.number}


@dataclass(frozen=True)
class EditorPayload:
    """Result of a chapter draft fetch."""

    work: WorkInfo
    chapter: ChapterInfo
    pages: Tuple[EditorPageItem, ...]

    @staticmethod
    def from_dict(data: dict) -> "EditorPayload":
        return EditorPayload(
            work=WorkInfo.from_dict(data.get("work")),
            chapter=ChapterInfo.from_dict(data.get("chapter")),
            pages=tuple(EditorPageItem.from_dict(p) for p in data.get("pages") or ()),
        )

    def to_dict(self) -> dict:
        return {
            "work": self.work.to_dict(),
            "chapter": self.chapter.to_dict(),
            "pages": [p.to_dict() for p in self.pages],
        }
