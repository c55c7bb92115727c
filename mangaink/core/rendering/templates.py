"""
Template registry: container shape + default style per template id.
"""
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Tuple

from mangaink.core.annotations.models import (
    ContainerInfo,
    ContainerShape,
    ElementStyle,
    ElementType,
)

DEFAULT_TEMPLATE_ID = "bubble_ellipse"

_BUBBLE_STYLE = ElementStyle(
    fill="#ffffff", stroke="#111111", stroke_width=2, opacity=1, font_size=22
)
_NARRATION_STYLE = replace(_BUBBLE_STYLE, fill="#f7f7f7", font_size=20)
_LABEL_STYLE = replace(_BUBBLE_STYLE, fill="#ffffffcc", stroke_width=1, font_size=18)
_SFX_STYLE = replace(_BUBBLE_STYLE, fill="#00000000", stroke="#ff00ff", font_size=26)
_PLAIN_STYLE = replace(
    _BUBBLE_STYLE, fill="#00000000", stroke="#00ff00", stroke_width=0, font_size=20
)


@dataclass(frozen=True)
class TemplateDef:
    """A named container shape paired with its default style and params."""

    id: str
    label: str
    shape: ContainerShape
    allowed_types: Tuple[ElementType, ...]
    default_style: ElementStyle
    default_params: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_bubble(self) -> bool:
        """Bubble templates may carry a speech tail."""
        return self.id.startswith("bubble_")

    def make_container(self, **params) -> ContainerInfo:
        merged = dict(self.default_params)
        merged.update(params)
        return ContainerInfo(shape=self.shape, template_id=self.id, params=merged)


_SPEECH = (ElementType.SPEECH,)
_NARRATION = (ElementType.NARRATION, ElementType.CAPTION)

TEMPLATES: Dict[str, TemplateDef] = {
    t.id: t
    for t in (
        TemplateDef(
            "bubble_ellipse", "Speech • Ellipse", ContainerShape.ELLIPSE,
            _SPEECH, _BUBBLE_STYLE, {"padding": 12},
        ),
        TemplateDef(
            "bubble_roundrect", "Speech • RoundRect", ContainerShape.ROUNDRECT,
            _SPEECH, _BUBBLE_STYLE, {"padding": 12, "cornerRadius": 18},
        ),
        TemplateDef(
            "bubble_cloud", "Thought • Cloud", ContainerShape.CLOUD,
            (ElementType.THOUGHT,), _BUBBLE_STYLE, {"padding": 12},
        ),
        TemplateDef(
            "bubble_burst", "Speech • Burst", ContainerShape.BURST,
            _SPEECH, _BUBBLE_STYLE, {"padding": 10, "spikes": 10},
        ),
        TemplateDef(
            "narration_rect", "Narration • Rect", ContainerShape.RECT,
            _NARRATION, _NARRATION_STYLE, {"padding": 10},
        ),
        TemplateDef(
            "narration_roundrect", "Narration • RoundRect", ContainerShape.ROUNDRECT,
            _NARRATION, _NARRATION_STYLE, {"padding": 10, "cornerRadius": 14},
        ),
        TemplateDef(
            "caption_box", "Caption • Box", ContainerShape.ROUNDRECT,
            (ElementType.CAPTION,), _NARRATION_STYLE, {"padding": 10, "cornerRadius": 6},
        ),
        TemplateDef(
            "scene_label", "Scene Text • Label", ContainerShape.RECT,
            (ElementType.SCENE_TEXT,), _LABEL_STYLE, {"padding": 8},
        ),
        TemplateDef(
            "signage_label", "Signage • Label", ContainerShape.RECT,
            (ElementType.SIGNAGE,), _LABEL_STYLE, {"padding": 8},
        ),
        TemplateDef(
            "sfx_burst", "SFX • Burst", ContainerShape.BURST,
            (ElementType.SFX,), _SFX_STYLE, {"padding": 10, "spikes": 12},
        ),
        TemplateDef(
            "sfx_outline", "SFX • Outline", ContainerShape.RECT,
            (ElementType.SFX,), _SFX_STYLE, {"padding": 6},
        ),
        TemplateDef(
            "plain_text", "Plain Text", ContainerShape.NONE,
            tuple(ElementType), _PLAIN_STYLE, {"padding": 4},
        ),
    )
}

_DEFAULT_FOR_TYPE = {
    ElementType.SPEECH: "bubble_ellipse",
    ElementType.THOUGHT: "bubble_cloud",
    ElementType.NARRATION: "narration_rect",
    ElementType.CAPTION: "caption_box",
    ElementType.SFX: "sfx_burst",
    ElementType.SCENE_TEXT: "scene_label",
    ElementType.SIGNAGE: "signage_label",
    ElementType.UI_TEXT: "plain_text",
}


def get_template(template_id: str) -> TemplateDef:
    """Look up a template; unknown ids fall back to the ellipse bubble."""
    return TEMPLATES.get(template_id, TEMPLATES[DEFAULT_TEMPLATE_ID])


def default_template_for(element_type: ElementType) -> TemplateDef:
    return TEMPLATES[_DEFAULT_FOR_TYPE.get(element_type, DEFAULT_TEMPLATE_ID)]


def templates_for(element_type: ElementType) -> Tuple[TemplateDef, ...]:
    """Templates a creator may pick for an element type."""
    return tuple(t for t in TEMPLATES.values() if element_type in t.allowed_types)
