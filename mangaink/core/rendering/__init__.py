"""
Template registry and scene rendering.
"""
from .templates import TEMPLATES, TemplateDef, default_template_for, get_template, templates_for
from .text_layout import QtTextMeasurer, TextMeasurer, auto_fit_font_size, wrap_text
from .scene_renderer import Guides, RenderHandleRegistry, SceneRenderer, SceneState

__all__ = [
    'TEMPLATES',
    'TemplateDef',
    'default_template_for',
    'get_template',
    'templates_for',
    'QtTextMeasurer',
    'TextMeasurer',
    'auto_fit_font_size',
    'wrap_text',
    'Guides',
    'RenderHandleRegistry',
    'SceneRenderer',
    'SceneState',
]
