"""
Widgets for the chapter editor.
"""
from .canvas_widget import PageCanvas
from .editor_window import EditorWindow

__all__ = ['EditorWindow', 'PageCanvas']
