"""
Annotation documents for comic pages.
"""
from .models import (
    ElementSource,
    ElementStatus,
    ElementType,
    ContainerShape,
    EditorPageItem,
    EditorPayload,
    ImageDescriptor,
    LangMode,
    NormalizedBBox,
    NormalizedPoint,
    PageAnnotationsDoc,
    PageElement,
    TextLang,
    ViewMode,
    WritingDirection,
)
from .undo_redo import HistoryManager
from .persistence import LocalDraftStore

__all__ = [
    'ElementSource',
    'ElementStatus',
    'ElementType',
    'ContainerShape',
    'EditorPageItem',
    'EditorPayload',
    'ImageDescriptor',
    'LangMode',
    'NormalizedBBox',
    'NormalizedPoint',
    'PageAnnotationsDoc',
    'PageElement',
    'TextLang',
    'ViewMode',
    'WritingDirection',
    'HistoryManager',
    'LocalDraftStore',
]
