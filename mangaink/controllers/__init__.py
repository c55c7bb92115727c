"""
Controllers tying the engine to user input.
"""
from .editor_session import ChapterEditorSession, ChapterStats
from .commands import Command, CommandDispatcher, KeyChord, ShortcutEventFilter

__all__ = [
    'ChapterEditorSession',
    'ChapterStats',
    'Command',
    'CommandDispatcher',
    'KeyChord',
    'ShortcutEventFilter',
]
