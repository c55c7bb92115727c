"""
Error types raised by the editor engine.
"""
from typing import Optional


class MangaInkError(Exception):
    """Base class for editor errors."""


class LoadError(MangaInkError):
    """The chapter draft could not be fetched. Blocks the editor."""


class SaveError(MangaInkError):
    """A page write was rejected. Local edits are kept for a later retry."""

    def __init__(self, message: str, page_id: Optional[str] = None):
        super().__init__(message)
        self.page_id = page_id


class AssetLoadError(MangaInkError):
    """A page image failed to load or decode. Editing continues without it."""

    def __init__(self, message: str, url: Optional[str] = None):
        super().__init__(message)
        self.url = url
