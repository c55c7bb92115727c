"""
MangaInk: annotation editor for manga and comic pages.
"""

__version__ = "0.1.0"
