"""
Directory-backed draft store.

Stands in for the remote draft service during development: a chapter lives
in a directory holding ``draft.json`` (work, chapter and page list) and one
``annotations/<pageId>.json`` file per saved page.
"""
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Callable, Iterable, Optional

from PyQt5.QtGui import QImageReader

from mangaink.errors import LoadError, SaveError
from .models import EditorPayload

logger = logging.getLogger(__name__)

DRAFT_FILE = "draft.json"
ANNOTATIONS_DIR = "annotations"

SaveDone = Callable[[Optional[Exception]], None]


class LocalDraftStore:
    """Implements the draft-fetch and save capabilities on the filesystem."""

    def __init__(self, root_dir: str):
        """
        Args:
            root_dir: Chapter directory containing ``draft.json``
        """
        self.root = Path(root_dir)

    @property
    def draft_path(self) -> Path:
        return self.root / DRAFT_FILE

    def get_annotations_path(self, page_id: str) -> Path:
        """
        Get the JSON file path for a page's annotations.

        Args:
            page_id: Page identifier

        Returns:
            Path to the page's annotations file
        """
        safe_id = "".join(c for c in page_id if c.isalnum() or c in "-_")
        return self.root / ANNOTATIONS_DIR / f"{safe_id}.json"

    def fetch_draft(self, chapter_id: Optional[str] = None) -> EditorPayload:
        """
        Load the chapter draft with any saved annotations.

        Relative image URLs are resolved against the chapter directory.

        Raises:
            LoadError: If the draft is missing or unreadable
        """
        try:
            with open(self.draft_path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            raise LoadError(f"Failed to load draft from {self.draft_path}: {e}") from e

        stored_chapter = (data.get("chapter") or {}).get("id")
        if chapter_id and stored_chapter and stored_chapter != chapter_id:
            logger.warning(
                "Draft in %s is for chapter %s, not %s", self.root, stored_chapter, chapter_id
            )

        for page in data.get("pages") or []:
            image = page.setdefault("image", {})
            url = image.get("url") or ""
            if url and "://" not in url and not os.path.isabs(url):
                image["url"] = str(self.root / url)

            annotations_path = self.get_annotations_path(str(page.get("id", "")))
            if annotations_path.exists():
                try:
                    with open(annotations_path, "r", encoding="utf-8") as f:
                        page["annotations"] = json.load(f)
                except (OSError, ValueError) as e:
                    raise LoadError(
                        f"Failed to read annotations {annotations_path}: {e}"
                    ) from e

        try:
            return EditorPayload.from_dict(data)
        except (KeyError, TypeError, ValueError) as e:
            raise LoadError(f"Malformed draft {self.draft_path}: {e}") from e

    def save_annotations(self, page_id: str, annotations: dict, done: SaveDone) -> None:
        """
        Write a page's complete annotations document.

        The file is replaced atomically. Completion is reported through
        ``done`` with None on success or a ``SaveError``.
        """
        path = self.get_annotations_path(page_id)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, temp_path = tempfile.mkstemp(suffix=".json", dir=str(path.parent))
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(annotations, f, indent=2, ensure_ascii=False)
                os.replace(temp_path, path)
            except BaseException:
                if os.path.exists(temp_path):
                    os.remove(temp_path)
                raise
        except OSError as e:
            logger.error("Failed to save annotations for page %s: %s", page_id, e)
            done(SaveError(str(e), page_id=page_id))
            return
        done(None)

    def has_saved_annotations(self, page_id: str) -> bool:
        return self.get_annotations_path(page_id).exists()

    @classmethod
    def create_from_images(
        cls,
        root_dir: str,
        image_paths: Iterable[str],
        chapter_title: str = "Chapter",
        work_title: str = "Work",
    ) -> "LocalDraftStore":
        """
        Create a new chapter directory from a list of page images.

        Image sizes are read from the file headers without decoding.
        """
        root = Path(root_dir)
        root.mkdir(parents=True, exist_ok=True)

        pages = []
        for index, image_path in enumerate(image_paths):
            size = QImageReader(str(image_path)).size()
            if not size.isValid():
                logger.warning("Could not read image size of %s", image_path)
            pages.append(
                {
                    "id": f"page-{index + 1:03d}",
                    "orderIndex": index,
                    "image": {
                        "url": str(Path(image_path).resolve()),
                        "width": max(size.width(), 0),
                        "height": max(size.height(), 0),
                        "originalFilename": Path(image_path).name,
                    },
                    "analysis": None,
                    "annotations": None,
                }
            )

        draft = {
            "work": {"id": root.name, "title": work_title},
            "chapter": {"id": root.name, "title": chapter_title, "number": None},
            "pages": pages,
        }
        with open(root / DRAFT_FILE, "w", encoding="utf-8") as f:
            json.dump(draft, f, indent=2)
        return cls(str(root))
