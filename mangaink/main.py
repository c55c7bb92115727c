import argparse
import logging
import sys
from pathlib import Path

from PyQt5.QtWidgets import QApplication

from mangaink.config import load_config
from mangaink.controllers.editor_session import ChapterEditorSession
from mangaink.core.annotations.persistence import DRAFT_FILE, LocalDraftStore
from mangaink.ui.editor_window import EditorWindow
from mangaink.utils.logging_utils import configure_logging

logger = logging.getLogger(__name__)


def parse_args(argv):
    parser = argparse.ArgumentParser(prog="mangaink", description="Manga page annotation editor")
    parser.add_argument("chapter_dir", help="Chapter directory containing draft.json")
    parser.add_argument(
        "images", nargs="*",
        help="Page images used to create the chapter when the directory has no draft yet",
    )
    parser.add_argument("--debug", action="store_true", help="Log to the console at debug level")
    return parser.parse_args(argv)


def main():
    """
    Main function to run the chapter editor.
    Opens the chapter directory passed on the command line, creating it from
    page images when it does not hold a draft yet.
    """
    args = parse_args(sys.argv[1:])
    app = QApplication(sys.argv)

    config = load_config()
    configure_logging(debug=args.debug or config.debug)

    chapter_dir = Path(args.chapter_dir)
    if args.images and not (chapter_dir / DRAFT_FILE).exists():
        logger.info("Creating chapter %s from %d images", chapter_dir, len(args.images))
        store = LocalDraftStore.create_from_images(str(chapter_dir), args.images)
    else:
        store = LocalDraftStore(str(chapter_dir))

    session = ChapterEditorSession(
        store.fetch_draft, store.save_annotations, chapter_id=chapter_dir.name, config=config
    )
    window = EditorWindow(session)
    session.load()
    window.showMaximized()
    sys.exit(app.exec_())


if __name__ == '__main__':
    main()
