import os

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

from typing import Callable, Dict, List, Optional, Tuple

import pytest
from PyQt5.QtWidgets import QApplication

from mangaink.core.annotations.document import add_to_document, create_element, empty_document
from mangaink.core.annotations.models import (
    ChapterInfo,
    EditorPageItem,
    EditorPayload,
    ImageDescriptor,
    NormalizedBBox,
    PageAnnotationsDoc,
    WorkInfo,
)
from mangaink.core.rendering.text_layout import TextMeasurer
from mangaink.core.sync.scheduler import Scheduler


@pytest.fixture(scope="session", autouse=True)
def qapp():
    app = QApplication.instance() or QApplication([])
    yield app


class FakeScheduler(Scheduler):
    """Manually advanced timer source."""

    def __init__(self):
        self.now = 0
        self._next = 1
        self._timers: Dict[int, Tuple[int, Callable[[], None]]] = {}

    def call_later(self, delay_ms, callback):
        handle = self._next
        self._next += 1
        self._timers[handle] = (self.now + delay_ms, callback)
        return handle

    def cancel(self, handle):
        self._timers.pop(handle, None)

    def pending(self) -> int:
        return len(self._timers)

    def advance(self, ms):
        target = self.now + ms
        while True:
            due = [(at, h) for h, (at, _) in self._timers.items() if at <= target]
            if not due:
                break
            at, handle = min(due)
            self.now = at
            _, callback = self._timers.pop(handle)
            callback()
        self.now = target


class FakeClock:
    def __init__(self, start: float = 10_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms


class FakeMeasurer(TextMeasurer):
    """Monospace: every character is half the font size wide."""

    def width(self, text, font_size, font_family, font_style):
        return len(text) * font_size * 0.5


class RecordingSaver:
    """Save capability that records calls and completes on demand."""

    def __init__(self, auto_complete: bool = True):
        self.auto_complete = auto_complete
        self.calls: List[Tuple[str, dict]] = []
        self.callbacks: List[Callable] = []
        self.fail_with: Optional[Exception] = None

    def __call__(self, page_id, annotations, done):
        self.calls.append((page_id, annotations))
        if self.auto_complete:
            done(self.fail_with)
        else:
            self.callbacks.append(done)

    def complete(self, error: Optional[Exception] = None):
        self.callbacks.pop(0)(error)


@pytest.fixture
def scheduler():
    return FakeScheduler()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def measurer():
    return FakeMeasurer()


def make_doc(page_id: str = "p1", *bboxes: NormalizedBBox) -> PageAnnotationsDoc:
    """Document with one default speech bubble per bbox, in reading order."""
    doc = empty_document(page_id)
    for bbox in bboxes:
        doc = add_to_document(doc, create_element(doc, bbox=bbox))
    return doc


def make_page(page_id: str, order_index: int, annotations=None, url: str = "", width=1000, height=800):
    return EditorPageItem(
        id=page_id,
        order_index=order_index,
        image=ImageDescriptor(url=url or f"https://cdn.example/{page_id}.png", width=width, height=height),
        annotations=annotations,
    )


def make_payload(*pages: EditorPageItem) -> EditorPayload:
    return EditorPayload(
        work=WorkInfo(id="w1", title="Work"),
        chapter=ChapterInfo(id="c1", title="Chapter 1", number=1),
        pages=tuple(pages),
    )
