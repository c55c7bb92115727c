import pytest

from mangaink.config import EditorConfig
from mangaink.controllers.editor_session import ChapterEditorSession
from mangaink.core.annotations.document import (
    add_element,
    edit_text,
    soft_delete,
)
from mangaink.core.annotations.models import NormalizedBBox, ViewMode
from mangaink.core.selection.manipulation import InteractionState
from mangaink.errors import LoadError

from conftest import RecordingSaver, make_doc, make_page, make_payload


class FakeDraftService:
    def __init__(self, payload):
        self.payload = payload
        self.error = None
        self.calls = 0

    def __call__(self, chapter_id):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.payload


@pytest.fixture
def service():
    doc = make_doc("p1", NormalizedBBox(0.1, 0.1, 0.2, 0.2), NormalizedBBox(0.5, 0.5, 0.2, 0.2))
    return FakeDraftService(make_payload(make_page("p1", 0, doc), make_page("p2", 1)))


@pytest.fixture
def saver():
    return RecordingSaver()


@pytest.fixture
def session(service, saver, scheduler, clock):
    s = ChapterEditorSession(
        service, saver, chapter_id="c1", config=EditorConfig(), scheduler=scheduler, clock=clock
    )
    s.viewport.set_container_size(1000, 800)
    return s


def test_load_enters_first_page(session):
    loaded = []
    session.loaded.connect(lambda: loaded.append(True))
    assert session.load()
    assert loaded == [True]
    assert session.current_page_id == "p1"
    assert session.chapter.title == "Chapter 1"
    # Pages without stored annotations get an empty document
    assert session.page("p2").annotations.elements == ()
    assert len(session.registry.handles()) == 2


def test_load_failure_then_retry(session, service):
    service.error = LoadError("server down")
    failures = []
    session.load_failed.connect(failures.append)

    assert not session.load()
    assert failures == ["server down"]
    assert isinstance(session.load_error, LoadError)
    assert not session.is_loaded

    service.error = None
    assert session.retry()
    assert session.load_error is None
    assert session.is_loaded


def test_unexpected_fetch_error_becomes_load_error(session, service):
    service.error = ValueError("bad json")
    assert not session.load()
    assert isinstance(session.load_error, LoadError)
    assert "bad json" in str(session.load_error)


def test_update_goes_through_history_and_autosave(session, scheduler, saver):
    session.load()
    changed = []
    session.document_changed.connect(changed.append)

    assert session.update_current(add_element)
    assert changed == ["p1"]
    assert len(session.current_document().elements) == 3
    assert session.can_undo()
    assert session.autosave.is_dirty("p1")
    assert session.save_badge() == "dirty"

    scheduler.advance(700)
    assert len(saver.calls) == 1
    assert session.save_badge() == "saved"


def test_noop_update_records_nothing(session):
    session.load()
    assert not session.update_current(lambda doc: doc)
    assert not session.can_undo()
    assert not session.has_dirty()


def test_update_unknown_page_is_ignored(session):
    session.load()
    assert not session.update_page_annotations("nope", add_element)


def test_undo_redo_round_trip(session):
    session.load()
    before = session.current_document()
    session.update_current(add_element)
    after = session.current_document()

    assert session.undo()
    assert session.current_document() == before
    assert session.can_redo()
    assert session.autosave.is_dirty("p1")

    assert session.redo()
    assert session.current_document() == after
    assert not session.redo()


def test_two_quick_text_edits_are_one_undo_step(session, clock):
    session.load()
    el_id = session.current_document().elements[0].id
    original = session.current_document().elements[0].text.original

    session.update_element(el_id, lambda el: edit_text(el, "original", "Hel"))
    clock.advance(300)
    session.update_element(el_id, lambda el: edit_text(el, "original", "Hello"))
    assert session.current_document().get_element(el_id).text.original == "Hello"

    assert session.undo()
    assert session.current_document().get_element(el_id).text.original == original
    assert not session.can_undo()


def test_soft_delete_hides_from_list_and_is_undoable(session):
    session.load()
    el_id = session.current_document().elements[0].id
    session.select(el_id)

    session.update_current(lambda doc: soft_delete(doc, el_id))
    assert len(session.current_document().elements) == 2
    assert el_id not in [el.id for el in session.list_elements()]
    assert session.selected_id is None

    session.set_show_deleted(True)
    assert el_id in [el.id for el in session.list_elements()]

    session.undo()
    assert not session.current_document().get_element(el_id).is_deleted


def test_page_switch_flushes_dirty_page(session, saver):
    session.load()
    session.update_current(add_element)
    assert saver.calls == []

    assert session.go_to_page("p2")
    assert [c[0] for c in saver.calls] == ["p1"]
    assert session.current_page_id == "p2"
    assert session.selected_id is None


def test_page_navigation_bounds(session):
    session.load()
    assert not session.previous_page()
    assert session.next_page()
    assert session.current_index == 1
    assert not session.next_page()
    assert not session.go_to_page("missing")


def test_refresh_keeps_dirty_pages_and_takes_server_images(session, service):
    session.load()
    session.update_current(add_element)
    local = session.current_document()

    new_p1 = make_page("p1", 0, None, url="https://new/p1.png")
    server_p2 = make_doc("p2", NormalizedBBox(0.2, 0.2, 0.1, 0.1))
    service.payload = make_payload(new_p1, make_page("p2", 1, server_p2))

    session.refresh()
    assert session.current_document() == local
    assert session.page("p1").image.url == "https://new/p1.png"
    # Clean page takes the server copy
    assert session.page("p2").annotations == server_p2
    assert session.current_page_id == "p1"


def test_stats_count_translated_elements(session):
    session.load()
    el_id = session.current_document().elements[0].id
    session.update_element(el_id, lambda el: edit_text(el, "translated", "Hi"))
    stats = session.stats()
    assert (stats.analyzed_pages, stats.total_pages) == (1, 2)
    assert (stats.translated_elements, stats.alive_elements) == (1, 2)


def test_preview_mode_cancels_gesture(session):
    session.load()
    session.sync_registry()
    session.manipulation.press(150, 120)
    assert session.manipulation.state == InteractionState.DRAGGING

    session.set_view_mode(ViewMode.PREVIEW)
    assert not session.is_edit_mode
    assert session.manipulation.state == InteractionState.SELECTED


def test_shutdown_flushes_everything(session, saver, scheduler):
    session.load()
    session.update_current(add_element)
    session.go_to_page("p2")
    session.update_current(add_element)

    session.shutdown()
    assert [c[0] for c in saver.calls] == ["p1", "p2"]
    assert not session.has_dirty()
    assert scheduler.pending() == 0


def test_discard_changes_drops_unsaved_edits(session, saver, scheduler):
    session.load()
    session.update_current(add_element)
    session.discard_changes()
    scheduler.advance(1000)
    assert saver.calls == []
    assert not session.has_dirty()
