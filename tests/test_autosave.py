import pytest

from mangaink.core.annotations.document import add_element, empty_document
from mangaink.core.sync.autosave import AutosavePipeline, SaveStatus
from mangaink.core.sync.reconcile import reconcile_pages
from mangaink.core.sync.scheduler import QtScheduler, Scheduler
from mangaink.errors import SaveError

from conftest import RecordingSaver, make_doc, make_page


def make_pipeline(scheduler, saver):
    return AutosavePipeline(saver, scheduler, debounce_ms=700)


def test_burst_of_edits_saves_once(scheduler):
    saver = RecordingSaver()
    pipeline = make_pipeline(scheduler, saver)
    doc = empty_document("p1")
    for _ in range(5):
        doc = add_element(doc)
        pipeline.schedule("p1", doc)
        scheduler.advance(100)

    assert saver.calls == []
    scheduler.advance(700)
    assert len(saver.calls) == 1
    page_id, payload = saver.calls[0]
    assert page_id == "p1"
    assert len(payload["elements"]) == 5
    assert pipeline.status("p1") == SaveStatus.SAVED
    assert not pipeline.has_dirty()
    assert pipeline.saved_at("p1") is not None


def test_spaced_edits_save_each_time(scheduler):
    saver = RecordingSaver()
    pipeline = make_pipeline(scheduler, saver)
    doc = empty_document("p1")
    for _ in range(3):
        doc = add_element(doc)
        pipeline.schedule("p1", doc)
        scheduler.advance(700)
    assert len(saver.calls) == 3


def test_flush_writes_immediately_and_cancels_timer(scheduler):
    saver = RecordingSaver()
    pipeline = make_pipeline(scheduler, saver)
    pipeline.schedule("p1", add_element(empty_document("p1")))
    pipeline.flush("p1")
    assert len(saver.calls) == 1
    assert scheduler.pending() == 0
    scheduler.advance(1000)
    assert len(saver.calls) == 1


def test_flush_of_clean_page_does_nothing(scheduler):
    saver = RecordingSaver()
    pipeline = make_pipeline(scheduler, saver)
    pipeline.flush("p1")
    assert saver.calls == []


def test_one_write_in_flight_per_page(scheduler):
    saver = RecordingSaver(auto_complete=False)
    pipeline = make_pipeline(scheduler, saver)
    first = add_element(empty_document("p1"))
    pipeline.schedule("p1", first)
    pipeline.flush("p1")
    assert pipeline.is_saving("p1")

    second = add_element(first)
    pipeline.schedule("p1", second)
    pipeline.flush("p1")
    # Still waiting on the first write
    assert len(saver.calls) == 1

    saver.complete()
    assert pipeline.status("p1") == SaveStatus.SAVING
    assert len(saver.calls) == 2
    assert len(saver.calls[1][1]["elements"]) == 2

    saver.complete()
    assert pipeline.status("p1") == SaveStatus.SAVED
    assert not pipeline.is_dirty("p1")


def test_edit_during_write_keeps_page_dirty(scheduler):
    saver = RecordingSaver(auto_complete=False)
    pipeline = make_pipeline(scheduler, saver)
    first = add_element(empty_document("p1"))
    pipeline.schedule("p1", first)
    pipeline.flush("p1")
    pipeline.schedule("p1", add_element(first))

    saver.complete()
    assert pipeline.status("p1") == SaveStatus.DIRTY
    assert pipeline.is_dirty("p1")

    scheduler.advance(700)
    assert len(saver.calls) == 2


def test_failed_save_keeps_edits_and_reports(scheduler):
    saver = RecordingSaver()
    saver.fail_with = SaveError("disk full", page_id="p1")
    pipeline = make_pipeline(scheduler, saver)
    failures = []
    pipeline.save_failed.connect(lambda page_id, message: failures.append((page_id, message)))

    doc = add_element(empty_document("p1"))
    pipeline.schedule("p1", doc)
    scheduler.advance(700)

    assert failures == [("p1", "disk full")]
    assert pipeline.status("p1") == SaveStatus.ERROR
    assert pipeline.pending_document("p1") is doc
    assert pipeline.last_error("p1") == "disk full"

    # No automatic retry
    scheduler.advance(5000)
    assert len(saver.calls) == 1

    saver.fail_with = None
    pipeline.flush("p1")
    assert pipeline.status("p1") == SaveStatus.SAVED
    assert pipeline.last_error("p1") is None


def test_raising_save_capability_is_reported(scheduler):
    def broken(page_id, annotations, done):
        raise RuntimeError("offline")

    pipeline = make_pipeline(scheduler, broken)
    pipeline.schedule("p1", empty_document("p1"))
    pipeline.flush("p1")
    assert pipeline.status("p1") == SaveStatus.ERROR
    assert pipeline.last_error("p1") == "offline"
    assert not pipeline.is_saving("p1")


def test_double_completion_is_ignored(scheduler):
    calls = []

    def twice(page_id, annotations, done):
        calls.append(page_id)
        done(None)
        done(RuntimeError("late"))

    pipeline = make_pipeline(scheduler, twice)
    pipeline.schedule("p1", empty_document("p1"))
    pipeline.flush("p1")
    assert pipeline.status("p1") == SaveStatus.SAVED


def test_discard_and_teardown(scheduler):
    saver = RecordingSaver()
    pipeline = make_pipeline(scheduler, saver)
    pipeline.schedule("p1", empty_document("p1"))
    pipeline.schedule("p2", empty_document("p2"))

    pipeline.discard("p1")
    assert pipeline.dirty_ids() == {"p2"}
    assert pipeline.status("p1") == SaveStatus.IDLE

    pipeline.teardown()
    scheduler.advance(1000)
    assert saver.calls == []
    assert pipeline.is_dirty("p2")

    pipeline.flush_all()
    assert [c[0] for c in saver.calls] == ["p2"]


def test_dismiss_error_keeps_page_dirty(scheduler):
    saver = RecordingSaver()
    saver.fail_with = RuntimeError("nope")
    pipeline = make_pipeline(scheduler, saver)
    pipeline.schedule("p1", empty_document("p1"))
    pipeline.flush("p1")
    pipeline.dismiss_error("p1")
    assert pipeline.status("p1") == SaveStatus.DIRTY
    assert pipeline.last_error("p1") is None


# ---------------------------------------------------------------------------
# Reconciliation
# ---------------------------------------------------------------------------

def test_reconcile_keeps_dirty_annotations_but_takes_server_image():
    local_doc = add_element(empty_document("p1"))
    prev = [make_page("p1", 0, local_doc, url="https://old/p1.png")]
    server = [make_page("p1", 0, None, url="https://new/p1.png")]

    merged = reconcile_pages(server, prev, {"p1"})
    assert merged[0].annotations == local_doc
    assert merged[0].image.url == "https://new/p1.png"


def test_reconcile_replaces_clean_annotations_and_sorts():
    local_doc = add_element(empty_document("p1"))
    server_doc = make_doc("p1")
    prev = [make_page("p1", 0, local_doc)]
    server = [make_page("p2", 1), make_page("p1", 0, server_doc)]

    merged = reconcile_pages(server, prev, set())
    assert [p.id for p in merged] == ["p1", "p2"]
    assert merged[0].annotations == server_doc
    # Pages without annotations get an empty document
    assert merged[1].annotations.elements == ()


def test_scheduler_interface_is_abstract():
    with pytest.raises(TypeError):
        Scheduler()


def test_qt_scheduler_cancel_drops_timer(qapp):
    fired = []
    scheduler = QtScheduler()
    handle = scheduler.call_later(10_000, lambda: fired.append(True))
    assert scheduler.pending() == 1
    scheduler.cancel(handle)
    assert scheduler.pending() == 0
    assert fired == []
