import asyncio

import pytest

from conftest import FakeTransport, ok
from pinsync.core.context import SyncContext
from pinsync.core.services.bookmark_service import write_confirmed
from pinsync.domain.errors import LogicError

DONE = {"result_code": "done"}
NO_WAIT = {"all": 0.0, "recent": 0.0, "default": 0.0}
PYTHON = "https://example.com/python"
RUST = "https://example.com/rust"
COOKING = "https://example.com/cooking"


def make_context(transport, snapshot_store, ui, sample_records, write_timeout=10.0) -> SyncContext:
    transport.script("posts/all", ok(sample_records))
    context = SyncContext(
        transport=transport,
        snapshot_store=snapshot_store,
        ui=ui,
        rate_intervals=NO_WAIT,
        write_timeout=write_timeout,
    )
    context.orchestrator.fetch(True, lambda bookmarks: None)
    return context


@pytest.fixture
def context(fake_transport, snapshot_store, mock_ui, sample_records) -> SyncContext:
    return make_context(fake_transport, snapshot_store, mock_ui, sample_records)


def run_batch(context, operation):
    """Runs `operation(on_complete)` on a fresh loop and waits for the queue to drain."""
    results = []

    async def scenario():
        queued = operation(results.append)
        await context.work_queue.join()
        return queued

    queued = asyncio.run(scenario())
    return queued, results


def writes(transport):
    return [(endpoint, params) for endpoint, params, mode in transport.calls if mode == "async"]


def test_write_confirmed():
    assert write_confirmed(DONE)
    assert not write_confirmed({"result_code": "item not found"})
    assert not write_confirmed("done")


def test_add_tags_queues_one_write_per_bookmark(context, fake_transport, mock_ui):
    fake_transport.script("posts/add", ok(DONE))
    service = context.bookmark_service

    queued, results = run_batch(context, lambda done: service.add_tags([PYTHON, RUST], ["reading"], on_complete=done))

    assert queued == 2
    assert results == [{"succeeded": 2, "failed": 0}]
    sent = writes(fake_transport)
    assert [params["url"] for _, params in sent] == [PYTHON, RUST]
    assert sent[0][1]["tags"] == "Python programming reading"
    assert sent[0][1]["replace"] == "yes"
    assert context.orchestrator.get(PYTHON).tags == ("Python", "programming", "reading")
    mock_ui.display_info.assert_called_once_with("Tagging: 2 succeeded, 0 failed.")


def test_add_tags_skips_bookmarks_that_already_have_them(context, fake_transport):
    fake_transport.script("posts/add", ok(DONE))
    service = context.bookmark_service

    queued, _ = run_batch(context, lambda done: service.add_tags([PYTHON, RUST], ["PYTHON"], on_complete=done))

    assert queued == 1
    sent = writes(fake_transport)
    assert [params["url"] for _, params in sent] == [RUST]
    assert sent[0][1]["tags"] == "rust programming PYTHON"


def test_add_tags_with_nothing_to_change_raises(context):
    with pytest.raises(LogicError):
        context.bookmark_service.add_tags([PYTHON, RUST], ["programming"])
    assert context.work_queue.pending == 0


def test_add_tags_requires_tags(context):
    with pytest.raises(LogicError, match="No tags to add"):
        context.bookmark_service.add_tags([PYTHON], ["  "])


def test_remove_tags_with_nothing_to_remove_raises(context):
    with pytest.raises(LogicError, match="no tags to remove"):
        context.bookmark_service.remove_tags([COOKING], ["rust"])


def test_remove_tags_is_case_insensitive(context, fake_transport):
    fake_transport.script("posts/add", ok(DONE))
    service = context.bookmark_service

    queued, results = run_batch(context, lambda done: service.remove_tags([PYTHON, RUST], ["python"], on_complete=done))

    assert queued == 1
    assert results == [{"succeeded": 1, "failed": 0}]
    assert context.orchestrator.get(PYTHON).tags == ("programming",)


def test_unknown_url_raises(context):
    with pytest.raises(LogicError, match="Unknown bookmark"):
        context.bookmark_service.set_unread(["https://nowhere.example"], True)


def test_empty_selection_raises(context):
    with pytest.raises(LogicError, match="No bookmarks selected"):
        context.bookmark_service.delete([])


def test_set_unread_only_touches_changed_bookmarks(context, fake_transport):
    fake_transport.script("posts/add", ok(DONE))
    service = context.bookmark_service

    queued, _ = run_batch(context, lambda done: service.set_unread([PYTHON, RUST], False, on_complete=done))

    assert queued == 1
    assert writes(fake_transport)[0][1]["toread"] == "no"
    assert context.orchestrator.get(RUST).unread is False


def test_set_shared(context, fake_transport):
    fake_transport.script("posts/add", ok(DONE))
    service = context.bookmark_service

    queued, _ = run_batch(context, lambda done: service.set_shared([RUST], True, on_complete=done))

    assert queued == 1
    assert context.orchestrator.get(RUST).shared is True


def test_unconfirmed_write_leaves_index_unchanged(context, fake_transport, mock_ui):
    fake_transport.script("posts/add", ok({"result_code": "something went wrong"}))
    service = context.bookmark_service

    _, results = run_batch(context, lambda done: service.set_unread([PYTHON], True, on_complete=done))

    assert results == [{"succeeded": 0, "failed": 1}]
    assert context.orchestrator.get(PYTHON).unread is False
    mock_ui.display_warning.assert_called_once_with("Marking unread: 0 succeeded, 1 failed.")


def test_delete_removes_confirmed_bookmarks(context, fake_transport):
    fake_transport.script("posts/delete", ok(DONE))
    service = context.bookmark_service

    queued, results = run_batch(context, lambda done: service.delete([COOKING, RUST], on_complete=done))

    assert queued == 2
    assert results == [{"succeeded": 2, "failed": 0}]
    assert writes(fake_transport) == [("posts/delete", {"url": COOKING}), ("posts/delete", {"url": RUST})]
    assert context.orchestrator.get(COOKING) is None
    assert context.orchestrator.get(RUST) is None


def test_confirmed_edits_leave_tag_index_untouched(context, fake_transport):
    fake_transport.script("posts/add", ok(DONE))
    service = context.bookmark_service

    run_batch(context, lambda done: service.add_tags([COOKING], ["baking"], on_complete=done))

    assert context.orchestrator.get(COOKING).has_tag("baking")
    assert "baking" not in context.orchestrator.tag_index


def test_timed_out_write_counts_as_failure(snapshot_store, mock_ui, sample_records):
    transport = FakeTransport(delay=0.2)
    context = make_context(transport, snapshot_store, mock_ui, sample_records, write_timeout=0.05)
    transport.script("posts/add", ok(DONE))
    service = context.bookmark_service

    _, results = run_batch(context, lambda done: service.set_shared([RUST], True, on_complete=done))

    assert results == [{"succeeded": 0, "failed": 1}]
    assert context.orchestrator.get(RUST).shared is False
