import asyncio

import pytest

from conftest import FakeTransport, ok
from pinsync.core.context import SyncContext, get_context, reset_context, set_context
from pinsync.domain.errors import ConfigurationError
from pinsync.infrastructure.config.settings import set_config_for_testing
from pinsync.infrastructure.transport.http_transport import HttpxTransport


def test_from_config_wires_configured_components(tmp_path):
    set_config_for_testing({
        "cache.dir": str(tmp_path),
        "rate_limit.all_seconds": 10,
        "requests.write_timeout_seconds": 2.5,
    })

    context = SyncContext.from_config()

    assert isinstance(context.transport, HttpxTransport)
    assert context.transport.auth_token == "user:DUMMYTOKEN"
    assert context.snapshot_store.path == tmp_path / "bookmarks.json"
    assert context.rate_limiter.baseline_interval("posts/all") == 10.0
    assert context.rate_limiter.baseline_interval("posts/recent") == 60.0
    assert context.executor.write_timeout == 2.5
    assert context.bookmark_service.write_timeout == 2.5


def test_from_config_without_token_fails(monkeypatch):
    monkeypatch.delenv("PINBOARD_AUTH_TOKEN")
    with pytest.raises(ConfigurationError):
        SyncContext.from_config()


def test_get_context_builds_once(tmp_path):
    set_config_for_testing({"cache.dir": str(tmp_path)})
    first = get_context()
    assert get_context() is first
    reset_context()
    assert get_context() is not first


def test_set_context_installs_prebuilt(context):
    set_context(context)
    assert get_context() is context


def test_reset_context_closes_transport(context, fake_transport):
    set_context(context)
    reset_context()
    assert fake_transport.closed


def test_clear_cache_drops_queue_index_and_snapshot(snapshot_store, sample_records):
    transport = FakeTransport(delay=0.05)
    transport.script("posts/all", ok(sample_records))
    transport.script("posts/add", ok({"result_code": "done"}))
    context = SyncContext(transport=transport, snapshot_store=snapshot_store,
                          rate_intervals={"all": 0.0, "recent": 0.0, "default": 0.0})
    context.orchestrator.fetch(True, lambda bookmarks: None)
    assert snapshot_store.exists()

    async def scenario():
        context.bookmark_service.set_unread(
            ["https://example.com/python", "https://example.com/cooking"], True
        )
        await asyncio.sleep(0.01)
        context.clear_cache()
        assert context.work_queue.pending == 0
        await context.work_queue.join()

    asyncio.run(scenario())

    assert not context.orchestrator.is_loaded
    assert not snapshot_store.exists()
    # Only the write already in flight reached the server
    assert [endpoint for endpoint, _, mode in transport.calls if mode == "async"] == ["posts/add"]
