import asyncio
import json
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest
from typer.testing import CliRunner
from unittest.mock import MagicMock

from pinsync.core.context import SyncContext, reset_context
from pinsync.domain.interfaces.transport import Transport, TransportResponse
from pinsync.domain.interfaces.user_interface import UserInterface
from pinsync.infrastructure.cache.snapshot_store import FileSnapshotStore
from pinsync.infrastructure.config.settings import clear_test_config


def ok(payload: Any) -> TransportResponse:
    """A 200 response carrying `payload` as JSON."""
    return TransportResponse(status=200, body=json.dumps(payload))


def rate_limited() -> TransportResponse:
    return TransportResponse(status=429, body="Too Many Requests")


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class FakeTransport(Transport):
    """Scripted transport: each endpoint answers from its own list of responses.

    The last scripted response for an endpoint repeats. Exceptions in the
    script are raised instead of returned.
    """

    def __init__(self, delay: float = 0.0):
        self.responses: Dict[str, List[Any]] = {}
        self.calls: List[tuple] = []
        self.delay = delay
        self.active = 0
        self.max_active = 0
        self.closed = False
        self.aclosed = False

    def script(self, endpoint: str, *responses: Any) -> "FakeTransport":
        self.responses.setdefault(endpoint, []).extend(responses)
        return self

    def endpoints(self) -> List[str]:
        return [endpoint for endpoint, _, _ in self.calls]

    def _next(self, endpoint: str) -> TransportResponse:
        queue = self.responses.get(endpoint)
        if not queue:
            raise AssertionError(f"Unexpected call to {endpoint}")
        response = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(response, Exception):
            raise response
        return response

    def issue(self, endpoint, params, timeout: Optional[float] = None) -> TransportResponse:
        self.calls.append((endpoint, dict(params), "blocking"))
        return self._next(endpoint)

    async def issue_async(self, endpoint, params, timeout: Optional[float] = None) -> TransportResponse:
        self.calls.append((endpoint, dict(params), "async"))
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            return self._next(endpoint)
        finally:
            self.active -= 1

    def close(self) -> None:
        self.closed = True

    async def aclose(self) -> None:
        self.aclosed = True


SAMPLE_RECORDS = [
    {
        "href": "https://example.com/python",
        "description": "Python tips",
        "extended": "",
        "tags": "Python programming",
        "shared": "yes",
        "toread": "no",
        "time": "2024-03-01T10:00:00Z",
    },
    {
        "href": "https://example.com/rust",
        "description": "Rust book",
        "extended": "Read later",
        "tags": "rust programming",
        "shared": "no",
        "toread": "yes",
        "time": "2024-03-02T10:00:00Z",
    },
    {
        "href": "https://example.com/cooking",
        "description": "Bread recipe",
        "extended": "",
        "tags": "python cooking",
        "shared": "yes",
        "toread": "no",
        "time": "2024-02-01T09:30:00Z",
    },
]


@pytest.fixture(scope="session")
def runner():
    """Provides a Typer CliRunner instance."""
    return CliRunner()


@pytest.fixture
def sample_records() -> List[Dict[str, str]]:
    return [dict(record) for record in SAMPLE_RECORDS]


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fake_transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def snapshot_path(tmp_path: Path) -> Path:
    return tmp_path / "cache" / "bookmarks.json"


@pytest.fixture
def snapshot_store(snapshot_path: Path) -> FileSnapshotStore:
    return FileSnapshotStore(snapshot_path)


@pytest.fixture
def mock_ui():
    return MagicMock(spec=UserInterface)


@pytest.fixture
def context(fake_transport, snapshot_store, mock_ui, fake_clock) -> SyncContext:
    """A SyncContext wired with the fake transport, a temp snapshot and a fake clock."""
    return SyncContext(
        transport=fake_transport,
        snapshot_store=snapshot_store,
        ui=mock_ui,
        clock=fake_clock,
        sleep=fake_clock.sleep,
    )


@pytest.fixture(autouse=True)
def isolate_process_state(monkeypatch):
    """Keeps test configuration and the process context from leaking between tests."""
    monkeypatch.setenv("PINBOARD_AUTH_TOKEN", "user:DUMMYTOKEN")
    yield
    clear_test_config()
    reset_context()
