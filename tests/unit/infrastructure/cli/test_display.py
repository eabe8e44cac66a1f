import pytest
from unittest.mock import MagicMock

from rich.panel import Panel
from rich.table import Table

from pinsync.domain.models.bookmark import Bookmark
from pinsync.infrastructure.cli.display import MAX_TITLE_LENGTH, ConsoleDisplay


@pytest.fixture
def mock_console():
    """Fixture to create a mock rich Console object."""
    return MagicMock()


@pytest.fixture
def console_display(mock_console: MagicMock):
    """Fixture to create a ConsoleDisplay instance with a mocked console."""
    return ConsoleDisplay(console=mock_console)


def printed(mock_console: MagicMock):
    args, _ = mock_console.print.call_args
    return args[0]


def test_display_output(console_display: ConsoleDisplay, mock_console: MagicMock):
    console_display.display_output("plain text")
    mock_console.print.assert_called_once_with("plain text", style=None)


@pytest.mark.parametrize("method, title", [
    ("display_error", "Error"),
    ("display_info", "Info"),
    ("display_warning", "Warning"),
])
def test_messages_render_as_panels(console_display: ConsoleDisplay, mock_console: MagicMock, method, title):
    getattr(console_display, method)("Something happened")

    panel = printed(mock_console)
    assert isinstance(panel, Panel)
    assert title in str(panel.title)
    assert panel.renderable.plain == "Something happened"


def test_display_bookmarks_table(console_display: ConsoleDisplay, mock_console: MagicMock):
    bookmarks = [
        Bookmark(url="https://example.com/a", title="A" * 100, tags=("x", "y"), unread=True,
                 time="2024-03-02T10:00:00Z"),
        Bookmark(url="https://example.com/b", shared=True),
    ]

    console_display.display_bookmarks(bookmarks)

    table = printed(mock_console)
    assert isinstance(table, Table)
    assert table.row_count == 2
    assert [column.header for column in table.columns] == ["Date", "", "Title", "URL", "Tags"]
    date, flags, title, url, tags = (column._cells[0] for column in table.columns)
    assert date == "2024-03-02"
    assert flags == "*p"
    assert len(title) == MAX_TITLE_LENGTH
    assert title.endswith("...")
    assert tags == "x y"
    # Untitled bookmarks show their URL
    assert table.columns[2]._cells[1] == "https://example.com/b"


def test_display_bookmarks_empty(console_display: ConsoleDisplay, mock_console: MagicMock):
    console_display.display_bookmarks([])
    assert printed(mock_console).renderable.plain == "No bookmarks to show."


def test_display_tags(console_display: ConsoleDisplay, mock_console: MagicMock):
    console_display.display_tags([("Python", 2), ("rust", 1)])

    table = printed(mock_console)
    assert table.row_count == 2
    assert table.columns[1]._cells == ["2", "1"]
