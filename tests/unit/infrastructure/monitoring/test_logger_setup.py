import logging

import pytest

from pinsync.infrastructure.monitoring.logger_setup import resolve_level, setup_logging


@pytest.fixture(autouse=True)
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    for handler in root.handlers[:]:
        root.removeHandler(handler)
        if handler not in handlers:
            handler.close()
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)


@pytest.mark.parametrize("value, expected", [
    ("debug", logging.DEBUG),
    ("INFO", logging.INFO),
    (logging.ERROR, logging.ERROR),
    (None, logging.WARNING),
    ("chatty", logging.WARNING),
])
def test_resolve_level(value, expected):
    assert resolve_level(value) == expected


def test_setup_logging_console_only():
    setup_logging(log_level=logging.INFO)
    root = logging.getLogger()
    assert root.level == logging.INFO
    assert len(root.handlers) == 1


def test_setup_logging_with_file(tmp_path):
    log_file = tmp_path / "pinsync.log"
    setup_logging(log_level=logging.DEBUG, log_file=str(log_file))

    logging.getLogger("pinsync.test").debug("written to file")
    for handler in logging.getLogger().handlers:
        handler.flush()

    assert "written to file" in log_file.read_text()
