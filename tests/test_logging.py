import logging

import pytest

import segment_clock
from segment_clock import setup_logging


@pytest.fixture
def root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield root
    for handler in root.handlers:
        handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


def stream_handler(root):
    return next(h for h in root.handlers if not isinstance(h, logging.FileHandler))


def test_defaults_to_warnings_on_stderr(root_logger):
    setup_logging()

    assert root_logger.level == logging.WARNING
    assert len(root_logger.handlers) == 1
    assert stream_handler(root_logger).level == logging.WARNING


def test_log_file_gets_debug_records(root_logger, tmp_path):
    path = tmp_path / "clock.log"
    setup_logging(False, str(path))

    segment_clock.logger.debug("terminal session started")
    segment_clock.logger.info("quit key pressed")
    for handler in root_logger.handlers:
        handler.flush()

    text = path.read_text()
    assert "[DEBUG] segment_clock: terminal session started" in text
    assert "[INFO] segment_clock: quit key pressed" in text
    assert stream_handler(root_logger).level == logging.ERROR


def test_verbose_without_log_file_uses_stderr(root_logger):
    setup_logging(True)

    assert root_logger.level == logging.DEBUG
    assert stream_handler(root_logger).level == logging.DEBUG


def test_verbose_with_log_file_keeps_stderr_quiet(root_logger, tmp_path):
    setup_logging(True, str(tmp_path / "clock.log"))

    assert root_logger.level == logging.DEBUG
    assert stream_handler(root_logger).level == logging.ERROR
