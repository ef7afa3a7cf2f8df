import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

import pytest

from gpsinfo.infrastructure.monitoring.logger_setup import setup_logging


@pytest.fixture
def restore_logging():
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    saved_library_levels = {name: logging.getLogger(name).level for name in ("httpx", "httpcore")}
    yield
    for handler in root.handlers[:]:
        root.removeHandler(handler)
        if handler not in saved_handlers:
            handler.close()
    for handler in saved_handlers:
        root.addHandler(handler)
    root.setLevel(saved_level)
    for name, level in saved_library_levels.items():
        logging.getLogger(name).setLevel(level)


def test_console_handler_and_quiet_http_loggers(restore_logging):
    setup_logging(log_level=logging.INFO)

    root = logging.getLogger()
    assert root.level == logging.INFO
    assert len(root.handlers) == 1
    assert logging.getLogger("httpx").level == logging.WARNING
    assert logging.getLogger("httpcore").level == logging.WARNING


def test_debug_level_keeps_http_loggers(restore_logging):
    setup_logging(log_level=logging.DEBUG)
    assert logging.getLogger("httpx").level == logging.DEBUG


def test_file_logging(restore_logging, tmp_path: Path):
    log_file = tmp_path / "gpsinfo.log"

    setup_logging(log_level=logging.INFO, log_file=str(log_file))
    logging.getLogger("gpsinfo.test").info("speed limit resolved")
    for handler in logging.getLogger().handlers:
        handler.flush()

    assert any(isinstance(h, RotatingFileHandler) for h in logging.getLogger().handlers)
    assert "speed limit resolved" in log_file.read_text(encoding="utf-8")
