import logging
import os
import sys

import pytest
import structlog

from common.config import Settings
from common.logging_config import configure_logging


def _make_settings(mocker, log_format: str, log_level: str) -> Settings:
    mocker.patch.dict(
        os.environ,
        {"OPENAI_API_KEY": "test_api_key", "LOG_FORMAT": log_format, "LOG_LEVEL": log_level},
        clear=True,
    )
    return Settings()


def _has_processor(formatter, processor_type):
    return any(isinstance(proc, processor_type) for proc in formatter.processors or ())


@pytest.fixture
def root_logger():
    """Give each test a root logger without handlers and restore it afterwards."""
    logger = logging.getLogger()
    saved_handlers = list(logger.handlers)
    saved_level = logger.level
    logger.handlers[:] = []
    yield logger
    logger.handlers[:] = saved_handlers
    logger.setLevel(saved_level)


def test_configure_logging_console(mocker, root_logger):
    configure_logging(_make_settings(mocker, "console", "debug"))

    assert root_logger.getEffectiveLevel() == logging.DEBUG
    assert len(root_logger.handlers) == 1
    formatter = root_logger.handlers[0].formatter
    assert isinstance(formatter, structlog.stdlib.ProcessorFormatter)
    assert _has_processor(formatter, structlog.dev.ConsoleRenderer)


def test_configure_logging_json(mocker, root_logger):
    configure_logging(_make_settings(mocker, "json", "warning"))

    assert root_logger.getEffectiveLevel() == logging.WARNING
    formatter = root_logger.handlers[0].formatter
    assert _has_processor(formatter, structlog.processors.JSONRenderer)
    assert not _has_processor(formatter, structlog.dev.ConsoleRenderer)


def test_configure_logging_writes_to_stderr_and_quiets_http_libraries(mocker, root_logger):
    configure_logging(_make_settings(mocker, "console", "info"))

    assert root_logger.handlers[0].stream is sys.stderr
    for name in ("httpx", "urllib3", "openai"):
        assert logging.getLogger(name).level == logging.WARNING
