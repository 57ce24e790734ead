"""Tests for structured logging configuration."""
import json
import logging
import os
from unittest.mock import patch

import pytest

from adloop.logging_config import configure_logging, JSONFormatter


@pytest.fixture(autouse=True)
def _reset_root_logger():
    """Reset root logger state after each test."""
    root = logging.getLogger()
    original_level = root.level
    original_handlers = root.handlers[:]
    yield
    root.setLevel(original_level)
    root.handlers = original_handlers


class TestConfigureLogging:

    def test_default_level_is_info(self):
        with patch.dict(os.environ, {}, clear=False):
            os.environ.pop('LOG_LEVEL', None)
            configure_logging()
        assert logging.getLogger().level == logging.INFO

    def test_log_level_case_insensitive(self):
        with patch.dict(os.environ, {'LOG_LEVEL': 'debug'}):
            configure_logging()
        assert logging.getLogger().level == logging.DEBUG

    def test_invalid_log_level_defaults_to_info(self):
        with patch.dict(os.environ, {'LOG_LEVEL': 'NONSENSE'}):
            configure_logging()
        assert logging.getLogger().level == logging.INFO

    def test_text_format_includes_logger_name(self, capsys):
        with patch.dict(os.environ, {'LOG_FORMAT': 'text'}):
            configure_logging()
        logging.getLogger('pipeline.ingestion').info("batch closed")
        output = capsys.readouterr().err
        assert 'pipeline.ingestion' in output
        assert 'batch closed' in output

    def test_json_format_carries_batch_context(self, capsys):
        with patch.dict(os.environ, {'LOG_FORMAT': 'json', 'LOG_LEVEL': 'INFO'}):
            configure_logging()
        logging.getLogger('services.ledger').info(
            "closed", extra={'batch_id': 'b-1', 'campaign_id': 'c-1'},
        )
        parsed = json.loads(capsys.readouterr().err.strip())
        assert parsed['message'] == 'closed'
        assert parsed['batch_id'] == 'b-1'
        assert parsed['campaign_id'] == 'c-1'
        assert 'variant_id' not in parsed

    def test_noisy_loggers_quieted(self):
        configure_logging()
        assert logging.getLogger('sqlalchemy.engine').level == logging.WARNING
        assert logging.getLogger('openai').level == logging.WARNING

    def test_no_duplicate_handlers_on_reinit(self):
        configure_logging()
        configure_logging()
        assert len(logging.getLogger().handlers) == 1


class TestJSONFormatter:

    def test_exception_included(self):
        formatter = JSONFormatter()
        try:
            raise ValueError("boom")
        except ValueError:
            import sys
            record = logging.LogRecord('x', logging.ERROR, __file__, 1, 'failed', None, sys.exc_info())
        parsed = json.loads(formatter.format(record))
        assert parsed['level'] == 'ERROR'
        assert 'ValueError: boom' in parsed['exception']
