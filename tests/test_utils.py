"""Tests for logging setup and CLI argument parsing helpers."""

import json
import logging
import sys

import pytest
from rich.logging import RichHandler

from fallchain.utils import StructuredFormatter, parse_key_values, setup_logging


class TestSetupLogging:

    def test_pretty_uses_rich(self):
        logger = setup_logging("DEBUG")
        assert logger.name == "fallchain"
        assert logger.level == logging.DEBUG
        assert any(isinstance(h, RichHandler) for h in logger.handlers)

    def test_structured_console(self):
        logger = setup_logging("INFO", log_format="structured")
        assert len(logger.handlers) == 1
        assert isinstance(logger.handlers[0].formatter, StructuredFormatter)

    def test_log_file_is_json_lines(self, tmp_path):
        log_file = tmp_path / "logs" / "fallchain.log"
        logger = setup_logging("INFO", log_file=log_file, console_output=False)

        logging.getLogger("fallchain.executor").warning(
            "rank 0 failed",
            extra={"event": "attempt_failed", "metadata": {"rank": 0}},
        )
        for handler in logger.handlers:
            handler.flush()

        record = json.loads(log_file.read_text().splitlines()[0])
        assert record["level"] == "WARNING"
        assert record["logger"] == "fallchain.executor"
        assert record["event"] == "attempt_failed"
        assert record["metadata"] == {"rank": 0}

    def test_no_output_gets_null_handler(self):
        logger = setup_logging("INFO", console_output=False)
        assert [type(h) for h in logger.handlers] == [logging.NullHandler]

    def test_repeated_setup_replaces_handlers(self):
        setup_logging("INFO")
        logger = setup_logging("INFO")
        assert len(logger.handlers) == 1

    def test_invalid_level(self):
        with pytest.raises(ValueError, match="Invalid log level"):
            setup_logging("LOUD")


class TestStructuredFormatter:

    def test_exception_included(self):
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            record = logging.LogRecord(
                "fallchain", logging.ERROR, __file__, 1, "failed", None, sys.exc_info()
            )

        data = json.loads(StructuredFormatter().format(record))
        assert data["message"] == "failed"
        assert "RuntimeError: boom" in data["exception"]
        assert "event" not in data


class TestParseKeyValues:

    def test_strings_and_json_values(self):
        args = parse_key_values(["version=26.0.1", "retries=3", "strict=true", "tags=[\"a\"]"])
        assert args == {"version": "26.0.1", "retries": 3, "strict": True, "tags": ["a"]}

    def test_value_may_contain_equals(self):
        assert parse_key_values(["query=a=b"]) == {"query": "a=b"}

    def test_empty(self):
        assert parse_key_values([]) == {}

    @pytest.mark.parametrize("pair", ["novalue", "=value"])
    def test_invalid(self, pair):
        with pytest.raises(ValueError):
            parse_key_values([pair])
