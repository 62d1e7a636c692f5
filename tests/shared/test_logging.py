"""Tests for structured logging helpers."""

from __future__ import annotations

import json
import logging

from rich.logging import RichHandler

from sealedquery.shared.errors import ErrorCode, ErrorContext, SealedQueryError
from sealedquery.shared.logging import (
    StructuredFormatter,
    log_api_call,
    log_operation_error,
    log_operation_success,
    setup_structured_logger,
)


def _record(logger_name: str = "sealedquery.test", **extra) -> logging.LogRecord:
    record = logging.LogRecord(logger_name, logging.INFO, __file__, 1, "hello %s", ("world",), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestStructuredFormatter:
    """JSON line formatting."""

    def test_formats_basic_record(self):
        entry = json.loads(StructuredFormatter().format(_record()))
        assert entry["message"] == "hello world"
        assert entry["level"] == "INFO"
        assert entry["logger"] == "sealedquery.test"
        assert "timestamp" in entry

    def test_includes_structured_extras(self):
        record = _record(error_code="API_RATE_LIMIT", operation="fetch_query", context={"a": 1})
        entry = json.loads(StructuredFormatter().format(record))
        assert entry["error_code"] == "API_RATE_LIMIT"
        assert entry["operation"] == "fetch_query"
        assert entry["context"] == {"a": 1}


class TestSetupStructuredLogger:
    """Handler configuration."""

    def test_rich_console_handler(self):
        logger = setup_structured_logger("sealedquery.test_rich", level="debug")
        assert logger.level == logging.DEBUG
        assert isinstance(logger.handlers[0], RichHandler)
        assert logger.propagate is False

    def test_json_handler_and_file(self, tmp_path):
        log_file = tmp_path / "sealedquery.log"
        logger = setup_structured_logger(
            "sealedquery.test_json",
            level="INFO",
            log_file=str(log_file),
            use_rich_console=False,
        )
        logger.info("written")
        for handler in logger.handlers:
            handler.flush()

        assert len(logger.handlers) == 2
        assert json.loads(log_file.read_text(encoding="utf-8").splitlines()[0])["message"] == "written"
        for handler in logger.handlers:
            handler.close()

    def test_repeated_setup_replaces_handlers(self):
        setup_structured_logger("sealedquery.test_repeat", use_rich_console=False)
        logger = setup_structured_logger("sealedquery.test_repeat", use_rich_console=False)
        assert len(logger.handlers) == 1


class TestLogHelpers:
    """Operation and API call helpers."""

    def test_log_operation_error(self, caplog):
        logger = logging.getLogger("tests.log_helpers")
        error = SealedQueryError(
            ErrorCode.API_SERVER_ERROR,
            "server down",
            ErrorContext(operation="fetch_query", endpoint="/query-numbers"),
        )

        with caplog.at_level(logging.ERROR, logger="tests.log_helpers"):
            log_operation_error(logger, error, additional_context={"attempt": 2})

        record = caplog.records[-1]
        assert record.getMessage() == "server down"
        assert record.error_code == "API_SERVER_ERROR"
        assert record.operation == "fetch_query"
        assert record.context["endpoint"] == "/query-numbers"
        assert record.context["attempt"] == 2

    def test_log_operation_success(self, caplog):
        logger = logging.getLogger("tests.log_helpers")
        with caplog.at_level(logging.DEBUG, logger="tests.log_helpers"):
            log_operation_success(logger, "fetch_index", 12.5, {"items": 3})

        record = caplog.records[-1]
        assert record.duration_ms == 12.5
        assert record.result_info == {"items": 3}

    def test_failed_api_call_logs_warning(self, caplog):
        logger = logging.getLogger("tests.log_helpers")
        with caplog.at_level(logging.INFO, logger="tests.log_helpers"):
            log_api_call(logger, "/index", status_code=429, duration_ms=5.0)

        record = caplog.records[-1]
        assert record.levelno == logging.WARNING
        assert "429" in record.getMessage()
        assert record.context["status_code"] == 429
