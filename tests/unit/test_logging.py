"""Tests for logging utilities."""

import json
from typing import Any, Dict
from decimal import Decimal

from src.utils.logging import StructuredLogger, get_correlation_id, get_logger


class TestStructuredLogger:
    """Tests for StructuredLogger class."""

    def test_logger_initialization(self) -> None:
        """Test logger initializes with correlation ID."""
        logger = StructuredLogger("test", "test-id-123")

        assert logger.correlation_id == "test-id-123"

    def test_logger_generates_correlation_id(self) -> None:
        """Test logger generates correlation ID if not provided."""
        logger = StructuredLogger("test")

        assert logger.correlation_id
        assert len(logger.correlation_id) > 0

    def test_info_logs_json(self, capsys: Any) -> None:
        """Test info logging outputs JSON with logger name and context."""
        logger = StructuredLogger("handlers.accept", "test-id")

        logger.info("Answer accepted", answer_id="a-1")

        log_entry = json.loads(capsys.readouterr().out.strip())

        assert log_entry["level"] == "INFO"
        assert log_entry["message"] == "Answer accepted"
        assert log_entry["logger"] == "handlers.accept"
        assert log_entry["correlationId"] == "test-id"
        assert log_entry["answer_id"] == "a-1"
        assert "timestamp" in log_entry

    def test_levels(self, capsys: Any) -> None:
        """Test each level method tags its entry."""
        logger = StructuredLogger("test", "test-id")

        logger.warning("w")
        logger.error("e")
        logger.debug("d")

        levels = [json.loads(line)["level"] for line in capsys.readouterr().out.strip().splitlines()]
        assert levels == ["WARNING", "ERROR", "DEBUG"]

    def test_none_values_filtered(self, capsys: Any) -> None:
        """Test that None values are filtered from logs."""
        logger = StructuredLogger("test", "test-id")

        logger.info("Test", value=None, other="present")

        log_entry = json.loads(capsys.readouterr().out.strip())
        assert "value" not in log_entry
        assert log_entry["other"] == "present"

    def test_non_json_values_are_stringified(self, capsys: Any) -> None:
        """Test Decimal from DynamoDB does not break logging."""
        StructuredLogger("test", "test-id").info("Score", delta=Decimal("-1"))

        log_entry = json.loads(capsys.readouterr().out.strip())
        assert log_entry["delta"] == "-1"

    def test_get_logger(self) -> None:
        """Test module-level logger factory."""
        assert get_logger("module").name == "module"


class TestGetCorrelationId:
    """Tests for get_correlation_id function."""

    def test_extract_from_request_context(self) -> None:
        """Test extracting correlation ID from API Gateway request context."""
        event = {"requestContext": {"requestId": "apigw-request-123"}}

        assert get_correlation_id(event) == "apigw-request-123"

    def test_extract_from_header_case_insensitive(self) -> None:
        """Test extracting correlation ID from a header in any case."""
        event = {"headers": {"X-Correlation-Id": "custom-id-456"}}

        assert get_correlation_id(event) == "custom-id-456"

    def test_extract_from_nested_request_headers(self) -> None:
        """Test extracting correlation ID from request.headers."""
        event = {"request": {"headers": {"x-correlation-id": "nested-789"}}}

        assert get_correlation_id(event) == "nested-789"

    def test_stream_event_id(self) -> None:
        """Test stream batches use the first record's eventID."""
        event = {"Records": [{"eventID": "stream-1"}, {"eventID": "stream-2"}]}

        assert get_correlation_id(event) == "stream-1"

    def test_ses_message_id(self) -> None:
        """Test inbound mail uses the SES message id."""
        event = {"Records": [{"ses": {"mail": {"messageId": "ses-msg-1"}}}]}

        assert get_correlation_id(event) == "ses-msg-1"

    def test_generate_new_id_if_not_found(self) -> None:
        """Test generating new ID if not found in event."""
        event: Dict[str, Any] = {}

        assert get_correlation_id(event)

    def test_request_context_takes_precedence(self) -> None:
        """Test that request context takes precedence over headers."""
        event = {
            "requestContext": {"requestId": "apigw-123"},
            "headers": {"x-correlation-id": "header-456"},
        }

        assert get_correlation_id(event) == "apigw-123"
