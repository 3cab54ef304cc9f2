"""
Unit Tests for Logging Module

Tests logger configuration, request context, and processors.
"""

import pytest

from swapcache.core.logging.logger import (
    add_log_level_name,
    add_request_id,
    clear_request_id,
    get_logger,
    get_request_id,
    redact_pii,
    set_request_id,
    setup_logging,
)


@pytest.mark.unit
class TestLoggerCreation:
    """Test logger creation and configuration."""

    def test_get_logger_returns_logger_instance(self):
        """Test that get_logger returns a logger instance."""
        logger = get_logger(__name__)
        assert hasattr(logger, "info")

    def test_setup_logging_accepts_both_formats(self):
        """Test that json and console renderers can be configured."""
        setup_logging(log_level="DEBUG", log_format="json")
        setup_logging(log_level="INFO", log_format="console")
        get_logger("test").info("configured", stage="L")


@pytest.mark.unit
class TestRequestContext:
    """Test request ID context management."""

    def test_set_and_clear_request_id(self):
        """Test that the request ID round-trips through the context."""
        set_request_id("req-123")
        assert get_request_id() == "req-123"

        clear_request_id()
        assert get_request_id() is None

    def test_add_request_id_processor(self):
        """Test that the processor injects the bound request ID."""
        set_request_id("req-456")
        try:
            event = add_request_id(None, "info", {"event": "hello"})
        finally:
            clear_request_id()

        assert event["request_id"] == "req-456"

    def test_add_request_id_without_context(self):
        """Test that no request_id key is added outside a request."""
        clear_request_id()
        assert "request_id" not in add_request_id(None, "info", {"event": "hello"})


@pytest.mark.unit
class TestProcessors:
    """Test custom structlog processors."""

    def test_redact_email(self):
        """Test that e-mail addresses are masked."""
        event = redact_pii(None, "info", {"event": "Login failed for jane.doe@example.com"})
        assert event["event"] == "Login failed for [EMAIL]"

    def test_redact_bearer_token(self):
        """Test that bearer tokens are masked."""
        event = redact_pii(None, "info", {"event": "Header Bearer abc.def-123"})
        assert event["event"] == "Header Bearer [REDACTED]"

    def test_non_string_event_untouched(self):
        """Test that non-string events pass through."""
        event = redact_pii(None, "info", {"event": 42})
        assert event["event"] == 42

    def test_level_name_upper_cased(self):
        """Test that level names are upper-cased."""
        assert add_log_level_name(None, "warning", {"level": "warning"})["level"] == "WARNING"
