"""Unit tests for structured logging."""

import json
import logging

import pytest
import structlog

from hcm_webhooks.config.settings import Settings
from hcm_webhooks.core.logging import (
    bind_contextvars,
    clear_contextvars,
    drop_color_message_key,
    redact_sensitive_values,
    setup_logging,
)


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers = handlers
    root.setLevel(level)
    clear_contextvars()


class TestProcessors:
    """Tests for custom structlog processors."""

    def test_drops_color_message(self):
        """Test color_message key is removed."""
        result = drop_color_message_key(None, "info", {"event": "x", "color_message": "x"})
        assert result == {"event": "x"}

    def test_redacts_credentials(self):
        """Test credential-shaped keys are masked regardless of case."""
        result = redact_sensitive_values(
            None,
            "info",
            {"event": "x", "Authorization": "Bearer abc123", "token": "abc123", "tenant": "t"},
        )
        assert result["Authorization"] == "***"
        assert result["token"] == "***"
        assert result["tenant"] == "t"


class TestSetupLogging:
    """Tests for setup_logging function."""

    def test_custom_level(self, restore_root_logger):
        """Test an explicit log level overrides settings."""
        setup_logging(Settings(_env_file=None, log_level="INFO"), log_level="DEBUG")
        assert logging.getLogger().level == logging.DEBUG

    def test_sqlalchemy_is_quieted(self, restore_root_logger):
        setup_logging(Settings(_env_file=None, log_level="DEBUG"))
        assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING

    def test_json_output_with_context(self, restore_root_logger, capsys):
        """Test JSON entries carry bound context and redact secrets."""
        setup_logging(Settings(_env_file=None, ENVIRONMENT="production"))
        bind_contextvars(request_id="req-9")

        structlog.get_logger("test").info(
            "AUDIT: webhook_received", tenant_id="t-1", password="hunter2"
        )

        line = capsys.readouterr().out.strip().splitlines()[-1]
        entry = json.loads(line)
        assert entry["event"] == "AUDIT: webhook_received"
        assert entry["request_id"] == "req-9"
        assert entry["environment"] == "production"
        assert entry["password"] == "***"
        assert entry["level"] == "info"
