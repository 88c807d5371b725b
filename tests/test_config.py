"""
Settings and logging setup.
"""

import logging

from tradescribe.utils.config import DEFAULT_TICKER_EXCLUSIONS, Settings, reload_settings
from tradescribe.utils.exceptions import CapabilityError, ErrorCategory, NoteRequiredError
from tradescribe.utils.logger import REDACTED, redact_secrets, setup_logging


class TestSettings:

    def test_defaults(self):
        settings = Settings(openai_api_key="")
        assert settings.search_default_limit == 15
        assert settings.open_trade_context_limit == 12
        assert settings.answer_context_limit == 8
        assert settings.analytics_default_limit == 500
        assert settings.ticker_exclusions == DEFAULT_TICKER_EXCLUSIONS
        assert not settings.ai_enabled

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("SEARCH_DEFAULT_LIMIT", "5")
        monkeypatch.setenv("OPENAI_API_KEY", "sk-env")
        settings = reload_settings()
        assert settings.search_default_limit == 5
        assert settings.ai_enabled
        monkeypatch.delenv("SEARCH_DEFAULT_LIMIT")
        monkeypatch.delenv("OPENAI_API_KEY")
        reload_settings()


class TestErrors:

    def test_str_includes_category_and_status(self):
        assert str(NoteRequiredError()) == "[validation] A journal note is required. | (HTTP 400)"

    def test_capability_errors_are_external(self):
        assert CapabilityError("down").category == ErrorCategory.EXTERNAL


class TestLogging:

    def test_redact_processor(self):
        event = redact_secrets(None, "info", {"event": "x", "api_key": "sk", "model": "m"})
        assert event["api_key"] == REDACTED
        assert event["model"] == "m"

    def test_setup_creates_log_file(self, tmp_path):
        log_file = tmp_path / "logs" / "journal.log"
        setup_logging(Settings(log_file=str(log_file), log_json=False, log_level="debug"))
        assert log_file.exists()
        assert logging.getLogger().level == logging.DEBUG
