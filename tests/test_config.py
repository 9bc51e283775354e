"""Tests for configuration validation and environment loading."""

import logging

import pytest

from history_insights.config import InsightsConfig
from history_insights.errors import ConfigError


class TestInsightsConfig:
    """Test config validation."""

    def test_defaults(self):
        config = InsightsConfig(openai_api_key="sk-test")
        assert config.session_timeout_minutes == 30
        assert config.cache_ttl_seconds == 3600
        assert config.recent_items_limit == 50
        assert config.classifier_provider == "openai"
        assert config.classifier_api_key == "sk-test"
        assert config.has_d1 is False
        assert config.tzinfo.key == "UTC"

    @pytest.mark.parametrize("kwargs", [
        {"session_timeout_minutes": 0},
        {"cache_ttl_seconds": -1},
        {"recent_items_limit": 0},
        {"top_domains_limit": -5},
        {"classifier_provider": "claude"},
        {"timezone": "Mars/Olympus_Mons"},
    ])
    def test_invalid_values(self, kwargs):
        with pytest.raises(ConfigError):
            InsightsConfig(**{"classifier_provider": "none", **kwargs})

    def test_config_error_is_value_error(self):
        with pytest.raises(ValueError):
            InsightsConfig(session_timeout_minutes=-1)

    def test_zero_ttl_allowed(self):
        assert InsightsConfig(classifier_provider="none", cache_ttl_seconds=0).cache_ttl_seconds == 0

    def test_missing_key_warns(self, caplog):
        with caplog.at_level(logging.WARNING, logger="history_insights.config"):
            InsightsConfig(classifier_provider="gemini")
        assert "No API key configured for classifier 'gemini'" in caplog.text

    def test_has_d1_requires_all_settings(self):
        partial = InsightsConfig(classifier_provider="none", d1_database_id="db", cf_account_id="acct")
        full = InsightsConfig(
            classifier_provider="none", d1_database_id="db", cf_account_id="acct", cf_api_token="tok"
        )
        assert partial.has_d1 is False
        assert full.has_d1 is True


class TestFromEnv:
    """Test environment variable loading."""

    def test_reads_prefixed_settings(self):
        config = InsightsConfig.from_env({
            "HISTORY_INSIGHTS_SESSION_TIMEOUT_MINUTES": "15",
            "HISTORY_INSIGHTS_CACHE_TTL_SECONDS": "60",
            "HISTORY_INSIGHTS_TIMEZONE": "Europe/Berlin",
            "HISTORY_INSIGHTS_CLASSIFIER": "Gemini",
            "HISTORY_INSIGHTS_CLASSIFIER_TIMEOUT": "12.5",
            "GEMINI_API_KEY": "g-key",
            "HISTORY_INSIGHTS_D1_DATABASE_ID": "db",
            "HISTORY_INSIGHTS_CF_ACCOUNT_ID": "acct",
            "HISTORY_INSIGHTS_CF_API_TOKEN": "tok",
        })

        assert config.session_timeout_minutes == 15
        assert config.cache_ttl_seconds == 60
        assert config.timezone == "Europe/Berlin"
        assert config.classifier_provider == "gemini"
        assert config.classifier_api_key == "g-key"
        assert config.classifier_timeout_seconds == 12.5
        assert config.has_d1 is True

    def test_empty_environment_uses_defaults(self):
        config = InsightsConfig.from_env({})
        assert config.session_timeout_minutes == 30
        assert config.classifier_provider == "openai"
        assert config.openai_api_key is None
        assert config.has_d1 is False

    def test_bad_integer(self):
        with pytest.raises(ConfigError, match="SESSION_TIMEOUT_MINUTES"):
            InsightsConfig.from_env({"HISTORY_INSIGHTS_SESSION_TIMEOUT_MINUTES": "half an hour"})

    def test_bad_timeout(self):
        with pytest.raises(ConfigError, match="CLASSIFIER_TIMEOUT"):
            InsightsConfig.from_env({"HISTORY_INSIGHTS_CLASSIFIER_TIMEOUT": "soon"})
