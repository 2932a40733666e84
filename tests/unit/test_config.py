"""
Unit tests for application configuration.
"""

import pytest
from pydantic import ValidationError as PydanticValidationError

from credential_vault.config import (
    AppConfig,
    LoggingConfig,
    get_config,
    reset_config,
    set_config,
)


class TestAppConfigFromEnv:
    """Test environment-driven defaults."""

    def test_reads_security_and_payment_secrets(self, monkeypatch):
        """Test the key and payment secrets come from the environment."""
        monkeypatch.setenv("CREDENTIAL_ENCRYPTION_KEY", "ab" * 32)
        monkeypatch.setenv("PAYMENT_WEBHOOK_SECRET", "whsec")
        monkeypatch.setenv("PAYMENT_KEY_SECRET", "rzp_key_secret")

        config = AppConfig.from_env()

        assert config.security.encryption_key == "ab" * 32
        assert config.payment.webhook_secret == "whsec"
        assert config.payment.key_secret == "rzp_key_secret"

    def test_secrets_hidden_from_repr(self, monkeypatch):
        """Test secrets never appear in the config repr."""
        monkeypatch.setenv("CREDENTIAL_ENCRYPTION_KEY", "cd" * 32)
        monkeypatch.setenv("PAYMENT_WEBHOOK_SECRET", "whsec_hidden")
        monkeypatch.setenv("PAYMENT_KEY_SECRET", "key_hidden")

        rendered = repr(AppConfig.from_env())

        assert "cd" * 32 not in rendered
        assert "whsec_hidden" not in rendered
        assert "key_hidden" not in rendered

    def test_missing_key_does_not_fail_config(self, monkeypatch):
        """Test configuration loads without a key; the key is checked at first use."""
        monkeypatch.delenv("CREDENTIAL_ENCRYPTION_KEY", raising=False)

        assert AppConfig.from_env().security.encryption_key is None

    def test_database_url(self, monkeypatch):
        """Test DATABASE_URL sets the connection string."""
        monkeypatch.setenv("DATABASE_URL", "postgresql://vault@localhost/vault")

        assert AppConfig().database.connection_string == "postgresql://vault@localhost/vault"

    def test_feature_flag(self, monkeypatch):
        """Test queue logging is enabled only by an explicit true."""
        monkeypatch.setenv("ENABLE_LOGS_QUEUE", "TRUE")
        assert AppConfig().features.enable_logs_queue is True

        monkeypatch.setenv("ENABLE_LOGS_QUEUE", "yes")
        assert AppConfig().features.enable_logs_queue is False

    def test_oauth_defaults(self):
        """Test the refresh buffer is five minutes and the timeout thirty seconds."""
        config = AppConfig()

        assert config.oauth.refresh_buffer_seconds == 300
        assert config.oauth.token_request_timeout == 30


class TestLoggingConfig:
    def test_level_normalised(self):
        """Test log levels are upper-cased."""
        assert LoggingConfig(level="debug").level == "DEBUG"

    def test_invalid_level(self):
        """Test unknown levels are rejected."""
        with pytest.raises(PydanticValidationError):
            LoggingConfig(level="verbose")


class TestGlobalConfig:
    """Test the module-level config instance."""

    def test_set_and_get(self, app_config):
        """Test set_config replaces the instance get_config returns."""
        assert get_config() is app_config

        replacement = AppConfig(environment="test")
        set_config(replacement)

        assert get_config() is replacement

    def test_reset_rebuilds_from_env(self, monkeypatch):
        """Test reset_config makes the next get_config read the environment."""
        monkeypatch.setenv("APP_ENV", "staging")
        reset_config()

        assert get_config().environment == "staging"

    def test_sections(self):
        """Test the config carries exactly the vault's settings sections."""
        assert set(AppConfig.model_fields) == {
            "environment",
            "debug",
            "database",
            "queue",
            "logging",
            "features",
            "security",
            "oauth",
            "payment",
        }
