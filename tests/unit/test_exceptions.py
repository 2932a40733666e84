"""
Unit tests for the exception hierarchy.
"""

import logging

import pytest

from credential_vault.exceptions import (
    GENERIC_USER_MESSAGE,
    AgentNotFoundError,
    BaseError,
    CredentialDecryptionError,
    EncryptionConfigurationError,
    ErrorCode,
    PlatformNotFoundError,
    RefreshTokenUnavailableError,
    RepositoryError,
    TokenRefreshError,
    ValidationError,
    clear_correlation_id,
    duplicate,
    get_correlation_id,
    missing_field,
    not_found,
    set_correlation_id,
)


@pytest.fixture
def correlation_id():
    set_correlation_id("corr-abc")
    yield "corr-abc"
    clear_correlation_id()


class TestBaseError:
    """Test context, serialisation and logging."""

    def test_context_and_ids(self):
        """Test every error gets an id and keeps its context."""
        error = BaseError("boom", platform_slug="openai")

        assert error.error_id
        assert error.context["platform_slug"] == "openai"
        assert error.context["error_id"] == error.error_id
        assert str(error) == "boom"

    def test_to_dict(self, correlation_id):
        """Test the API shape carries code, message and correlation id."""
        error = ValidationError("Bad slug", field="platform_slug", error_code=ErrorCode.INVALID_FORMAT)

        payload = error.to_dict()["error"]

        assert payload["code"] == "2001"
        assert payload["message"] == "Bad slug"
        assert payload["correlation_id"] == "corr-abc"
        assert payload["context"] == {"field": "platform_slug"}

    def test_cause_included_on_request(self):
        """Test cause details are only serialised when asked for."""
        error = RepositoryError("db", cause=RuntimeError("connection reset"))

        assert "cause" not in error.to_dict()["error"]
        cause = error.to_dict(include_cause=True)["error"]["cause"]
        assert cause == {"type": "RuntimeError", "message": "connection reset"}

    def test_error_chain(self):
        """Test the chain walks through causes."""
        root = RuntimeError("root")
        middle = RepositoryError("middle", cause=root)
        top = BaseError("top", cause=middle)

        assert top.error_chain == [top, middle, root]

    def test_logged_by_severity(self, caplog):
        """Test server errors log at ERROR and client errors at WARNING."""
        with caplog.at_level(logging.INFO):
            BaseError("server side")
            ValidationError("client side")

        levels = {r.levelno for r in caplog.records}
        assert logging.ERROR in levels
        assert logging.WARNING in levels


class TestUserMessage:
    """Test what end users may see."""

    @pytest.mark.parametrize(
        "make_error",
        [
            EncryptionConfigurationError,
            CredentialDecryptionError,
            lambda: RepositoryError("insert failed on user_agent_credentials"),
        ],
    )
    def test_system_failures_are_generic(self, make_error):
        """Test 5xx errors never expose internals."""
        error = make_error()
        assert error.user_message == GENERIC_USER_MESSAGE
        assert error.to_dict()["error"]["message"] == GENERIC_USER_MESSAGE

    @pytest.mark.parametrize("error_class", [RefreshTokenUnavailableError, TokenRefreshError])
    def test_refresh_failures_ask_to_reconnect(self, error_class):
        """Test refresh failures tell the user to reconnect."""
        assert "reconnect" in error_class().user_message

    def test_field_errors_are_specific(self):
        """Test validation messages name the field label."""
        assert missing_field("api_key", "API Key").user_message == "Missing required field: API Key"


class TestErrorFactories:
    def test_not_found(self):
        """Test not_found builds a 404 naming the identifiers."""
        error = not_found("Agent", agent_id="a1")

        assert error.status_code == 404
        assert error.error_code == ErrorCode.NOT_FOUND
        assert error.message == "Agent not found: agent_id=a1"

    def test_duplicate(self):
        """Test duplicate builds a 409."""
        error = duplicate("CreditPurchase", payment_id="pay_1")

        assert error.status_code == 409
        assert error.error_code == ErrorCode.DUPLICATE

    def test_missing_field_without_label(self):
        """Test the field name is used when no label is given."""
        error = missing_field("username")

        assert error.message == "Missing required field: username"
        assert error.context["field"] == "username"


class TestCredentialErrors:
    def test_codes(self):
        """Test each credential error carries its code and status."""
        assert EncryptionConfigurationError().error_code == ErrorCode.CONFIGURATION_ERROR
        assert CredentialDecryptionError().error_code == ErrorCode.DECRYPTION_FAILED
        assert RefreshTokenUnavailableError().status_code == 401
        assert TokenRefreshError().status_code == 502
        assert AgentNotFoundError(agent_id="a1").status_code == 404

    def test_platform_not_found(self):
        """Test unknown platforms are a client error naming the slug."""
        error = PlatformNotFoundError("moz")

        assert error.status_code == 400
        assert error.context["platform_slug"] == "moz"
        assert error.user_message == "Unknown platform: moz"


class TestCorrelationId:
    def test_set_get_clear(self):
        """Test the thread-local correlation id lifecycle."""
        set_correlation_id("c-1")
        assert get_correlation_id() == "c-1"

        clear_correlation_id()
        assert get_correlation_id() is None
