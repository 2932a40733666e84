"""
Unit tests for the credential save handler.
"""

import logging

import pytest
from pydantic import ValidationError as PydanticValidationError

from credential_vault.db import UserAgentCredential
from credential_vault.enums import CredentialType
from credential_vault.exceptions import (
    AgentNotFoundError,
    ErrorCode,
    PlatformNotFoundError,
    ValidationError,
)
from credential_vault.schemas import CredentialSaveRequest

WORDPRESS_FIELDS = {
    "site_url": "https://blog.example.com",
    "username": "editor",
    "application_password": "abcd EFGH 1234 ijkl",
}


@pytest.fixture
def seeded(platform_registry):
    platform_registry.seed_default_platforms()


def make_request(agent_id, platform_slug="openai", credentials=None, **kwargs):
    return CredentialSaveRequest(
        agent_id=agent_id,
        platform_slug=platform_slug,
        credentials=credentials if credentials is not None else {"api_key": "sk-test-123"},
        **kwargs,
    )


class TestSave:
    """Test the happy paths."""

    def test_save_api_key(self, seeded, agent, save_service, vault, user_id):
        """Test a valid request is stored and retrievable."""
        assert save_service.save(user_id, make_request(agent.id)) == "saved"

        credential = vault.retrieve_simple_credentials(user_id, agent.id, "openai")
        assert credential.fields == {"api_key": "sk-test-123"}
        assert credential.credential_type == CredentialType.API_KEY

    def test_wordpress_password_whitespace_stripped(self, seeded, agent, save_service, vault, user_id):
        """Test application passwords lose all whitespace and use basic_auth."""
        save_service.save(
            user_id,
            make_request(
                agent.id, "wordpress", WORDPRESS_FIELDS, metadata={"site_name": "Blog"}
            ),
        )

        credential = vault.retrieve_simple_credentials(user_id, agent.id, "wordpress")
        assert credential.fields["application_password"] == "abcdEFGH1234ijkl"
        assert credential.fields["username"] == "editor"
        assert credential.credential_type == CredentialType.BASIC_AUTH
        assert credential.metadata == {"site_name": "Blog"}

    def test_workflow_id_alias(self, seeded, agent, save_service, vault, user_id):
        """Test the form may send workflow_id instead of agent_id."""
        request = CredentialSaveRequest.model_validate(
            {"workflow_id": agent.id, "platform_slug": "openai", "credentials": {"api_key": "k"}}
        )

        save_service.save(user_id, request)

        assert vault.retrieve_simple_credentials(user_id, agent.id, "openai") is not None

    def test_disconnect(self, seeded, agent, save_service, vault, user_id):
        """Test a disconnect request deactivates the credential."""
        save_service.save(user_id, make_request(agent.id))

        result = save_service.save(
            user_id, make_request(agent.id, credentials={}, disconnect=True)
        )

        assert result == "disconnected"
        assert vault.retrieve_simple_credentials(user_id, agent.id, "openai") is None

    def test_log_never_contains_values(self, seeded, agent, save_service, user_id, caplog):
        """Test the request log carries key names but no credential values."""
        with caplog.at_level(logging.DEBUG):
            save_service.save(
                user_id, make_request(agent.id, "wordpress", WORDPRESS_FIELDS)
            )

        assert "application_password" in caplog.text
        assert "abcd EFGH" not in caplog.text
        assert "abcdEFGH1234ijkl" not in caplog.text


class TestRejections:
    """Test requests refused before anything is written."""

    def assert_nothing_saved(self, db_session):
        assert db_session.query(UserAgentCredential).count() == 0

    def test_missing_field_names_label(self, seeded, agent, save_service, db_session, user_id):
        """Test a missing required field is reported by its label."""
        fields = {k: v for k, v in WORDPRESS_FIELDS.items() if k != "username"}

        with pytest.raises(ValidationError) as exc_info:
            save_service.save(user_id, make_request(agent.id, "wordpress", fields))

        assert exc_info.value.error_code == ErrorCode.MISSING_REQUIRED
        assert exc_info.value.user_message == "Missing required field: Username"
        self.assert_nothing_saved(db_session)

    def test_blank_field(self, seeded, agent, save_service, db_session, user_id):
        """Test a whitespace-only required field counts as missing."""
        with pytest.raises(ValidationError):
            save_service.save(user_id, make_request(agent.id, credentials={"api_key": "  "}))

        self.assert_nothing_saved(db_session)

    def test_empty_credentials(self, seeded, agent, save_service, db_session, user_id):
        """Test a save without credentials is rejected."""
        with pytest.raises(ValidationError) as exc_info:
            save_service.save(user_id, make_request(agent.id, credentials={}))

        assert exc_info.value.context["field"] == "credentials"
        self.assert_nothing_saved(db_session)

    def test_unknown_platform(self, seeded, agent, save_service, db_session, user_id):
        """Test an unknown platform slug is rejected."""
        with pytest.raises(PlatformNotFoundError) as exc_info:
            save_service.save(user_id, make_request(agent.id, "unknown_tool"))

        assert exc_info.value.status_code == 400
        self.assert_nothing_saved(db_session)

    def test_oauth_platform(self, seeded, agent, save_service, db_session, user_id):
        """Test OAuth platforms cannot be saved through the form."""
        with pytest.raises(ValidationError) as exc_info:
            save_service.save(
                user_id, make_request(agent.id, "google_analytics", {"token": "x"})
            )

        assert exc_info.value.error_code == ErrorCode.BUSINESS_RULE_VIOLATION
        self.assert_nothing_saved(db_session)

    def test_malformed_slug(self, seeded, agent, save_service, user_id):
        """Test slug format is checked first."""
        with pytest.raises(ValidationError) as exc_info:
            save_service.save(user_id, make_request(agent.id, "Open-AI"))

        assert exc_info.value.error_code == ErrorCode.INVALID_FORMAT

    def test_unknown_agent(self, seeded, save_service, db_session, user_id):
        """Test saving for an unknown agent is rejected."""
        with pytest.raises(AgentNotFoundError):
            save_service.save(user_id, make_request("no-such-agent"))

        self.assert_nothing_saved(db_session)

    def test_request_requires_agent(self):
        """Test the request schema refuses a missing agent id."""
        with pytest.raises(PydanticValidationError):
            CredentialSaveRequest(platform_slug="openai", credentials={"api_key": "k"})
