"""
Unit tests for the outbound token refresh request.
"""

from unittest.mock import MagicMock, patch

import pytest
import requests

from credential_vault.config import AppConfig, OAuthConfig, set_config
from credential_vault.exceptions import ErrorCode, TokenRefreshError, ValidationError
from credential_vault.schemas import PlatformDefinitionRead, TokenEndpointConfig
from credential_vault.utils.oauth_utils import request_token_refresh

ENDPOINT = TokenEndpointConfig(
    token_url="https://auth.example.com/token", client_id="cid", client_secret="csecret"
)


def make_response(status_code=200, payload=None, text="", json_error=None):
    response = MagicMock()
    response.status_code = status_code
    response.text = text
    if json_error:
        response.json.side_effect = json_error
    else:
        response.json.return_value = payload
    return response


@patch("credential_vault.utils.oauth_utils.requests.post")
class TestRequestTokenRefresh:
    """Test the token endpoint call and its failure modes."""

    def test_parses_token_response(self, mock_post):
        """Test a 200 response is parsed and provider extras are ignored."""
        mock_post.return_value = make_response(
            payload={
                "access_token": "new-access",
                "expires_in": 3599,
                "token_type": "Bearer",
                "id_token": "ignored",
            }
        )

        tokens = request_token_refresh(ENDPOINT, "refresh-1", "google_analytics")

        assert tokens.access_token == "new-access"
        assert tokens.expires_in == 3599
        assert tokens.refresh_token is None
        assert not hasattr(tokens, "id_token")

    def test_accepts_any_2xx(self, mock_post):
        """Test success is any status from 200 to 299."""
        mock_post.return_value = make_response(status_code=201, payload={"access_token": "a"})

        assert request_token_refresh(ENDPOINT, "r").access_token == "a"

    def test_uses_configured_timeout(self, mock_post):
        """Test the timeout falls back to the oauth config."""
        set_config(AppConfig(oauth=OAuthConfig(token_request_timeout=7)))
        mock_post.return_value = make_response(payload={"access_token": "a"})

        request_token_refresh(ENDPOINT, "r")

        assert mock_post.call_args.kwargs["timeout"] == 7

    def test_endpoint_timeout_wins(self, mock_post):
        """Test an endpoint-specific timeout overrides the config."""
        mock_post.return_value = make_response(payload={"access_token": "a"})

        request_token_refresh(ENDPOINT.model_copy(update={"timeout": 3}), "r")

        assert mock_post.call_args.kwargs["timeout"] == 3

    @pytest.mark.parametrize("status_code", [400, 401, 500, 302])
    def test_non_2xx_raises(self, mock_post, status_code):
        """Test every status outside 2xx is a TokenRefreshError with status and body."""
        mock_post.return_value = make_response(status_code=status_code, text="nope")

        with pytest.raises(TokenRefreshError) as exc_info:
            request_token_refresh(ENDPOINT, "r", "ahrefs")

        context = exc_info.value.context
        assert context["upstream_status"] == status_code
        assert context["upstream_body"] == "nope"
        assert context["platform_slug"] == "ahrefs"
        assert exc_info.value.error_code == ErrorCode.EXTERNAL_API_ERROR

    def test_body_truncated(self, mock_post):
        """Test the upstream body is cut to 500 characters."""
        mock_post.return_value = make_response(status_code=400, text="e" * 2000)

        with pytest.raises(TokenRefreshError) as exc_info:
            request_token_refresh(ENDPOINT, "r")

        assert exc_info.value.context["upstream_body"] == "e" * 500

    def test_network_error(self, mock_post):
        """Test a connection failure becomes a TokenRefreshError."""
        mock_post.side_effect = requests.ConnectionError("unreachable")

        with pytest.raises(TokenRefreshError) as exc_info:
            request_token_refresh(ENDPOINT, "r")

        assert exc_info.value.context["cause"]["type"] == "ConnectionError"
        assert "upstream_status" not in exc_info.value.context

    def test_unparseable_body(self, mock_post):
        """Test a 2xx without JSON is rejected without attaching the body."""
        mock_post.return_value = make_response(
            text="<html>secret</html>", json_error=ValueError("no json")
        )

        with pytest.raises(TokenRefreshError) as exc_info:
            request_token_refresh(ENDPOINT, "r")

        assert "upstream_body" not in exc_info.value.context
        assert exc_info.value.context["error_type"] == "ValueError"

    def test_missing_access_token(self, mock_post):
        """Test a response without access_token is rejected."""
        mock_post.return_value = make_response(payload={"expires_in": 60})

        with pytest.raises(TokenRefreshError):
            request_token_refresh(ENDPOINT, "r")

    def test_unbounded_lifetime_rejected(self, mock_post):
        """Test an expires_in beyond any representable expiry is an upstream error."""
        mock_post.return_value = make_response(payload={"access_token": "A2", "expires_in": 10**12})

        with pytest.raises(TokenRefreshError) as exc_info:
            request_token_refresh(ENDPOINT, "r")

        assert exc_info.value.context["error_type"] == "ValidationError"


class TestTokenEndpointConfig:
    """Test building the endpoint from a platform definition."""

    def make_definition(self, oauth_config):
        return PlatformDefinitionRead(
            id="p1",
            platform_slug="google_analytics",
            platform_name="Google Analytics",
            credential_type="oauth2",
            oauth_config=oauth_config,
        )

    def test_from_platform(self):
        """Test the token URL comes from oauth_config."""
        definition = self.make_definition({"token_url": "https://oauth2.googleapis.com/token"})

        endpoint = TokenEndpointConfig.from_platform(definition, "cid", "csecret")

        assert endpoint.token_url == "https://oauth2.googleapis.com/token"
        assert endpoint.client_id == "cid"
        assert "csecret" not in repr(endpoint)

    def test_platform_without_oauth_config(self):
        """Test a platform with no oauth_config cannot be refreshed."""
        with pytest.raises(ValidationError) as exc_info:
            TokenEndpointConfig.from_platform(self.make_definition(None), "cid", "csecret")

        assert exc_info.value.context["field"] == "oauth_config"
