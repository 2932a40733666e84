"""
Outbound OAuth 2.0 token requests.

One POST to the provider's token endpoint, form encoded. No retries: a
failed refresh is reported to the caller, who decides whether the user has
to reconnect.
"""

from typing import Optional

import requests
from pydantic import ValidationError as PydanticValidationError

from ..config import get_config
from ..constants import Limits, OAuthGrantType
from ..exceptions import TokenRefreshError
from ..schemas.credential_schemas import OAuthTokens, TokenEndpointConfig
from .logger import get_logger


def _truncate(body: str) -> str:
    return body[: Limits.UPSTREAM_BODY_MAX_CHARS]


def request_token_refresh(
    endpoint: TokenEndpointConfig, refresh_token: str, platform_slug: Optional[str] = None
) -> OAuthTokens:
    """
    Exchange a refresh token for a new token set.

    Args:
        endpoint: Token URL and client credentials
        refresh_token: Stored refresh token (plaintext, never logged)
        platform_slug: Used for log context only

    Returns:
        Parsed token response

    Raises:
        TokenRefreshError: On network failure, non-2xx status or an
            unparseable response body
    """
    logger = get_logger()
    timeout = endpoint.timeout or get_config().oauth.token_request_timeout

    try:
        response = requests.post(
            endpoint.token_url,
            data={
                "grant_type": OAuthGrantType.REFRESH_TOKEN.value,
                "refresh_token": refresh_token,
                "client_id": endpoint.client_id,
                "client_secret": endpoint.client_secret,
            },
            headers={"Accept": "application/json"},
            timeout=timeout,
        )
    except requests.RequestException as e:
        raise TokenRefreshError(
            "Token refresh request failed",
            cause=e,
            platform_slug=platform_slug,
            token_url=endpoint.token_url,
        ) from e

    if not 200 <= response.status_code < 300:
        raise TokenRefreshError(
            f"Token refresh failed with status {response.status_code}",
            platform_slug=platform_slug,
            token_url=endpoint.token_url,
            upstream_status=response.status_code,
            upstream_body=_truncate(response.text or ""),
        )

    try:
        tokens = OAuthTokens.model_validate(response.json())
    except (ValueError, PydanticValidationError) as e:
        # The body may contain tokens, so it is not attached here
        raise TokenRefreshError(
            "Token endpoint returned an unexpected response",
            platform_slug=platform_slug,
            token_url=endpoint.token_url,
            upstream_status=response.status_code,
            error_type=type(e).__name__,
        ) from None

    logger.info(
        "OAuth token refreshed at provider",
        extra={
            "platform_slug": platform_slug,
            "expires_in": tokens.expires_in,
            "rotated_refresh_token": tokens.refresh_token is not None,
        },
    )
    return tokens
