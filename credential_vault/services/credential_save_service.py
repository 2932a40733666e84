"""
Handles credential save and disconnect requests from the settings form.

Validation happens completely before anything is encrypted or written, so a
rejected request never leaves a partial record behind.
"""

import re
from typing import Callable, Dict, Optional, Tuple

from sqlalchemy.orm import Session

from ..enums import CredentialType
from ..exceptions import AgentNotFoundError, ErrorCode, PlatformNotFoundError, ValidationError
from ..repositories.agent_repository import AgentRepository
from ..schemas.credential_schemas import CredentialSaveRequest
from ..utils.logger import get_logger
from .credential_service import CredentialVault, validate_platform_slug
from .platform_service import PlatformRegistry

_WHITESPACE = re.compile(r"\s+")


def _strip_all_whitespace(value: str) -> str:
    return _WHITESPACE.sub("", value)


# WordPress shows application passwords in space-separated groups
FIELD_NORMALISERS: Dict[Tuple[str, str], Callable[[str], str]] = {
    ("wordpress", "application_password"): _strip_all_whitespace,
}


class CredentialSaveService:
    """Validates a save request against its platform and stores it through the vault."""

    def __init__(
        self,
        session: Session,
        vault: Optional[CredentialVault] = None,
        platform_registry: Optional[PlatformRegistry] = None,
        agent_repository: Optional[AgentRepository] = None,
    ):
        self.session = session
        self.vault = vault or CredentialVault(session)
        self.platform_registry = platform_registry or PlatformRegistry(session)
        self.agent_repository = agent_repository or AgentRepository(session)
        self.logger = get_logger()

    @staticmethod
    def normalise_fields(platform_slug: str, fields: Dict[str, str]) -> Dict[str, str]:
        cleaned = dict(fields)
        for (slug, name), normalise in FIELD_NORMALISERS.items():
            if slug == platform_slug and isinstance(cleaned.get(name), str):
                cleaned[name] = normalise(cleaned[name])
        return cleaned

    def save(self, user_id: str, request: CredentialSaveRequest) -> str:
        """
        Save or disconnect one platform credential for a user's agent.

        Args:
            user_id: Authenticated user
            request: Form payload

        Returns:
            "saved" or "disconnected"

        Raises:
            ValidationError: Malformed slug, missing required field, or an
                OAuth platform (those connect through the OAuth callback)
            PlatformNotFoundError: Unknown platform slug
            AgentNotFoundError: Unknown or inactive agent
        """
        # Shape only: key names and presence flags, never values
        self.logger.info(
            "Credential save request",
            extra={
                "user_id": user_id,
                "agent_id": request.agent_id,
                "platform_slug": request.platform_slug,
                "credential_keys": sorted(request.credentials),
                "has_credentials": bool(request.credentials),
                "has_metadata": bool(request.metadata),
                "disconnect": request.disconnect,
            },
        )

        validate_platform_slug(request.platform_slug)

        if self.agent_repository.get_active(request.agent_id) is None:
            raise AgentNotFoundError(agent_id=request.agent_id)

        if request.disconnect:
            self.vault.disconnect_credentials(user_id, request.agent_id, request.platform_slug)
            return "disconnected"

        definition = self.platform_registry.get_definition(request.platform_slug)
        if definition is None:
            raise PlatformNotFoundError(request.platform_slug)

        if definition.credential_type == CredentialType.OAUTH2:
            raise ValidationError(
                f"{definition.platform_name} connects through OAuth, not a credential form",
                field="platform_slug",
                error_code=ErrorCode.BUSINESS_RULE_VIOLATION,
                platform_slug=request.platform_slug,
            )

        if not request.credentials:
            raise ValidationError(
                "Credentials are required", field="credentials", error_code=ErrorCode.MISSING_REQUIRED
            )

        self.platform_registry.validate_fields(definition, request.credentials)
        fields = self.normalise_fields(request.platform_slug, request.credentials)

        self.vault.store_simple_credentials(
            user_id,
            request.agent_id,
            request.platform_slug,
            fields,
            credential_type=definition.credential_type,
            metadata=request.metadata,
        )
        return "saved"
