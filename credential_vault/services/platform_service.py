"""
Platform definition registry.

Definitions describe the credential form of each platform. The save handler
validates incoming fields against them; the OAuth path reads token endpoints
from them.
"""

from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from ..enums import CredentialType
from ..exceptions import missing_field
from ..repositories.platform_repository import PlatformRepository
from ..schemas.platform_schemas import (
    PlatformDefinitionCreate,
    PlatformDefinitionRead,
    PlatformField,
    PlatformOAuthConfig,
)
from ..utils.logger import get_logger

GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"

DEFAULT_PLATFORMS: List[PlatformDefinitionCreate] = [
    PlatformDefinitionCreate(
        platform_slug="wordpress",
        platform_name="WordPress (Application Password)",
        credential_type=CredentialType.BASIC_AUTH,
        field_schema=[
            PlatformField(
                name="site_url",
                label="WordPress Site URL",
                type="url",
                placeholder="https://yoursite.com",
            ),
            PlatformField(name="username", label="Username"),
            PlatformField(
                name="application_password",
                label="Application Password",
                type="password",
                help_text="Generate in WordPress: Users > Profile > Application Passwords",
            ),
        ],
    ),
    PlatformDefinitionCreate(
        platform_slug="openai",
        platform_name="OpenAI",
        credential_type=CredentialType.API_KEY,
        field_schema=[
            PlatformField(name="api_key", label="API Key", type="password", placeholder="sk-...")
        ],
    ),
    PlatformDefinitionCreate(
        platform_slug="ahrefs",
        platform_name="Ahrefs",
        credential_type=CredentialType.API_KEY,
        field_schema=[PlatformField(name="api_token", label="API Token", type="password")],
    ),
    PlatformDefinitionCreate(
        platform_slug="semrush",
        platform_name="SEMrush",
        credential_type=CredentialType.API_KEY,
        field_schema=[PlatformField(name="api_key", label="API Key", type="password")],
    ),
    PlatformDefinitionCreate(
        platform_slug="wordpress_oauth",
        platform_name="WordPress (OAuth)",
        credential_type=CredentialType.OAUTH2,
        oauth_config=PlatformOAuthConfig(
            auth_url="https://public-api.wordpress.com/oauth2/authorize",
            token_url="https://public-api.wordpress.com/oauth2/token",
            scope="global",
            provider="wordpress",
        ),
    ),
    PlatformDefinitionCreate(
        platform_slug="google_search_console",
        platform_name="Google Search Console",
        credential_type=CredentialType.OAUTH2,
        oauth_config=PlatformOAuthConfig(
            auth_url=GOOGLE_AUTH_URL,
            token_url=GOOGLE_TOKEN_URL,
            scope="https://www.googleapis.com/auth/webmasters.readonly",
            provider="google",
        ),
    ),
    PlatformDefinitionCreate(
        platform_slug="google_analytics",
        platform_name="Google Analytics",
        credential_type=CredentialType.OAUTH2,
        oauth_config=PlatformOAuthConfig(
            auth_url=GOOGLE_AUTH_URL,
            token_url=GOOGLE_TOKEN_URL,
            scope="https://www.googleapis.com/auth/analytics.readonly",
            provider="google",
        ),
    ),
]


class PlatformRegistry:
    """Service over PlatformRepository returning read schemas."""

    def __init__(self, session: Session, platform_repository: Optional[PlatformRepository] = None):
        self.session = session
        self.platform_repository = platform_repository or PlatformRepository(session)
        self.logger = get_logger()

    def get_definition(self, platform_slug: str) -> Optional[PlatformDefinitionRead]:
        """Active definition for the slug, or None."""
        definition = self.platform_repository.get_by_slug(platform_slug)
        if definition is None:
            return None
        return PlatformDefinitionRead.model_validate(definition)

    def list_definitions(self) -> List[PlatformDefinitionRead]:
        return [
            PlatformDefinitionRead.model_validate(definition)
            for definition in self.platform_repository.list_active()
        ]

    def register_definition(self, create: PlatformDefinitionCreate) -> PlatformDefinitionRead:
        """
        Create a definition, or replace the stored one with the same slug.

        A replaced definition is reactivated.
        """
        data = create.model_dump(mode="json")
        existing = self.platform_repository.get_by_slug(create.platform_slug, active_only=False)

        if existing is None:
            definition = self.platform_repository.create(data)
        else:
            definition = self.platform_repository.update(existing.id, {**data, "is_active": True})

        self.logger.info(
            "Registered platform definition",
            extra={
                "platform_slug": create.platform_slug,
                "credential_type": create.credential_type.value,
                "replaced": existing is not None,
            },
        )
        return PlatformDefinitionRead.model_validate(definition)

    def seed_default_platforms(self) -> List[PlatformDefinitionRead]:
        """Install or refresh the built-in platform definitions."""
        return [self.register_definition(create) for create in DEFAULT_PLATFORMS]

    @staticmethod
    def validate_fields(definition: PlatformDefinitionRead, fields: Dict[str, str]) -> None:
        """
        Check that every required field is present and not blank.

        Raises:
            ValidationError: MISSING_REQUIRED naming the first missing field's label
        """
        for field in definition.required_fields:
            value = fields.get(field.name)
            if value is None or (isinstance(value, str) and not value.strip()):
                raise missing_field(field.name, field.label)
