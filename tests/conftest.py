"""
Test fixtures for the credential vault.

This module provides shared fixtures: an in-memory SQLite database, a
per-test session, and an application config carrying a test encryption key
and payment secrets.
"""

import pytest
from sqlalchemy.orm import Session

from credential_vault.config import (
    AppConfig,
    FeatureFlags,
    PaymentConfig,
    QueueConfig,
    SecurityConfig,
    reset_config,
    set_config,
)
from credential_vault.db import DatabaseManager, get_development_config, import_all_models
from credential_vault.db.db_config import close_db, set_db_manager
from credential_vault.services import (
    CredentialSaveService,
    CredentialVault,
    PaymentWebhookService,
    PlatformRegistry,
    RequirementChecker,
)
from credential_vault.utils.logger import reset_logging

TEST_ENCRYPTION_KEY = "0123456789abcdef" * 4
TEST_WEBHOOK_SECRET = "whsec_test_secret"
TEST_KEY_SECRET = "rzp_test_key_secret"


@pytest.fixture(autouse=True)
def app_config():
    """Application config with a valid key and no queue logging."""
    config = AppConfig(
        security=SecurityConfig(encryption_key=TEST_ENCRYPTION_KEY),
        payment=PaymentConfig(webhook_secret=TEST_WEBHOOK_SECRET, key_secret=TEST_KEY_SECRET),
        features=FeatureFlags(enable_logs_queue=False),
        queue=QueueConfig(connection_string=""),
    )
    set_config(config)
    yield config
    reset_config()
    reset_logging()


@pytest.fixture(scope="session")
def db_manager() -> DatabaseManager:
    """Create database manager over in-memory SQLite with all models registered."""
    import_all_models()
    manager = DatabaseManager(get_development_config(), development_mode=True)
    set_db_manager(manager)
    yield manager
    close_db()


@pytest.fixture(scope="function")
def db_session(db_manager: DatabaseManager) -> Session:
    """
    Create a database session for each test.

    Tables are created before and dropped after every test so no rows leak
    between tests.
    """
    session = db_manager.get_session()
    db_manager.create_tables()

    yield session

    session.rollback()
    db_manager.close_session()
    db_manager.drop_tables()


@pytest.fixture
def user_id() -> str:
    return "8c1a4a3e-5b59-4f0e-9a57-2f7b1c0d9e11"


@pytest.fixture
def agent(db_session):
    """Active agent requiring no platforms."""
    from tests.fixtures.factories import AgentFactory

    return AgentFactory()


# ==================== SERVICE FIXTURES ====================


@pytest.fixture
def vault(db_session) -> CredentialVault:
    return CredentialVault(db_session)


@pytest.fixture
def platform_registry(db_session) -> PlatformRegistry:
    return PlatformRegistry(db_session)


@pytest.fixture
def requirement_checker(db_session) -> RequirementChecker:
    return RequirementChecker(db_session)


@pytest.fixture
def save_service(db_session) -> CredentialSaveService:
    return CredentialSaveService(db_session)


@pytest.fixture
def webhook_service(db_session) -> PaymentWebhookService:
    return PaymentWebhookService(db_session)
