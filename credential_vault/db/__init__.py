"""
SQLAlchemy models and database plumbing.

This module provides a common entry point for all models.
"""

# Import base definitions
from .db_base import (
    JSON,
    TimestampMixin,
    UUIDMixin,
    as_utc,
    utc_now,
)

# Import configuration
from .db_config import (
    Base,
    DatabaseManager,
    get_db_manager,
    get_development_config,
    import_all_models,
    init_db,
    initialize_db,
    set_db_manager,
)

# Import models
from .db_agent_models import Agent
from .db_credential_models import UserAgentCredential
from .db_payment_models import CreditPurchase, UserCreditBalance
from .db_platform_models import PlatformDefinition

__all__ = [
    # Base definitions
    "Base",
    "JSON",
    "TimestampMixin",
    "UUIDMixin",
    "as_utc",
    "utc_now",
    # Configuration
    "DatabaseManager",
    "get_db_manager",
    "get_development_config",
    "import_all_models",
    "init_db",
    "initialize_db",
    "set_db_manager",
    # Models
    "Agent",
    "CreditPurchase",
    "PlatformDefinition",
    "UserAgentCredential",
    "UserCreditBalance",
]
