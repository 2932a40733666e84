"""Repositories for the credential vault."""

from .agent_repository import AgentRepository
from .base_repository import BaseRepository
from .credential_repository import CredentialRepository
from .payment_repository import PaymentRepository
from .platform_repository import PlatformRepository

__all__ = [
    "AgentRepository",
    "BaseRepository",
    "CredentialRepository",
    "PaymentRepository",
    "PlatformRepository",
]
