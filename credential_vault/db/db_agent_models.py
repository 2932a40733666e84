"""
Agent (workflow) model, reduced to what the vault reads.
"""

from sqlalchemy import Boolean, Column, Integer, String

from .db_base import JSON, TimestampMixin, UUIDMixin
from .db_config import Base


class Agent(Base, UUIDMixin, TimestampMixin):
    """A purchasable workflow and the platforms it needs credentials for."""

    __tablename__ = "agents"

    name = Column(String(200), nullable=False)
    required_platforms = Column(JSON, nullable=False, default=list)
    credit_cost = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
