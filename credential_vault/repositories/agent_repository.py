"""
Read access to agents (workflows).
"""

from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..db.db_agent_models import Agent
from ..utils.crud_helpers import get_record
from .base_repository import BaseRepository


class AgentRepository(BaseRepository[Agent]):
    def __init__(self, session: Session):
        super().__init__(session, Agent)

    def get_active(self, agent_id: str) -> Optional[Agent]:
        """The agent if it exists and is active, else None."""
        try:
            return get_record(self.session, Agent, {"id": agent_id, "is_active": True})
        except SQLAlchemyError as e:
            self._handle_db_error(e, "get_active", agent_id=agent_id)
