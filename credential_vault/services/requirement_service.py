"""
Checks whether a user has connected every platform an agent requires.
"""

from typing import Optional

from sqlalchemy.orm import Session

from ..exceptions import AgentNotFoundError
from ..repositories.agent_repository import AgentRepository
from ..repositories.credential_repository import CredentialRepository
from ..schemas.credential_schemas import RequirementCheckResult
from ..utils.logger import get_logger


class RequirementChecker:
    """
    Read-only pre-execution gate.

    Nothing is cached: credentials can be disconnected between two runs, so
    every call reads the current state.
    """

    def __init__(
        self,
        session: Session,
        agent_repository: Optional[AgentRepository] = None,
        credential_repository: Optional[CredentialRepository] = None,
    ):
        self.session = session
        self.agent_repository = agent_repository or AgentRepository(session)
        self.credential_repository = credential_repository or CredentialRepository(session)
        self.logger = get_logger()

    def check_requirements(self, user_id: str, agent_id: str) -> RequirementCheckResult:
        """
        Compare the agent's required platforms with the user's active credentials.

        Returns:
            has_all, plus the missing slugs in the agent's declared order

        Raises:
            AgentNotFoundError: If the agent does not exist or is inactive
        """
        agent = self.agent_repository.get_active(agent_id)
        if agent is None:
            raise AgentNotFoundError(agent_id=agent_id)

        required = list(agent.required_platforms or [])
        if not required:
            return RequirementCheckResult(has_all=True, missing=[], required=[])

        present = set(self.credential_repository.active_platform_slugs(user_id, agent_id))
        missing = [slug for slug in required if slug not in present]

        self.logger.debug(
            "Checked credential requirements",
            extra={
                "user_id": user_id,
                "agent_id": agent_id,
                "required": required,
                "missing_platforms": missing,
            },
        )
        return RequirementCheckResult(has_all=not missing, missing=missing, required=required)
