"""
Repository for platform definitions.
"""

from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..db.db_platform_models import PlatformDefinition
from ..utils.crud_helpers import create_record, get_record, list_records, update_record
from .base_repository import BaseRepository


class PlatformRepository(BaseRepository[PlatformDefinition]):
    """Reads and writes credential_platform_definitions rows."""

    def __init__(self, session: Session):
        super().__init__(session, PlatformDefinition)

    def get_by_slug(self, platform_slug: str, active_only: bool = True) -> Optional[PlatformDefinition]:
        filters: Dict[str, Any] = {"platform_slug": platform_slug}
        if active_only:
            filters["is_active"] = True
        try:
            return get_record(self.session, PlatformDefinition, filters)
        except SQLAlchemyError as e:
            self._handle_db_error(e, "get_by_slug", platform_slug=platform_slug)

    def list_active(self) -> List[PlatformDefinition]:
        """Active definitions ordered by display name."""
        try:
            return list_records(
                self.session, PlatformDefinition, {"is_active": True}, order_by="platform_name"
            )
        except SQLAlchemyError as e:
            self._handle_db_error(e, "list_active")

    def create(self, data: Dict[str, Any]) -> PlatformDefinition:
        return create_record(self.session, PlatformDefinition, data)

    def update(self, definition_id: str, data: Dict[str, Any]) -> PlatformDefinition:
        return update_record(self.session, PlatformDefinition, definition_id, data)
