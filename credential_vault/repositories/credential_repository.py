"""
Repository for encrypted user credentials.

Every operation is scoped by the (user_id, agent_id, platform_slug) triple.
Writes are single INSERT ... ON CONFLICT DO UPDATE statements so concurrent
stores on one triple resolve last-writer-wins inside the database. This
layer only sees ciphertext: encryption belongs to the vault service.
"""

import uuid
from typing import Any, Dict, List, Optional

from sqlalchemy import inspect
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..db.db_base import as_utc, utc_now
from ..db.db_credential_models import UserAgentCredential
from ..enums import CredentialType
from ..exceptions import ErrorCode, RepositoryError
from ..schemas.credential_schemas import CredentialSummary
from .base_repository import BaseRepository

TRIPLE_COLUMNS = ("user_id", "agent_id", "platform_slug")

# Set on insert only; a conflict update keeps the original values
_INSERT_ONLY_COLUMNS = {"id", "created_at", *TRIPLE_COLUMNS}


class CredentialRepository(BaseRepository[UserAgentCredential]):
    """Persistence for UserAgentCredential rows."""

    def __init__(self, session: Session):
        super().__init__(session, UserAgentCredential)

    def _dialect_insert(self):
        dialect_name = self.session.get_bind().dialect.name
        if dialect_name == "postgresql":
            return postgresql_insert
        if dialect_name == "sqlite":
            return sqlite_insert
        raise RepositoryError(
            f"Credential upsert is not supported on dialect {dialect_name}",
            error_code=ErrorCode.CONFIGURATION_ERROR,
            dialect=dialect_name,
        )

    @staticmethod
    def _to_column_values(values: Dict[str, Any]) -> Dict[str, Any]:
        # Attribute names differ from column keys for metadata
        mapper = inspect(UserAgentCredential)
        column_values = {}
        for attr, value in values.items():
            column = mapper.get_property(attr).columns[0]
            if isinstance(value, CredentialType):
                value = value.value
            column_values[column.key] = value
        return column_values

    def _triple_query(self, user_id: str, agent_id: str, platform_slug: Optional[str] = None):
        query = (
            self.session.query(UserAgentCredential)
            .filter(UserAgentCredential.user_id == user_id)
            .filter(UserAgentCredential.agent_id == agent_id)
        )
        if platform_slug is not None:
            query = query.filter(UserAgentCredential.platform_slug == platform_slug)
        return query

    def upsert(self, values: Dict[str, Any]) -> UserAgentCredential:
        """
        Insert or replace the record for the values' triple in one statement.

        Args:
            values: Attribute values including user_id, agent_id and
                platform_slug. Payload columns not given keep their stored value.

        Returns:
            The stored record, re-read after commit

        Raises:
            RepositoryError: If the statement fails
        """
        missing = [column for column in TRIPLE_COLUMNS if not values.get(column)]
        if missing:
            raise RepositoryError(
                "Credential upsert requires user_id, agent_id and platform_slug",
                error_code=ErrorCode.MISSING_REQUIRED,
                status_code=400,
                missing_columns=missing,
            )

        now = utc_now()
        row = self._to_column_values({**values, "is_active": True, "updated_at": now})
        row.setdefault("id", str(uuid.uuid4()))
        row.setdefault("created_at", now)

        insert = self._dialect_insert()
        stmt = insert(UserAgentCredential.__table__).values(**row)
        stmt = stmt.on_conflict_do_update(
            index_elements=list(TRIPLE_COLUMNS),
            set_={key: stmt.excluded[key] for key in row if key not in _INSERT_ONLY_COLUMNS},
        )

        with self._write_operation(
            "upsert",
            user_id=values["user_id"],
            agent_id=values["agent_id"],
            platform_slug=values["platform_slug"],
        ):
            self.session.execute(stmt)

        self.logger.debug(
            "Credential record upserted",
            extra={
                "user_id": values["user_id"],
                "agent_id": values["agent_id"],
                "platform_slug": values["platform_slug"],
                "credential_type": row.get("credential_type"),
            },
        )

        record = self.get(values["user_id"], values["agent_id"], values["platform_slug"])
        if record is None:
            raise RepositoryError(
                "Credential record missing after upsert",
                platform_slug=values["platform_slug"],
            )
        return record

    def get(
        self, user_id: str, agent_id: str, platform_slug: str
    ) -> Optional[UserAgentCredential]:
        """Active record for the triple, or None."""
        try:
            return (
                self._triple_query(user_id, agent_id, platform_slug)
                .filter(UserAgentCredential.is_active.is_(True))
                .populate_existing()
                .first()
            )
        except SQLAlchemyError as e:
            self._handle_db_error(e, "get", platform_slug=platform_slug)

    def get_all(self, user_id: str, agent_id: str) -> List[UserAgentCredential]:
        """All active records of a user for one agent, ordered by platform slug."""
        try:
            return (
                self._triple_query(user_id, agent_id)
                .filter(UserAgentCredential.is_active.is_(True))
                .populate_existing()
                .order_by(UserAgentCredential.platform_slug)
                .all()
            )
        except SQLAlchemyError as e:
            self._handle_db_error(e, "get_all", agent_id=agent_id)

    def active_platform_slugs(self, user_id: str, agent_id: str) -> List[str]:
        try:
            rows = (
                self.session.query(UserAgentCredential.platform_slug)
                .filter(UserAgentCredential.user_id == user_id)
                .filter(UserAgentCredential.agent_id == agent_id)
                .filter(UserAgentCredential.is_active.is_(True))
                .order_by(UserAgentCredential.platform_slug)
                .all()
            )
        except SQLAlchemyError as e:
            self._handle_db_error(e, "active_platform_slugs", agent_id=agent_id)
        return [slug for (slug,) in rows]

    def deactivate(self, user_id: str, agent_id: str, platform_slug: str) -> bool:
        """
        Soft-delete: mark the record inactive, leaving the payload in place.

        Returns:
            False when no record exists for the triple
        """
        with self._write_operation("deactivate", platform_slug=platform_slug):
            updated = self._triple_query(user_id, agent_id, platform_slug).update(
                {"is_active": False, "updated_at": utc_now()}, synchronize_session=False
            )
        return updated > 0

    def delete(self, user_id: str, agent_id: str, platform_slug: str) -> bool:
        """
        Hard-delete the record.

        Returns:
            False when no record exists for the triple
        """
        with self._write_operation("delete", platform_slug=platform_slug):
            deleted = self._triple_query(user_id, agent_id, platform_slug).delete(
                synchronize_session=False
            )
        return deleted > 0

    def list_summaries(self, user_id: str, agent_id: str) -> List[CredentialSummary]:
        """Status of every record, active or not, without touching ciphertext."""
        try:
            records = (
                self._triple_query(user_id, agent_id)
                .populate_existing()
                .order_by(UserAgentCredential.platform_slug)
                .all()
            )
        except SQLAlchemyError as e:
            self._handle_db_error(e, "list_summaries", agent_id=agent_id)

        return [
            CredentialSummary(
                platform_slug=record.platform_slug,
                credential_type=record.credential_type,
                is_active=record.is_active,
                expires_at=as_utc(record.token_expires_at),
                metadata=record.credential_metadata or {},
                created_at=as_utc(record.created_at),
                updated_at=as_utc(record.updated_at),
            )
            for record in records
        ]
