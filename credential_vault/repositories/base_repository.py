"""
Shared repository plumbing: one session, one model, and the translation of
SQLAlchemy failures into vault errors.
"""

from contextlib import contextmanager
from typing import Any, Generic, NoReturn, Type, TypeVar

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..exceptions import ErrorCode, RepositoryError, duplicate
from ..utils.logger import get_logger

T = TypeVar("T")

_UNIQUE_MARKERS = ("unique", "duplicate")


class BaseRepository(Generic[T]):
    def __init__(self, session: Session, entity_class: Type[T]):
        self.session = session
        self.entity_class = entity_class
        self.entity_name = entity_class.__name__
        self.logger = get_logger()

    def _handle_db_error(self, e: Exception, operation_name: str, **context: Any) -> NoReturn:
        """
        Roll back, then re-raise ``e`` as a RepositoryError.

        A unique violation becomes DUPLICATE (409) so a lost insert race reads
        as "already exists". Other integrity failures are CONSTRAINT_VIOLATION
        and remaining SQLAlchemy errors are DATABASE_ERROR. Vault errors and
        non-database exceptions pass through unchanged.
        """
        if isinstance(e, RepositoryError):
            raise e
        if not isinstance(e, SQLAlchemyError):
            self.session.rollback()
            raise e

        self.session.rollback()
        details = {"operation_name": operation_name, "entity_type": self.entity_name, **context}

        if isinstance(e, IntegrityError):
            reason = str(getattr(e, "orig", None) or e).lower()
            if any(marker in reason for marker in _UNIQUE_MARKERS):
                self.logger.warning(f"{self.entity_name} already exists", extra=details)
                raise duplicate(self.entity_name, cause=e, **details) from e
            code, message = ErrorCode.CONSTRAINT_VIOLATION, "constraint violated"
        else:
            code, message = ErrorCode.DATABASE_ERROR, f"{operation_name} failed"

        raise RepositoryError(
            f"{self.entity_name} {message}", error_code=code, cause=e, **details
        ) from e

    @contextmanager
    def _write_operation(self, operation_name: str, **context: Any):
        """Commit the block's changes, or roll back and map the failure."""
        try:
            yield self.session
            self.session.commit()
        except Exception as e:
            self._handle_db_error(e, operation_name, **context)
