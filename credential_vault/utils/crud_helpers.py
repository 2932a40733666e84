"""
Generic CRUD helpers shared by the repositories.

These work with any SQLAlchemy model. Credential rows are never written
through here: they go through the dialect-native upsert in
CredentialRepository so the (user, agent, platform) triple stays atomic.
"""

from typing import Any, Dict, List, Optional, Type, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Query, Session

from ..db.db_base import utc_now
from ..exceptions import RepositoryError, not_found
from ..utils.logger import get_logger

T = TypeVar("T")


def _apply_filters(query: Query, model_class: Type[T], filters: Optional[Dict[str, Any]]) -> Query:
    # None values are skipped so callers can pass optional filters straight through
    for key, value in (filters or {}).items():
        if hasattr(model_class, key) and value is not None:
            query = query.filter(getattr(model_class, key) == value)
    return query


def create_record(session: Session, model_class: Type[T], data: Dict[str, Any]) -> T:
    """
    Insert one record and commit.

    Args:
        session: Database session
        model_class: SQLAlchemy model class
        data: Column values

    Returns:
        The persisted record

    Raises:
        RepositoryError: If the insert fails (the session is rolled back)
    """
    logger = get_logger()
    model_name = model_class.__name__

    try:
        record = model_class(**data)
        session.add(record)
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        raise RepositoryError(
            f"Failed to create {model_name}", cause=e, model=model_name
        ) from e

    logger.info(
        f"Created {model_name}",
        extra={"model": model_name, "record_id": getattr(record, "id", None)},
    )
    return record


def get_record(
    session: Session, model_class: Type[T], filters: Dict[str, Any]
) -> Optional[T]:
    """Return the first record matching all filters, or None."""
    return _apply_filters(session.query(model_class), model_class, filters).first()


def get_record_by_id(session: Session, model_class: Type[T], record_id: str) -> Optional[T]:
    return get_record(session, model_class, {"id": record_id})


def update_record(
    session: Session, model_class: Type[T], record_id: str, data: Dict[str, Any]
) -> T:
    """
    Update the given columns of one record and commit.

    Raises:
        RepositoryError: NOT_FOUND when no record has record_id, DATABASE_ERROR
            when the update fails
    """
    logger = get_logger()
    model_name = model_class.__name__

    record = get_record_by_id(session, model_class, record_id)
    if not record:
        raise not_found(model_name, record_id=record_id)

    try:
        for key, value in data.items():
            if hasattr(record, key):
                setattr(record, key, value)
        if hasattr(record, "updated_at"):
            record.updated_at = utc_now()
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        raise RepositoryError(
            f"Failed to update {model_name}", cause=e, model=model_name, record_id=record_id
        ) from e

    logger.info(f"Updated {model_name}", extra={"model": model_name, "record_id": record_id})
    return record


def list_records(
    session: Session,
    model_class: Type[T],
    filters: Optional[Dict[str, Any]] = None,
    order_by: Optional[str] = None,
    limit: Optional[int] = None,
) -> List[T]:
    """
    List records matching the filters.

    Ordered by order_by when the model has that column, newest first otherwise.
    """
    query = _apply_filters(session.query(model_class), model_class, filters)

    if order_by and hasattr(model_class, order_by):
        query = query.order_by(getattr(model_class, order_by))
    elif hasattr(model_class, "created_at"):
        query = query.order_by(model_class.created_at.desc())  # type: ignore[attr-defined]

    if limit:
        query = query.limit(limit)

    return query.all()


def record_exists(session: Session, model_class: Type[T], filters: Dict[str, Any]) -> bool:
    return get_record(session, model_class, filters) is not None
