"""
Column types and mixins shared by the vault models.

Models run on SQLite in tests and PostgreSQL in production.
"""

import json
import uuid
from datetime import UTC, datetime
from typing import Optional

from pydantic_core import to_jsonable_python
from sqlalchemy import Column, DateTime, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.types import TypeDecorator


def utc_now():
    return datetime.now(UTC)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """
    Return ``value`` as an aware UTC datetime.

    SQLite hands back naive values for timezone columns. Everything is written
    in UTC, so attaching the zone is exact.
    """
    if value is None:
        return None
    return value.replace(tzinfo=UTC) if value.tzinfo is None else value.astimezone(UTC)


class JSON(TypeDecorator):
    """JSONB on PostgreSQL, serialised text elsewhere."""

    impl = Text
    cache_ok = True

    def load_dialect_impl(self, dialect):
        native = dialect.name == "postgresql"
        return dialect.type_descriptor(JSONB() if native else Text())

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        plain = to_jsonable_python(value)
        return plain if dialect.name == "postgresql" else json.dumps(plain)

    def process_result_value(self, value, dialect):
        if value is None or dialect.name == "postgresql":
            return value
        return json.loads(value)


class TimestampMixin:
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now)


class UUIDMixin:
    """String UUID primary key generated on insert."""

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
