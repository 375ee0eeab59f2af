"""Base SQLAlchemy declarative base for all models"""

from typing import Any, Dict
from uuid import uuid4

from sqlalchemy import JSON, TypeDecorator
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import declarative_base


class PortableJSONB(TypeDecorator):
    """JSON type that works with both PostgreSQL (JSONB) and SQLite (JSON).

    Uses JSONB on PostgreSQL for efficient indexing and querying,
    falls back to JSON on SQLite for testing compatibility.
    """
    impl = JSON
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == 'postgresql':
            return dialect.type_descriptor(JSONB())
        else:
            return dialect.type_descriptor(JSON())


def new_id() -> str:
    """Primary key generator (UUID4 rendered as text, portable across dialects)."""
    return str(uuid4())


class DocumentMixin:
    """Round-trips ORM rows to the plain-dict documents used by RecordStorePort."""

    def to_document(self) -> Dict[str, Any]:
        return {
            column.key: getattr(self, column.key)
            for column in self.__table__.columns
        }


Base = declarative_base()
