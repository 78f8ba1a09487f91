"""
Declarative base and shared model columns.
"""
import uuid
from sqlalchemy import Column, String, BigInteger
from sqlalchemy.orm import declarative_base
from rideshare.core.utils import now_ms

Base = declarative_base()


def new_id() -> str:
    return str(uuid.uuid4())


class TimestampMixin:
    """created_at / updated_at as epoch milliseconds."""
    created_at = Column(BigInteger, nullable=False, default=now_ms)
    updated_at = Column(BigInteger, nullable=False, default=now_ms, onupdate=now_ms)


class BaseModel(Base, TimestampMixin):
    """Abstract base with a UUID string primary key."""
    __abstract__ = True

    id = Column(String(36), primary_key=True, default=new_id)

    def __repr__(self) -> str:
        return f"<{type(self).__name__}(id={self.id})>"
