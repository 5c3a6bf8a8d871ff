"""
Base model with common fields
"""

from datetime import datetime, timezone
from sqlalchemy import Column, DateTime, Uuid
from sqlalchemy.sql import func
import uuid
from paychain.infrastructure.database import Base


def utcnow() -> datetime:
    """Timezone-aware current UTC time"""
    return datetime.now(timezone.utc)


class BaseModel(Base):
    """
    Base model with common fields

    All models inherit from this base class and get:
    - id: UUID primary key
    - created_at: Timezone-aware timestamp
    - updated_at: Timezone-aware timestamp (nullable)

    Note: Transaction overrides id with its own opaque prefixed identifier.
    """
    __abstract__ = True

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=utcnow, nullable=True)
