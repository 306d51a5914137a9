"""
Sakada Cash Advance - Base Model

Base model class and helpers for all SQLAlchemy models.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Uuid
from sqlalchemy.orm import Mapped, mapped_column

from sakada.database import Base


def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


class BaseModel(Base):
    """
    Abstract base model with a UUID primary key generated at insert time.
    All models should inherit from this class.
    """
    
    __abstract__ = True
    
    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    
    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}(id={self.id})>"
