"""
Sakada Cash Advance - Audit Log Model

Immutable audit log for tracking writes to audited entities.

Rows are written by the storage-level interceptor in
``sakada.utils.audit_trail`` within the same transaction as the write they
describe. Application code never updates or deletes them.
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import JSON, DateTime, ForeignKey, Index, String, Uuid, Enum as SQLEnum
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from sakada.models.base import BaseModel, utcnow


class AuditAction(str, Enum):
    """Write operation captured by an audit entry."""
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


# JSONB on PostgreSQL, plain JSON elsewhere
JSONType = JSON().with_variant(JSONB(), "postgresql")


class AuditLog(BaseModel):
    """
    One immutable record per audited insert, update or delete.
    
    This table should have no UPDATE or DELETE permissions.
    """
    
    __tablename__ = "audit_logs"
    
    # Acting user (NULL when the write ran outside a user context)
    user_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id"),
        nullable=True,
    )
    
    action: Mapped[AuditAction] = mapped_column(
        SQLEnum(
            AuditAction,
            name="audit_action",
            native_enum=False,
            create_constraint=True,
            length=50,
        ),
        nullable=False,
    )
    
    # Target entity
    entity_type: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        comment="Table name of the audited entity",
    )
    entity_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True),
        nullable=True,
    )
    
    # Snapshots
    old_values: Mapped[Optional[dict]] = mapped_column(
        JSONType,
        nullable=True,
        comment="Full prior row (UPDATE/DELETE)",
    )
    new_values: Mapped[Optional[dict]] = mapped_column(
        JSONType,
        nullable=True,
        comment="Full new row (INSERT/UPDATE)",
    )
    
    ip_address: Mapped[Optional[str]] = mapped_column(String(45), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
    )
    
    __table_args__ = (
        Index("idx_audit_logs_entity", "entity_type", "entity_id"),
    )
    
    def __repr__(self) -> str:
        return f"<AuditLog(action={self.action}, entity={self.entity_type}:{self.entity_id})>"
