"""
Sakada Cash Advance - Audit Schemas
"""

from datetime import datetime
from typing import Any, Dict, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from sakada.models.audit import AuditAction


class AuditLogResponse(BaseModel):
    """Schema for an audit log entry."""
    id: UUID
    user_id: Optional[UUID] = None
    action: AuditAction
    entity_type: str
    entity_id: Optional[UUID] = None
    old_values: Optional[Dict[str, Any]] = None
    new_values: Optional[Dict[str, Any]] = None
    ip_address: Optional[str] = None
    created_at: datetime
    
    model_config = ConfigDict(from_attributes=True)
