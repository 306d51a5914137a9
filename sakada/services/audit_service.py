"""
Sakada Cash Advance - Audit Service

Read side of the audit trail. Entries are written by the mapper listeners
in ``sakada.utils.audit_trail``; this service only queries them.
"""

import uuid
from datetime import date
from typing import Any, Dict, List, Optional, Union

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from sakada.models.audit import AuditAction, AuditLog


class AuditService:
    """Service for querying audit logs."""
    
    def __init__(self, db: AsyncSession):
        self.db = db
    
    def _calculate_changes(
        self,
        old_values: Optional[Dict[str, Any]],
        new_values: Optional[Dict[str, Any]],
    ) -> Dict[str, Any]:
        """Calculate what changed between old and new values."""
        old_values = old_values or {}
        new_values = new_values or {}
        changes = {}
        
        all_keys = set(old_values.keys()) | set(new_values.keys())
        
        for key in sorted(all_keys):
            old_val = old_values.get(key)
            new_val = new_values.get(key)
            
            if old_val != new_val:
                changes[key] = {
                    "old": old_val,
                    "new": new_val,
                }
        
        return changes
    
    async def get_audit_logs(
        self,
        entity_type: Optional[str] = None,
        entity_id: Optional[uuid.UUID] = None,
        action: Optional[Union[AuditAction, str]] = None,
        user_id: Optional[uuid.UUID] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> List[AuditLog]:
        """
        Get audit logs with optional filtering, newest first.
        
        Args:
            entity_type: Table name of the audited entity
            entity_id: Filter by specific entity
            action: Filter by action type
            user_id: Filter by acting user
            start_date: Filter by date range start (inclusive)
            end_date: Filter by date range end (inclusive)
            skip: Pagination offset
            limit: Pagination limit
        
        Returns:
            List of matching audit logs
        """
        query = select(AuditLog)
        
        if entity_type:
            query = query.where(AuditLog.entity_type == entity_type)
        
        if entity_id:
            query = query.where(AuditLog.entity_id == entity_id)
        
        if action:
            query = query.where(AuditLog.action == AuditAction(action))
        
        if user_id:
            query = query.where(AuditLog.user_id == user_id)
        
        if start_date:
            query = query.where(func.date(AuditLog.created_at) >= start_date)
        
        if end_date:
            query = query.where(func.date(AuditLog.created_at) <= end_date)
        
        query = query.order_by(AuditLog.created_at.desc()).offset(skip).limit(limit)
        
        result = await self.db.execute(query)
        return list(result.scalars().all())
    
    async def get_entity_history(
        self,
        entity_type: str,
        entity_id: uuid.UUID,
    ) -> List[Dict[str, Any]]:
        """
        Get complete history of changes for a specific entity.
        
        Returns chronological list of all changes made to the entity.
        """
        logs = await self.get_audit_logs(
            entity_type=entity_type,
            entity_id=entity_id,
            limit=1000,
        )
        
        history = []
        for log in reversed(logs):  # Oldest first
            entry = {
                "timestamp": log.created_at.isoformat(),
                "action": log.action.value,
                "user_id": str(log.user_id) if log.user_id else None,
                "ip_address": log.ip_address,
            }
            
            if log.action == AuditAction.INSERT:
                entry["values"] = log.new_values
            elif log.action == AuditAction.UPDATE:
                entry["changes"] = self._calculate_changes(log.old_values, log.new_values)
            elif log.action == AuditAction.DELETE:
                entry["deleted_values"] = log.old_values
            
            history.append(entry)
        
        return history
