"""
Sakada Cash Advance - Database Models

SQLAlchemy ORM models. Importing this package also attaches the audit
interceptor to the audited models.
"""

from sakada.models.base import BaseModel, utcnow
from sakada.models.user import User, UserRole
from sakada.models.employee import Employee
from sakada.models.cash_advance import (
    CashAdvance,
    CashAdvanceStatus,
    Payment,
    PaymentType,
    cash_advance_summary_select,
)
from sakada.models.audit import AuditLog, AuditAction

from sakada.utils.audit_trail import register_audited_model

register_audited_model(Employee)
register_audited_model(CashAdvance)

__all__ = [
    "BaseModel",
    "utcnow",
    "User",
    "UserRole",
    "Employee",
    "CashAdvance",
    "CashAdvanceStatus",
    "Payment",
    "PaymentType",
    "cash_advance_summary_select",
    "AuditLog",
    "AuditAction",
]
