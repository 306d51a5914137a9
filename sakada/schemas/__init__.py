"""
Sakada Cash Advance - Pydantic Schemas
"""

from sakada.schemas.audit import AuditLogResponse
from sakada.schemas.cash_advance import (
    CashAdvanceApprove,
    CashAdvanceCreate,
    CashAdvanceMarkPaid,
    CashAdvanceReject,
    CashAdvanceResponse,
    CashAdvanceSummary,
    CashAdvanceTotals,
    InstallmentItem,
    InstallmentSchedule,
    PaymentCreate,
    PaymentResponse,
)
from sakada.schemas.employee import EmployeeCreate, EmployeeResponse, EmployeeUpdate
from sakada.schemas.user import UserCreate, UserResponse

__all__ = [
    "AuditLogResponse",
    "CashAdvanceApprove",
    "CashAdvanceCreate",
    "CashAdvanceMarkPaid",
    "CashAdvanceReject",
    "CashAdvanceResponse",
    "CashAdvanceSummary",
    "CashAdvanceTotals",
    "InstallmentItem",
    "InstallmentSchedule",
    "PaymentCreate",
    "PaymentResponse",
    "EmployeeCreate",
    "EmployeeResponse",
    "EmployeeUpdate",
    "UserCreate",
    "UserResponse",
]
