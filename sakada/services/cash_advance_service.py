"""
Sakada Cash Advance - Cash Advance Service

Request / approval / settlement lifecycle:

    PENDING -> APPROVED -> PAID
    PENDING -> REJECTED

REJECTED and PAID are terminal. Every transition is a single UPDATE of the
cash advance row, which the audit trail records in the same transaction.
Business rules are checked before anything is mutated, so a refused
transition leaves the session clean.
"""

import logging
import uuid
from datetime import date
from decimal import Decimal
from typing import List, Optional, Union

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from sakada.config import settings
from sakada.database import commit_or_raise, release_row_locks
from sakada.models.base import utcnow
from sakada.models.cash_advance import CashAdvance, CashAdvanceStatus
from sakada.models.employee import Employee
from sakada.models.user import User
from sakada.services.payment_service import PaymentService, planned_terms
from sakada.utils.audit_trail import AuditContext, audit_context
from sakada.utils.error_handling import (
    BalanceException,
    CashAdvanceNotFoundException,
    EmployeeNotFoundException,
    InvalidStateException,
    UserNotFoundException,
    ValidationException,
    validate_amount,
)

logger = logging.getLogger(__name__)


def coerce_status(status: Union[CashAdvanceStatus, str]) -> CashAdvanceStatus:
    try:
        return CashAdvanceStatus(status)
    except ValueError:
        raise ValidationException(
            f"Invalid status '{status}'. Allowed: {', '.join(s.value for s in CashAdvanceStatus)}",
            field="status",
        )


class CashAdvanceService:
    """Service for the cash advance state machine."""
    
    def __init__(self, db: AsyncSession, allow_forced_payoff: Optional[bool] = None):
        self.db = db
        self.payments = PaymentService(db)
        if allow_forced_payoff is None:
            allow_forced_payoff = settings.allow_forced_payoff
        self.allow_forced_payoff = allow_forced_payoff
    
    # ===========================================
    # QUERIES
    # ===========================================
    
    async def get_advance(
        self,
        advance_id: uuid.UUID,
        include_payments: bool = False,
    ) -> Optional[CashAdvance]:
        """Get a cash advance by ID, optionally with its payments loaded."""
        query = select(CashAdvance).where(CashAdvance.id == advance_id)
        if include_payments:
            query = query.options(selectinload(CashAdvance.payments))
        result = await self.db.execute(query)
        return result.scalar_one_or_none()
    
    async def get_advance_or_404(
        self,
        advance_id: uuid.UUID,
        for_update: bool = False,
    ) -> CashAdvance:
        if for_update:
            return await self.payments.lock_advance(advance_id)
        advance = await self.get_advance(advance_id)
        if advance is None:
            raise CashAdvanceNotFoundException(advance_id)
        return advance
    
    async def list_advances(
        self,
        employee_id: Optional[uuid.UUID] = None,
        status: Optional[Union[CashAdvanceStatus, str]] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[CashAdvance]:
        """List cash advances, newest first."""
        query = select(CashAdvance)
        if employee_id:
            query = query.where(CashAdvance.employee_id == employee_id)
        if status:
            query = query.where(CashAdvance.status == coerce_status(status))
        query = query.order_by(CashAdvance.created_at.desc()).limit(limit).offset(offset)
        result = await self.db.execute(query)
        return list(result.scalars().all())
    
    async def get_remaining_balance(self, advance_id: uuid.UUID) -> Decimal:
        """Principal minus recorded payments."""
        advance = await self.get_advance_or_404(advance_id)
        total_paid = await self.payments.get_total_paid(advance.id)
        return advance.amount - total_paid
    
    # ===========================================
    # TRANSITIONS
    # ===========================================
    
    async def submit(
        self,
        employee_id: uuid.UUID,
        amount: Union[Decimal, int, float, str],
        reason: str,
        actor: Optional[AuditContext] = None,
    ) -> CashAdvance:
        """
        Submit a new cash advance request in PENDING status.
        
        Raises:
            ValidationException: non-positive amount or blank reason
            NotFoundException: unknown employee
        """
        amount = validate_amount(amount)
        reason = (reason or "").strip()
        if not reason:
            raise ValidationException("Reason is required", field="reason")
        if await self.db.get(Employee, employee_id) is None:
            raise EmployeeNotFoundException(employee_id)
        
        advance = CashAdvance(
            employee_id=employee_id,
            amount=amount,
            purpose=reason,
            status=CashAdvanceStatus.PENDING,
            created_at=utcnow(),
        )
        with audit_context(self.db, actor):
            self.db.add(advance)
            await commit_or_raise(self.db, "CashAdvance")
        
        logger.info("Cash advance %s submitted for employee %s: %s", advance.id, employee_id, amount)
        return advance
    
    async def approve(
        self,
        advance_id: uuid.UUID,
        approver_id: uuid.UUID,
        installment_period: Optional[int] = None,
        monthly_deduction: Optional[Union[Decimal, int, float, str]] = None,
        actor: Optional[AuditContext] = None,
    ) -> CashAdvance:
        """
        Approve a PENDING advance and attach its repayment plan.
        
        When only one of ``installment_period`` / ``monthly_deduction`` is
        given the other is derived from the principal.
        """
        if installment_period is not None:
            if isinstance(installment_period, bool) or not isinstance(installment_period, int) \
                    or installment_period <= 0:
                raise ValidationException(
                    "Installment period must be a positive whole number",
                    field="installment_period",
                )
        if monthly_deduction is not None:
            monthly_deduction = validate_amount(monthly_deduction, field="monthly_deduction")
        await self._check_approver(approver_id)
        
        advance = await self.get_advance_or_404(advance_id, for_update=True)
        if advance.status != CashAdvanceStatus.PENDING:
            error = InvalidStateException("CashAdvance", advance.id, advance.status, "approve")
            await release_row_locks(self.db)
            raise error
        if monthly_deduction is not None and monthly_deduction > advance.amount:
            error = ValidationException(
                "Monthly deduction cannot exceed the advance amount",
                field="monthly_deduction",
            )
            await release_row_locks(self.db)
            raise error
        installment_period, monthly_deduction = planned_terms(
            advance.amount, installment_period, monthly_deduction,
        )
        
        now = utcnow()
        with audit_context(self.db, actor):
            advance.status = CashAdvanceStatus.APPROVED
            advance.approved_by = approver_id
            advance.approved_at = now
            advance.updated_at = now
            advance.installment_period = installment_period
            advance.monthly_deduction = monthly_deduction
            await commit_or_raise(self.db, "CashAdvance")
        
        logger.info("Cash advance %s approved by %s", advance.id, approver_id)
        return advance
    
    async def reject(
        self,
        advance_id: uuid.UUID,
        approver_id: uuid.UUID,
        reason: str,
        actor: Optional[AuditContext] = None,
    ) -> CashAdvance:
        """Reject a PENDING advance with a reason."""
        reason = (reason or "").strip()
        if not reason:
            raise ValidationException("Rejection reason is required", field="rejection_reason")
        await self._check_approver(approver_id)
        
        advance = await self.get_advance_or_404(advance_id, for_update=True)
        if advance.status != CashAdvanceStatus.PENDING:
            error = InvalidStateException("CashAdvance", advance.id, advance.status, "reject")
            await release_row_locks(self.db)
            raise error
        
        now = utcnow()
        with audit_context(self.db, actor):
            advance.status = CashAdvanceStatus.REJECTED
            advance.rejection_reason = reason
            advance.approved_by = approver_id
            advance.approved_at = now
            advance.updated_at = now
            await commit_or_raise(self.db, "CashAdvance")
        
        logger.info("Cash advance %s rejected by %s", advance.id, approver_id)
        return advance
    
    async def mark_paid(
        self,
        advance_id: uuid.UUID,
        payment_date: Optional[date] = None,
        actor: Optional[AuditContext] = None,
        force: bool = False,
    ) -> CashAdvance:
        """
        Settle an APPROVED advance.
        
        Requires the recorded payments to cover the principal. ``force``
        bypasses that check only when forced payoff is enabled in settings.
        
        Raises:
            InvalidStateException: advance is not APPROVED
            BalanceException: balance outstanding and forced payoff not allowed
        """
        advance = await self.get_advance_or_404(advance_id, for_update=True)
        if advance.status != CashAdvanceStatus.APPROVED:
            error = InvalidStateException("CashAdvance", advance.id, advance.status, "mark paid")
            await release_row_locks(self.db)
            raise error
        
        total_paid = await self.payments.get_total_paid(advance.id)
        if total_paid < advance.amount:
            if not (force and self.allow_forced_payoff):
                error = BalanceException(advance.id, advance.amount, total_paid)
                await release_row_locks(self.db)
                raise error
            logger.warning(
                "Cash advance %s force-settled with %s outstanding",
                advance.id, advance.amount - total_paid,
            )
        
        with audit_context(self.db, actor):
            advance.status = CashAdvanceStatus.PAID
            advance.payment_date = payment_date or date.today()
            advance.updated_at = utcnow()
            await commit_or_raise(self.db, "CashAdvance")
        
        logger.info("Cash advance %s marked paid", advance.id)
        return advance
    
    # ===========================================
    # HELPERS
    # ===========================================
    
    async def _check_approver(self, approver_id: uuid.UUID) -> User:
        approver = await self.db.get(User, approver_id)
        if approver is None:
            raise UserNotFoundException(approver_id)
        if not approver.is_active:
            raise ValidationException(
                f"User '{approver.username}' is inactive and cannot decide cash advances",
                field="approver_id",
            )
        return approver
