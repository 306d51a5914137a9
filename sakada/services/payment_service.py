"""
Sakada Cash Advance - Payment Service

Records repayments against approved cash advances.

The cash advance row is locked (SELECT ... FOR UPDATE) before the balance
check, so two concurrent payments cannot both pass a check that together
would overpay the advance.
"""

import calendar
import logging
import uuid
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, ROUND_UP
from typing import List, Optional, Union

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from sakada.database import commit_or_raise, release_row_locks
from sakada.models.base import utcnow
from sakada.models.cash_advance import CashAdvance, CashAdvanceStatus, Payment, PaymentType
from sakada.models.user import User
from sakada.utils.error_handling import (
    BalanceException,
    CashAdvanceNotFoundException,
    InvalidStateException,
    UserNotFoundException,
    ValidationException,
    validate_amount,
)

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")

PAYABLE_STATUSES = (CashAdvanceStatus.APPROVED, CashAdvanceStatus.PAID)


def coerce_payment_type(payment_type: Union[PaymentType, str]) -> PaymentType:
    try:
        return PaymentType(payment_type)
    except ValueError:
        raise ValidationException(
            f"Invalid payment type '{payment_type}'. Allowed: {', '.join(t.value for t in PaymentType)}",
            field="payment_type",
        )


def add_months(start: date, months: int) -> date:
    """Same day ``months`` later, clamped to the end of shorter months."""
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


@dataclass
class InstallmentLine:
    """One planned salary deduction."""
    installment_number: int
    due_date: date
    amount: Decimal


def planned_terms(
    principal: Decimal,
    installment_period: Optional[int],
    monthly_deduction: Optional[Decimal],
) -> tuple:
    """
    Complete a repayment plan from whichever term was given.
    
    A period alone yields the per-cycle deduction (rounded up to the cent);
    a deduction alone yields the number of cycles needed to cover the
    principal.
    """
    if installment_period is not None and monthly_deduction is None:
        monthly_deduction = (principal / installment_period).quantize(CENT, rounding=ROUND_UP)
    elif monthly_deduction is not None and installment_period is None:
        installment_period = int((principal / monthly_deduction).to_integral_value(rounding=ROUND_UP))
    return installment_period, monthly_deduction


def build_installment_schedule(
    advance: CashAdvance,
    start_date: Optional[date] = None,
) -> List[InstallmentLine]:
    """
    Planned deduction schedule for an approved advance.
    
    The first deduction falls one month after ``start_date`` (default: the
    approval date). The final installment absorbs rounding so the schedule
    sums to the principal.
    """
    if not advance.installment_period or not advance.monthly_deduction:
        return []
    
    if start_date is None:
        start_date = advance.approved_at.date() if advance.approved_at else date.today()
    
    lines: List[InstallmentLine] = []
    remaining = Decimal(advance.amount)
    for number in range(1, advance.installment_period + 1):
        if remaining <= 0:
            break
        if number == advance.installment_period:
            amount = remaining
        else:
            amount = min(Decimal(advance.monthly_deduction), remaining)
        lines.append(InstallmentLine(number, add_months(start_date, number), amount))
        remaining -= amount
    return lines


class PaymentService:
    """Service for payment ledger operations."""
    
    def __init__(self, db: AsyncSession):
        self.db = db
    
    async def get_total_paid(self, advance_id: uuid.UUID) -> Decimal:
        """Sum of recorded payments for an advance (zero if none)."""
        total = await self.db.scalar(
            select(func.coalesce(func.sum(Payment.amount), 0))
            .where(Payment.cash_advance_id == advance_id)
        )
        return Decimal(total or 0).quantize(CENT)
    
    async def list_payments(self, advance_id: uuid.UUID) -> List[Payment]:
        """Payments for an advance, oldest first."""
        result = await self.db.execute(
            select(Payment)
            .where(Payment.cash_advance_id == advance_id)
            .order_by(Payment.payment_date)
        )
        return list(result.scalars().all())
    
    async def lock_advance(self, advance_id: uuid.UUID) -> CashAdvance:
        """Load an advance with a row lock, refreshing any cached state."""
        result = await self.db.execute(
            select(CashAdvance)
            .where(CashAdvance.id == advance_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        advance = result.scalar_one_or_none()
        if advance is None:
            raise CashAdvanceNotFoundException(advance_id)
        return advance
    
    async def record_payment(
        self,
        advance_id: uuid.UUID,
        amount: Union[Decimal, int, float, str],
        payment_type: Union[PaymentType, str],
        recorded_by: Optional[uuid.UUID],
        reference_number: Optional[str] = None,
        paid_at: Optional[datetime] = None,
    ) -> Payment:
        """
        Record a payment against an APPROVED or PAID advance.
        
        Raises:
            ValidationException: non-positive amount or unknown payment type
            NotFoundException: unknown advance or recording user
            InvalidStateException: advance is PENDING or REJECTED
            BalanceException: payment would exceed the principal
        """
        amount = validate_amount(amount)
        payment_type = coerce_payment_type(payment_type)
        if reference_number is not None:
            reference_number = reference_number.strip() or None
            if reference_number and len(reference_number) > 50:
                raise ValidationException(
                    "Reference number must be at most 50 characters",
                    field="reference_number",
                )
        if recorded_by is not None and await self.db.get(User, recorded_by) is None:
            raise UserNotFoundException(recorded_by)
        
        advance = await self.lock_advance(advance_id)
        if advance.status not in PAYABLE_STATUSES:
            error = InvalidStateException("CashAdvance", advance.id, advance.status, "record payment on")
            await release_row_locks(self.db)
            raise error
        
        total_paid = await self.get_total_paid(advance.id)
        if total_paid + amount > advance.amount:
            error = BalanceException(advance.id, advance.amount, total_paid, attempted_amount=amount)
            await release_row_locks(self.db)
            raise error
        
        payment = Payment(
            cash_advance_id=advance.id,
            amount=amount,
            payment_type=payment_type,
            reference_number=reference_number,
            recorded_by=recorded_by,
            payment_date=paid_at or utcnow(),
        )
        self.db.add(payment)
        await commit_or_raise(self.db, "Payment")
        
        logger.info(
            "Payment of %s (%s) recorded on cash advance %s; remaining %s",
            amount, payment_type.value, advance.id, advance.amount - total_paid - amount,
        )
        return payment
