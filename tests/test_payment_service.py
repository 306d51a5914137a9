"""
Sakada Cash Advance - Payment Service Tests
"""

import pytest
from datetime import date, datetime, timezone
from decimal import Decimal
from uuid import uuid4

from sakada.models.cash_advance import CashAdvanceStatus, PaymentType
from sakada.services.cash_advance_service import CashAdvanceService
from sakada.services.payment_service import (
    PaymentService,
    add_months,
    build_installment_schedule,
    planned_terms,
)
from sakada.utils.error_handling import (
    BalanceException,
    CashAdvanceNotFoundException,
    InvalidAmountException,
    InvalidStateException,
    UserNotFoundException,
    ValidationException,
)


async def approved_advance(db_session, employee, approver, amount=1000, **terms):
    service = CashAdvanceService(db_session)
    advance = await service.submit(employee.id, amount, "medical")
    return await service.approve(advance.id, approver.id, **terms)


class TestRecordPayment:
    """Test cases for recording repayments."""
    
    @pytest.mark.asyncio
    async def test_record_payment(self, db_session, employee, admin_user):
        advance = await approved_advance(db_session, employee, admin_user)
        service = PaymentService(db_session)
        
        payment = await service.record_payment(
            advance.id, Decimal("250"), PaymentType.BANK_TRANSFER, admin_user.id,
            reference_number="TRX-001",
        )
        
        assert payment.id is not None
        assert payment.amount == Decimal("250.00")
        assert payment.payment_type == PaymentType.BANK_TRANSFER
        assert payment.reference_number == "TRX-001"
        assert payment.recorded_by == admin_user.id
        assert payment.payment_date is not None
        assert await service.get_total_paid(advance.id) == Decimal("250.00")
    
    @pytest.mark.asyncio
    async def test_explicit_paid_at(self, db_session, employee, admin_user):
        advance = await approved_advance(db_session, employee, admin_user)
        paid_at = datetime(2026, 3, 15, 9, 30, tzinfo=timezone.utc)
        
        payment = await PaymentService(db_session).record_payment(
            advance.id, 100, "CASH", admin_user.id, paid_at=paid_at,
        )
        
        assert payment.payment_date == paid_at
    
    @pytest.mark.asyncio
    async def test_overpayment_rejected_without_insert(self, db_session, employee, admin_user):
        advance = await approved_advance(db_session, employee, admin_user, amount=500)
        service = PaymentService(db_session)
        await service.record_payment(advance.id, 400, "CASH", admin_user.id)
        
        with pytest.raises(BalanceException) as exc_info:
            await service.record_payment(advance.id, Decimal("100.01"), "CASH", admin_user.id)
        
        assert exc_info.value.remaining_balance == Decimal("100.00")
        assert not db_session.in_transaction()
        assert exc_info.value.details["attempted_amount"] == "100.01"
        assert len(await service.list_payments(advance.id)) == 1
        assert await service.get_total_paid(advance.id) == Decimal("400.00")
    
    @pytest.mark.asyncio
    @pytest.mark.parametrize("amount", ["0.004", "0.001", "99.999"])
    async def test_sub_cent_amount_rejected(self, db_session, employee, admin_user, amount):
        advance = await approved_advance(db_session, employee, admin_user)
        service = PaymentService(db_session)
        
        with pytest.raises(InvalidAmountException):
            await service.record_payment(advance.id, amount, "CASH", admin_user.id)
        
        assert await service.list_payments(advance.id) == []
    
    @pytest.mark.asyncio
    async def test_exact_remaining_accepted(self, db_session, employee, admin_user):
        advance = await approved_advance(db_session, employee, admin_user, amount=500)
        service = PaymentService(db_session)
        await service.record_payment(advance.id, 400, "CASH", admin_user.id)
        
        await service.record_payment(advance.id, 100, "CASH", admin_user.id)
        
        assert await service.get_total_paid(advance.id) == Decimal("500.00")
    
    @pytest.mark.asyncio
    async def test_payment_on_pending_refused(self, db_session, employee, admin_user):
        advance = await CashAdvanceService(db_session).submit(employee.id, 100, "medical")
        service = PaymentService(db_session)
        
        with pytest.raises(InvalidStateException) as exc_info:
            await service.record_payment(advance.id, 50, "CASH", admin_user.id)
        
        assert exc_info.value.current_status == CashAdvanceStatus.PENDING.value
        assert await service.list_payments(advance.id) == []
    
    @pytest.mark.asyncio
    async def test_payment_on_rejected_refused(self, db_session, employee, admin_user):
        cash_advances = CashAdvanceService(db_session)
        advance = await cash_advances.submit(employee.id, 100, "medical")
        await cash_advances.reject(advance.id, admin_user.id, "no")
        
        with pytest.raises(InvalidStateException):
            await PaymentService(db_session).record_payment(advance.id, 50, "CASH", admin_user.id)
    
    @pytest.mark.asyncio
    @pytest.mark.parametrize("amount", [0, "-1", "NaN"])
    async def test_non_positive_amount(self, db_session, employee, admin_user, amount):
        advance = await approved_advance(db_session, employee, admin_user)
        
        with pytest.raises(ValidationException):
            await PaymentService(db_session).record_payment(advance.id, amount, "CASH", admin_user.id)
    
    @pytest.mark.asyncio
    async def test_unknown_payment_type(self, db_session, employee, admin_user):
        advance = await approved_advance(db_session, employee, admin_user)
        
        with pytest.raises(ValidationException) as exc_info:
            await PaymentService(db_session).record_payment(advance.id, 10, "CHEQUE", admin_user.id)
        
        assert exc_info.value.field == "payment_type"
    
    @pytest.mark.asyncio
    async def test_unknown_advance(self, db_session, admin_user):
        with pytest.raises(CashAdvanceNotFoundException):
            await PaymentService(db_session).record_payment(uuid4(), 10, "CASH", admin_user.id)
    
    @pytest.mark.asyncio
    async def test_unknown_recorder(self, db_session, employee, admin_user):
        advance = await approved_advance(db_session, employee, admin_user)
        
        with pytest.raises(UserNotFoundException):
            await PaymentService(db_session).record_payment(advance.id, 10, "CASH", uuid4())
    
    @pytest.mark.asyncio
    async def test_total_paid_is_zero_without_payments(self, db_session, employee, admin_user):
        advance = await approved_advance(db_session, employee, admin_user)
        
        assert await PaymentService(db_session).get_total_paid(advance.id) == Decimal("0.00")


class TestInstallmentSchedule:
    """Test cases for the planned deduction schedule."""
    
    def test_add_months_clamps_to_month_end(self):
        assert add_months(date(2026, 1, 31), 1) == date(2026, 2, 28)
        assert add_months(date(2026, 11, 15), 2) == date(2027, 1, 15)
    
    def test_planned_terms(self):
        assert planned_terms(Decimal("1000"), 5, None) == (5, Decimal("200.00"))
        assert planned_terms(Decimal("1000"), None, Decimal("300")) == (4, Decimal("300"))
        assert planned_terms(Decimal("1000"), None, None) == (None, None)
    
    @pytest.mark.asyncio
    async def test_schedule_last_installment_absorbs_rounding(self, db_session, employee, admin_user):
        advance = await approved_advance(db_session, employee, admin_user, amount=1000, installment_period=3)
        
        schedule = build_installment_schedule(advance, start_date=date(2026, 1, 31))
        
        assert [line.amount for line in schedule] == [
            Decimal("333.34"), Decimal("333.34"), Decimal("333.32"),
        ]
        assert sum(line.amount for line in schedule) == Decimal("1000.00")
        assert [line.due_date for line in schedule] == [
            date(2026, 2, 28), date(2026, 3, 31), date(2026, 4, 30),
        ]
    
    @pytest.mark.asyncio
    async def test_schedule_empty_without_terms(self, db_session, employee, admin_user):
        advance = await approved_advance(db_session, employee, admin_user)
        
        assert build_installment_schedule(advance) == []
