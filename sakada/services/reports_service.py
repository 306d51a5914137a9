"""
Sakada Cash Advance - Reports Service

Read-only views over cash advances and their payments.

Summaries are computed on read from ``cash_advance_summary_select()``, the
same query installed as the ``cash_advance_summary`` database view, so the
remaining balance is never stored and cannot drift from the payments.
"""

import uuid
from decimal import Decimal
from typing import List, Optional, Union

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from sakada.models.cash_advance import (
    CashAdvance,
    CashAdvanceStatus,
    Payment,
    cash_advance_summary_select,
)
from sakada.schemas.cash_advance import CashAdvanceSummary, CashAdvanceTotals
from sakada.services.cash_advance_service import coerce_status
from sakada.utils.error_handling import CashAdvanceNotFoundException

# Advances whose principal has been handed out
DISBURSED_STATUSES = (CashAdvanceStatus.APPROVED, CashAdvanceStatus.PAID)


def _money(value) -> Decimal:
    return Decimal(value or 0).quantize(Decimal("0.01"))


class ReportsService:
    """Service for cash advance summaries and totals."""
    
    def __init__(self, db: AsyncSession):
        self.db = db
    
    def _to_summary(self, row) -> CashAdvanceSummary:
        return CashAdvanceSummary(
            id=row.id,
            employee_name=row.employee_name,
            amount=_money(row.amount),
            status=row.status,
            created_at=row.created_at,
            total_paid=_money(row.total_paid),
            remaining_balance=_money(row.remaining_balance),
        )
    
    async def get_summary(self, advance_id: uuid.UUID) -> CashAdvanceSummary:
        """Summary row for one advance."""
        query = cash_advance_summary_select().where(CashAdvance.id == advance_id)
        row = (await self.db.execute(query)).one_or_none()
        if row is None:
            raise CashAdvanceNotFoundException(advance_id)
        return self._to_summary(row)
    
    async def list_summaries(
        self,
        status: Optional[Union[CashAdvanceStatus, str]] = None,
        employee_id: Optional[uuid.UUID] = None,
        outstanding_only: bool = False,
        limit: int = 100,
        offset: int = 0,
    ) -> List[CashAdvanceSummary]:
        """
        Summary rows, newest first.
        
        ``outstanding_only`` keeps approved advances with a balance left.
        """
        base = cash_advance_summary_select()
        if status:
            base = base.where(CashAdvance.status == coerce_status(status))
        if employee_id:
            base = base.where(CashAdvance.employee_id == employee_id)
        if outstanding_only:
            base = base.where(CashAdvance.status == CashAdvanceStatus.APPROVED)
        
        summary = base.subquery("summary")
        query = select(summary)
        if outstanding_only:
            query = query.where(summary.c.remaining_balance > 0)
        query = query.order_by(summary.c.created_at.desc()).limit(limit).offset(offset)
        
        result = await self.db.execute(query)
        return [self._to_summary(row) for row in result.all()]
    
    async def get_totals(self) -> CashAdvanceTotals:
        """
        Portfolio totals.
        
        Principal and outstanding cover disbursed advances (APPROVED and
        PAID); the per-status counts cover everything.
        """
        count_rows = await self.db.execute(
            select(CashAdvance.status, func.count(CashAdvance.id)).group_by(CashAdvance.status)
        )
        count_by_status = {s.value: 0 for s in CashAdvanceStatus}
        for status, count in count_rows.all():
            count_by_status[CashAdvanceStatus(status).value] = count
        
        total_principal = await self.db.scalar(
            select(func.coalesce(func.sum(CashAdvance.amount), 0))
            .where(CashAdvance.status.in_(DISBURSED_STATUSES))
        )
        total_paid = await self.db.scalar(
            select(func.coalesce(func.sum(Payment.amount), 0))
        )
        
        approved = cash_advance_summary_select().where(
            CashAdvance.status == CashAdvanceStatus.APPROVED
        ).subquery("approved")
        total_outstanding = await self.db.scalar(
            select(func.coalesce(func.sum(approved.c.remaining_balance), 0))
        )
        
        return CashAdvanceTotals(
            advance_count=sum(count_by_status.values()),
            total_principal=_money(total_principal),
            total_paid=_money(total_paid),
            total_outstanding=_money(total_outstanding),
            count_by_status=count_by_status,
        )
