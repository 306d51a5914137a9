"""
Sakada Cash Advance - Employee Service

Employee directory and organizational hierarchy.

The supervisor relationship is stored as an identifier reference. Every
write that sets ``supervisor_id`` is checked here for existence, self
reference and cycles, and every traversal guards against cycles that may
already exist in the data (visited set plus ``max_hierarchy_depth``).
"""

import logging
import uuid
from collections import deque
from datetime import date
from decimal import Decimal
from typing import Any, List, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from sakada.config import settings
from sakada.database import commit_or_raise
from sakada.models.cash_advance import CashAdvance
from sakada.models.employee import Employee
from sakada.models.user import User
from sakada.utils.audit_trail import AuditContext, audit_context
from sakada.utils.error_handling import (
    ConstraintViolationException,
    DuplicateEntryException,
    EmployeeNotFoundException,
    HierarchyException,
    UserNotFoundException,
    ValidationException,
    validate_amount,
)

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = {
    "first_name",
    "last_name",
    "department",
    "supervisor_id",
    "hire_date",
    "phone_number",
    "address",
    "position",
    "salary_rate",
    "user_id",
}


class EmployeeService:
    """Service for employee records and hierarchy queries."""
    
    def __init__(self, db: AsyncSession, max_depth: Optional[int] = None):
        self.db = db
        self.max_depth = max_depth or settings.max_hierarchy_depth
    
    # ===========================================
    # LOOKUPS
    # ===========================================
    
    async def get_employee(self, employee_id: uuid.UUID) -> Optional[Employee]:
        """Get an employee by ID."""
        return await self.db.get(Employee, employee_id)
    
    async def get_employee_or_404(self, employee_id: uuid.UUID) -> Employee:
        employee = await self.get_employee(employee_id)
        if employee is None:
            raise EmployeeNotFoundException(employee_id)
        return employee
    
    async def list_employees(
        self,
        department: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[Employee]:
        """List employees, optionally filtered by department."""
        query = select(Employee)
        if department:
            query = query.where(Employee.department == department)
        query = query.order_by(Employee.last_name, Employee.first_name).limit(limit).offset(offset)
        result = await self.db.execute(query)
        return list(result.scalars().all())
    
    # ===========================================
    # WRITES
    # ===========================================
    
    async def create_employee(
        self,
        first_name: str,
        last_name: str,
        hire_date: date,
        user_id: Optional[uuid.UUID] = None,
        supervisor_id: Optional[uuid.UUID] = None,
        department: Optional[str] = None,
        position: Optional[str] = None,
        phone_number: Optional[str] = None,
        address: Optional[str] = None,
        salary_rate: Optional[Decimal] = None,
        actor: Optional[AuditContext] = None,
    ) -> Employee:
        """Create an employee record."""
        values = self._clean_values({
            "first_name": first_name,
            "last_name": last_name,
            "hire_date": hire_date,
            "department": department,
            "position": position,
            "phone_number": phone_number,
            "address": address,
            "salary_rate": salary_rate,
        })
        if user_id is not None:
            await self._check_user_link(user_id)
        if supervisor_id is not None:
            await self.get_employee_or_404(supervisor_id)
        
        employee = Employee(user_id=user_id, supervisor_id=supervisor_id, **values)
        with audit_context(self.db, actor):
            self.db.add(employee)
            await commit_or_raise(self.db, "Employee")
        
        logger.info("Employee %s created (%s)", employee.id, employee.full_name)
        return employee
    
    async def update_employee(
        self,
        employee_id: uuid.UUID,
        actor: Optional[AuditContext] = None,
        **changes: Any,
    ) -> Employee:
        """
        Update employee fields.
        
        Setting ``supervisor_id`` is validated against the hierarchy;
        passing ``supervisor_id=None`` clears it.
        """
        unknown = set(changes) - UPDATABLE_FIELDS
        if unknown:
            raise ValidationException(
                f"Unknown employee field(s): {', '.join(sorted(unknown))}",
                details={"fields": sorted(unknown)},
            )
        
        employee = await self.get_employee_or_404(employee_id)
        
        values = self._clean_values(
            {k: v for k, v in changes.items() if k not in ("supervisor_id", "user_id")},
        )
        if "supervisor_id" in changes and changes["supervisor_id"] is not None:
            await self._check_supervisor(employee.id, changes["supervisor_id"])
        if changes.get("user_id") is not None and changes["user_id"] != employee.user_id:
            await self._check_user_link(changes["user_id"])
        
        for key in ("supervisor_id", "user_id"):
            if key in changes:
                values[key] = changes[key]
        
        with audit_context(self.db, actor):
            for key, value in values.items():
                setattr(employee, key, value)
            await commit_or_raise(self.db, "Employee")
        return employee
    
    async def set_supervisor(
        self,
        employee_id: uuid.UUID,
        supervisor_id: Optional[uuid.UUID],
        actor: Optional[AuditContext] = None,
    ) -> Employee:
        """Assign (or clear, with None) an employee's supervisor."""
        return await self.update_employee(employee_id, actor=actor, supervisor_id=supervisor_id)
    
    async def delete_employee(
        self,
        employee_id: uuid.UUID,
        actor: Optional[AuditContext] = None,
    ) -> None:
        """
        Delete an employee.
        
        Direct reports keep their records; their supervisor reference is
        cleared. Employees that own cash advances cannot be deleted.
        """
        employee = await self.get_employee_or_404(employee_id)
        
        advance_count = await self.db.scalar(
            select(func.count())
            .select_from(CashAdvance)
            .where(CashAdvance.employee_id == employee_id)
        )
        if advance_count:
            raise ConstraintViolationException(
                f"Employee '{employee_id}' has {advance_count} cash advance(s) and cannot be deleted",
                resource_type="Employee",
                details={"resource_id": str(employee_id), "cash_advances": advance_count},
            )
        
        reports = await self.get_direct_reports(employee_id)
        with audit_context(self.db, actor):
            for report in reports:
                report.supervisor_id = None
            await self.db.flush()
            await self.db.delete(employee)
            await commit_or_raise(self.db, "Employee")
        
        logger.info(
            "Employee %s deleted; supervisor cleared on %d direct report(s)",
            employee_id, len(reports),
        )
    
    # ===========================================
    # HIERARCHY
    # ===========================================
    
    async def get_direct_reports(self, employee_id: uuid.UUID) -> List[Employee]:
        """Employees whose supervisor is ``employee_id``."""
        result = await self.db.execute(
            select(Employee)
            .where(Employee.supervisor_id == employee_id)
            .order_by(Employee.last_name, Employee.first_name)
        )
        return list(result.scalars().all())
    
    async def get_supervisor_chain(self, employee_id: uuid.UUID) -> List[Employee]:
        """
        Walk supervisor references up to the root.
        
        Returns the chain nearest supervisor first, excluding the employee.
        Stops at a repeated node or at ``max_depth``.
        """
        employee = await self.get_employee_or_404(employee_id)
        chain: List[Employee] = []
        visited = {employee.id}
        current_id = employee.supervisor_id
        
        while current_id is not None:
            if current_id in visited:
                logger.warning("Supervisor cycle detected at employee %s", current_id)
                break
            if len(chain) >= self.max_depth:
                logger.warning("Supervisor chain for %s exceeds %d levels", employee_id, self.max_depth)
                break
            supervisor = await self.get_employee(current_id)
            if supervisor is None:
                break
            visited.add(supervisor.id)
            chain.append(supervisor)
            current_id = supervisor.supervisor_id
        
        return chain
    
    async def get_all_reports(self, employee_id: uuid.UUID) -> List[Employee]:
        """Transitive reports of an employee, breadth first."""
        await self.get_employee_or_404(employee_id)
        reports: List[Employee] = []
        visited = {employee_id}
        frontier = deque([employee_id])
        depth = 0
        
        while frontier and depth < self.max_depth:
            level_ids = list(frontier)
            frontier.clear()
            result = await self.db.execute(
                select(Employee)
                .where(Employee.supervisor_id.in_(level_ids))
                .order_by(Employee.last_name, Employee.first_name)
            )
            for report in result.scalars().all():
                if report.id in visited:
                    continue
                visited.add(report.id)
                reports.append(report)
                frontier.append(report.id)
            depth += 1
        
        return reports
    
    # ===========================================
    # VALIDATION
    # ===========================================
    
    def _clean_values(self, values: dict) -> dict:
        cleaned = {}
        for key, value in values.items():
            if key in ("first_name", "last_name"):
                value = (value or "").strip()
                if not value:
                    raise ValidationException(f"{key.replace('_', ' ').capitalize()} is required", field=key)
            elif key == "hire_date":
                if not isinstance(value, date):
                    raise ValidationException("Hire date is required", field="hire_date")
            elif key == "salary_rate" and value is not None:
                value = validate_amount(value, field="salary_rate", allow_zero=True)
            cleaned[key] = value
        return cleaned
    
    async def _check_user_link(self, user_id: uuid.UUID) -> None:
        if await self.db.get(User, user_id) is None:
            raise UserNotFoundException(user_id)
        linked = await self.db.scalar(
            select(Employee.id).where(Employee.user_id == user_id)
        )
        if linked is not None:
            raise DuplicateEntryException("Employee", "user_id", str(user_id))
    
    async def _check_supervisor(self, employee_id: uuid.UUID, supervisor_id: uuid.UUID) -> None:
        """Reject self-supervision, unknown supervisors and cycles."""
        if supervisor_id == employee_id:
            raise HierarchyException(employee_id, supervisor_id, "An employee cannot supervise themselves")
        await self.get_employee_or_404(supervisor_id)
        
        # Walk up from the proposed supervisor; reaching the employee means a cycle
        current_id: Optional[uuid.UUID] = supervisor_id
        visited = set()
        while current_id is not None:
            if current_id == employee_id:
                raise HierarchyException(
                    employee_id, supervisor_id,
                    "Assigning this supervisor would create a reporting cycle",
                )
            if current_id in visited or len(visited) >= self.max_depth:
                raise HierarchyException(
                    employee_id, supervisor_id,
                    "Supervisor chain is cyclic or too deep",
                )
            visited.add(current_id)
            current_id = await self.db.scalar(
                select(Employee.supervisor_id).where(Employee.id == current_id)
            )
