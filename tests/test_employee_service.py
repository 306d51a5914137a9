"""
Sakada Cash Advance - Employee Service Tests

Employee records and the supervisor hierarchy.
"""

import pytest
from datetime import date
from decimal import Decimal
from uuid import uuid4

from sakada.services.cash_advance_service import CashAdvanceService
from sakada.services.employee_service import EmployeeService
from sakada.utils.error_handling import (
    ConstraintViolationException,
    DuplicateEntryException,
    EmployeeNotFoundException,
    HierarchyException,
    UserNotFoundException,
    ValidationException,
)
from tests.factories import make_employee, make_user


class TestEmployeeRecords:
    """Test cases for creating and updating employees."""
    
    @pytest.mark.asyncio
    async def test_create_employee(self, db_session, supervisor_user):
        service = EmployeeService(db_session)
        
        employee = await service.create_employee(
            first_name=" Ana ",
            last_name="Cruz",
            hire_date=date(2025, 6, 1),
            user_id=supervisor_user.id,
            department="Finance",
            salary_rate="18500",
        )
        
        assert employee.id is not None
        assert employee.full_name == "Ana Cruz"
        assert employee.user_id == supervisor_user.id
        assert employee.salary_rate == Decimal("18500.00")
    
    @pytest.mark.asyncio
    async def test_create_requires_names(self, db_session):
        service = EmployeeService(db_session)
        
        with pytest.raises(ValidationException):
            await service.create_employee(first_name="", last_name="Cruz", hire_date=date(2025, 6, 1))
    
    @pytest.mark.asyncio
    async def test_create_with_unknown_supervisor(self, db_session):
        service = EmployeeService(db_session)
        
        with pytest.raises(EmployeeNotFoundException):
            await service.create_employee(
                first_name="Ana", last_name="Cruz", hire_date=date(2025, 6, 1),
                supervisor_id=uuid4(),
            )
    
    @pytest.mark.asyncio
    async def test_user_can_link_to_one_employee(self, db_session, supervisor_user):
        service = EmployeeService(db_session)
        await make_employee(db_session, "Ana", "Cruz", user=supervisor_user)
        
        with pytest.raises(DuplicateEntryException) as exc_info:
            await service.create_employee(
                first_name="Ben", last_name="Lim", hire_date=date(2025, 6, 1),
                user_id=supervisor_user.id,
            )
        
        assert isinstance(exc_info.value, ConstraintViolationException)
    
    @pytest.mark.asyncio
    async def test_link_to_unknown_user(self, db_session):
        service = EmployeeService(db_session)
        
        with pytest.raises(UserNotFoundException):
            await service.create_employee(
                first_name="Ben", last_name="Lim", hire_date=date(2025, 6, 1), user_id=uuid4(),
            )
    
    @pytest.mark.asyncio
    async def test_update_employee(self, db_session, employee):
        service = EmployeeService(db_session)
        
        updated = await service.update_employee(employee.id, position="Team Lead", department="Sales")
        
        assert updated.position == "Team Lead"
        assert updated.department == "Sales"
    
    @pytest.mark.asyncio
    async def test_update_rejects_unknown_fields(self, db_session, employee):
        service = EmployeeService(db_session)
        
        with pytest.raises(ValidationException):
            await service.update_employee(employee.id, nickname="Mars")
    
    @pytest.mark.asyncio
    async def test_list_by_department(self, db_session, employee):
        service = EmployeeService(db_session)
        await service.create_employee(
            first_name="Ben", last_name="Lim", hire_date=date(2025, 6, 1), department="IT",
        )
        
        it_staff = await service.list_employees(department="IT")
        everyone = await service.list_employees()
        
        assert [e.last_name for e in it_staff] == ["Lim"]
        assert len(everyone) == 2


class TestHierarchy:
    """Test cases for supervisor relationships."""
    
    @pytest.mark.asyncio
    async def test_direct_reports_and_chain(self, db_session):
        ceo = await make_employee(db_session, "Carmen", "Ocampo")
        manager = await make_employee(db_session, "Dante", "Bautista", supervisor=ceo)
        clerk = await make_employee(db_session, "Elena", "Aquino", supervisor=manager)
        other = await make_employee(db_session, "Felix", "Garcia", supervisor=manager)
        service = EmployeeService(db_session)
        
        reports = await service.get_direct_reports(manager.id)
        chain = await service.get_supervisor_chain(clerk.id)
        everyone_under_ceo = await service.get_all_reports(ceo.id)
        
        assert [e.id for e in reports] == [clerk.id, other.id]
        assert [e.id for e in chain] == [manager.id, ceo.id]
        assert {e.id for e in everyone_under_ceo} == {manager.id, clerk.id, other.id}
        assert everyone_under_ceo[0].id == manager.id
    
    @pytest.mark.asyncio
    async def test_self_supervision_rejected(self, db_session, employee):
        service = EmployeeService(db_session)
        
        with pytest.raises(HierarchyException):
            await service.set_supervisor(employee.id, employee.id)
    
    @pytest.mark.asyncio
    async def test_cycle_rejected(self, db_session):
        top = await make_employee(db_session, "Carmen", "Ocampo")
        middle = await make_employee(db_session, "Dante", "Bautista", supervisor=top)
        bottom = await make_employee(db_session, "Elena", "Aquino", supervisor=middle)
        service = EmployeeService(db_session)
        
        with pytest.raises(HierarchyException) as exc_info:
            await service.set_supervisor(top.id, bottom.id)
        
        assert isinstance(exc_info.value, ValidationException)
        refreshed = await service.get_employee(top.id)
        assert refreshed.supervisor_id is None
    
    @pytest.mark.asyncio
    async def test_clear_supervisor(self, db_session):
        boss = await make_employee(db_session, "Carmen", "Ocampo")
        worker = await make_employee(db_session, "Dante", "Bautista", supervisor=boss)
        service = EmployeeService(db_session)
        
        updated = await service.set_supervisor(worker.id, None)
        
        assert updated.supervisor_id is None
        assert await service.get_direct_reports(boss.id) == []
    
    @pytest.mark.asyncio
    async def test_traversals_survive_existing_cycle(self, db_session):
        """Cycles written outside the service must not hang traversals."""
        a = await make_employee(db_session, "Ana", "Uno")
        b = await make_employee(db_session, "Ben", "Dos", supervisor=a)
        a.supervisor_id = b.id
        await db_session.commit()
        service = EmployeeService(db_session)
        
        chain = await service.get_supervisor_chain(a.id)
        reports = await service.get_all_reports(a.id)
        
        assert [e.id for e in chain] == [b.id]
        assert [e.id for e in reports] == [b.id]
    
    @pytest.mark.asyncio
    async def test_chain_respects_max_depth(self, db_session):
        previous = None
        staff = []
        for i in range(6):
            previous = await make_employee(db_session, f"E{i}", "Level", supervisor=previous)
            staff.append(previous)
        service = EmployeeService(db_session, max_depth=3)
        
        chain = await service.get_supervisor_chain(staff[-1].id)
        
        assert len(chain) == 3


class TestDeleteEmployee:
    """Test cases for removing employees."""
    
    @pytest.mark.asyncio
    async def test_deleting_supervisor_clears_reports(self, db_session):
        boss = await make_employee(db_session, "Carmen", "Ocampo")
        worker = await make_employee(db_session, "Dante", "Bautista", supervisor=boss)
        service = EmployeeService(db_session)
        
        await service.delete_employee(boss.id)
        
        assert await service.get_employee(boss.id) is None
        refreshed = await service.get_employee(worker.id)
        assert refreshed is not None
        assert refreshed.supervisor_id is None
    
    @pytest.mark.asyncio
    async def test_cannot_delete_employee_with_advances(self, db_session, employee):
        await CashAdvanceService(db_session).submit(employee.id, 100, "medical")
        service = EmployeeService(db_session)
        
        with pytest.raises(ConstraintViolationException):
            await service.delete_employee(employee.id)
        
        assert await service.get_employee(employee.id) is not None
    
    @pytest.mark.asyncio
    async def test_delete_unknown(self, db_session):
        with pytest.raises(EmployeeNotFoundException):
            await EmployeeService(db_session).delete_employee(uuid4())
    
    @pytest.mark.asyncio
    async def test_linked_user_survives(self, db_session):
        user = await make_user(db_session, "linked")
        linked = await make_employee(db_session, "Ana", "Cruz", user=user)
        
        await EmployeeService(db_session).delete_employee(linked.id)
        
        assert (await db_session.get(type(user), user.id)) is not None
