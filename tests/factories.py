"""
Sakada Cash Advance - Test Data Factories

Direct ORM inserts for test setup, bypassing the services.
"""

from datetime import date
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from sakada.models.base import utcnow
from sakada.models.employee import Employee
from sakada.models.user import User, UserRole

# Hashing is slow; factory users never log in
FIXTURE_PASSWORD_HASH = "!fixture-user-cannot-log-in"


async def make_user(
    db_session: AsyncSession,
    username: str,
    role: UserRole = UserRole.EMPLOYEE,
    is_active: bool = True,
) -> User:
    user = User(
        username=username,
        email=f"{username}@example.com",
        password_hash=FIXTURE_PASSWORD_HASH,
        role=role,
        access_level=5 if role != UserRole.EMPLOYEE else 1,
        is_active=is_active,
        created_at=utcnow(),
    )
    db_session.add(user)
    await db_session.commit()
    return user


async def make_employee(
    db_session: AsyncSession,
    first_name: str,
    last_name: str,
    supervisor: Optional[Employee] = None,
    user: Optional[User] = None,
) -> Employee:
    employee = Employee(
        first_name=first_name,
        last_name=last_name,
        department="Operations",
        hire_date=date(2024, 1, 15),
        supervisor_id=supervisor.id if supervisor else None,
        user_id=user.id if user else None,
    )
    db_session.add(employee)
    await db_session.commit()
    return employee
