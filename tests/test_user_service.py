"""
Sakada Cash Advance - User Service Tests
"""

import pytest
from uuid import uuid4

from sakada.models.user import UserRole
from sakada.services.user_service import UserService
from sakada.utils.error_handling import (
    ConstraintViolationException,
    DuplicateEntryException,
    UserNotFoundException,
    ValidationException,
)


class TestUserService:
    """Test cases for UserService."""
    
    @pytest.mark.asyncio
    async def test_create_user(self, db_session):
        service = UserService(db_session)
        
        user = await service.create_user(
            username="jdelacruz",
            email="JDelaCruz@Example.com",
            password="SecurePassword123!",
            role="SUPERVISOR",
            access_level=5,
        )
        
        assert user.id is not None
        assert user.email == "jdelacruz@example.com"
        assert user.role == UserRole.SUPERVISOR
        assert user.is_active is True
        assert user.password_hash != "SecurePassword123!"  # Should be hashed
    
    @pytest.mark.asyncio
    async def test_duplicate_username(self, db_session):
        service = UserService(db_session)
        await service.create_user("jdelacruz", "a@example.com", "SecurePassword123!")
        
        with pytest.raises(DuplicateEntryException) as exc_info:
            await service.create_user("jdelacruz", "b@example.com", "SecurePassword123!")
        
        assert isinstance(exc_info.value, ConstraintViolationException)
        assert exc_info.value.status_code == 409
    
    @pytest.mark.asyncio
    async def test_duplicate_email(self, db_session):
        service = UserService(db_session)
        await service.create_user("first", "same@example.com", "SecurePassword123!")
        
        with pytest.raises(DuplicateEntryException):
            await service.create_user("second", "SAME@example.com", "SecurePassword123!")
    
    @pytest.mark.asyncio
    async def test_unknown_role(self, db_session):
        service = UserService(db_session)
        
        with pytest.raises(ValidationException) as exc_info:
            await service.create_user("jdelacruz", "a@example.com", "SecurePassword123!", role="OWNER")
        
        assert exc_info.value.field == "role"
    
    @pytest.mark.asyncio
    async def test_authenticate_user_success(self, db_session):
        service = UserService(db_session)
        await service.create_user("jdelacruz", "a@example.com", "SecurePassword123!")
        
        user = await service.authenticate_user("jdelacruz", "SecurePassword123!")
        
        assert user is not None
        assert user.last_login is not None
    
    @pytest.mark.asyncio
    async def test_authenticate_user_wrong_password(self, db_session):
        service = UserService(db_session)
        await service.create_user("jdelacruz", "a@example.com", "SecurePassword123!")
        
        assert await service.authenticate_user("jdelacruz", "WrongPassword!") is None
    
    @pytest.mark.asyncio
    async def test_authenticate_user_not_found(self, db_session):
        service = UserService(db_session)
        
        assert await service.authenticate_user("nobody", "Password123!") is None
    
    @pytest.mark.asyncio
    async def test_deactivated_user_cannot_authenticate(self, db_session):
        service = UserService(db_session)
        user = await service.create_user("jdelacruz", "a@example.com", "SecurePassword123!")
        
        await service.deactivate_user(user.id)
        
        assert await service.authenticate_user("jdelacruz", "SecurePassword123!") is None
        assert (await service.get_user_by_id(user.id)).is_active is False
    
    @pytest.mark.asyncio
    async def test_update_role(self, db_session):
        service = UserService(db_session)
        user = await service.create_user("jdelacruz", "a@example.com", "SecurePassword123!")
        
        updated = await service.update_role(user.id, UserRole.ADMIN, access_level=10)
        
        assert updated.role == UserRole.ADMIN
        assert updated.access_level == 10
    
    @pytest.mark.asyncio
    async def test_update_role_invalid_leaves_user_unchanged(self, db_session):
        service = UserService(db_session)
        user = await service.create_user("jdelacruz", "a@example.com", "SecurePassword123!")
        
        with pytest.raises(ValidationException):
            await service.update_role(user.id, "ROOT")
        
        assert (await service.get_user_by_username("jdelacruz")).role == UserRole.EMPLOYEE
    
    @pytest.mark.asyncio
    async def test_get_user_or_404(self, db_session):
        with pytest.raises(UserNotFoundException):
            await UserService(db_session).get_user_or_404(uuid4())
