"""
Sakada Cash Advance - User Service

Business logic for the user directory.
"""

import logging
import uuid
from typing import Optional, Union

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from sakada.database import commit_or_raise
from sakada.models.base import utcnow
from sakada.models.user import User, UserRole
from sakada.utils.error_handling import (
    DuplicateEntryException,
    UserNotFoundException,
    ValidationException,
)
from sakada.utils.security import get_password_hash, verify_password

logger = logging.getLogger(__name__)


def coerce_role(role: Union[UserRole, str]) -> UserRole:
    """Parse a role value, rejecting anything outside the allowed set."""
    try:
        return UserRole(role)
    except ValueError:
        raise ValidationException(
            f"Invalid role '{role}'. Allowed: {', '.join(r.value for r in UserRole)}",
            field="role",
        )


class UserService:
    """Service for user account operations."""
    
    def __init__(self, db: AsyncSession):
        self.db = db
    
    async def get_user_by_id(self, user_id: uuid.UUID) -> Optional[User]:
        """Get user by ID."""
        return await self.db.get(User, user_id)
    
    async def get_user_or_404(self, user_id: uuid.UUID) -> User:
        user = await self.get_user_by_id(user_id)
        if user is None:
            raise UserNotFoundException(user_id)
        return user
    
    async def get_user_by_username(self, username: str) -> Optional[User]:
        """Get user by username."""
        result = await self.db.execute(
            select(User).where(User.username == username.strip())
        )
        return result.scalar_one_or_none()
    
    async def get_user_by_email(self, email: str) -> Optional[User]:
        """Get user by email address."""
        result = await self.db.execute(
            select(User).where(User.email == email.strip().lower())
        )
        return result.scalar_one_or_none()
    
    async def create_user(
        self,
        username: str,
        email: str,
        password: str,
        role: Union[UserRole, str] = UserRole.EMPLOYEE,
        access_level: int = 1,
    ) -> User:
        """
        Create a user account.
        
        Raises:
            ValidationException: blank username/password, bad role or access level
            DuplicateEntryException: username or email already taken
        """
        username = (username or "").strip()
        email = (email or "").strip().lower()
        if not username:
            raise ValidationException("Username is required", field="username")
        if not email or "@" not in email:
            raise ValidationException("A valid email is required", field="email")
        if not password:
            raise ValidationException("Password is required", field="password")
        if access_level < 0:
            raise ValidationException("Access level cannot be negative", field="access_level")
        role = coerce_role(role)
        
        if await self.get_user_by_username(username):
            raise DuplicateEntryException("User", "username", username)
        if await self.get_user_by_email(email):
            raise DuplicateEntryException("User", "email", email)
        
        user = User(
            username=username,
            email=email,
            password_hash=get_password_hash(password),
            role=role,
            access_level=access_level,
            is_active=True,
            created_at=utcnow(),
        )
        self.db.add(user)
        await commit_or_raise(self.db, "User")
        
        logger.info("User %s created with role %s", username, role.value)
        return user
    
    async def authenticate_user(self, username: str, password: str) -> Optional[User]:
        """
        Authenticate user with username and password.
        
        Returns:
            User if authentication successful, None otherwise
        """
        user = await self.get_user_by_username(username)
        
        if not user or not user.is_active:
            return None
        
        if not verify_password(password, user.password_hash):
            return None
        
        user.last_login = utcnow()
        await commit_or_raise(self.db, "User")
        return user
    
    async def update_role(
        self,
        user_id: uuid.UUID,
        role: Union[UserRole, str],
        access_level: Optional[int] = None,
    ) -> User:
        """Change a user's role and, optionally, access level."""
        role = coerce_role(role)
        if access_level is not None and access_level < 0:
            raise ValidationException("Access level cannot be negative", field="access_level")
        
        user = await self.get_user_or_404(user_id)
        user.role = role
        if access_level is not None:
            user.access_level = access_level
        await commit_or_raise(self.db, "User")
        return user
    
    async def deactivate_user(self, user_id: uuid.UUID) -> User:
        """Soft-deactivate a user. Accounts are never hard-deleted."""
        user = await self.get_user_or_404(user_id)
        user.is_active = False
        await commit_or_raise(self.db, "User")
        logger.info("User %s deactivated", user.username)
        return user
