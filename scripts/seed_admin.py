#!/usr/bin/env python3
"""
Seed the initial administrator account.

Credentials come from settings (DEFAULT_ADMIN_USERNAME, DEFAULT_ADMIN_EMAIL,
DEFAULT_ADMIN_PASSWORD). Running it twice is harmless: an existing account
with the same username is left untouched.
"""

import asyncio
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from sakada.config import settings
from sakada.database import async_session_maker, close_db
from sakada.models.user import UserRole
from sakada.services.user_service import UserService


async def seed_admin() -> int:
    if not settings.default_admin_password:
        print("❌ DEFAULT_ADMIN_PASSWORD is not set")
        return 1

    async with async_session_maker() as session:
        service = UserService(session)
        existing = await service.get_user_by_username(settings.default_admin_username)
        if existing:
            print(f"Admin '{existing.username}' already exists; nothing to do")
            return 0

        admin = await service.create_user(
            username=settings.default_admin_username,
            email=settings.default_admin_email,
            password=settings.default_admin_password,
            role=UserRole.ADMIN,
            access_level=settings.default_admin_access_level,
        )
        print(f"✅ Admin created: {admin.username} <{admin.email}>")
    return 0


async def main() -> int:
    try:
        return await seed_admin()
    finally:
        await close_db()


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
