#!/usr/bin/env python3
"""
Create all database tables and the cash_advance_summary view directly
from the SQLAlchemy models.

Intended for local development; production databases are migrated with
Alembic.
"""

import asyncio
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from sakada.config import settings
from sakada.database import close_db, init_db


async def main():
    print(f"Creating tables on {settings.postgres_host}:{settings.postgres_port}/{settings.postgres_db}")
    try:
        await init_db()
    finally:
        await close_db()
    print("✅ Tables and cash_advance_summary view created")


if __name__ == "__main__":
    asyncio.run(main())
