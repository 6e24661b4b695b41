"""
RBAC Seed Data (async, idempotent)
- Permission catalog for every known module
- Base roles: UNIDADC (system), ADMINISTRADOR, OPERADOR
Run:  python scripts/seed/rbac_data.py
"""

import os, sys
import asyncio
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "..")))

from access_control.core.database import async_session_maker
from access_control.db.init_db import create_tables, seed_rbac

async def main():
    # Create tables (safe if already created)
    await create_tables()

    async with async_session_maker() as db:
        try:
            result = await seed_rbac(db)
            print(f"Permissions created: {result['permissions']['created']}, "
                  f"already present: {result['permissions']['existing']}")
            print(f"Roles created: {', '.join(result['roles']) or 'none'}")
            print("RBAC seed completed successfully!")
        except Exception as ex:
            await db.rollback()
            print(f"Seed failed: {ex}")
            raise

if __name__ == "__main__":
    asyncio.run(main())
