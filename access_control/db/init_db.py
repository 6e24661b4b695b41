import logging
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from access_control.auth.modules import ModuleCatalog, default_catalog
from access_control.core.database import engine
from access_control.db.seeds.rbac_data import ROLES_SEED
from access_control.models import Role
from access_control.models.base import Base
from access_control.schemas.auth.role import RoleCreate
from access_control.services.auth.permission_service import PermissionService
from access_control.services.auth.role_service import RoleService

logger = logging.getLogger(__name__)

async def create_tables():
    """Create all database tables (development only; production runs alembic)"""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables created")

async def seed_rbac(session: AsyncSession, catalog: ModuleCatalog = default_catalog) -> dict:
    """Idempotent seed: permission catalog plus the base roles"""
    permissions = await PermissionService(session, catalog).seed_catalog()

    role_service = RoleService(session, catalog)
    existing = set((await session.scalars(select(Role.name))).all())
    created_roles = []
    for data in ROLES_SEED:
        if data["name"] in existing:
            continue
        # The seed runs as the system itself
        await role_service.create_role(RoleCreate(**data), actor_is_system=True)
        created_roles.append(data["name"])

    logger.info(f"RBAC seed: {permissions['created']} permissions, roles created: {created_roles or 'none'}")
    return {"permissions": permissions, "roles": created_roles}
