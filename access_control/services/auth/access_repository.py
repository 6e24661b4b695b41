import logging
from typing import Iterable, List, Optional

from sqlalchemy import or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from access_control.auth.snapshot import AccessSnapshot, PermissionInfo, RoleInfo
from access_control.core.exceptions import StoreError
from access_control.models.auth.module_visibility import ModuleVisibility
from access_control.models.auth.permission import Permission
from access_control.models.auth.role import Role
from access_control.models.auth.role_permission import RolePermission
from access_control.models.auth.user_role import UserRole

logger = logging.getLogger(__name__)


class AccessRepository:
    """Loads access snapshots; reads only, never commits"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_role_ids_for_user(self, user_id: int) -> List[int]:
        """Ids of the user's assigned roles that are active"""
        try:
            result = await self.session.execute(
                select(UserRole.role_id)
                .join(Role, Role.id == UserRole.role_id)
                .where(UserRole.user_id == user_id, Role.is_active == True)
                .order_by(UserRole.role_id)
            )
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            logger.error(f"Error loading roles for user {user_id}: {str(e)}")
            raise StoreError("Error loading user roles")

    async def get_roles_for_user(self, user_id: int) -> List[RoleInfo]:
        """The user's active roles, without grants or visibility"""
        try:
            result = await self.session.execute(
                select(Role.id, Role.name, Role.is_system_role, Role.is_active)
                .join(UserRole, UserRole.role_id == Role.id)
                .where(UserRole.user_id == user_id, Role.is_active == True)
                .order_by(Role.id)
            )
            return [
                RoleInfo(id=r.id, name=r.name, is_system_role=r.is_system_role, is_active=r.is_active)
                for r in result
            ]
        except SQLAlchemyError as e:
            logger.error(f"Error loading roles for user {user_id}: {str(e)}")
            raise StoreError("Error loading user roles")

    async def load_snapshot(
        self,
        role_ids: Iterable[int],
        user_id: Optional[int] = None,
    ) -> AccessSnapshot:
        """
        Load everything resolution needs for a role set in four queries:
        roles, the permission catalog, the roles' grants and the roles'
        visibility rows (role cells plus ``user_id`` overrides).
        """
        role_ids = sorted(set(role_ids))
        if not role_ids:
            return AccessSnapshot(user_id=user_id)

        try:
            role_rows = await self.session.execute(
                select(Role.id, Role.name, Role.is_system_role, Role.is_active)
                .where(Role.id.in_(role_ids))
            )
            roles = [
                RoleInfo(id=r.id, name=r.name, is_system_role=r.is_system_role, is_active=r.is_active)
                for r in role_rows
            ]

            permission_rows = await self.session.execute(
                select(Permission.id, Permission.module, Permission.action, Permission.is_active)
            )
            permissions = [
                PermissionInfo(id=p.id, module=p.module, action=p.action, is_active=p.is_active)
                for p in permission_rows
            ]

            grant_rows = await self.session.execute(
                select(RolePermission.role_id, RolePermission.permission_id, RolePermission.granted)
                .where(RolePermission.role_id.in_(role_ids))
            )
            grants = {(g.role_id, g.permission_id): g.granted for g in grant_rows}

            scope = ModuleVisibility.user_id.is_(None)
            if user_id is not None:
                scope = or_(scope, ModuleVisibility.user_id == user_id)
            visibility_rows = await self.session.execute(
                select(
                    ModuleVisibility.role_id,
                    ModuleVisibility.module_key,
                    ModuleVisibility.visible,
                    ModuleVisibility.user_id,
                ).where(ModuleVisibility.role_id.in_(role_ids), scope)
            )
        except SQLAlchemyError as e:
            logger.error(f"Error loading access snapshot for roles {role_ids}: {str(e)}")
            raise StoreError("Error loading access data")

        visibility = {}
        user_overrides = {}
        for row in visibility_rows:
            if row.user_id is None:
                visibility[(row.role_id, row.module_key)] = row.visible
            else:
                user_overrides[(row.role_id, row.module_key)] = row.visible

        return AccessSnapshot.build(
            roles=roles,
            permissions=permissions,
            grants=grants,
            visibility=visibility,
            user_overrides=user_overrides,
            user_id=user_id,
        )

    async def load_user_snapshot(self, user_id: int) -> AccessSnapshot:
        role_ids = await self.get_role_ids_for_user(user_id)
        return await self.load_snapshot(role_ids, user_id=user_id)
