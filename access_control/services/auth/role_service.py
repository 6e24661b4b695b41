import logging
from typing import Any, Dict, Optional, List
from datetime import datetime, timezone
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import func, select, update
from access_control.auth.modules import ModuleCatalog, default_catalog
from access_control.core.exceptions import (
    ConflictError,
    InvalidStateError,
    NotFoundError,
    StoreError,
    PERMISSION_NOT_FOUND,
    ROLE_NAME_CONFLICT,
    ROLE_NOT_FOUND,
    SYSTEM_ROLE_IMMUTABLE,
)
from access_control.core.logging import log_user_action
from access_control.db.upsert import upsert
from access_control.models.auth.module_visibility import ModuleVisibility
from access_control.models.auth.permission import Permission
from access_control.models.auth.role import Role
from access_control.models.auth.role_permission import RolePermission
from access_control.models.auth.user import User
from access_control.models.auth.user_role import UserRole
from access_control.schemas.auth.role import RoleCreate, RoleUpdate
from access_control.services.auth.permission_cache import PermissionCache, permission_cache

logger = logging.getLogger(__name__)

class RoleService:
    def __init__(
        self,
        session: AsyncSession,
        catalog: ModuleCatalog = default_catalog,
        cache: Optional[PermissionCache] = None,
    ):
        self.session = session
        self.catalog = catalog
        self.cache = cache or permission_cache

    async def get_role(self, role_id: int) -> Optional[Role]:
        """Get role by ID"""
        try:
            result = await self.session.execute(select(Role).where(Role.id == role_id))
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error(f"Error getting role {role_id}: {str(e)}")
            raise StoreError("Error getting role")

    async def get_role_or_404(self, role_id: int) -> Role:
        role = await self.get_role(role_id)
        if not role:
            raise NotFoundError(ROLE_NOT_FOUND, f"Role {role_id} not found", role_id=role_id)
        return role

    async def get_role_by_name(self, name: str) -> Optional[Role]:
        """Get role by name"""
        try:
            result = await self.session.execute(select(Role).where(Role.name == name))
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error(f"Error getting role by name: {str(e)}")
            raise StoreError("Error getting role")

    def _ensure_mutable(self, role: Role, actor_is_system: bool):
        if role.is_system_role and not actor_is_system:
            raise InvalidStateError(
                SYSTEM_ROLE_IMMUTABLE,
                f"System role '{role.name}' can only be changed by a system user",
                role_id=role.id,
            )

    async def create_role(
        self,
        role_create: RoleCreate,
        actor_id: Optional[int] = None,
        actor_is_system: bool = False,
    ) -> Role:
        """Create new role with every active permission granted"""
        try:
            name = role_create.name.strip()
            existing_role = await self.get_role_by_name(name)
            if existing_role:
                raise ConflictError(
                    ROLE_NAME_CONFLICT,
                    f"Role name '{name}' already exists",
                    existing_id=existing_role.id,
                )

            if role_create.is_system_role and not actor_is_system:
                raise InvalidStateError(
                    SYSTEM_ROLE_IMMUTABLE,
                    "Only a system user can create system roles",
                )

            db_role = Role(
                name=name,
                description=role_create.description,
                is_system_role=role_create.is_system_role,
                created_by=actor_id,
            )
            self.session.add(db_role)
            await self.session.flush()

            # New roles start fully permitted; visibility narrows them later
            granted = await self._grant_all(db_role.id, actor_id)

            await self.session.commit()
            await self.session.refresh(db_role)

            logger.info(f"Role created: {db_role.name} ({granted} permissions granted)")
            log_user_action(actor_id, "CREATE", "role", db_role.id, name=db_role.name)
            await self.cache.invalidate()
            return db_role

        except IntegrityError as e:
            await self.session.rollback()
            logger.warning(f"Role name conflict on create: {str(e)}")
            raise ConflictError(ROLE_NAME_CONFLICT, f"Role name '{role_create.name}' already exists")
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(f"Error creating role: {str(e)}")
            raise StoreError("Error creating role")
        except Exception:
            await self.session.rollback()
            raise

    async def update_role(
        self,
        role_id: int,
        role_update: RoleUpdate,
        actor_id: Optional[int] = None,
        actor_is_system: bool = False,
    ) -> Role:
        """Update role"""
        try:
            role = await self.get_role_or_404(role_id)
            self._ensure_mutable(role, actor_is_system)

            update_data = role_update.model_dump(exclude_unset=True)
            if update_data.get("name"):
                update_data["name"] = update_data["name"].strip()
                if update_data["name"] != role.name:
                    existing_role = await self.get_role_by_name(update_data["name"])
                    if existing_role:
                        raise ConflictError(
                            ROLE_NAME_CONFLICT,
                            f"Role name '{update_data['name']}' already exists",
                            existing_id=existing_role.id,
                        )

            for field, value in update_data.items():
                if value is not None:
                    setattr(role, field, value)
            role.updated_by = actor_id

            await self.session.commit()
            await self.session.refresh(role)

            logger.info(f"Role updated: {role.name}")
            log_user_action(actor_id, "UPDATE", "role", role.id, fields=",".join(update_data))
            await self.cache.invalidate()
            return role

        except IntegrityError as e:
            await self.session.rollback()
            logger.warning(f"Role name conflict on update: {str(e)}")
            raise ConflictError(ROLE_NAME_CONFLICT, "Role name already exists")
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(f"Error updating role: {str(e)}")
            raise StoreError("Error updating role")
        except Exception:
            await self.session.rollback()
            raise

    async def delete_role(
        self,
        role_id: int,
        actor_id: Optional[int] = None,
        actor_is_system: bool = False,
    ) -> bool:
        """Delete role; grants, visibility rows and assignments go with it"""
        try:
            role = await self.get_role_or_404(role_id)
            self._ensure_mutable(role, actor_is_system)

            name = role.name
            await self.session.delete(role)
            await self.session.commit()

            logger.info(f"Role deleted: {name}")
            log_user_action(actor_id, "DELETE", "role", role_id, name=name)
            await self.cache.invalidate()
            return True

        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(f"Error deleting role: {str(e)}")
            raise StoreError("Error deleting role")
        except Exception:
            await self.session.rollback()
            raise

    async def get_roles(
        self,
        page_index: int = 1,
        page_size: int = 100,
        search: Optional[str] = None,
        include_system: bool = True,
    ) -> Dict[str, Any]:
        """Get paginated list of roles"""
        try:
            conditions = []

            if search:
                search_term = f"%{search}%"
                conditions.append(Role.name.ilike(search_term))
            if not include_system:
                conditions.append(Role.is_system_role == False)

            # Get total count
            total_count = await self.session.scalar(
                select(func.count(Role.id)).where(*conditions)
            )

            # Calculate offset
            skip = (page_index - 1) * page_size

            roles = await self.session.scalars(
                select(Role)
                .where(*conditions)
                .order_by(Role.name)
                .offset(skip)
                .limit(page_size)
            )

            return {
                "page_index": page_index,
                "page_size": page_size,
                "count": total_count or 0,
                "data": roles.all()
            }

        except SQLAlchemyError as e:
            logger.error(f"Error getting roles: {str(e)}")
            raise StoreError("Error getting roles")

    # Grants

    async def _grant_all(self, role_id: int, actor_id: Optional[int]) -> int:
        result = await self.session.execute(
            select(Permission.id).where(Permission.is_active == True)
        )
        now = datetime.now(timezone.utc)
        rows = [
            {
                "role_id": role_id,
                "permission_id": permission_id,
                "granted": True,
                "granted_by": actor_id,
                "granted_at": now,
            }
            for permission_id in result.scalars().all()
        ]
        return await upsert(
            self.session,
            RolePermission,
            rows,
            index_elements=["role_id", "permission_id"],
            update_fields=["granted", "granted_by", "granted_at"],
        )

    async def grant_all_permissions(
        self,
        role_id: int,
        actor_id: Optional[int] = None,
        actor_is_system: bool = False,
    ) -> Dict[str, Any]:
        """Upsert granted=True for every active permission; idempotent"""
        try:
            role = await self.get_role_or_404(role_id)
            self._ensure_mutable(role, actor_is_system)

            count = await self._grant_all(role_id, actor_id)
            await self.session.commit()

            logger.info(f"All permissions granted to role {role.name}: {count}")
            log_user_action(actor_id, "GRANT_ALL", "role_permissions", role_id, count=count)
            await self.cache.invalidate()
            return {"role_id": role_id, "granted": True, "count": count}

        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(f"Error granting all permissions: {str(e)}")
            raise StoreError("Error granting permissions")
        except Exception:
            await self.session.rollback()
            raise

    async def set_permission_grant(
        self,
        role_id: int,
        permission_id: int,
        granted: bool,
        actor_id: Optional[int] = None,
        actor_is_system: bool = False,
    ) -> Dict[str, Any]:
        """
        Toggle one grant. Granting upserts the row; revoking flips an
        existing row and is a no-op when the role never had the grant.
        """
        try:
            role = await self.get_role_or_404(role_id)
            self._ensure_mutable(role, actor_is_system)

            permission = await self.session.get(Permission, permission_id)
            if not permission:
                raise NotFoundError(
                    PERMISSION_NOT_FOUND,
                    f"Permission {permission_id} not found",
                    permission_id=permission_id,
                )
            self.catalog.require(permission.module)

            if granted:
                count = await upsert(
                    self.session,
                    RolePermission,
                    {
                        "role_id": role_id,
                        "permission_id": permission_id,
                        "granted": True,
                        "granted_by": actor_id,
                        "granted_at": datetime.now(timezone.utc),
                    },
                    index_elements=["role_id", "permission_id"],
                    update_fields=["granted", "granted_by", "granted_at"],
                )
            else:
                result = await self.session.execute(
                    update(RolePermission)
                    .where(
                        RolePermission.role_id == role_id,
                        RolePermission.permission_id == permission_id,
                    )
                    .values(granted=False, granted_by=actor_id, updated_at=func.now())
                    .execution_options(synchronize_session=False)
                )
                count = result.rowcount or 0

            await self.session.commit()

            logger.info(f"Permission {permission.name} {'granted to' if granted else 'revoked from'} role {role.name}")
            log_user_action(
                actor_id, "GRANT" if granted else "REVOKE", "role_permission", role_id,
                permission=permission.name,
            )
            await self.cache.invalidate()
            return {
                "role_id": role_id,
                "granted": granted,
                "count": count,
                "permission_ids": [permission_id] if count else [],
            }

        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(f"Error toggling permission grant: {str(e)}")
            raise StoreError("Error updating permission grant")
        except Exception:
            await self.session.rollback()
            raise

    async def _flip_grants(
        self,
        role_id: int,
        granted: bool,
        actor_id: Optional[int],
        module_keys: List[str],
    ) -> List[int]:
        result = await self.session.execute(
            select(RolePermission.id, RolePermission.permission_id)
            .join(Permission, Permission.id == RolePermission.permission_id)
            .where(
                RolePermission.role_id == role_id,
                RolePermission.granted != granted,
                Permission.module.in_(module_keys),
            )
            .order_by(RolePermission.permission_id)
        )
        rows = result.all()
        if not rows:
            return []

        await self.session.execute(
            update(RolePermission)
            .where(RolePermission.id.in_([row.id for row in rows]))
            .values(granted=granted, granted_by=actor_id, updated_at=func.now())
            .execution_options(synchronize_session=False)
        )
        return [row.permission_id for row in rows]

    async def set_all_grants(
        self,
        role_id: int,
        granted: bool,
        actor_id: Optional[int] = None,
        actor_is_system: bool = False,
    ) -> Dict[str, Any]:
        """
        Flip every existing grant of the role for catalog modules.

        Grants on permissions whose module left the catalog are refused and
        reported back in ``skipped_permission_ids``.
        """
        try:
            role = await self.get_role_or_404(role_id)
            self._ensure_mutable(role, actor_is_system)

            permission_ids = await self._flip_grants(role_id, granted, actor_id, list(self.catalog.keys))
            skipped = await self.session.execute(
                select(RolePermission.permission_id)
                .join(Permission, Permission.id == RolePermission.permission_id)
                .where(
                    RolePermission.role_id == role_id,
                    RolePermission.granted != granted,
                    Permission.module.not_in(list(self.catalog.keys)),
                )
                .order_by(RolePermission.permission_id)
            )
            skipped_ids = list(skipped.scalars().all())
            await self.session.commit()

            logger.info(
                f"{len(permission_ids)} grants {'enabled' if granted else 'revoked'} for role {role.name}"
            )
            if skipped_ids:
                logger.warning(f"Grants outside the module catalog left untouched for role {role.name}: {skipped_ids}")
            log_user_action(
                actor_id, "GRANT_ALL" if granted else "REVOKE_ALL", "role_permissions", role_id,
                count=len(permission_ids),
            )
            await self.cache.invalidate()
            return {
                "role_id": role_id,
                "granted": granted,
                "count": len(permission_ids),
                "permission_ids": permission_ids,
                "skipped_permission_ids": skipped_ids,
            }

        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(f"Error toggling all grants: {str(e)}")
            raise StoreError("Error updating permission grants")
        except Exception:
            await self.session.rollback()
            raise

    async def set_module_grants(
        self,
        role_id: int,
        module_key: str,
        granted: bool,
        actor_id: Optional[int] = None,
        actor_is_system: bool = False,
    ) -> Dict[str, Any]:
        """Flip existing grants of the role for one module's permissions"""
        try:
            role = await self.get_role_or_404(role_id)
            self._ensure_mutable(role, actor_is_system)
            module_key = self.catalog.require(module_key)

            permission_ids = await self._flip_grants(role_id, granted, actor_id, [module_key])
            await self.session.commit()

            logger.info(
                f"{len(permission_ids)} {module_key} grants {'enabled' if granted else 'revoked'} "
                f"for role {role.name}"
            )
            log_user_action(
                actor_id, "GRANT_MODULE" if granted else "REVOKE_MODULE", "role_permissions", role_id,
                module=module_key, count=len(permission_ids),
            )
            await self.cache.invalidate()
            return {
                "role_id": role_id,
                "granted": granted,
                "count": len(permission_ids),
                "permission_ids": permission_ids,
            }

        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(f"Error toggling module grants: {str(e)}")
            raise StoreError("Error updating permission grants")
        except Exception:
            await self.session.rollback()
            raise

    async def get_role_permissions(self, role_id: int) -> List[Dict[str, Any]]:
        """Every active permission with the role's grant flag"""
        await self.get_role_or_404(role_id)
        try:
            result = await self.session.execute(
                select(Permission, RolePermission.granted)
                .outerjoin(
                    RolePermission,
                    (RolePermission.permission_id == Permission.id)
                    & (RolePermission.role_id == role_id),
                )
                .where(Permission.is_active == True)
                .order_by(Permission.module, Permission.action)
            )
            return [
                {
                    "id": permission.id,
                    "name": permission.name,
                    "module": permission.module,
                    "action": permission.action,
                    "description": permission.description,
                    "granted": bool(granted),
                }
                for permission, granted in result.all()
            ]
        except SQLAlchemyError as e:
            logger.error(f"Error getting role permissions: {str(e)}")
            raise StoreError("Error getting role permissions")

    async def get_permission_stats(self, role_id: int) -> Dict[str, Any]:
        await self.get_role_or_404(role_id)
        try:
            total = await self.session.scalar(
                select(func.count(Permission.id)).where(Permission.is_active == True)
            ) or 0
            granted = await self.session.scalar(
                select(func.count(RolePermission.id))
                .join(Permission, Permission.id == RolePermission.permission_id)
                .where(
                    RolePermission.role_id == role_id,
                    RolePermission.granted == True,
                    Permission.is_active == True,
                )
            ) or 0
        except SQLAlchemyError as e:
            logger.error(f"Error getting permission stats: {str(e)}")
            raise StoreError("Error getting permission stats")

        return {
            "role_id": role_id,
            "total": total,
            "granted": granted,
            "percentage": round(granted * 100 / total, 2) if total else 0.0,
        }

    async def get_summary(self) -> Dict[str, int]:
        """RBAC totals plus counters for data an operator should clean up"""
        try:
            multi_role_users = (
                select(UserRole.user_id)
                .group_by(UserRole.user_id)
                .having(func.count(UserRole.role_id) > 1)
                .subquery()
            )
            granted_roles = select(RolePermission.role_id).where(RolePermission.granted == True)
            assigned_users = select(UserRole.user_id)

            counts = {
                "roles": select(func.count(Role.id)),
                "active_roles": select(func.count(Role.id)).where(Role.is_active == True),
                "system_roles": select(func.count(Role.id)).where(Role.is_system_role == True),
                "permissions": select(func.count(Permission.id)),
                "active_permissions": select(func.count(Permission.id)).where(Permission.is_active == True),
                "grants": select(func.count(RolePermission.id)).where(RolePermission.granted == True),
                "revoked_grants": select(func.count(RolePermission.id)).where(RolePermission.granted == False),
                "visibility_rows": select(func.count(ModuleVisibility.id)),
                "hidden_modules": select(func.count(ModuleVisibility.id)).where(ModuleVisibility.visible == False),
                "user_assignments": select(func.count(UserRole.id)),
                "users_without_role": select(func.count(User.id)).where(User.id.not_in(assigned_users)),
                "users_with_multiple_roles": select(func.count()).select_from(multi_role_users),
                "roles_without_grants": select(func.count(Role.id)).where(
                    Role.is_system_role == False,
                    Role.id.not_in(granted_roles),
                ),
            }

            summary = {}
            for key, stmt in counts.items():
                summary[key] = await self.session.scalar(stmt) or 0
            return summary

        except SQLAlchemyError as e:
            logger.error(f"Error building RBAC summary: {str(e)}")
            raise StoreError("Error building RBAC summary")
