import logging
from typing import Any, Dict, Optional, List
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import func, or_, select
from access_control.auth.modules import ModuleCatalog, default_catalog, normalize_action, normalize_module_key
from access_control.core.exceptions import (
    ConflictError,
    NotFoundError,
    StoreError,
    PERMISSION_CONFLICT,
    PERMISSION_NOT_FOUND,
)
from access_control.core.logging import log_user_action
from access_control.db.seeds.rbac_data import build_permissions_seed
from access_control.models.auth.permission import Permission
from access_control.schemas.auth.permission import PermissionCreate
from access_control.services.auth.permission_cache import PermissionCache, permission_cache

logger = logging.getLogger(__name__)

class PermissionService:
    def __init__(
        self,
        session: AsyncSession,
        catalog: ModuleCatalog = default_catalog,
        cache: Optional[PermissionCache] = None,
    ):
        self.session = session
        self.catalog = catalog
        self.cache = cache or permission_cache

    async def get_permission(self, permission_id: int) -> Optional[Permission]:
        """Get permission by ID"""
        try:
            result = await self.session.execute(
                select(Permission).where(Permission.id == permission_id)
            )
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error(f"Error getting permission {permission_id}: {str(e)}")
            raise StoreError("Error getting permission")

    async def get_permission_or_404(self, permission_id: int) -> Permission:
        permission = await self.get_permission(permission_id)
        if not permission:
            raise NotFoundError(
                PERMISSION_NOT_FOUND,
                f"Permission {permission_id} not found",
                permission_id=permission_id,
            )
        return permission

    async def get_permission_by_pair(self, module: str, action: str) -> Optional[Permission]:
        """Get permission by (module, action)"""
        try:
            result = await self.session.execute(
                select(Permission).where(
                    Permission.module == normalize_module_key(module),
                    Permission.action == normalize_action(action),
                )
            )
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error(f"Error getting permission {module}:{action}: {str(e)}")
            raise StoreError("Error getting permission")

    async def create_permission(
        self,
        permission_create: PermissionCreate,
        actor_id: Optional[int] = None,
    ) -> Permission:
        """Create new permission for a catalog module"""
        try:
            module = self.catalog.require(permission_create.module)
            action = normalize_action(permission_create.action)

            existing_permission = await self.get_permission_by_pair(module, action)
            if existing_permission:
                raise ConflictError(
                    PERMISSION_CONFLICT,
                    f"Permission {module}:{action} already exists",
                    existing_id=existing_permission.id,
                )

            db_permission = Permission(
                name=f"{module}:{action}",
                description=permission_create.description,
                module=module,
                action=action,
                created_by=actor_id,
            )

            self.session.add(db_permission)
            await self.session.commit()
            await self.session.refresh(db_permission)

            logger.info(f"Permission created: {db_permission.name}")
            log_user_action(actor_id, "CREATE", "permission", db_permission.id, name=db_permission.name)
            await self.cache.invalidate()
            return db_permission

        except IntegrityError as e:
            await self.session.rollback()
            logger.warning(f"Permission conflict on create: {str(e)}")
            raise ConflictError(
                PERMISSION_CONFLICT,
                f"Permission {permission_create.module}:{permission_create.action} already exists",
            )
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(f"Error creating permission: {str(e)}")
            raise StoreError("Error creating permission")
        except Exception:
            await self.session.rollback()
            raise

    async def get_permissions(
        self,
        page_index: int = 1,
        page_size: int = 100,
        search: Optional[str] = None,
        module: Optional[str] = None,
        is_active: Optional[bool] = None,
    ) -> Dict[str, Any]:
        """Get paginated list of permissions"""
        try:
            conditions = []

            if search:
                search_term = f"%{search}%"
                conditions.append(
                    or_(
                        Permission.name.ilike(search_term),
                        Permission.description.ilike(search_term),
                    )
                )
            if module:
                conditions.append(Permission.module == normalize_module_key(module))
            if is_active is not None:
                conditions.append(Permission.is_active == is_active)

            total_count = await self.session.scalar(
                select(func.count(Permission.id)).where(*conditions)
            )

            skip = (page_index - 1) * page_size

            permissions = await self.session.scalars(
                select(Permission)
                .where(*conditions)
                .order_by(Permission.module, Permission.action)
                .offset(skip)
                .limit(page_size)
            )

            return {
                "page_index": page_index,
                "page_size": page_size,
                "count": total_count or 0,
                "data": permissions.all()
            }

        except SQLAlchemyError as e:
            logger.error(f"Error getting permissions: {str(e)}")
            raise StoreError("Error getting permissions")

    async def seed_catalog(self, seed: Optional[List[dict]] = None) -> Dict[str, int]:
        """Insert missing catalog permissions; existing ones are left untouched"""
        seed = seed if seed is not None else build_permissions_seed(self.catalog)
        try:
            result = await self.session.execute(select(Permission.module, Permission.action))
            existing = {(row.module, row.action) for row in result}

            created = 0
            for data in seed:
                key = (normalize_module_key(data["module"]), normalize_action(data["action"]))
                if key in existing:
                    continue
                self.session.add(Permission(
                    name=f"{key[0]}:{key[1]}",
                    description=data.get("description"),
                    module=key[0],
                    action=key[1],
                ))
                existing.add(key)
                created += 1

            await self.session.commit()

            logger.info(f"Permission catalog seeded: {created} created, {len(seed) - created} existing")
            if created:
                await self.cache.invalidate()
            return {"created": created, "existing": len(seed) - created}

        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(f"Error seeding permissions: {str(e)}")
            raise StoreError("Error seeding permissions")
