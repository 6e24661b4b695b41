import logging
from typing import Any, Dict, Optional
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from access_control.auth.modules import ModuleCatalog, default_catalog
from access_control.core.exceptions import (
    InvalidStateError,
    NotFoundError,
    StoreError,
    ROLE_NOT_FOUND,
    SYSTEM_ROLE_RESTRICTED,
    USER_NOT_FOUND,
    USER_NOT_IN_ROLE,
)
from access_control.core.logging import log_user_action
from access_control.db.upsert import upsert
from access_control.models.auth.module_visibility import ModuleVisibility
from access_control.models.auth.role import Role
from access_control.models.auth.user import User
from access_control.models.auth.user_role import UserRole
from access_control.services.auth.access_service import AccessService
from access_control.services.auth.permission_cache import PermissionCache, permission_cache

logger = logging.getLogger(__name__)

ROLE_CELL_KEYS = ["role_id", "module_key"]
USER_CELL_KEYS = ["role_id", "user_id", "module_key"]


class VisibilityService:
    """Write path for module visibility cells (role level and per user)"""

    def __init__(
        self,
        session: AsyncSession,
        catalog: ModuleCatalog = default_catalog,
        cache: Optional[PermissionCache] = None,
    ):
        self.session = session
        self.catalog = catalog
        self.cache = cache or permission_cache

    async def _get_restrictable_role(self, role_id: int) -> Role:
        role = await self.session.get(Role, role_id)
        if not role:
            raise NotFoundError(ROLE_NOT_FOUND, f"Role {role_id} not found", role_id=role_id)
        if role.is_system_role:
            raise InvalidStateError(
                SYSTEM_ROLE_RESTRICTED,
                f"System role '{role.name}' always sees every module",
                role_id=role_id,
            )
        return role

    async def set_module_visibility(
        self,
        role_id: int,
        module_key: str,
        visible: bool,
        actor_id: Optional[int] = None,
    ) -> Dict[str, Any]:
        """Upsert one role cell"""
        try:
            role = await self._get_restrictable_role(role_id)
            module_key = self.catalog.require(module_key)

            await upsert(
                self.session,
                ModuleVisibility,
                {"role_id": role_id, "module_key": module_key, "visible": visible, "created_by": actor_id},
                index_elements=ROLE_CELL_KEYS,
                update_fields=["visible"],
                index_where=ModuleVisibility.user_id.is_(None),
            )
            await self.session.commit()

            logger.info(f"Module {module_key} {'shown' if visible else 'hidden'} for role {role.name}")
            log_user_action(actor_id, "SET_VISIBILITY", "module_visibility", role_id, module=module_key, visible=visible)
            await self.cache.invalidate()
            return {"role_id": role_id, "module_key": module_key, "visible": visible, "user_id": None}

        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(f"Error setting module visibility: {str(e)}")
            raise StoreError("Error updating module visibility")
        except Exception:
            await self.session.rollback()
            raise

    async def toggle_all_module_visibility(
        self,
        role_id: int,
        visible: bool,
        actor_id: Optional[int] = None,
    ) -> Dict[str, Any]:
        """
        Set every catalog module to ``visible`` for the role in a single
        transaction; a failure on any cell leaves all cells unchanged.
        """
        try:
            role = await self._get_restrictable_role(role_id)

            module_keys = list(self.catalog.keys)
            for module_key in module_keys:
                await upsert(
                    self.session,
                    ModuleVisibility,
                    {"role_id": role_id, "module_key": module_key, "visible": visible, "created_by": actor_id},
                    index_elements=ROLE_CELL_KEYS,
                    update_fields=["visible"],
                    index_where=ModuleVisibility.user_id.is_(None),
                )
            await self.session.commit()

            logger.info(f"All {len(module_keys)} modules {'shown' if visible else 'hidden'} for role {role.name}")
            log_user_action(
                actor_id, "SET_VISIBILITY_ALL", "module_visibility", role_id,
                visible=visible, count=len(module_keys),
            )
            await self.cache.invalidate()
            return {"role_id": role_id, "visible": visible, "count": len(module_keys), "module_keys": module_keys}

        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(f"Error toggling all module visibility for role {role_id}: {str(e)}")
            raise StoreError("Error updating module visibility")
        except Exception:
            await self.session.rollback()
            raise

    async def set_user_module_visibility(
        self,
        role_id: int,
        user_id: int,
        module_key: str,
        visible: bool,
        actor_id: Optional[int] = None,
    ) -> Dict[str, Any]:
        """Upsert a per-user override cell within one of the user's roles"""
        try:
            role = await self._get_restrictable_role(role_id)
            module_key = self.catalog.require(module_key)

            user = await self.session.get(User, user_id)
            if not user:
                raise NotFoundError(USER_NOT_FOUND, f"User {user_id} not found", user_id=user_id)

            holds_role = await self.session.scalar(
                select(UserRole.id).where(UserRole.user_id == user_id, UserRole.role_id == role_id)
            )
            if not holds_role:
                raise InvalidStateError(
                    USER_NOT_IN_ROLE,
                    f"User {user_id} does not hold role '{role.name}'",
                    user_id=user_id,
                    role_id=role_id,
                )

            await upsert(
                self.session,
                ModuleVisibility,
                {
                    "role_id": role_id,
                    "user_id": user_id,
                    "module_key": module_key,
                    "visible": visible,
                    "created_by": actor_id,
                },
                index_elements=USER_CELL_KEYS,
                update_fields=["visible"],
                index_where=ModuleVisibility.user_id.is_not(None),
            )
            await self.session.commit()

            logger.info(
                f"Module {module_key} {'shown' if visible else 'hidden'} for user {user_id} in role {role.name}"
            )
            log_user_action(
                actor_id, "SET_USER_VISIBILITY", "module_visibility", role_id,
                user=user_id, module=module_key, visible=visible,
            )
            await self.cache.invalidate()
            return {"role_id": role_id, "module_key": module_key, "visible": visible, "user_id": user_id}

        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(f"Error setting user module visibility: {str(e)}")
            raise StoreError("Error updating module visibility")
        except Exception:
            await self.session.rollback()
            raise

    async def get_role_visibility(self, role_id: int) -> Dict[str, Any]:
        """Resolved visibility map of one role with counters"""
        try:
            role = await self.session.get(Role, role_id)
        except SQLAlchemyError as e:
            logger.error(f"Error getting role {role_id}: {str(e)}")
            raise StoreError("Error getting role")
        if not role:
            raise NotFoundError(ROLE_NOT_FOUND, f"Role {role_id} not found", role_id=role_id)

        access = AccessService(self.session, self.catalog, self.cache)
        modules = await access.visibility_map(role_ids=[role_id])
        visible_count = sum(1 for visible in modules.values() if visible)

        return {
            "role_id": role.id,
            "role_name": role.name,
            "is_system_role": role.is_system_role,
            "modules": modules,
            "visible_count": visible_count,
            "hidden_count": len(modules) - visible_count,
            "all_visible": visible_count == len(modules),
            "all_hidden": visible_count == 0,
        }
