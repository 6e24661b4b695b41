import logging
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from access_control.auth.modules import ModuleCatalog, default_catalog, normalize_action, normalize_module_key
from access_control.auth.permissions import PermissionChecker
from access_control.auth.routes import can_access_route, resolve_module_from_route
from access_control.auth.snapshot import AccessSnapshot, PermissionInfo
from access_control.auth.visibility import VisibilityDecision, VisibilityResolver, default_strategies
from access_control.core.config import settings
from access_control.core.exceptions import NotFoundError, ROLE_NOT_FOUND, USER_NOT_FOUND
from access_control.models.auth.role import Role
from access_control.models.auth.user import User
from access_control.services.auth.access_repository import AccessRepository
from access_control.services.auth.permission_cache import PermissionCache, permission_cache

logger = logging.getLogger(__name__)


class AccessService:
    """Read side of the RBAC engine: permission and visibility decisions"""

    def __init__(
        self,
        session: AsyncSession,
        catalog: ModuleCatalog = default_catalog,
        cache: Optional[PermissionCache] = None,
    ):
        self.session = session
        self.catalog = catalog
        self.cache = cache or permission_cache
        self.repository = AccessRepository(session)
        self.strategies = default_strategies(settings.LEGACY_VISIBILITY_ACTION)

    async def get_snapshot(
        self,
        role_ids: Optional[Iterable[int]] = None,
        user_id: Optional[int] = None,
    ) -> AccessSnapshot:
        """
        Snapshot for an explicit role set, or for the user's assigned roles
        when no role set is given. ``user_id`` also scopes override rows.
        """
        if role_ids is None:
            if user_id is None:
                return AccessSnapshot()
            return await self.repository.load_user_snapshot(user_id)
        return await self.repository.load_snapshot(role_ids, user_id=user_id)

    async def require_target(self, role_id: Optional[int] = None, user_id: Optional[int] = None):
        """Explicitly requested roles and users must exist, never resolve as empty"""
        if role_id is not None and await self.session.get(Role, role_id) is None:
            raise NotFoundError(ROLE_NOT_FOUND, f"Role {role_id} not found", role_id=role_id)
        if user_id is not None and await self.session.get(User, user_id) is None:
            raise NotFoundError(USER_NOT_FOUND, f"User {user_id} not found", user_id=user_id)

    def _resolver(self, snapshot: AccessSnapshot) -> VisibilityResolver:
        return VisibilityResolver(snapshot, self.catalog, self.strategies)

    # Permissions

    async def is_permitted(self, role_ids: Iterable[int], module: str, action: str) -> bool:
        snapshot = await self.get_snapshot(role_ids=role_ids)
        return PermissionChecker(snapshot).can(module, action)

    async def user_is_permitted(self, user_id: int, module: str, action: str) -> bool:
        """Permission decision for a user's assigned roles, cached when enabled"""
        module_key = normalize_module_key(module)
        action_key = normalize_action(action)

        cached = await self.cache.get(user_id, module_key, action_key)
        if cached is not None:
            return cached

        snapshot = await self.get_snapshot(user_id=user_id)
        permitted = PermissionChecker(snapshot).can(module_key, action_key)
        await self.cache.set(user_id, module_key, action_key, permitted)
        return permitted

    async def check_many(
        self,
        pairs: Iterable[Tuple[str, str]],
        role_ids: Optional[Iterable[int]] = None,
        user_id: Optional[int] = None,
    ) -> Dict[str, bool]:
        snapshot = await self.get_snapshot(role_ids=role_ids, user_id=user_id)
        return PermissionChecker(snapshot).check_many(pairs)

    async def effective_permissions(
        self,
        role_ids: Optional[Iterable[int]] = None,
        user_id: Optional[int] = None,
    ) -> List[PermissionInfo]:
        snapshot = await self.get_snapshot(role_ids=role_ids, user_id=user_id)
        return PermissionChecker(snapshot).effective_permissions()

    # Visibility

    async def is_visible(
        self,
        module: str,
        role_ids: Optional[Iterable[int]] = None,
        user_id: Optional[int] = None,
    ) -> bool:
        snapshot = await self.get_snapshot(role_ids=role_ids, user_id=user_id)
        return self._resolver(snapshot).is_visible(module)

    async def visibility_map(
        self,
        role_ids: Optional[Iterable[int]] = None,
        user_id: Optional[int] = None,
    ) -> Dict[str, bool]:
        """module_key -> visible for every module in the catalog"""
        snapshot = await self.get_snapshot(role_ids=role_ids, user_id=user_id)
        return self._resolver(snapshot).visibility_map()

    async def sidebar_visibility(
        self,
        role_ids: Optional[Iterable[int]] = None,
        user_id: Optional[int] = None,
    ) -> Dict[str, object]:
        snapshot = await self.get_snapshot(role_ids=role_ids, user_id=user_id)
        return {
            "user_id": user_id,
            "role_ids": sorted(snapshot.role_ids),
            "modules": self._resolver(snapshot).visibility_map(),
        }

    async def explain_visibility(
        self,
        role_ids: Optional[Iterable[int]] = None,
        user_id: Optional[int] = None,
    ) -> Dict[str, VisibilityDecision]:
        snapshot = await self.get_snapshot(role_ids=role_ids, user_id=user_id)
        return self._resolver(snapshot).explain_map()

    async def can_access_route(self, user_id: int, route_path: str) -> Dict[str, object]:
        snapshot = await self.get_snapshot(user_id=user_id)
        allowed = can_access_route(snapshot, route_path, self.catalog, self._resolver(snapshot))
        return {
            "route": route_path,
            "module_key": resolve_module_from_route(route_path, self.catalog),
            "allowed": allowed,
        }
