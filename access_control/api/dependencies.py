from dataclasses import dataclass, field
from typing import List, Optional
from fastapi import Depends, HTTPException, status, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from access_control.auth.jwt_handler import get_user_id_from_token
from access_control.auth.modules import ModuleCatalog, get_module_catalog, normalize_action, normalize_module_key
from access_control.core.config import settings
from access_control.core.database import get_async_session
from access_control.core.exceptions import PermissionDeniedError
from access_control.models.auth.user import User
from access_control.services.auth.access_repository import AccessRepository
from access_control.services.auth.access_service import AccessService
import logging

security = HTTPBearer(auto_error=False)
logger = logging.getLogger(__name__)


@dataclass
class CurrentActor:
    user_id: int
    role_ids: List[int] = field(default_factory=list)
    role_names: List[str] = field(default_factory=list)
    is_system: bool = False


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    session: AsyncSession = Depends(get_async_session)
) -> int:
    """Authenticated user id; unauthenticated callers never reach the engine"""
    if credentials is None:
        raise _unauthorized("Not authenticated")

    user_id = get_user_id_from_token(credentials.credentials)
    if user_id is None:
        raise _unauthorized("Invalid authentication credentials")

    user = await session.get(User, user_id)
    if user is None or not user.is_active:
        raise _unauthorized("User not found or inactive")

    return user_id


async def get_current_actor(
    request: Request,
    user_id: int = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_async_session)
) -> CurrentActor:
    """Current user with the active roles the engine will resolve against"""
    roles = await AccessRepository(session).get_roles_for_user(user_id)
    actor = CurrentActor(
        user_id=user_id,
        role_ids=[role.id for role in roles],
        role_names=[role.name for role in roles],
        is_system=any(role.is_system_role for role in roles),
    )
    request.state.current_actor = actor
    return actor


async def get_access_service(
    session: AsyncSession = Depends(get_async_session),
    catalog: ModuleCatalog = Depends(get_module_catalog)
) -> AccessService:
    return AccessService(session, catalog)


def require_permission(module: str, action: str):
    """
    Dependency to require a (module, action) permission for an endpoint

    Examples:
        require_permission("SALIDAS", "CREAR")
    """
    module_key = normalize_module_key(module)
    action_key = normalize_action(action)

    async def permission_dependency(
        actor: CurrentActor = Depends(get_current_actor),
        access: AccessService = Depends(get_access_service)
    ) -> CurrentActor:
        permitted = await access.user_is_permitted(actor.user_id, module_key, action_key)
        if not permitted:
            logger.warning(f"Permission denied: user {actor.user_id} -> {module_key}:{action_key}")
            raise PermissionDeniedError(module_key, action_key)
        return actor

    return permission_dependency


require_admin = require_permission(settings.ADMIN_MODULE, settings.ADMIN_ACTION)
