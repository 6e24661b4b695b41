import logging
from typing import List, Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from access_control.api.dependencies import CurrentActor, get_access_service, get_current_actor, require_admin
from access_control.core.config import settings
from access_control.core.database import get_async_session
from access_control.core.exceptions import PermissionDeniedError
from access_control.schemas.auth.access import (
    AccessCheckRequest,
    AccessCheckResponse,
    RbacSummary,
    RouteAccess,
)
from access_control.schemas.auth.permission import PermissionGrant
from access_control.schemas.auth.visibility import SidebarVisibility, VisibilityExplanation
from access_control.services.auth.access_service import AccessService
from access_control.services.auth.role_service import RoleService

router = APIRouter()
logger = logging.getLogger(__name__)


async def _ensure_admin_for_other(actor: CurrentActor, access: AccessService, target_user_id: Optional[int], role_id: Optional[int]):
    """Reading someone else's access data is an administrative operation"""
    if role_id is None and (target_user_id is None or target_user_id == actor.user_id):
        return
    if not await access.user_is_permitted(actor.user_id, settings.ADMIN_MODULE, settings.ADMIN_ACTION):
        raise PermissionDeniedError(settings.ADMIN_MODULE, settings.ADMIN_ACTION)


@router.get("/sidebar/visibility", response_model=SidebarVisibility)
async def get_sidebar_visibility(
    role_id: Optional[int] = Query(None),
    user_id: Optional[int] = Query(None),
    actor: CurrentActor = Depends(get_current_actor),
    access: AccessService = Depends(get_access_service)
):
    """
    module_key -> visible for every known module.

    Defaults to the current user; ``role_id`` resolves a single role and
    ``user_id`` another user's assigned roles (both administrative).
    """
    await _ensure_admin_for_other(actor, access, user_id, role_id)
    await access.require_target(role_id=role_id, user_id=user_id)

    target_user_id = actor.user_id if user_id is None and role_id is None else user_id
    role_ids = [role_id] if role_id is not None else None

    return await access.sidebar_visibility(role_ids=role_ids, user_id=target_user_id)


@router.get("/sidebar/explain", response_model=List[VisibilityExplanation])
async def explain_sidebar_visibility(
    role_id: Optional[int] = Query(None),
    user_id: Optional[int] = Query(None),
    actor: CurrentActor = Depends(require_admin),
    access: AccessService = Depends(get_access_service)
):
    """
    Which source decided each module (system, user_override, v2, legacy, default)
    """
    await access.require_target(role_id=role_id, user_id=user_id)
    target_user_id = actor.user_id if user_id is None and role_id is None else user_id
    role_ids = [role_id] if role_id is not None else None

    decisions = await access.explain_visibility(role_ids=role_ids, user_id=target_user_id)
    return [
        {
            "module_key": module_key,
            "visible": decision.visible,
            "source": decision.source.value,
            "role_id": decision.role_id,
        }
        for module_key, decision in decisions.items()
    ]


@router.post("/access/check", response_model=AccessCheckResponse)
async def check_access(
    request: AccessCheckRequest,
    actor: CurrentActor = Depends(get_current_actor),
    access: AccessService = Depends(get_access_service)
):
    """
    Resolve several (module, action) pairs in one round trip
    """
    await _ensure_admin_for_other(actor, access, request.user_id, None)
    user_id = request.user_id or actor.user_id

    results = await access.check_many(
        [(check.module, check.action) for check in request.checks],
        user_id=user_id,
    )
    return {"user_id": user_id, "results": results}


@router.get("/access/route", response_model=RouteAccess)
async def check_route_access(
    path: str = Query(..., min_length=1),
    actor: CurrentActor = Depends(get_current_actor),
    access: AccessService = Depends(get_access_service)
):
    return await access.can_access_route(actor.user_id, path)


@router.get("/access/me/permissions", response_model=List[PermissionGrant])
async def get_my_permissions(
    actor: CurrentActor = Depends(get_current_actor),
    access: AccessService = Depends(get_access_service)
):
    permissions = await access.effective_permissions(user_id=actor.user_id)
    return [
        {"id": p.id, "name": p.name, "module": p.module, "action": p.action, "granted": True}
        for p in permissions
    ]


@router.get("/summary", response_model=RbacSummary)
async def get_summary(
    session: AsyncSession = Depends(get_async_session),
    actor: CurrentActor = Depends(require_admin)
):
    role_service = RoleService(session)
    return await role_service.get_summary()
