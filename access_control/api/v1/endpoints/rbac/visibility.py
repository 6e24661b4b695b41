import logging
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from access_control.api.dependencies import CurrentActor, require_admin
from access_control.auth.modules import ModuleCatalog, get_module_catalog
from access_control.core.database import get_async_session
from access_control.schemas.auth.visibility import (
    BulkVisibilityResult,
    ModuleVisibilityState,
    RoleVisibility,
    VisibilityToggle,
)
from access_control.services.auth.visibility_service import VisibilityService

router = APIRouter()
logger = logging.getLogger(__name__)

@router.get("/roles/{role_id}", response_model=RoleVisibility)
async def get_role_visibility(
    role_id: int,
    session: AsyncSession = Depends(get_async_session),
    catalog: ModuleCatalog = Depends(get_module_catalog),
    current_user: CurrentActor = Depends(require_admin)
):
    """
    Resolved sidebar visibility of every module for one role
    """
    visibility_service = VisibilityService(session, catalog)
    return await visibility_service.get_role_visibility(role_id)

@router.put("/roles/{role_id}", response_model=BulkVisibilityResult)
async def toggle_all_module_visibility(
    role_id: int,
    toggle: VisibilityToggle,
    session: AsyncSession = Depends(get_async_session),
    catalog: ModuleCatalog = Depends(get_module_catalog),
    current_user: CurrentActor = Depends(require_admin)
):
    """
    Show or hide every module for the role in one transaction
    """
    visibility_service = VisibilityService(session, catalog)
    return await visibility_service.toggle_all_module_visibility(
        role_id, toggle.visible, actor_id=current_user.user_id
    )

@router.put("/roles/{role_id}/modules/{module_key}", response_model=ModuleVisibilityState)
async def set_module_visibility(
    role_id: int,
    module_key: str,
    toggle: VisibilityToggle,
    session: AsyncSession = Depends(get_async_session),
    catalog: ModuleCatalog = Depends(get_module_catalog),
    current_user: CurrentActor = Depends(require_admin)
):
    visibility_service = VisibilityService(session, catalog)
    return await visibility_service.set_module_visibility(
        role_id, module_key, toggle.visible, actor_id=current_user.user_id
    )

@router.put("/roles/{role_id}/users/{user_id}/modules/{module_key}", response_model=ModuleVisibilityState)
async def set_user_module_visibility(
    role_id: int,
    user_id: int,
    module_key: str,
    toggle: VisibilityToggle,
    session: AsyncSession = Depends(get_async_session),
    catalog: ModuleCatalog = Depends(get_module_catalog),
    current_user: CurrentActor = Depends(require_admin)
):
    """
    Per-user override; other users of the role keep the role-level answer
    """
    visibility_service = VisibilityService(session, catalog)
    return await visibility_service.set_user_module_visibility(
        role_id, user_id, module_key, toggle.visible, actor_id=current_user.user_id
    )
