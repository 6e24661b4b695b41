import logging
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.ext.asyncio import AsyncSession

from access_control.api.dependencies import CurrentActor, require_admin
from access_control.auth.modules import ModuleCatalog, get_module_catalog
from access_control.core.database import get_async_session
from access_control.schemas.auth.permission import PermissionGrant, PermissionStats
from access_control.schemas.auth.role import GrantToggle, GrantToggleResult, Role, RoleCreate, RoleUpdate
from access_control.schemas.common.pagination import PaginatedResponse
from access_control.services.auth.role_service import RoleService

router = APIRouter()
logger = logging.getLogger(__name__)

# ============================================================================
# ROLE CRUD ENDPOINTS
# ============================================================================

@router.post("/", response_model=Role, status_code=status.HTTP_201_CREATED)
async def create_role(
    role_create: RoleCreate,
    session: AsyncSession = Depends(get_async_session),
    catalog: ModuleCatalog = Depends(get_module_catalog),
    current_user: CurrentActor = Depends(require_admin)
):
    """
    Create new role; it starts with every active permission granted
    """
    try:
        role_service = RoleService(session, catalog)
        return await role_service.create_role(
            role_create,
            actor_id=current_user.user_id,
            actor_is_system=current_user.is_system,
        )

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Create role error: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create role"
        )

@router.get("/", response_model=PaginatedResponse[Role])
async def get_roles(
    page_index: int = Query(1, ge=1),
    page_size: int = Query(100, ge=1, le=1000),
    search: Optional[str] = Query(None),
    session: AsyncSession = Depends(get_async_session),
    current_user: CurrentActor = Depends(require_admin)
):
    """
    Get roles list with pagination; system roles are listed to system users only
    """
    role_service = RoleService(session)
    return await role_service.get_roles(
        page_index=page_index,
        page_size=page_size,
        search=search,
        include_system=current_user.is_system,
    )

@router.get("/{role_id}", response_model=Role)
async def get_role(
    role_id: int,
    session: AsyncSession = Depends(get_async_session),
    current_user: CurrentActor = Depends(require_admin)
):
    role_service = RoleService(session)
    return await role_service.get_role_or_404(role_id)

@router.put("/{role_id}", response_model=Role)
async def update_role(
    role_id: int,
    role_update: RoleUpdate,
    session: AsyncSession = Depends(get_async_session),
    current_user: CurrentActor = Depends(require_admin)
):
    try:
        role_service = RoleService(session)
        return await role_service.update_role(
            role_id,
            role_update,
            actor_id=current_user.user_id,
            actor_is_system=current_user.is_system,
        )

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Update role error: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update role"
        )

@router.delete("/{role_id}")
async def delete_role(
    role_id: int,
    session: AsyncSession = Depends(get_async_session),
    current_user: CurrentActor = Depends(require_admin)
):
    """
    Delete role together with its grants, visibility rows and assignments
    """
    try:
        role_service = RoleService(session)
        await role_service.delete_role(
            role_id,
            actor_id=current_user.user_id,
            actor_is_system=current_user.is_system,
        )
        return {"message": "Role deleted successfully", "role_id": role_id}

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Delete role error: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to delete role"
        )

# ============================================================================
# ROLE GRANT ENDPOINTS
# ============================================================================

@router.get("/{role_id}/permissions", response_model=List[PermissionGrant])
async def get_role_permissions(
    role_id: int,
    session: AsyncSession = Depends(get_async_session),
    current_user: CurrentActor = Depends(require_admin)
):
    role_service = RoleService(session)
    return await role_service.get_role_permissions(role_id)

@router.get("/{role_id}/permissions/stats", response_model=PermissionStats)
async def get_permission_stats(
    role_id: int,
    session: AsyncSession = Depends(get_async_session),
    current_user: CurrentActor = Depends(require_admin)
):
    role_service = RoleService(session)
    return await role_service.get_permission_stats(role_id)

@router.post("/{role_id}/permissions/grant-all")
async def grant_all_permissions(
    role_id: int,
    session: AsyncSession = Depends(get_async_session),
    current_user: CurrentActor = Depends(require_admin)
):
    """
    Grant every active permission to the role (idempotent)
    """
    role_service = RoleService(session)
    return await role_service.grant_all_permissions(
        role_id,
        actor_id=current_user.user_id,
        actor_is_system=current_user.is_system,
    )

@router.put("/{role_id}/permissions", response_model=GrantToggleResult)
async def set_all_grants(
    role_id: int,
    toggle: GrantToggle,
    session: AsyncSession = Depends(get_async_session),
    catalog: ModuleCatalog = Depends(get_module_catalog),
    current_user: CurrentActor = Depends(require_admin)
):
    """
    Flip every existing grant of the role; returns the affected permission ids
    """
    role_service = RoleService(session, catalog)
    return await role_service.set_all_grants(
        role_id,
        toggle.granted,
        actor_id=current_user.user_id,
        actor_is_system=current_user.is_system,
    )

@router.put("/{role_id}/permissions/{permission_id}", response_model=GrantToggleResult)
async def set_permission_grant(
    role_id: int,
    permission_id: int,
    toggle: GrantToggle,
    session: AsyncSession = Depends(get_async_session),
    catalog: ModuleCatalog = Depends(get_module_catalog),
    current_user: CurrentActor = Depends(require_admin)
):
    role_service = RoleService(session, catalog)
    return await role_service.set_permission_grant(
        role_id,
        permission_id,
        toggle.granted,
        actor_id=current_user.user_id,
        actor_is_system=current_user.is_system,
    )

@router.put("/{role_id}/modules/{module_key}/permissions", response_model=GrantToggleResult)
async def set_module_grants(
    role_id: int,
    module_key: str,
    toggle: GrantToggle,
    session: AsyncSession = Depends(get_async_session),
    catalog: ModuleCatalog = Depends(get_module_catalog),
    current_user: CurrentActor = Depends(require_admin)
):
    role_service = RoleService(session, catalog)
    return await role_service.set_module_grants(
        role_id,
        module_key,
        toggle.granted,
        actor_id=current_user.user_id,
        actor_is_system=current_user.is_system,
    )
