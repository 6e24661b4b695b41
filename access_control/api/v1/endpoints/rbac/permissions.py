import logging
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.ext.asyncio import AsyncSession

from access_control.api.dependencies import CurrentActor, require_admin
from access_control.auth.modules import ModuleCatalog, get_module_catalog
from access_control.core.database import get_async_session
from access_control.schemas.auth.permission import Permission, PermissionCreate
from access_control.schemas.common.pagination import PaginatedResponse
from access_control.services.auth.permission_service import PermissionService

router = APIRouter()
logger = logging.getLogger(__name__)

@router.get("/", response_model=PaginatedResponse[Permission])
async def get_permissions(
    page_index: int = Query(1, ge=1),
    page_size: int = Query(100, ge=1, le=1000),
    module: Optional[str] = Query(None),
    is_active: Optional[bool] = Query(None),
    search: Optional[str] = Query(None, description="Search in name and description"),
    session: AsyncSession = Depends(get_async_session),
    current_user: CurrentActor = Depends(require_admin)
):
    """
    Get permission catalog with pagination
    """
    permission_service = PermissionService(session)
    return await permission_service.get_permissions(
        page_index=page_index,
        page_size=page_size,
        search=search,
        module=module,
        is_active=is_active,
    )

@router.post("/", response_model=Permission, status_code=status.HTTP_201_CREATED)
async def create_permission(
    permission_create: PermissionCreate,
    session: AsyncSession = Depends(get_async_session),
    catalog: ModuleCatalog = Depends(get_module_catalog),
    current_user: CurrentActor = Depends(require_admin)
):
    try:
        permission_service = PermissionService(session, catalog)
        return await permission_service.create_permission(permission_create, actor_id=current_user.user_id)

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Create permission error: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create permission"
        )

@router.get("/modules")
async def get_modules(
    catalog: ModuleCatalog = Depends(get_module_catalog),
    current_user: CurrentActor = Depends(require_admin)
):
    """
    Known module keys with their titles and navigation category
    """
    return [
        {"key": module.key, "title": module.title, "category": module.category}
        for module in catalog.modules
    ]

@router.post("/seed")
async def seed_permissions(
    session: AsyncSession = Depends(get_async_session),
    catalog: ModuleCatalog = Depends(get_module_catalog),
    current_user: CurrentActor = Depends(require_admin)
):
    """
    Create any catalog permission that is missing (idempotent)
    """
    permission_service = PermissionService(session, catalog)
    return await permission_service.seed_catalog()
