import logging
from typing import List
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from access_control.api.dependencies import CurrentActor, require_admin
from access_control.core.database import get_async_session
from access_control.schemas.auth.user_role import UserRoleAssign, UserRoleInDB
from access_control.services.auth.user_role_service import UserRoleService

router = APIRouter()
logger = logging.getLogger(__name__)

@router.get("/{user_id}/roles", response_model=List[UserRoleInDB])
async def list_user_roles(
    user_id: int,
    session: AsyncSession = Depends(get_async_session),
    current_user: CurrentActor = Depends(require_admin)
):
    user_role_service = UserRoleService(session)
    return await user_role_service.list_user_roles(user_id)

@router.post("/{user_id}/roles", response_model=UserRoleInDB, status_code=status.HTTP_201_CREATED)
async def assign_role(
    user_id: int,
    assignment: UserRoleAssign,
    session: AsyncSession = Depends(get_async_session),
    current_user: CurrentActor = Depends(require_admin)
):
    """
    Assign a role to a user without one; an existing role must be removed first
    """
    user_role_service = UserRoleService(session)
    return await user_role_service.assign_role(
        user_id,
        assignment.role_id,
        actor_id=current_user.user_id,
        actor_is_system=current_user.is_system,
    )

@router.delete("/{user_id}/roles/{role_id}")
async def remove_role(
    user_id: int,
    role_id: int,
    session: AsyncSession = Depends(get_async_session),
    current_user: CurrentActor = Depends(require_admin)
):
    user_role_service = UserRoleService(session)
    await user_role_service.remove_role(
        user_id,
        role_id,
        actor_id=current_user.user_id,
        actor_is_system=current_user.is_system,
    )
    return {"message": "Role removed from user", "user_id": user_id, "role_id": role_id}
