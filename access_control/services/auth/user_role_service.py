import logging
from typing import Any, Dict, List, Optional
from datetime import datetime, timezone
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from access_control.core.exceptions import (
    InvalidStateError,
    NotFoundError,
    StoreError,
    ASSIGNMENT_NOT_FOUND,
    ROLE_ALREADY_ASSIGNED,
    ROLE_INACTIVE,
    ROLE_NOT_FOUND,
    SYSTEM_ROLE_RESTRICTED,
    USER_ALREADY_HAS_ROLE,
    USER_NOT_FOUND,
)
from access_control.core.logging import log_user_action
from access_control.models.auth.role import Role
from access_control.models.auth.user import User
from access_control.models.auth.user_role import UserRole
from access_control.services.auth.permission_cache import PermissionCache, permission_cache

logger = logging.getLogger(__name__)


class UserRoleService:
    """User-role assignment with the one-role-per-user policy"""

    def __init__(self, session: AsyncSession, cache: Optional[PermissionCache] = None):
        self.session = session
        self.cache = cache or permission_cache

    async def list_user_roles(self, user_id: int) -> List[Dict[str, Any]]:
        try:
            result = await self.session.execute(
                select(UserRole, Role.name)
                .join(Role, Role.id == UserRole.role_id)
                .where(UserRole.user_id == user_id)
                .order_by(UserRole.assigned_at, UserRole.id)
            )
            return [
                {
                    "id": user_role.id,
                    "user_id": user_role.user_id,
                    "role_id": user_role.role_id,
                    "role_name": role_name,
                    "assigned_by": user_role.assigned_by,
                    "assigned_at": user_role.assigned_at,
                }
                for user_role, role_name in result.all()
            ]
        except SQLAlchemyError as e:
            logger.error(f"Error listing roles for user {user_id}: {str(e)}")
            raise StoreError("Error listing user roles")

    async def assign_role(
        self,
        user_id: int,
        role_id: int,
        actor_id: Optional[int] = None,
        actor_is_system: bool = False,
    ) -> Dict[str, Any]:
        """
        Assign a role to a user who holds none.

        Never replaces an existing assignment: the caller must remove the
        current role first so every role change is an explicit pair of
        audited operations.
        """
        try:
            user = await self.session.get(User, user_id)
            if not user or not user.is_active:
                raise NotFoundError(USER_NOT_FOUND, f"User {user_id} not found", user_id=user_id)

            role = await self.session.get(Role, role_id)
            if not role:
                raise NotFoundError(ROLE_NOT_FOUND, f"Role {role_id} not found", role_id=role_id)
            if not role.is_active:
                raise InvalidStateError(ROLE_INACTIVE, f"Role '{role.name}' is inactive", role_id=role_id)
            if role.is_system_role and not actor_is_system:
                raise InvalidStateError(
                    SYSTEM_ROLE_RESTRICTED,
                    f"Only a system user can assign system role '{role.name}'",
                    role_id=role_id,
                )

            current = await self.list_user_roles(user_id)
            if any(assignment["role_id"] == role_id for assignment in current):
                raise InvalidStateError(
                    ROLE_ALREADY_ASSIGNED,
                    f"User {user_id} already has role '{role.name}'",
                    user_id=user_id,
                    role_id=role_id,
                )
            if current:
                current_roles = [assignment["role_name"] for assignment in current]
                raise InvalidStateError(
                    USER_ALREADY_HAS_ROLE,
                    f"User {user_id} already has role(s) {', '.join(current_roles)}",
                    user_id=user_id,
                    current_roles=current_roles,
                    suggestion="Remove the existing role assignment before assigning a new one",
                )

            user_role = UserRole(
                user_id=user_id,
                role_id=role_id,
                assigned_by=actor_id,
                assigned_at=datetime.now(timezone.utc),
                created_by=actor_id,
            )
            self.session.add(user_role)
            await self.session.commit()
            await self.session.refresh(user_role)

            logger.info(f"Role '{role.name}' assigned to user {user_id}")
            log_user_action(actor_id, "ASSIGN_ROLE", "user_role", user_role.id, user=user_id, role=role.name)
            await self.cache.invalidate()
            return {
                "id": user_role.id,
                "user_id": user_id,
                "role_id": role_id,
                "role_name": role.name,
                "assigned_by": actor_id,
                "assigned_at": user_role.assigned_at,
            }

        except IntegrityError as e:
            # Lost a race with a concurrent assignment of the same pair
            await self.session.rollback()
            logger.warning(f"Duplicate role assignment for user {user_id}: {str(e)}")
            raise InvalidStateError(
                ROLE_ALREADY_ASSIGNED,
                f"User {user_id} already has role {role_id}",
                user_id=user_id,
                role_id=role_id,
            )
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(f"Error assigning role: {str(e)}")
            raise StoreError("Error assigning role")
        except Exception:
            await self.session.rollback()
            raise

    async def remove_role(
        self,
        user_id: int,
        role_id: int,
        actor_id: Optional[int] = None,
        actor_is_system: bool = False,
    ) -> bool:
        try:
            result = await self.session.execute(
                select(UserRole).where(UserRole.user_id == user_id, UserRole.role_id == role_id)
            )
            user_role = result.scalar_one_or_none()
            if not user_role:
                raise NotFoundError(
                    ASSIGNMENT_NOT_FOUND,
                    f"User {user_id} does not have role {role_id}",
                    user_id=user_id,
                    role_id=role_id,
                )

            role = await self.session.get(Role, role_id)
            if role and role.is_system_role and not actor_is_system:
                raise InvalidStateError(
                    SYSTEM_ROLE_RESTRICTED,
                    f"Only a system user can remove system role '{role.name}'",
                    role_id=role_id,
                )

            await self.session.delete(user_role)
            await self.session.commit()

            logger.info(f"Role {role_id} removed from user {user_id}")
            log_user_action(actor_id, "REMOVE_ROLE", "user_role", user_role.id, user=user_id, role=role_id)
            await self.cache.invalidate()
            return True

        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(f"Error removing role: {str(e)}")
            raise StoreError("Error removing role")
        except Exception:
            await self.session.rollback()
            raise
