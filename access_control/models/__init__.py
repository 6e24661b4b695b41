from access_control.models.auth.permission import Permission
from access_control.models.auth.role_permission import RolePermission
from access_control.models.auth.role import Role
from access_control.models.auth.module_visibility import ModuleVisibility
from access_control.models.auth.user_role import UserRole
from access_control.models.auth.user import User


__all__ = [
    "Permission",
    "RolePermission",
    "Role",
    "ModuleVisibility",
    "UserRole",
    "User",
]
