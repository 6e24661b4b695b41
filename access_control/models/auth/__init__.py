# access_control/models/auth/__init__.py

# Import models in dependency order
from .permission import Permission
from .role import Role
from .user import User
from .role_permission import RolePermission
from .module_visibility import ModuleVisibility
from .user_role import UserRole

# Make sure all models are available
__all__ = [
    "Permission",
    "Role",
    "User",
    "RolePermission",
    "ModuleVisibility",
    "UserRole"
]
