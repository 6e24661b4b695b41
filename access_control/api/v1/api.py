from fastapi import APIRouter
from access_control.api.v1.endpoints.rbac import access, permissions, roles, user_roles, visibility

api_router = APIRouter()

# RBAC administration
api_router.include_router(roles.router, prefix="/rbac/roles", tags=["Roles"])
api_router.include_router(permissions.router, prefix="/rbac/permissions", tags=["Permissions"])
api_router.include_router(visibility.router, prefix="/rbac/visibility", tags=["Module Visibility"])
api_router.include_router(user_roles.router, prefix="/rbac/users", tags=["User Roles"])

# Resolution (gates, sidebar, diagnostics)
api_router.include_router(access.router, prefix="/rbac", tags=["Access"])
