from typing import Dict, List, Optional
from pydantic import BaseModel, Field

class PermissionCheck(BaseModel):
    module: str
    action: str

class AccessCheckRequest(BaseModel):
    checks: List[PermissionCheck] = Field(..., min_length=1)
    user_id: Optional[int] = None

class AccessCheckResponse(BaseModel):
    user_id: Optional[int] = None
    results: Dict[str, bool]

class RouteAccess(BaseModel):
    route: str
    module_key: Optional[str] = None
    allowed: bool

class RbacSummary(BaseModel):
    roles: int
    active_roles: int
    system_roles: int
    permissions: int
    active_permissions: int
    grants: int
    revoked_grants: int
    visibility_rows: int
    hidden_modules: int
    user_assignments: int
    users_without_role: int
    users_with_multiple_roles: int
    roles_without_grants: int
