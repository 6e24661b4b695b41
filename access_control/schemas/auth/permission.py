from typing import Optional
from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime

class PermissionBase(BaseModel):
    module: str = Field(..., min_length=1, max_length=100)
    action: str = Field(..., min_length=1, max_length=50)
    description: Optional[str] = None

class PermissionCreate(PermissionBase):
    pass

class PermissionInDBBase(PermissionBase):
    id: int
    name: str
    is_active: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

class Permission(PermissionInDBBase):
    pass

class PermissionGrant(BaseModel):
    """Permission as seen from one role, with its grant flag"""
    id: int
    name: str
    module: str
    action: str
    description: Optional[str] = None
    granted: bool = False

class PermissionStats(BaseModel):
    role_id: int
    total: int
    granted: int
    percentage: float
