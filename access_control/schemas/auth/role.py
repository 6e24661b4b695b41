from typing import Optional, List
from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime

class RoleBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None

class RoleCreate(RoleBase):
    is_system_role: bool = False

class RoleUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    is_active: Optional[bool] = None

class RoleInDBBase(RoleBase):
    id: int
    is_active: bool = True
    is_system_role: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

class Role(RoleInDBBase):
    pass

class GrantToggle(BaseModel):
    granted: bool

class GrantToggleResult(BaseModel):
    role_id: int
    granted: bool
    count: int
    permission_ids: List[int] = []
    skipped_permission_ids: List[int] = []
