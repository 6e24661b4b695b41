from typing import Optional
from pydantic import BaseModel
from datetime import datetime

class UserRoleAssign(BaseModel):
    role_id: int

class UserRoleInDB(BaseModel):
    id: int
    user_id: int
    role_id: int
    role_name: Optional[str] = None
    assigned_by: Optional[int] = None
    assigned_at: Optional[datetime] = None
