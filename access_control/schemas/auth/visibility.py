from typing import Dict, List, Optional
from pydantic import BaseModel

class VisibilityToggle(BaseModel):
    visible: bool

class ModuleVisibilityState(BaseModel):
    role_id: int
    module_key: str
    visible: bool
    user_id: Optional[int] = None

class BulkVisibilityResult(BaseModel):
    role_id: int
    visible: bool
    count: int
    module_keys: List[str] = []

class RoleVisibility(BaseModel):
    role_id: int
    role_name: str
    is_system_role: bool
    modules: Dict[str, bool]
    visible_count: int
    hidden_count: int
    all_visible: bool
    all_hidden: bool

class VisibilityExplanation(BaseModel):
    module_key: str
    visible: bool
    source: str
    role_id: Optional[int] = None

class SidebarVisibility(BaseModel):
    user_id: Optional[int] = None
    role_ids: List[int] = []
    modules: Dict[str, bool]
