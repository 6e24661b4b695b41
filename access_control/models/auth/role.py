from sqlalchemy import Column, String, Text, Boolean
from sqlalchemy.orm import relationship
from access_control.db.base import BaseModel

class Role(BaseModel):
    __tablename__ = "roles"

    name = Column(String(100), unique=True, index=True, nullable=False)
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    # System roles bypass grant and visibility lookups entirely
    is_system_role = Column(Boolean, default=False, nullable=False)

    # Relationships
    user_roles = relationship(
        "UserRole", back_populates="role", cascade="all, delete-orphan", passive_deletes=True
    )
    role_permissions = relationship(
        "RolePermission", back_populates="role", cascade="all, delete-orphan", passive_deletes=True
    )
    module_visibility = relationship(
        "ModuleVisibility", back_populates="role", cascade="all, delete-orphan", passive_deletes=True
    )

    def __repr__(self):
        return f"<Role {self.name}>"
