from sqlalchemy import Boolean, Column, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship
from access_control.db.base import BaseModel

class Permission(BaseModel):
    __tablename__ = "permissions"
    __table_args__ = (
        UniqueConstraint("module", "action", name="uq_permissions_module_action"),
    )

    name = Column(String(150), unique=True, index=True, nullable=False)  # MODULE:ACTION
    description = Column(Text, nullable=True)
    module = Column(String(100), nullable=False, index=True)   # e.g. 'INVENTARIO', 'SALIDAS'
    action = Column(String(50), nullable=False)                 # e.g. 'LEER', 'CREAR'
    is_active = Column(Boolean, default=True, nullable=False)

    # Relationships
    role_permissions = relationship("RolePermission", back_populates="permission", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Permission {self.name}>"
