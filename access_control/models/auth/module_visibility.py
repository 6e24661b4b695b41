from sqlalchemy import Boolean, Column, Index, Integer, ForeignKey, String, text
from sqlalchemy.orm import relationship
from access_control.db.base import BaseModel

class ModuleVisibility(BaseModel):
    """Sidebar visibility of a module, independent of permission grants.

    Rows with ``user_id`` NULL are role cells; rows with a ``user_id`` are
    per-user overrides scoped to one role. A missing row means "default
    visible", never hidden.
    """
    __tablename__ = "module_visibility"
    __table_args__ = (
        Index(
            "uq_module_visibility_role_module",
            "role_id", "module_key",
            unique=True,
            postgresql_where=text("user_id IS NULL"),
            sqlite_where=text("user_id IS NULL"),
        ),
        Index(
            "uq_module_visibility_role_user_module",
            "role_id", "user_id", "module_key",
            unique=True,
            postgresql_where=text("user_id IS NOT NULL"),
            sqlite_where=text("user_id IS NOT NULL"),
        ),
    )

    role_id = Column(Integer, ForeignKey("roles.id", ondelete="CASCADE"), nullable=False, index=True)
    module_key = Column(String(100), nullable=False)
    visible = Column(Boolean, default=True, nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=True)

    # Relationships
    role = relationship("Role", back_populates="module_visibility")

    def __repr__(self):
        scope = f" user_id={self.user_id}" if self.user_id is not None else ""
        return f"<ModuleVisibility role_id={self.role_id} {self.module_key}={self.visible}{scope}>"
