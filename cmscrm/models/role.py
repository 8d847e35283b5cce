"""Role model for RBAC."""

from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, func
from sqlalchemy.orm import relationship
from cmscrm.db.base import Base


class Role(Base):
    """Named role; its permissions come from the static table, its menu from role_pages."""
    __tablename__ = "roles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(50), unique=True, nullable=False, index=True)
    description = Column(Text, nullable=True)
    created_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

    page_links = relationship("RolePage", back_populates="role", lazy="selectin")
    user_links = relationship("UserRole", back_populates="role", lazy="selectin")

    @property
    def page_ids(self) -> list:
        return sorted(link.page_id for link in self.page_links)

    @property
    def user_count(self) -> int:
        return len(self.user_links)
