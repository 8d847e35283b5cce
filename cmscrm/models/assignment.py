"""Many-to-many assignment tables: user<->role and role<->page (flat and ordered)."""

from sqlalchemy import Column, Integer, DateTime, ForeignKey, UniqueConstraint, func
from sqlalchemy.orm import relationship
from cmscrm.db.base import Base


class UserRole(Base):
    """Role membership of a user."""
    __tablename__ = "user_roles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    role_id = Column(Integer, ForeignKey("roles.id", ondelete="CASCADE"), nullable=False, index=True)
    assigned_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    assigned_at = Column(DateTime, server_default=func.now(), nullable=False)

    user = relationship("User", back_populates="role_links", foreign_keys=[user_id])
    role = relationship("Role", back_populates="user_links", lazy="joined")

    __table_args__ = (
        UniqueConstraint("user_id", "role_id", name="uq_user_role"),
    )


class RolePage(Base):
    """Flat, unordered role -> page membership. Drives access checks."""
    __tablename__ = "role_pages"

    id = Column(Integer, primary_key=True, autoincrement=True)
    role_id = Column(Integer, ForeignKey("roles.id", ondelete="CASCADE"), nullable=False, index=True)
    page_id = Column(Integer, ForeignKey("pages.id", ondelete="CASCADE"), nullable=False, index=True)
    assigned_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    assigned_at = Column(DateTime, server_default=func.now(), nullable=False)

    role = relationship("Role", back_populates="page_links")

    __table_args__ = (
        UniqueConstraint("role_id", "page_id", name="uq_role_page"),
    )


class RolePageOrder(Base):
    """Ordered role -> page membership with parent page and sibling order.

    Always written together with RolePage; parent_page_id is not enforced
    to be assigned under the same role.
    """
    __tablename__ = "role_pages_order"

    id = Column(Integer, primary_key=True, autoincrement=True)
    role_id = Column(Integer, ForeignKey("roles.id", ondelete="CASCADE"), nullable=False, index=True)
    page_id = Column(Integer, ForeignKey("pages.id", ondelete="CASCADE"), nullable=False, index=True)
    parent_page_id = Column(Integer, nullable=True, index=True)
    display_order = Column(Integer, default=0, nullable=False, index=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint("role_id", "page_id", name="uq_role_page_order"),
    )
