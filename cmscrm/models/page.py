"""Page model: a navigable admin panel entry."""

import enum

from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Enum, func
from cmscrm.db.base import Base


class PageStatusEnum(str, enum.Enum):
    active = "active"
    inactive = "inactive"


class Page(Base):
    """Menu page. Inactive pages never grant access and never render."""
    __tablename__ = "pages"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False, index=True)
    url = Column(String(500), nullable=False, index=True)
    icon = Column(String(255), nullable=True)
    is_external = Column(Boolean, default=False, nullable=False)
    status = Column(Enum(PageStatusEnum), default=PageStatusEnum.active, nullable=False)
    created_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)
