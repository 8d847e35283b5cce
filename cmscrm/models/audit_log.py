"""Audit log model: append-only."""

from sqlalchemy import Column, Integer, String, Text, DateTime, func
from cmscrm.db.base import Base


class AuditLog(Base):
    """Immutable audit trail for authorization decisions and mutations.

    This table is APPEND-ONLY: no UPDATE or DELETE operations should ever
    be performed on it (enforced at application level).
    """
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    actor_id = Column(Integer, nullable=True, index=True)
    actor_username = Column(String(50), nullable=True)
    action = Column(String(100), nullable=False, index=True)  # e.g. "role.update"
    resource_type = Column(String(50), nullable=False, index=True)  # user, role, page, system
    resource_id = Column(String(100), nullable=True)
    details_json = Column(Text, nullable=True)
    ip_address = Column(String(45), nullable=True)
    user_agent = Column(String(500), nullable=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False, index=True)
