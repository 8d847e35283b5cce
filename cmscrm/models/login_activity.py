"""Login activity and refresh token models."""

from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, func
from cmscrm.db.base import Base


class LoginActivity(Base):
    """One row per login attempt; logout_at is stamped on logout."""
    __tablename__ = "login_activities"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    email = Column(String(255), nullable=True)
    success = Column(Boolean, default=False, nullable=False)
    ip_address = Column(String(45), nullable=True)
    user_agent = Column(String(500), nullable=True)
    login_at = Column(DateTime, server_default=func.now(), nullable=False, index=True)
    logout_at = Column(DateTime, nullable=True)


class RefreshToken(Base):
    """Stored hash of an issued refresh token."""
    __tablename__ = "refresh_tokens"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    token_hash = Column(String(64), unique=True, nullable=False)
    expires_at = Column(DateTime, nullable=False)
    revoked_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
