"""Stats service: aggregate counts for the admin dashboard."""

from datetime import datetime, timedelta, timezone
from typing import Dict, Any, List

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from cmscrm.models.audit_log import AuditLog
from cmscrm.models.login_activity import LoginActivity
from cmscrm.models.user import User
from cmscrm.services.page_service import PageService
from cmscrm.services.role_service import RoleService
from cmscrm.services.user_service import UserService


def _since(days: int) -> datetime:
    return (datetime.now(timezone.utc) - timedelta(days=days)).replace(tzinfo=None)


class StatsService:
    """Read-only aggregates over users, roles, pages, audit and login activity."""

    @staticmethod
    def dashboard(db: Session) -> Dict[str, Any]:
        today = datetime.now(timezone.utc).replace(
            hour=0, minute=0, second=0, microsecond=0, tzinfo=None
        )
        return {
            "users": UserService.stats(db),
            "roles": RoleService.stats(db),
            "pages": PageService.stats(db),
            "today_logins": db.query(LoginActivity).filter(
                LoginActivity.success.is_(True),
                LoginActivity.login_at >= today,
            ).count(),
            "total_audit_events": db.query(AuditLog).count(),
        }

    @staticmethod
    def activity_by_action(db: Session, days: int = 7) -> List[Dict[str, Any]]:
        rows = (
            db.query(AuditLog.action, func.count(AuditLog.id))
            .filter(AuditLog.created_at >= _since(days))
            .group_by(AuditLog.action)
            .order_by(func.count(AuditLog.id).desc(), AuditLog.action)
            .all()
        )
        return [{"action": action, "count": count} for action, count in rows]

    @staticmethod
    def login_stats(db: Session, days: int = 7) -> Dict[str, int]:
        query = db.query(LoginActivity).filter(LoginActivity.login_at >= _since(days))
        successful = query.filter(LoginActivity.success.is_(True)).count()
        failed = query.filter(LoginActivity.success.is_(False)).count()
        unique_users = (
            db.query(func.count(func.distinct(LoginActivity.user_id)))
            .filter(LoginActivity.login_at >= _since(days), LoginActivity.success.is_(True))
            .scalar()
        )
        return {
            "total": successful + failed,
            "successful": successful,
            "failed": failed,
            "unique_users": unique_users or 0,
        }

    @staticmethod
    def active_users(db: Session, minutes: int = 30) -> List[Dict[str, Any]]:
        """Users with a successful login in the window that was not closed before it."""
        since = (datetime.now(timezone.utc) - timedelta(minutes=minutes)).replace(tzinfo=None)
        last_login = func.max(LoginActivity.login_at)
        rows = (
            db.query(User.id, User.username, User.email, last_login)
            .join(LoginActivity, LoginActivity.user_id == User.id)
            .filter(
                LoginActivity.success.is_(True),
                LoginActivity.login_at >= since,
                or_(LoginActivity.logout_at.is_(None), LoginActivity.logout_at >= since),
            )
            .group_by(User.id, User.username, User.email)
            .order_by(last_login.desc(), User.id)
            .all()
        )
        return [
            {"id": user_id, "username": username, "email": email, "last_login_at": login_at}
            for user_id, username, email, login_at in rows
        ]

    @staticmethod
    def recent_activity(db: Session, limit: int = 10) -> List[AuditLog]:
        return (
            db.query(AuditLog)
            .order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
            .limit(limit)
            .all()
        )


stats_service = StatsService()
