"""Stats API router: dashboard and activity aggregates."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from cmscrm.core.security import require_view_stats, require_view_activity
from cmscrm.db.session import get_db
from cmscrm.schemas.schemas import AuditLogOut
from cmscrm.services.authorization import Principal
from cmscrm.services.stats_service import stats_service

router = APIRouter(prefix="/stats", tags=["stats"])


@router.get("/dashboard")
async def dashboard_stats(
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_view_stats),
):
    return stats_service.dashboard(db)


@router.get("/activity")
async def activity_stats(
    days: int = Query(7, ge=1, le=365),
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_view_stats),
):
    """Audit events per action over the last ``days`` days."""
    return {"days": days, "actions": stats_service.activity_by_action(db, days)}


@router.get("/login")
async def login_stats(
    days: int = Query(7, ge=1, le=365),
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_view_stats),
):
    return {"days": days, **stats_service.login_stats(db, days)}


@router.get("/recent-activity")
async def recent_activity(
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_view_activity),
):
    return [AuditLogOut.model_validate(log) for log in stats_service.recent_activity(db, limit)]


@router.get("/active-users")
async def active_users(
    minutes: int = Query(30, ge=1, le=24 * 60),
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_view_stats),
):
    """Users signed in within the last ``minutes`` minutes."""
    users = stats_service.active_users(db, minutes)
    return {"time_window_minutes": minutes, "count": len(users), "active_users": users}
