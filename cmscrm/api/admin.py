"""Admin API router: audit log and health."""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from cmscrm.core.security import require_view_activity
from cmscrm.db.session import get_db
from cmscrm.schemas.schemas import AuditLogOut
from cmscrm.services.audit_service import audit_service
from cmscrm.services.authorization import Principal

logger = logging.getLogger("cmscrm")

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/audit")
async def get_audit_logs(
    action: Optional[str] = Query(None),
    resource_type: Optional[str] = Query(None),
    actor_id: Optional[int] = Query(None),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_view_activity),
):
    """Query the audit trail, newest first."""
    result = audit_service.query_logs(
        db, actor_id, action, resource_type, start_date, end_date, page, page_size,
    )
    return {
        "logs": [AuditLogOut.model_validate(log) for log in result["logs"]],
        "total": result["total"],
        "page": result["page"],
        "page_size": result["page_size"],
    }


@router.get("/health")
async def health_check(db: Session = Depends(get_db)):
    """Database connectivity check."""
    db_ok = False
    try:
        db.execute(text("SELECT 1"))
        db_ok = True
    except SQLAlchemyError as e:
        logger.error("Health check failed: %s", e)

    return {
        "database": "ok" if db_ok else "error",
        "status": "healthy" if db_ok else "degraded",
    }
