"""Auth API router: login, refresh, logout, session checks and profile."""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from cmscrm.db.session import get_db
from cmscrm.schemas.schemas import (
    LoginRequest, RefreshRequest, LogoutRequest, ProfileUpdateRequest,
    TokenResponse, UserOut, LoginActivityOut, MessageResponse,
)
from cmscrm.services.auth_service import auth_service
from cmscrm.services.audit_service import audit_service
from cmscrm.services.authorization import Principal
from cmscrm.core.config import settings
from cmscrm.core.security import get_current_principal

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/login", response_model=TokenResponse)
async def login(body: LoginRequest, request: Request, db: Session = Depends(get_db)):
    """Authenticate and return JWT tokens."""
    result = auth_service.authenticate(
        db, body.email, body.password,
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent", "")[:500],
    )
    audit_service.log_from_request(
        db, request,
        actor_id=result["user"]["id"],
        actor_username=result["user"]["username"],
        action="user.login",
        resource_type="user",
        resource_id=result["user"]["id"],
    )
    return result


@router.post("/refresh", response_model=TokenResponse)
async def refresh(body: RefreshRequest, db: Session = Depends(get_db)):
    """Exchange a refresh token for a new access token."""
    return auth_service.refresh_access_token(db, body.refresh_token)


@router.post("/logout", response_model=MessageResponse)
async def logout(
    request: Request,
    body: Optional[LogoutRequest] = None,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    """Revoke refresh tokens and close the login session."""
    auth_service.logout(db, principal.id, body.login_activity_id if body else None)
    audit_service.log_from_request(
        db, request,
        actor_id=principal.id,
        actor_username=principal.username,
        action="user.logout",
        resource_type="user",
        resource_id=principal.id,
    )
    return MessageResponse(message="Logged out successfully")


@router.get("/me", response_model=UserOut)
async def get_me(
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    return UserOut.from_user(auth_service.get_user(db, principal.id))


@router.get("/verify")
async def verify_token(
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    """Confirm the bearer token still maps to an active user."""
    return {"valid": True, "user": UserOut.from_user(auth_service.get_user(db, principal.id))}


@router.get("/login-history")
async def login_history(
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    """The caller's own login attempts, newest first."""
    result = auth_service.login_history(db, principal.id, page, page_size)
    return {
        "activities": [LoginActivityOut.model_validate(a) for a in result["activities"]],
        "total": result["total"],
        "page": result["page"],
        "page_size": result["page_size"],
        "pages": result["pages"],
    }


@router.put("/profile", response_model=UserOut)
async def update_profile(
    body: ProfileUpdateRequest,
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    """Update the caller's own username, email or password."""
    user = auth_service.update_profile(
        db, principal.id,
        username=body.username,
        email=body.email,
        current_password=body.current_password,
        new_password=body.new_password,
    )
    fields = sorted(body.model_dump(exclude_none=True, exclude={"current_password", "new_password"}))
    if body.new_password:
        fields.append("password")
    audit_service.log_from_request(
        db, request,
        actor_id=principal.id,
        actor_username=user.username,
        action="user.profile_update",
        resource_type="user",
        resource_id=principal.id,
        details={"fields": fields},
    )
    return UserOut.from_user(user)
