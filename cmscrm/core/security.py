"""JWT authentication and RBAC authorization dependencies."""

import bcrypt
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from cmscrm.core.config import settings
from cmscrm.core.exceptions import AuthorizationError, ResourceNotFoundError, unauthorized
from cmscrm.db.session import get_db
from cmscrm.services.audit_service import audit_service
from cmscrm.services.authorization import AuthorizationEngine, Principal
from cmscrm.services.stores import AssignmentStore, IdentityStore

# JWT bearer scheme
security_scheme = HTTPBearer(auto_error=False)


def hash_password(password: str) -> str:
    """Hash a password using bcrypt."""
    pwd_bytes = password.encode("utf-8")
    salt = bcrypt.gensalt(rounds=settings.BCRYPT_ROUNDS)
    hashed = bcrypt.hashpw(pwd_bytes, salt)
    return hashed.decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash."""
    pwd_bytes = plain_password.encode("utf-8")
    hashed_bytes = hashed_password.encode("utf-8")
    return bcrypt.checkpw(pwd_bytes, hashed_bytes)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create a JWT access token."""
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.JWT_EXPIRY_MINUTES)
    )
    to_encode.update({"exp": expire, "type": "access"})
    return jwt.encode(to_encode, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def create_refresh_token(data: dict) -> str:
    """Create a JWT refresh token."""
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + timedelta(days=settings.REFRESH_TOKEN_EXPIRY_DAYS)
    to_encode.update({"exp": expire, "type": "refresh"})
    return jwt.encode(to_encode, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str) -> dict:
    """Decode and validate a JWT token."""
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
        return payload
    except JWTError:
        raise unauthorized("Invalid or expired token")


async def get_current_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security_scheme),
) -> int:
    """Extract user_id from the JWT Bearer token."""
    if credentials is None:
        raise unauthorized("Not authenticated")
    payload = decode_token(credentials.credentials)
    if payload.get("type") != "access":
        raise unauthorized("Invalid token type")
    user_id = payload.get("sub")
    if user_id is None:
        raise unauthorized("Invalid token payload")
    return int(user_id)


async def get_current_principal(
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> Principal:
    """Resolve the token's user into a Principal; unknown or inactive users get 401."""
    try:
        principal = IdentityStore(db).get_principal(user_id)
    except ResourceNotFoundError:
        raise unauthorized("Invalid token. User not found.")
    if not principal.is_active:
        raise unauthorized("Account is inactive. Please contact administrator.")
    return principal


class RequirePermission:
    """Dependency that gates a route on ``authorize(principal, action, resource)``.

    Denials are written to the audit log before the 403 is raised, so the
    guarded handler never runs.
    """

    def __init__(self, action: str, resource: str):
        self.action = action
        self.resource = resource

    async def __call__(
        self,
        request: Request,
        principal: Principal = Depends(get_current_principal),
        db: Session = Depends(get_db),
    ):
        engine = AuthorizationEngine(AssignmentStore(db))
        try:
            return engine.require(principal, self.action, self.resource)
        except AuthorizationError as e:
            audit_service.log_from_request(
                db, request,
                actor_id=principal.id,
                actor_username=principal.username,
                action="access.denied",
                resource_type=self.resource,
                details={"required_permission": e.required_permission},
            )
            raise


# Convenience dependency factories
require_view_stats = RequirePermission("view", "stats")
require_view_activity = RequirePermission("view", "activity")
