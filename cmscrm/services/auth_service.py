"""Auth service: JWT login, refresh, logout, profile."""

from datetime import datetime, timezone
from typing import Optional, Dict, Any
import hashlib

from sqlalchemy.orm import Session

from cmscrm.models.user import User
from cmscrm.models.login_activity import LoginActivity, RefreshToken
from cmscrm.core.security import (
    hash_password, verify_password,
    create_access_token, create_refresh_token, decode_token,
)
from cmscrm.core.exceptions import (
    AuthenticationError, ResourceConflictError, ResourceNotFoundError, ValidationError,
)


def _token_data(user: User) -> Dict[str, Any]:
    return {
        "sub": str(user.id),
        "username": user.username,
        "email": user.email,
        "roles": user.role_names,
    }


class AuthService:
    """Handles authentication and the current user's profile."""

    @staticmethod
    def record_login(
        db: Session,
        user: Optional[User],
        email: str,
        success: bool,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> LoginActivity:
        activity = LoginActivity(
            user_id=user.id if user else None,
            email=email,
            success=success,
            ip_address=ip_address,
            user_agent=user_agent,
        )
        db.add(activity)
        db.commit()
        return activity

    @staticmethod
    def authenticate(
        db: Session,
        email: str,
        password: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Authenticate user and return JWT tokens.

        Every attempt is recorded in login_activities.

        Raises:
            AuthenticationError: If credentials are invalid or the account is inactive.
        """
        user = db.query(User).filter(User.email == email).first()
        if not user or not verify_password(password, user.hashed_password):
            AuthService.record_login(db, user, email, False, ip_address, user_agent)
            raise AuthenticationError("Invalid email or password")

        if not user.is_active:
            AuthService.record_login(db, user, email, False, ip_address, user_agent)
            raise AuthenticationError("Account is inactive. Please contact administrator.")

        token_data = _token_data(user)
        access_token = create_access_token(token_data)
        refresh_token_str = create_refresh_token(token_data)

        # Store refresh token hash
        token_hash = hashlib.sha256(refresh_token_str.encode()).hexdigest()
        rt = RefreshToken(
            user_id=user.id,
            token_hash=token_hash,
            expires_at=datetime.fromtimestamp(decode_token(refresh_token_str)["exp"], tz=timezone.utc),
        )
        db.add(rt)

        # Update last login
        user.last_login_at = datetime.now(timezone.utc)
        db.commit()

        activity = AuthService.record_login(db, user, email, True, ip_address, user_agent)

        return {
            "access_token": access_token,
            "refresh_token": refresh_token_str,
            "token_type": "bearer",
            "login_activity_id": activity.id,
            "user": {
                "id": user.id,
                "username": user.username,
                "email": user.email,
                "roles": user.role_names,
            },
        }

    @staticmethod
    def refresh_access_token(db: Session, refresh_token: str) -> Dict[str, Any]:
        """Refresh access token using a valid refresh token."""
        payload = decode_token(refresh_token)
        if payload.get("type") != "refresh":
            raise AuthenticationError("Invalid refresh token")
        token_hash = hashlib.sha256(refresh_token.encode()).hexdigest()

        stored = db.query(RefreshToken).filter(
            RefreshToken.token_hash == token_hash,
            RefreshToken.revoked_at.is_(None),
        ).first()

        if not stored:
            raise AuthenticationError("Invalid refresh token")

        user = db.query(User).filter(User.id == int(payload["sub"])).first()
        if not user or not user.is_active:
            raise AuthenticationError("User not found or deactivated")

        return {
            "access_token": create_access_token(_token_data(user)),
            "token_type": "bearer",
        }

    @staticmethod
    def logout(db: Session, user_id: int, login_activity_id: Optional[int] = None) -> None:
        """Revoke all refresh tokens for a user and stamp the login's logout time."""
        now = datetime.now(timezone.utc)
        db.query(RefreshToken).filter(
            RefreshToken.user_id == user_id,
            RefreshToken.revoked_at.is_(None),
        ).update({"revoked_at": now})
        if login_activity_id:
            db.query(LoginActivity).filter(
                LoginActivity.id == login_activity_id,
                LoginActivity.user_id == user_id,
            ).update({"logout_at": now})
        db.commit()

    @staticmethod
    def login_history(db: Session, user_id: int, page: int = 1, page_size: int = 20) -> Dict[str, Any]:
        """The user's own login attempts, newest first."""
        query = db.query(LoginActivity).filter(LoginActivity.user_id == user_id)
        total = query.count()
        activities = (
            query.order_by(LoginActivity.login_at.desc(), LoginActivity.id.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
            .all()
        )
        return {
            "activities": activities,
            "total": total,
            "page": page,
            "page_size": page_size,
            "pages": (total + page_size - 1) // page_size,
        }

    @staticmethod
    def get_user(db: Session, user_id: int) -> User:
        """Get a user by id."""
        user = db.query(User).filter(User.id == user_id).first()
        if not user:
            raise ResourceNotFoundError(f"User {user_id} not found")
        return user

    @staticmethod
    def update_profile(
        db: Session,
        user_id: int,
        username: Optional[str] = None,
        email: Optional[str] = None,
        current_password: Optional[str] = None,
        new_password: Optional[str] = None,
    ) -> User:
        """Update the current user's own profile; a new password needs the current one."""
        user = AuthService.get_user(db, user_id)

        if username and username != user.username:
            if db.query(User).filter(User.username == username, User.id != user_id).first():
                raise ResourceConflictError("Username already exists")
            user.username = username
        if email and email != user.email:
            if db.query(User).filter(User.email == email, User.id != user_id).first():
                raise ResourceConflictError("Email already exists")
            user.email = email
        if new_password:
            if not current_password or not verify_password(current_password, user.hashed_password):
                raise ValidationError("Current password is incorrect")
            user.hashed_password = hash_password(new_password)

        db.commit()
        db.refresh(user)
        return user


auth_service = AuthService()
