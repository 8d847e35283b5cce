"""User service: CRUD and role membership for admin panel users."""

from typing import Optional, Dict, Any, List

from sqlalchemy import or_
from sqlalchemy.orm import Session

from cmscrm.models.user import User, UserStatusEnum
from cmscrm.models.role import Role
from cmscrm.models.assignment import UserRole
from cmscrm.core.security import hash_password
from cmscrm.core.exceptions import (
    ResourceConflictError, ResourceNotFoundError, ValidationError,
)


class UserService:
    """Manages users and their role assignments."""

    @staticmethod
    def get(db: Session, user_id: int) -> User:
        user = db.query(User).filter(User.id == user_id).first()
        if not user:
            raise ResourceNotFoundError(f"User {user_id} not found")
        return user

    @staticmethod
    def list_users(
        db: Session,
        search: Optional[str] = None,
        status: Optional[str] = None,
        page: int = 1,
        page_size: int = 20,
    ) -> Dict[str, Any]:
        """List users with search/status filters and pagination."""
        query = db.query(User)
        if search:
            like = f"%{search.strip()}%"
            query = query.filter(or_(User.username.ilike(like), User.email.ilike(like)))
        if status:
            query = query.filter(User.status == UserStatusEnum(status))

        total = query.count()
        users = (
            query.order_by(User.created_at.desc(), User.id.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
            .all()
        )
        return {"users": users, "total": total, "page": page, "page_size": page_size}

    @staticmethod
    def _check_unique(db: Session, username: Optional[str], email: Optional[str], exclude_id: Optional[int] = None):
        query = db.query(User)
        if exclude_id is not None:
            query = query.filter(User.id != exclude_id)
        if email and query.filter(User.email == email).first():
            raise ResourceConflictError("User with this email already exists")
        if username and query.filter(User.username == username).first():
            raise ResourceConflictError("Username already exists")

    @staticmethod
    def _replace_roles(db: Session, user: User, role_ids: List[int], assigned_by: Optional[int]) -> None:
        """Drop all memberships and add the existing roles among role_ids."""
        user.role_links.clear()
        db.flush()
        wanted = list(dict.fromkeys(role_ids))
        if wanted:
            found = {r.id for r in db.query(Role).filter(Role.id.in_(wanted)).all()}
            for role_id in wanted:
                if role_id in found:
                    db.add(UserRole(user_id=user.id, role_id=role_id, assigned_by=assigned_by))

    @staticmethod
    def create(
        db: Session,
        username: str,
        email: str,
        password: str,
        role_ids: Optional[List[int]] = None,
        status: str = "active",
        created_by: Optional[int] = None,
    ) -> User:
        """Create a user; unknown role ids are skipped."""
        UserService._check_unique(db, username, email)
        user = User(
            username=username,
            email=email,
            hashed_password=hash_password(password),
            status=UserStatusEnum(status),
            created_by=created_by,
        )
        db.add(user)
        db.flush()
        if role_ids:
            UserService._replace_roles(db, user, role_ids, created_by)
        db.commit()
        db.refresh(user)
        return user

    @staticmethod
    def update(db: Session, user_id: int, updated_by: Optional[int] = None, **kwargs) -> User:
        """Update basic fields, password, and (when given) the full role list."""
        user = UserService.get(db, user_id)
        UserService._check_unique(db, kwargs.get("username"), kwargs.get("email"), exclude_id=user_id)

        if kwargs.get("username"):
            user.username = kwargs["username"]
        if kwargs.get("email"):
            user.email = kwargs["email"]
        if kwargs.get("status"):
            user.status = UserStatusEnum(kwargs["status"])
        if kwargs.get("password"):
            user.hashed_password = hash_password(kwargs["password"])
        if kwargs.get("roles") is not None:
            UserService._replace_roles(db, user, kwargs["roles"], updated_by)

        db.commit()
        db.expire(user)
        return UserService.get(db, user_id)

    @staticmethod
    def delete(db: Session, user_id: int, acting_user_id: int) -> Dict[str, Any]:
        """Delete a user and its role memberships. Self-deletion is refused."""
        user = UserService.get(db, user_id)
        if user_id == acting_user_id:
            raise ValidationError("You cannot delete your own account")
        snapshot = {"username": user.username, "email": user.email}
        db.delete(user)
        db.commit()
        return snapshot

    @staticmethod
    def get_roles(db: Session, user_id: int) -> List[Role]:
        UserService.get(db, user_id)
        return (
            db.query(Role)
            .join(UserRole, UserRole.role_id == Role.id)
            .filter(UserRole.user_id == user_id)
            .order_by(Role.name)
            .all()
        )

    @staticmethod
    def assign_role(db: Session, user_id: int, role_id: int, assigned_by: Optional[int] = None) -> None:
        """Add one role to a user; assigning a held role is a no-op."""
        UserService.get(db, user_id)
        if not db.query(Role).filter(Role.id == role_id).first():
            raise ResourceNotFoundError(f"Role {role_id} not found")
        existing = db.query(UserRole).filter(
            UserRole.user_id == user_id, UserRole.role_id == role_id
        ).first()
        if existing is None:
            db.add(UserRole(user_id=user_id, role_id=role_id, assigned_by=assigned_by))
            db.commit()

    @staticmethod
    def remove_role(db: Session, user_id: int, role_id: int) -> bool:
        UserService.get(db, user_id)
        removed = db.query(UserRole).filter(
            UserRole.user_id == user_id, UserRole.role_id == role_id
        ).delete()
        db.commit()
        return removed > 0

    @staticmethod
    def stats(db: Session) -> Dict[str, int]:
        return {
            "total": db.query(User).count(),
            "active": db.query(User).filter(User.status == UserStatusEnum.active).count(),
            "inactive": db.query(User).filter(User.status == UserStatusEnum.inactive).count(),
        }


user_service = UserService()
