"""Seed the super-admin user from env vars."""

from sqlalchemy.orm import Session

from cmscrm.core.config import settings
from cmscrm.core.permissions import SUPER_ADMIN
from cmscrm.core.security import hash_password
from cmscrm.models.assignment import UserRole
from cmscrm.models.role import Role
from cmscrm.models.user import User


def seed_super_admin(db: Session) -> None:
    """Create the super-admin user if not already present."""
    super_admin_role = db.query(Role).filter(Role.name == SUPER_ADMIN).first()
    if not super_admin_role:
        print("super_admin role not found. Run seed_roles first.")
        return

    existing = db.query(User).filter(User.email == settings.SUPER_ADMIN_EMAIL).first()
    if existing:
        print(f"Super admin '{settings.SUPER_ADMIN_EMAIL}' already exists, skipping.")
        return

    admin = User(
        username=settings.SUPER_ADMIN_USERNAME,
        email=settings.SUPER_ADMIN_EMAIL,
        hashed_password=hash_password(settings.SUPER_ADMIN_PASSWORD),
    )
    db.add(admin)
    db.flush()
    db.add(UserRole(user_id=admin.id, role_id=super_admin_role.id))
    db.commit()
    print(f"Created super admin: {settings.SUPER_ADMIN_EMAIL}")
