"""Seed default roles into the database."""

from sqlalchemy.orm import Session

from cmscrm.core.permissions import SUPER_ADMIN, ADMIN, MANAGER, USER
from cmscrm.models.role import Role

DEFAULT_ROLES = [
    {"name": SUPER_ADMIN, "description": "Super Administrator with full system access"},
    {"name": ADMIN, "description": "Administrator with management access"},
    {"name": MANAGER, "description": "Manager with limited administrative access"},
    {"name": USER, "description": "Regular user with basic access"},
]


def seed_roles(db: Session) -> int:
    """Insert default roles if they don't already exist. Returns how many were added."""
    added = 0
    for role_data in DEFAULT_ROLES:
        existing = db.query(Role).filter(Role.name == role_data["name"]).first()
        if not existing:
            db.add(Role(**role_data))
            added += 1

    db.commit()
    print(f"Seeded {added} of {len(DEFAULT_ROLES)} roles")
    return added
