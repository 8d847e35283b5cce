"""Seed demo users for local development."""

from sqlalchemy.orm import Session

from cmscrm.core.permissions import ADMIN, MANAGER, USER
from cmscrm.core.security import hash_password
from cmscrm.models.assignment import UserRole
from cmscrm.models.role import Role
from cmscrm.models.user import User, UserStatusEnum

SAMPLE_USERS = [
    {"username": "admin", "email": "admin@cmscrm.com", "password": "Admin123!", "role": ADMIN},
    {"username": "manager", "email": "manager@cmscrm.com", "password": "Manager123!", "role": MANAGER},
    {"username": "user", "email": "user@cmscrm.com", "password": "User123!", "role": USER},
    {
        "username": "testuser",
        "email": "test@cmscrm.com",
        "password": "Test123!",
        "role": USER,
        "status": UserStatusEnum.inactive,
    },
]


def seed_sample_data(db: Session) -> None:
    roles = {r.name: r.id for r in db.query(Role).all()}
    created = 0
    for data in SAMPLE_USERS:
        if db.query(User).filter(User.email == data["email"]).first():
            continue
        user = User(
            username=data["username"],
            email=data["email"],
            hashed_password=hash_password(data["password"]),
            status=data.get("status", UserStatusEnum.active),
        )
        db.add(user)
        db.flush()
        if data["role"] in roles:
            db.add(UserRole(user_id=user.id, role_id=roles[data["role"]]))
        created += 1

    db.commit()
    print(f"Seeded {created} sample users")
