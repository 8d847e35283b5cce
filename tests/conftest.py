import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["JWT_SECRET"] = "test-secret"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from cmscrm.db.base import Base
from cmscrm.db.session import get_db
from cmscrm.core.security import create_access_token, hash_password
from cmscrm.main import app
from cmscrm.models import (
    Page, PageStatusEnum, Role, User, UserRole, UserStatusEnum,
)

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def make_role(db):
    def _make_role(name, description=None):
        role = db.query(Role).filter(Role.name == name).first()
        if role is None:
            role = Role(name=name, description=description)
            db.add(role)
            db.commit()
            db.refresh(role)
        return role
    return _make_role


@pytest.fixture
def make_user(db, make_role):
    counter = {"n": 0}

    def _make_user(username=None, roles=(), status=UserStatusEnum.active, password="secret123"):
        counter["n"] += 1
        username = username or f"user{counter['n']}"
        user = User(
            username=username,
            email=f"{username}@example.com",
            hashed_password=hash_password(password),
            status=status,
        )
        db.add(user)
        db.flush()
        for role_name in roles:
            db.add(UserRole(user_id=user.id, role_id=make_role(role_name).id))
        db.commit()
        db.refresh(user)
        return user
    return _make_user


@pytest.fixture
def make_page(db):
    def _make_page(name, url=None, status=PageStatusEnum.active, is_external=False, page_id=None):
        page = Page(
            id=page_id,
            name=name,
            url=url or "/" + name.lower().replace(" ", "-"),
            status=status,
            is_external=is_external,
        )
        db.add(page)
        db.commit()
        db.refresh(page)
        return page
    return _make_page


@pytest.fixture
def auth_headers():
    def _auth_headers(user):
        token = create_access_token({"sub": str(user.id), "username": user.username})
        return {"Authorization": f"Bearer {token}"}
    return _auth_headers
