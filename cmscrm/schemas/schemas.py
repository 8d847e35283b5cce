"""Pydantic schemas for API request/response serialization."""

from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any
from datetime import datetime

from cmscrm.services.hierarchy import PageNode, OrderedPageItem


# ---- Auth ----
class LoginRequest(BaseModel):
    email: str = Field(..., min_length=4)
    password: str = Field(..., min_length=4)

class TokenResponse(BaseModel):
    access_token: str
    refresh_token: Optional[str] = None
    token_type: str = "bearer"
    user: Optional[Dict[str, Any]] = None
    login_activity_id: Optional[int] = None

class RefreshRequest(BaseModel):
    refresh_token: str

class LogoutRequest(BaseModel):
    login_activity_id: Optional[int] = None

class ProfileUpdateRequest(BaseModel):
    username: Optional[str] = Field(None, min_length=3, max_length=50)
    email: Optional[str] = Field(None, min_length=4)
    current_password: Optional[str] = None
    new_password: Optional[str] = Field(None, min_length=6)

class LoginActivityOut(BaseModel):
    id: int
    email: Optional[str] = None
    success: bool
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    login_at: Optional[datetime] = None
    logout_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# ---- User ----
class UserOut(BaseModel):
    id: int
    username: str
    email: str
    status: str
    roles: List[str] = []
    last_login_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_user(cls, user) -> "UserOut":
        return cls(
            id=user.id,
            username=user.username,
            email=user.email,
            status=user.status.value,
            roles=user.role_names,
            last_login_at=user.last_login_at,
            created_at=user.created_at,
        )

class UserCreateRequest(BaseModel):
    username: str = Field(..., min_length=3, max_length=50)
    email: str = Field(..., min_length=4)
    password: str = Field(..., min_length=6)
    roles: List[int] = []
    status: str = Field("active", pattern="^(active|inactive)$")

class UserUpdateRequest(BaseModel):
    username: Optional[str] = Field(None, min_length=3, max_length=50)
    email: Optional[str] = Field(None, min_length=4)
    password: Optional[str] = Field(None, min_length=6)
    roles: Optional[List[int]] = None
    status: Optional[str] = Field(None, pattern="^(active|inactive)$")

class UserRoleRequest(BaseModel):
    user_id: int
    role_id: int


# ---- Role ----
class OrderedPageIn(BaseModel):
    page_id: int
    parent_page_id: Optional[int] = None
    display_order: int = 0

class RoleOut(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    page_ids: List[int] = []
    user_count: int = 0
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class RoleSimpleOut(BaseModel):
    id: int
    name: str
    description: Optional[str] = None

    class Config:
        from_attributes = True

class RoleCreateRequest(BaseModel):
    name: str = Field(..., min_length=2, max_length=50)
    description: Optional[str] = None
    pages: List[int] = []
    pages_with_order: List[OrderedPageIn] = []

class RoleUpdateRequest(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=50)
    description: Optional[str] = None
    pages: Optional[List[int]] = None
    pages_with_order: Optional[List[OrderedPageIn]] = None

class AssignPagesRequest(BaseModel):
    role_id: int
    page_ids: List[int]

class PageOrderUpdateRequest(BaseModel):
    pages_with_order: List[OrderedPageIn]

class RolePageTreeOut(BaseModel):
    role_id: int
    role_name: str
    pages: List[PageNode]

class RolePageOrderOut(BaseModel):
    role_id: int
    role_name: str
    pages: List[OrderedPageItem]


# ---- Page ----
class PageOut(BaseModel):
    id: int
    name: str
    url: str
    icon: Optional[str] = None
    is_external: bool = False
    status: str
    created_at: Optional[datetime] = None

    @classmethod
    def from_page(cls, page) -> "PageOut":
        return cls(
            id=page.id,
            name=page.name,
            url=page.url,
            icon=page.icon,
            is_external=bool(page.is_external),
            status=page.status.value,
            created_at=page.created_at,
        )

class PageCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    url: str = Field(..., min_length=1, max_length=500)
    icon: Optional[str] = None
    is_external: bool = False
    status: str = Field("active", pattern="^(active|inactive)$")

class PageUpdateRequest(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    url: Optional[str] = Field(None, min_length=1, max_length=500)
    icon: Optional[str] = None
    is_external: Optional[bool] = None
    status: Optional[str] = Field(None, pattern="^(active|inactive)$")

class PageAccessOut(BaseModel):
    user_id: int
    page_url: str
    has_access: bool


# ---- Audit ----
class AuditLogOut(BaseModel):
    id: int
    actor_id: Optional[int] = None
    actor_username: Optional[str] = None
    action: str
    resource_type: str
    resource_id: Optional[str] = None
    details_json: Optional[str] = None
    ip_address: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# ---- Generic ----
class MessageResponse(BaseModel):
    message: str
    detail: Optional[Any] = None
