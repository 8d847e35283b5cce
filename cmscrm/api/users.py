"""Users API router."""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from cmscrm.core.config import settings
from cmscrm.core.exceptions import ResourceNotFoundError
from cmscrm.core.security import RequirePermission
from cmscrm.db.session import get_db
from cmscrm.schemas.schemas import (
    UserOut, UserCreateRequest, UserUpdateRequest, UserRoleRequest,
    RoleSimpleOut, PageOut, MessageResponse,
)
from cmscrm.services.audit_service import audit_service
from cmscrm.services.authorization import Principal
from cmscrm.services.stores import AssignmentStore
from cmscrm.services.user_service import user_service

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/")
async def list_users(
    search: Optional[str] = Query(None),
    status: Optional[str] = Query(None, pattern="^(active|inactive)$"),
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    db: Session = Depends(get_db),
    principal: Principal = Depends(RequirePermission("view", "user")),
):
    result = user_service.list_users(db, search, status, page, page_size)
    return {
        "users": [UserOut.from_user(u) for u in result["users"]],
        "total": result["total"],
        "page": result["page"],
        "page_size": result["page_size"],
    }


@router.get("/stats")
async def user_stats(
    db: Session = Depends(get_db),
    principal: Principal = Depends(RequirePermission("view", "user")),
):
    return user_service.stats(db)


@router.post("/assign-role", response_model=MessageResponse)
async def assign_role(
    body: UserRoleRequest,
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(RequirePermission("update", "user")),
):
    user_service.assign_role(db, body.user_id, body.role_id, assigned_by=principal.id)
    audit_service.log_from_request(
        db, request,
        actor_id=principal.id,
        actor_username=principal.username,
        action="user.assign_role",
        resource_type="user",
        resource_id=body.user_id,
        details={"role_id": body.role_id},
    )
    return MessageResponse(message="Role assigned successfully")


@router.post("/remove-role", response_model=MessageResponse)
async def remove_role(
    body: UserRoleRequest,
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(RequirePermission("update", "user")),
):
    if not user_service.remove_role(db, body.user_id, body.role_id):
        raise ResourceNotFoundError("Role assignment not found")
    audit_service.log_from_request(
        db, request,
        actor_id=principal.id,
        actor_username=principal.username,
        action="user.remove_role",
        resource_type="user",
        resource_id=body.user_id,
        details={"role_id": body.role_id},
    )
    return MessageResponse(message="Role removed successfully")


@router.get("/{user_id}", response_model=UserOut)
async def get_user(
    user_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(RequirePermission("view", "user")),
):
    return UserOut.from_user(user_service.get(db, user_id))


@router.post("/", response_model=UserOut, status_code=201)
async def create_user(
    body: UserCreateRequest,
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(RequirePermission("create", "user")),
):
    user = user_service.create(
        db, body.username, body.email, body.password,
        role_ids=body.roles, status=body.status, created_by=principal.id,
    )
    audit_service.log_from_request(
        db, request,
        actor_id=principal.id,
        actor_username=principal.username,
        action="user.create",
        resource_type="user",
        resource_id=user.id,
        details={"username": user.username, "roles": user.role_names},
    )
    return UserOut.from_user(user)


@router.put("/{user_id}", response_model=UserOut)
async def update_user(
    user_id: int,
    body: UserUpdateRequest,
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(RequirePermission("update", "user")),
):
    changes = body.model_dump(exclude_none=True)
    user = user_service.update(db, user_id, updated_by=principal.id, **changes)
    audit_service.log_from_request(
        db, request,
        actor_id=principal.id,
        actor_username=principal.username,
        action="user.update",
        resource_type="user",
        resource_id=user_id,
        details={"fields": sorted(changes)},
    )
    return UserOut.from_user(user)


@router.delete("/{user_id}", response_model=MessageResponse)
async def delete_user(
    user_id: int,
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(RequirePermission("delete", "user")),
):
    snapshot = user_service.delete(db, user_id, acting_user_id=principal.id)
    audit_service.log_from_request(
        db, request,
        actor_id=principal.id,
        actor_username=principal.username,
        action="user.delete",
        resource_type="user",
        resource_id=user_id,
        details=snapshot,
    )
    return MessageResponse(message="User deleted successfully")


@router.get("/{user_id}/roles")
async def get_user_roles(
    user_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(RequirePermission("view", "user")),
):
    return [RoleSimpleOut.model_validate(r) for r in user_service.get_roles(db, user_id)]


@router.get("/{user_id}/pages")
async def get_user_pages(
    user_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(RequirePermission("view", "user")),
):
    """Active pages reachable through the user's roles."""
    user_service.get(db, user_id)
    pages = AssignmentStore(db).get_assigned_pages_for_user(user_id)
    return [PageOut.from_page(p) for p in pages]
