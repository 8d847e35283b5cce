"""Roles API router: CRUD, page assignment, page hierarchy and order."""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from cmscrm.core.config import settings
from cmscrm.core.security import RequirePermission, get_current_principal
from cmscrm.db.session import get_db
from cmscrm.schemas.schemas import (
    RoleOut, RoleSimpleOut, RoleCreateRequest, RoleUpdateRequest,
    AssignPagesRequest, PageOrderUpdateRequest, RolePageTreeOut,
    RolePageOrderOut, PageOut, MessageResponse,
)
from cmscrm.services.audit_service import audit_service
from cmscrm.services.authorization import Principal
from cmscrm.services.role_service import role_service

router = APIRouter(prefix="/roles", tags=["roles"])


@router.get("/simple")
async def list_roles_simple(
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    """Id and name of every role, for pickers."""
    return [RoleSimpleOut.model_validate(r) for r in role_service.list_simple(db)]


@router.get("/")
async def list_roles(
    search: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    db: Session = Depends(get_db),
    principal: Principal = Depends(RequirePermission("view", "role")),
):
    result = role_service.list_roles(db, search, page, page_size)
    return {
        "roles": [RoleOut.model_validate(r) for r in result["roles"]],
        "total": result["total"],
        "page": result["page"],
        "page_size": result["page_size"],
    }


@router.get("/stats")
async def role_stats(
    db: Session = Depends(get_db),
    principal: Principal = Depends(RequirePermission("view", "role")),
):
    return role_service.stats(db)


@router.post("/assign-pages", response_model=MessageResponse)
async def assign_pages(
    body: AssignPagesRequest,
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(RequirePermission("update", "role")),
):
    """Replace the role's flat page list."""
    role_service.assign_pages(db, body.role_id, body.page_ids, assigned_by=principal.id)
    audit_service.log_from_request(
        db, request,
        actor_id=principal.id,
        actor_username=principal.username,
        action="role.assign_pages",
        resource_type="role",
        resource_id=body.role_id,
        details={"page_ids": sorted(set(body.page_ids))},
    )
    return MessageResponse(message="Pages assigned successfully")


@router.get("/{role_id}", response_model=RoleOut)
async def get_role(
    role_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(RequirePermission("view", "role")),
):
    return RoleOut.model_validate(role_service.get(db, role_id))


@router.post("/", response_model=RoleOut, status_code=201)
async def create_role(
    body: RoleCreateRequest,
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(RequirePermission("create", "role")),
):
    role = role_service.create(
        db, body.name, body.description,
        pages=body.pages,
        pages_with_order=body.pages_with_order,
        created_by=principal.id,
    )
    audit_service.log_from_request(
        db, request,
        actor_id=principal.id,
        actor_username=principal.username,
        action="role.create",
        resource_type="role",
        resource_id=role.id,
        details={"name": role.name, "page_ids": role.page_ids},
    )
    return RoleOut.model_validate(role)


@router.put("/{role_id}", response_model=RoleOut)
async def update_role(
    role_id: int,
    body: RoleUpdateRequest,
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(RequirePermission("update", "role")),
):
    role = role_service.update(
        db, role_id,
        name=body.name,
        description=body.description,
        pages=body.pages,
        pages_with_order=body.pages_with_order,
        updated_by=principal.id,
    )
    audit_service.log_from_request(
        db, request,
        actor_id=principal.id,
        actor_username=principal.username,
        action="role.update",
        resource_type="role",
        resource_id=role_id,
        details={"fields": sorted(body.model_dump(exclude_none=True))},
    )
    return RoleOut.model_validate(role)


@router.delete("/{role_id}", response_model=MessageResponse)
async def delete_role(
    role_id: int,
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(RequirePermission("delete", "role")),
):
    snapshot = role_service.delete(db, role_id)
    audit_service.log_from_request(
        db, request,
        actor_id=principal.id,
        actor_username=principal.username,
        action="role.delete",
        resource_type="role",
        resource_id=role_id,
        details=snapshot,
    )
    return MessageResponse(message="Role deleted successfully")


@router.get("/{role_id}/pages")
async def get_role_pages(
    role_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(RequirePermission("view", "role")),
):
    return [PageOut.from_page(p) for p in role_service.get_pages(db, role_id)]


@router.get("/{role_id}/page-hierarchy", response_model=RolePageTreeOut)
async def get_role_page_hierarchy(
    role_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(RequirePermission("view", "role")),
):
    """Navigation forest built from the role's ordered assignments."""
    role = role_service.get(db, role_id)
    return RolePageTreeOut(
        role_id=role.id,
        role_name=role.name,
        pages=role_service.get_page_tree(db, role_id),
    )


@router.get("/{role_id}/page-order", response_model=RolePageOrderOut)
async def get_role_page_order(
    role_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(RequirePermission("view", "role")),
):
    """Flat ordered rows for the editor, falling back to the flat assignment."""
    role = role_service.get(db, role_id)
    return RolePageOrderOut(
        role_id=role.id,
        role_name=role.name,
        pages=role_service.get_page_order(db, role_id),
    )


@router.put("/{role_id}/page-order", response_model=MessageResponse)
async def update_role_page_order(
    role_id: int,
    body: PageOrderUpdateRequest,
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(RequirePermission("update", "role")),
):
    role_service.set_page_order(db, role_id, body.pages_with_order, assigned_by=principal.id)
    audit_service.log_from_request(
        db, request,
        actor_id=principal.id,
        actor_username=principal.username,
        action="role.update_page_order",
        resource_type="role",
        resource_id=role_id,
        details={"page_ids": [item.page_id for item in body.pages_with_order]},
    )
    return MessageResponse(message="Page order updated successfully")
