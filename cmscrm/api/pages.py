"""Pages API router."""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from cmscrm.core.config import settings
from cmscrm.core.security import RequirePermission, get_current_principal
from cmscrm.db.session import get_db
from cmscrm.schemas.schemas import (
    PageOut, PageCreateRequest, PageUpdateRequest, PageAccessOut,
    RoleSimpleOut, MessageResponse,
)
from cmscrm.services.audit_service import audit_service
from cmscrm.services.authorization import AuthorizationEngine, Principal
from cmscrm.services.hierarchy import HierarchyBuilder
from cmscrm.services.page_service import page_service
from cmscrm.services.stores import AssignmentStore

router = APIRouter(prefix="/pages", tags=["pages"])


@router.get("/my-pages")
async def my_pages(
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    """Active pages reachable through the caller's roles."""
    pages = AssignmentStore(db).get_assigned_pages_for_user(principal.id)
    return [PageOut.from_page(p) for p in pages]


@router.get("/my-pages-hierarchy")
async def my_pages_hierarchy(
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    """Sidebar navigation for the caller, merged across roles."""
    return HierarchyBuilder(AssignmentStore(db)).build_tree_for_user(principal.id)


@router.get("/simple")
async def list_pages_simple(
    active_only: bool = Query(True),
    db: Session = Depends(get_db),
    principal: Principal = Depends(RequirePermission("view", "page")),
):
    return [PageOut.from_page(p) for p in page_service.list_simple(db, active_only)]


@router.get("/")
async def list_pages(
    search: Optional[str] = Query(None),
    status: Optional[str] = Query(None, pattern="^(active|inactive)$"),
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    db: Session = Depends(get_db),
    principal: Principal = Depends(RequirePermission("view", "page")),
):
    result = page_service.list_pages(db, search, status, page, page_size)
    return {
        "pages": [PageOut.from_page(p) for p in result["pages"]],
        "total": result["total"],
        "page": result["page"],
        "page_size": result["page_size"],
    }


@router.get("/stats")
async def page_stats(
    db: Session = Depends(get_db),
    principal: Principal = Depends(RequirePermission("view", "page")),
):
    return page_service.stats(db)


@router.get("/access/{page_url:path}", response_model=PageAccessOut)
async def check_page_access(
    page_url: str,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    """Whether the caller may open the page at ``page_url``."""
    if not page_url.startswith("/") and "://" not in page_url:
        page_url = "/" + page_url
    engine = AuthorizationEngine(AssignmentStore(db))
    return PageAccessOut(
        user_id=principal.id,
        page_url=page_url,
        has_access=engine.can_access_page(principal, page_url),
    )


@router.get("/{page_id}", response_model=PageOut)
async def get_page(
    page_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(RequirePermission("view", "page")),
):
    return PageOut.from_page(page_service.get(db, page_id))


@router.get("/{page_id}/roles")
async def get_page_roles(
    page_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(RequirePermission("view", "page")),
):
    return [RoleSimpleOut.model_validate(r) for r in page_service.get_roles(db, page_id)]


@router.post("/", response_model=PageOut, status_code=201)
async def create_page(
    body: PageCreateRequest,
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(RequirePermission("create", "page")),
):
    page = page_service.create(
        db, body.name, body.url,
        icon=body.icon,
        is_external=body.is_external,
        status=body.status,
        created_by=principal.id,
    )
    audit_service.log_from_request(
        db, request,
        actor_id=principal.id,
        actor_username=principal.username,
        action="page.create",
        resource_type="page",
        resource_id=page.id,
        details={"name": page.name, "url": page.url},
    )
    return PageOut.from_page(page)


@router.put("/{page_id}", response_model=PageOut)
async def update_page(
    page_id: int,
    body: PageUpdateRequest,
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(RequirePermission("update", "page")),
):
    changes = body.model_dump(exclude_none=True)
    page = page_service.update(db, page_id, **changes)
    audit_service.log_from_request(
        db, request,
        actor_id=principal.id,
        actor_username=principal.username,
        action="page.update",
        resource_type="page",
        resource_id=page_id,
        details={"fields": sorted(changes)},
    )
    return PageOut.from_page(page)


@router.delete("/{page_id}", response_model=MessageResponse)
async def delete_page(
    page_id: int,
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(RequirePermission("delete", "page")),
):
    snapshot = page_service.delete(db, page_id)
    audit_service.log_from_request(
        db, request,
        actor_id=principal.id,
        actor_username=principal.username,
        action="page.delete",
        resource_type="page",
        resource_id=page_id,
        details=snapshot,
    )
    return MessageResponse(message="Page deleted successfully")
