"""Page service: CRUD for navigable admin panel pages."""

from typing import Optional, Dict, Any, List

from sqlalchemy import or_
from sqlalchemy.orm import Session

from cmscrm.models.page import Page, PageStatusEnum
from cmscrm.models.role import Role
from cmscrm.models.assignment import RolePage, RolePageOrder
from cmscrm.core.exceptions import ResourceConflictError, ResourceNotFoundError


class PageService:
    """Manages pages. Assignment to roles lives in the hierarchy builder."""

    @staticmethod
    def get(db: Session, page_id: int) -> Page:
        page = db.query(Page).filter(Page.id == page_id).first()
        if not page:
            raise ResourceNotFoundError(f"Page {page_id} not found")
        return page

    @staticmethod
    def list_pages(
        db: Session,
        search: Optional[str] = None,
        status: Optional[str] = None,
        page: int = 1,
        page_size: int = 20,
    ) -> Dict[str, Any]:
        query = db.query(Page)
        if search:
            like = f"%{search.strip()}%"
            query = query.filter(or_(Page.name.ilike(like), Page.url.ilike(like)))
        if status:
            query = query.filter(Page.status == PageStatusEnum(status))
        total = query.count()
        pages = (
            query.order_by(Page.created_at.desc(), Page.id.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
            .all()
        )
        return {"pages": pages, "total": total, "page": page, "page_size": page_size}

    @staticmethod
    def list_simple(db: Session, active_only: bool = True) -> List[Page]:
        query = db.query(Page)
        if active_only:
            query = query.filter(Page.status == PageStatusEnum.active)
        return query.order_by(Page.name).all()

    @staticmethod
    def create(
        db: Session,
        name: str,
        url: str,
        icon: Optional[str] = None,
        is_external: bool = False,
        status: str = "active",
        created_by: Optional[int] = None,
    ) -> Page:
        page = Page(
            name=name,
            url=url,
            icon=icon,
            is_external=is_external,
            status=PageStatusEnum(status),
            created_by=created_by,
        )
        db.add(page)
        db.commit()
        db.refresh(page)
        return page

    @staticmethod
    def update(db: Session, page_id: int, **kwargs) -> Page:
        page = PageService.get(db, page_id)
        for field in ("name", "url", "icon", "is_external"):
            if kwargs.get(field) is not None:
                setattr(page, field, kwargs[field])
        if kwargs.get("status"):
            page.status = PageStatusEnum(kwargs["status"])
        db.commit()
        db.refresh(page)
        return page

    @staticmethod
    def delete(db: Session, page_id: int) -> Dict[str, Any]:
        """Delete a page; refused while any role references it."""
        page = PageService.get(db, page_id)
        if db.query(RolePage).filter(RolePage.page_id == page_id).count() > 0:
            raise ResourceConflictError("Cannot delete page with assigned roles")
        snapshot = {"name": page.name, "url": page.url}
        db.query(RolePageOrder).filter(RolePageOrder.page_id == page_id).delete()
        db.delete(page)
        db.commit()
        return snapshot

    @staticmethod
    def get_roles(db: Session, page_id: int) -> List[Role]:
        PageService.get(db, page_id)
        return (
            db.query(Role)
            .join(RolePage, RolePage.role_id == Role.id)
            .filter(RolePage.page_id == page_id)
            .order_by(Role.name)
            .all()
        )

    @staticmethod
    def stats(db: Session) -> Dict[str, int]:
        return {
            "total": db.query(Page).count(),
            "active": db.query(Page).filter(Page.status == PageStatusEnum.active).count(),
            "inactive": db.query(Page).filter(Page.status == PageStatusEnum.inactive).count(),
            "internal": db.query(Page).filter(Page.is_external.is_(False)).count(),
            "external": db.query(Page).filter(Page.is_external.is_(True)).count(),
        }


page_service = PageService()
