"""Role service: CRUD plus page assignment and navigation views per role."""

from contextlib import contextmanager
from typing import Optional, Dict, Any, List, Sequence

from sqlalchemy import or_
from sqlalchemy.orm import Session

from cmscrm.models.role import Role
from cmscrm.models.assignment import UserRole, RolePage, RolePageOrder
from cmscrm.core.exceptions import CMSCRMError, ResourceConflictError, ResourceNotFoundError
from cmscrm.services.hierarchy import HierarchyBuilder, PageNode, OrderedPageItem
from cmscrm.services.stores import AssignmentStore, store_errors


@contextmanager
def _transaction(db: Session, operation: str):
    """Commit the role row and its page assignment together, or neither."""
    try:
        with store_errors(db, operation):
            yield
            db.commit()
    except CMSCRMError:
        db.rollback()
        raise


class RoleService:
    """Manages roles and delegates page assignment to the hierarchy builder."""

    @staticmethod
    def get(db: Session, role_id: int) -> Role:
        role = db.query(Role).filter(Role.id == role_id).first()
        if not role:
            raise ResourceNotFoundError(f"Role {role_id} not found")
        return role

    @staticmethod
    def list_roles(
        db: Session,
        search: Optional[str] = None,
        page: int = 1,
        page_size: int = 20,
    ) -> Dict[str, Any]:
        query = db.query(Role)
        if search:
            like = f"%{search.strip()}%"
            query = query.filter(or_(Role.name.ilike(like), Role.description.ilike(like)))
        total = query.count()
        roles = (
            query.order_by(Role.created_at.desc(), Role.id.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
            .all()
        )
        return {"roles": roles, "total": total, "page": page, "page_size": page_size}

    @staticmethod
    def list_simple(db: Session) -> List[Role]:
        return db.query(Role).order_by(Role.name).all()

    @staticmethod
    def _assign(
        db: Session,
        role_id: int,
        pages: Optional[Sequence[int]],
        pages_with_order: Optional[Sequence[Any]],
        assigned_by: Optional[int],
    ) -> None:
        builder = HierarchyBuilder(AssignmentStore(db))
        if pages_with_order is not None:
            builder.assign_ordered_pages(role_id, pages_with_order, assigned_by)
        elif pages is not None:
            builder.assign_pages(role_id, pages, assigned_by)

    @staticmethod
    def create(
        db: Session,
        name: str,
        description: Optional[str] = None,
        pages: Optional[Sequence[int]] = None,
        pages_with_order: Optional[Sequence[Any]] = None,
        created_by: Optional[int] = None,
    ) -> Role:
        """Create a role; ordered pages take precedence over a flat page list."""
        if db.query(Role).filter(Role.name == name).first():
            raise ResourceConflictError("Role name already exists")
        role = Role(name=name, description=description, created_by=created_by)
        db.add(role)
        with _transaction(db, "create_role"):
            db.flush()
            RoleService._assign(
                db, role.id,
                pages or None,
                pages_with_order or None,
                created_by,
            )
        db.refresh(role)
        return role

    @staticmethod
    def update(
        db: Session,
        role_id: int,
        name: Optional[str] = None,
        description: Optional[str] = None,
        pages: Optional[Sequence[int]] = None,
        pages_with_order: Optional[Sequence[Any]] = None,
        updated_by: Optional[int] = None,
    ) -> Role:
        """Update fields; a given page list (even empty) replaces the role's pages."""
        role = RoleService.get(db, role_id)
        if name is not None and name != role.name:
            if db.query(Role).filter(Role.name == name, Role.id != role_id).first():
                raise ResourceConflictError("Role name already exists")
            role.name = name
        if description is not None:
            role.description = description
        with _transaction(db, "update_role"):
            db.flush()
            RoleService._assign(db, role_id, pages, pages_with_order, updated_by)
        db.refresh(role)
        return role

    @staticmethod
    def delete(db: Session, role_id: int) -> Dict[str, Any]:
        """Delete a role and its page assignments; refused while users hold it."""
        role = RoleService.get(db, role_id)
        if db.query(UserRole).filter(UserRole.role_id == role_id).count() > 0:
            raise ResourceConflictError("Cannot delete role with assigned users")
        snapshot = {"name": role.name}
        db.query(RolePageOrder).filter(RolePageOrder.role_id == role_id).delete()
        db.query(RolePage).filter(RolePage.role_id == role_id).delete()
        db.expire(role)
        db.delete(role)
        db.commit()
        return snapshot

    @staticmethod
    def assign_pages(db: Session, role_id: int, page_ids: Sequence[int], assigned_by: Optional[int] = None) -> None:
        RoleService.get(db, role_id)
        HierarchyBuilder(AssignmentStore(db)).assign_pages(role_id, page_ids, assigned_by)

    @staticmethod
    def set_page_order(db: Session, role_id: int, items: Sequence[Any], assigned_by: Optional[int] = None) -> None:
        RoleService.get(db, role_id)
        HierarchyBuilder(AssignmentStore(db)).assign_ordered_pages(role_id, items, assigned_by)

    @staticmethod
    def get_pages(db: Session, role_id: int):
        RoleService.get(db, role_id)
        return AssignmentStore(db).get_flat_assignments(role_id)

    @staticmethod
    def get_page_tree(db: Session, role_id: int) -> List[PageNode]:
        RoleService.get(db, role_id)
        return HierarchyBuilder(AssignmentStore(db)).build_tree(role_id)

    @staticmethod
    def get_page_order(db: Session, role_id: int) -> List[OrderedPageItem]:
        RoleService.get(db, role_id)
        return HierarchyBuilder(AssignmentStore(db)).get_ordered_pages_or_fallback(role_id)

    @staticmethod
    def stats(db: Session) -> Dict[str, int]:
        return {
            "total": db.query(Role).count(),
            "with_users": db.query(Role).filter(Role.user_links.any()).count(),
            "with_pages": db.query(Role).filter(Role.page_links.any()).count(),
        }


role_service = RoleService()
