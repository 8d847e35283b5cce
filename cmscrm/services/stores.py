"""SQLAlchemy-backed identity and role-page assignment stores.

Both stores translate database failures into the typed errors the
authorization and hierarchy code expects: unique-key violations become
``ResourceConflictError`` and every other ``SQLAlchemyError`` becomes
``StoreUnavailableError``. Nothing here retries.
"""

import logging
from contextlib import contextmanager
from typing import Iterable, List, Optional, Sequence, Set, Dict, Any

from sqlalchemy import select, delete, func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from cmscrm.core.exceptions import (
    ResourceConflictError,
    ResourceNotFoundError,
    StoreUnavailableError,
)
from cmscrm.models.assignment import UserRole, RolePage, RolePageOrder
from cmscrm.models.page import Page, PageStatusEnum
from cmscrm.models.role import Role
from cmscrm.models.user import User
from cmscrm.services.authorization import Principal

logger = logging.getLogger("cmscrm.stores")


@contextmanager
def store_errors(db: Session, operation: str):
    """Roll back and re-raise database errors as typed store errors."""
    try:
        yield
    except IntegrityError as e:
        db.rollback()
        logger.warning("Conflict during %s: %s", operation, e.orig)
        raise ResourceConflictError(f"Conflicting data during {operation}") from e
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("Store failure during %s: %s", operation, e)
        raise StoreUnavailableError(f"Storage unavailable during {operation}") from e


class IdentityStore:
    """Reads users and their role memberships."""

    def __init__(self, db: Session):
        self.db = db

    def get_user_by_id(self, user_id: int) -> User:
        with store_errors(self.db, "get_user_by_id"):
            user = self.db.get(User, user_id)
        if user is None:
            raise ResourceNotFoundError(f"User {user_id} not found")
        return user

    def get_user_roles(self, user_id: int) -> List[str]:
        with store_errors(self.db, "get_user_roles"):
            rows = self.db.execute(
                select(Role.name)
                .join(UserRole, UserRole.role_id == Role.id)
                .where(UserRole.user_id == user_id)
                .order_by(Role.name)
            ).scalars().all()
        return list(rows)

    def get_principal(self, user_id: int) -> Principal:
        """Load the user and its roles into a normalized Principal."""
        user = self.get_user_by_id(user_id)
        return Principal.from_user(
            user.id, user.status, self.get_user_roles(user_id), username=user.username
        )


class AssignmentStore:
    """Reads and rewrites role -> page assignments (flat and ordered)."""

    def __init__(self, db: Session):
        self.db = db

    # ---- reads ----

    def get_assigned_page_ids(self, role_id: int) -> Set[int]:
        with store_errors(self.db, "get_assigned_page_ids"):
            rows = self.db.execute(
                select(RolePage.page_id).where(RolePage.role_id == role_id)
            ).scalars().all()
        return set(rows)

    def get_assigned_pages_for_user(self, user_id: int) -> List[Page]:
        """Active pages reachable through any of the user's roles, by name."""
        with store_errors(self.db, "get_assigned_pages_for_user"):
            page_ids = (
                select(RolePage.page_id)
                .join(UserRole, UserRole.role_id == RolePage.role_id)
                .where(UserRole.user_id == user_id)
            )
            pages = self.db.execute(
                select(Page)
                .where(Page.id.in_(page_ids), Page.status == PageStatusEnum.active)
                .order_by(Page.name, Page.id)
            ).scalars().all()
        return list(pages)

    def get_flat_assignments(self, role_id: int) -> List[Page]:
        """Pages in role_pages for the role, ordered by page name then id."""
        with store_errors(self.db, "get_flat_assignments"):
            pages = self.db.execute(
                select(Page)
                .join(RolePage, RolePage.page_id == Page.id)
                .where(RolePage.role_id == role_id)
                .order_by(Page.name, Page.id)
            ).scalars().all()
        return list(pages)

    def get_ordered_assignments(self, role_id: int, active_only: bool = True) -> List[Dict[str, Any]]:
        """Ordered rows joined with their pages, by (display_order, name)."""
        stmt = (
            select(RolePageOrder, Page)
            .join(Page, Page.id == RolePageOrder.page_id)
            .where(RolePageOrder.role_id == role_id)
        )
        if active_only:
            stmt = stmt.where(Page.status == PageStatusEnum.active)
        stmt = stmt.order_by(RolePageOrder.display_order, Page.name, Page.id)
        with store_errors(self.db, "get_ordered_assignments"):
            rows = self.db.execute(stmt).all()
        return [_ordered_row(order, page) for order, page in rows]

    def get_ordered_assignments_for_user(self, user_id: int) -> List[Dict[str, Any]]:
        """Ordered rows across all of the user's roles, active pages only."""
        stmt = (
            select(RolePageOrder, Page)
            .join(Page, Page.id == RolePageOrder.page_id)
            .join(UserRole, UserRole.role_id == RolePageOrder.role_id)
            .where(UserRole.user_id == user_id, Page.status == PageStatusEnum.active)
            .order_by(RolePageOrder.display_order, Page.name, Page.id, RolePageOrder.role_id)
        )
        with store_errors(self.db, "get_ordered_assignments_for_user"):
            rows = self.db.execute(stmt).all()
        return [_ordered_row(order, page) for order, page in rows]

    def roles_have_assigned_pages(self, role_names: Iterable[str]) -> bool:
        """True when any named role links to at least one active page."""
        names = list(role_names)
        if not names:
            return False
        with store_errors(self.db, "roles_have_assigned_pages"):
            count = self.db.execute(
                select(func.count(RolePage.id))
                .join(Role, Role.id == RolePage.role_id)
                .join(Page, Page.id == RolePage.page_id)
                .where(Role.name.in_(names), Page.status == PageStatusEnum.active)
            ).scalar_one()
        return count > 0

    def page_has_active_role_link(self, role_names: Iterable[str], page_url: str) -> bool:
        """True when an active page with this url is assigned to one of the roles."""
        names = list(role_names)
        if not names:
            return False
        with store_errors(self.db, "page_has_active_role_link"):
            count = self.db.execute(
                select(func.count(RolePage.id))
                .join(Role, Role.id == RolePage.role_id)
                .join(Page, Page.id == RolePage.page_id)
                .where(
                    Role.name.in_(names),
                    Page.url == page_url,
                    Page.status == PageStatusEnum.active,
                )
            ).scalar_one()
        return count > 0

    def missing_page_ids(self, page_ids: Iterable[int]) -> Set[int]:
        wanted = set(page_ids)
        if not wanted:
            return set()
        with store_errors(self.db, "missing_page_ids"):
            found = self.db.execute(
                select(Page.id).where(Page.id.in_(wanted))
            ).scalars().all()
        return wanted - set(found)

    # ---- writes ----

    def replace_flat_and_ordered_assignments(
        self,
        role_id: int,
        items: Sequence[Dict[str, Any]],
        assigned_by: Optional[int] = None,
    ) -> None:
        """Delete-then-insert both tables for the role in one transaction.

        ``items`` are dicts with page_id, parent_page_id and display_order.
        On failure the transaction is rolled back and the role keeps its
        previous assignments.
        """
        with store_errors(self.db, "replace_flat_and_ordered_assignments"):
            self.db.execute(delete(RolePage).where(RolePage.role_id == role_id))
            self.db.execute(delete(RolePageOrder).where(RolePageOrder.role_id == role_id))
            self.db.add_all([
                RolePage(role_id=role_id, page_id=item["page_id"], assigned_by=assigned_by)
                for item in items
            ])
            self.db.add_all([
                RolePageOrder(
                    role_id=role_id,
                    page_id=item["page_id"],
                    parent_page_id=item.get("parent_page_id"),
                    display_order=item.get("display_order") or 0,
                )
                for item in items
            ])
            self.db.commit()

    def replace_flat_assignments(
        self,
        role_id: int,
        page_ids: Sequence[int],
        assigned_by: Optional[int] = None,
    ) -> None:
        """Rewrite role_pages only; ordered rows for dropped pages are removed too."""
        keep = set(page_ids)
        with store_errors(self.db, "replace_flat_assignments"):
            self.db.execute(delete(RolePage).where(RolePage.role_id == role_id))
            stale = delete(RolePageOrder).where(RolePageOrder.role_id == role_id)
            if keep:
                stale = stale.where(RolePageOrder.page_id.not_in(keep))
            self.db.execute(stale)
            self.db.add_all([
                RolePage(role_id=role_id, page_id=page_id, assigned_by=assigned_by)
                for page_id in page_ids
            ])
            self.db.commit()


def _ordered_row(order: RolePageOrder, page: Page) -> Dict[str, Any]:
    return {
        "page_id": order.page_id,
        "parent_page_id": order.parent_page_id,
        "display_order": order.display_order,
        "name": page.name,
        "url": page.url,
        "icon": page.icon,
        "is_external": bool(page.is_external),
        "status": page.status.value if page.status else None,
    }
