"""Hierarchy builder: role page assignments -> ordered navigation forest.

The forest is a derived view rebuilt on every read. Rows arrive already
ordered by (display_order, page name); nodes are kept in an arena keyed by
page_id and attached to either the root list or their parent's children
in that same order, so sibling order follows the source order.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional, Sequence

from pydantic import BaseModel, Field

from cmscrm.core.exceptions import ResourceNotFoundError, ValidationError

logger = logging.getLogger("cmscrm.hierarchy")


class PageNode(BaseModel):
    page_id: int
    name: str
    url: str
    icon: Optional[str] = None
    is_external: bool = False
    status: Optional[str] = None
    children: List["PageNode"] = Field(default_factory=list)


class OrderedPageItem(BaseModel):
    page_id: int
    parent_page_id: Optional[int] = None
    display_order: int = 0
    name: Optional[str] = None
    url: Optional[str] = None
    icon: Optional[str] = None


PageNode.model_rebuild()


def build_forest(rows: Iterable[Dict[str, Any]]) -> List[PageNode]:
    """Rebuild the ordered forest from flat, already-ordered rows.

    A row becomes a root when its parent is null, unknown, or itself.
    Only the first row for a given page_id is used.
    """
    rows = list(rows)
    arena: Dict[int, PageNode] = {}
    placed: List[Dict[str, Any]] = []
    for row in rows:
        page_id = row["page_id"]
        if page_id in arena:
            continue
        arena[page_id] = PageNode(
            page_id=page_id,
            name=row["name"],
            url=row["url"],
            icon=row.get("icon"),
            is_external=bool(row.get("is_external")),
            status=row.get("status"),
        )
        placed.append(row)

    roots: List[PageNode] = []
    for row in placed:
        node = arena[row["page_id"]]
        parent_id = row.get("parent_page_id")
        if parent_id is None or parent_id == row["page_id"] or parent_id not in arena:
            if parent_id is not None and parent_id != row["page_id"]:
                logger.debug("Page %s has dangling parent %s, placed at root", row["page_id"], parent_id)
            roots.append(node)
        else:
            arena[parent_id].children.append(node)
    return roots


def find_cycle(items: Sequence[Dict[str, Any]]) -> Optional[int]:
    """Return a page_id that sits on a parent cycle, or None."""
    parents = {item["page_id"]: item.get("parent_page_id") for item in items}
    for start in parents:
        seen = set()
        current = start
        while current is not None and current in parents:
            if current in seen:
                return current
            seen.add(current)
            parent = parents[current]
            # self-reference degrades to a root when read
            current = None if parent == current else parent
    return None


class HierarchyBuilder:
    """Builds navigation trees and rewrites ordered assignments for a role.

    ``store`` is an ``AssignmentStore`` (or anything with the same methods).
    """

    def __init__(self, store):
        self.store = store

    def build_tree(self, role_id: int) -> List[PageNode]:
        return build_forest(self.store.get_ordered_assignments(role_id))

    def build_tree_for_user(self, user_id: int) -> List[PageNode]:
        """Forest over the union of the user's roles; first placement of a page wins."""
        return build_forest(self.store.get_ordered_assignments_for_user(user_id))

    def get_ordered_pages_or_fallback(self, role_id: int) -> List[OrderedPageItem]:
        """Ordered rows, or a flat root-level ordering synthesized from role_pages."""
        rows = self.store.get_ordered_assignments(role_id, active_only=False)
        if rows:
            return [OrderedPageItem(**row) for row in rows]
        return [
            OrderedPageItem(
                page_id=page.id,
                parent_page_id=None,
                display_order=index,
                name=page.name,
                url=page.url,
                icon=page.icon,
            )
            for index, page in enumerate(self.store.get_flat_assignments(role_id))
        ]

    def assign_ordered_pages(
        self,
        role_id: int,
        items: Sequence[Any],
        assigned_by: Optional[int] = None,
    ) -> None:
        """Atomically replace both assignment tables for the role with ``items``.

        An empty ``items`` clears the role's pages.
        """
        normalized = [_normalize_item(item) for item in items]

        cycle_at = find_cycle(normalized)
        if cycle_at is not None:
            raise ValidationError(f"Page {cycle_at} is part of a parent cycle")

        missing = self.store.missing_page_ids(item["page_id"] for item in normalized)
        if missing:
            raise ResourceNotFoundError(
                f"Pages not found: {', '.join(str(p) for p in sorted(missing))}"
            )

        self.store.replace_flat_and_ordered_assignments(role_id, normalized, assigned_by)
        logger.info("Assigned %d ordered pages to role %s", len(normalized), role_id)

    def assign_pages(
        self,
        role_id: int,
        page_ids: Sequence[int],
        assigned_by: Optional[int] = None,
    ) -> None:
        """Flat-only wholesale replace of the role's pages."""
        page_ids = list(dict.fromkeys(page_ids))
        missing = self.store.missing_page_ids(page_ids)
        if missing:
            raise ResourceNotFoundError(
                f"Pages not found: {', '.join(str(p) for p in sorted(missing))}"
            )
        self.store.replace_flat_assignments(role_id, page_ids, assigned_by)
        logger.info("Assigned %d pages to role %s", len(page_ids), role_id)


def _normalize_item(item: Any) -> Dict[str, Any]:
    if isinstance(item, BaseModel):
        item = item.model_dump()
    return {
        "page_id": int(item["page_id"]),
        "parent_page_id": item.get("parent_page_id"),
        "display_order": item.get("display_order") or 0,
    }
