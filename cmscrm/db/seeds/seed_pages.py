"""Seed default pages and the default role -> page navigation."""

from sqlalchemy.orm import Session

from cmscrm.core.permissions import SUPER_ADMIN, ADMIN, MANAGER, USER
from cmscrm.models.page import Page
from cmscrm.models.role import Role
from cmscrm.services.hierarchy import HierarchyBuilder
from cmscrm.services.stores import AssignmentStore

DEFAULT_PAGES = [
    {"name": "Dashboard", "url": "/dashboard", "is_external": False},
    {"name": "Users Management", "url": "/users", "is_external": False},
    {"name": "Roles Management", "url": "/roles", "is_external": False},
    {"name": "Pages Management", "url": "/pages", "is_external": False},
    {"name": "Activity Logs", "url": "/activity", "is_external": False},
    {"name": "System Settings", "url": "/settings", "is_external": False},
    {"name": "Reports", "url": "/reports", "is_external": False},
    {"name": "Profile", "url": "/profile", "is_external": False},
    {"name": "Help Center", "url": "/help", "is_external": False},
    {"name": "Company Website", "url": "https://example.com", "is_external": True},
    {"name": "Documentation", "url": "https://docs.example.com", "is_external": True},
]

# None means every page
DEFAULT_ROLE_PAGES = {
    SUPER_ADMIN: None,
    ADMIN: [
        "Dashboard", "Users Management", "Roles Management", "Pages Management",
        "Activity Logs", "Reports", "Profile", "Help Center",
    ],
    MANAGER: ["Dashboard", "Users Management", "Reports", "Profile", "Help Center"],
    USER: ["Profile", "Help Center", "Company Website", "Documentation"],
}


def seed_pages(db: Session) -> int:
    """Insert default pages missing by url. Returns how many were added."""
    added = 0
    for page_data in DEFAULT_PAGES:
        existing = db.query(Page).filter(Page.url == page_data["url"]).first()
        if not existing:
            db.add(Page(**page_data))
            added += 1

    db.commit()
    print(f"Seeded {added} of {len(DEFAULT_PAGES)} pages")
    return added


def seed_role_pages(db: Session) -> None:
    """Give each default role its navigation, skipping roles that already have pages."""
    pages = {p.name: p.id for p in db.query(Page).all()}
    builder = HierarchyBuilder(AssignmentStore(db))

    for role_name, page_names in DEFAULT_ROLE_PAGES.items():
        role = db.query(Role).filter(Role.name == role_name).first()
        if role is None:
            print(f"Role '{role_name}' not found. Run seed_roles first.")
            continue
        if role.page_ids:
            continue
        names = [p["name"] for p in DEFAULT_PAGES] if page_names is None else page_names
        items = [
            {"page_id": pages[name], "display_order": index}
            for index, name in enumerate(names)
            if name in pages
        ]
        builder.assign_ordered_pages(role.id, items)
        db.refresh(role)
        print(f"Assigned {len(items)} pages to {role_name}")
