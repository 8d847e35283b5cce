"""Static role -> permission table.

Permission tokens have the form ``<action>_<resource>`` (``view_user``).
The table is built once at import and exposed read-only; roles missing
from it contribute no permissions.
"""

from types import MappingProxyType
from typing import Mapping, FrozenSet

SUPER_ADMIN = "super_admin"
ADMIN = "admin"
MANAGER = "manager"
USER = "user"

WILDCARD = "*"

# Resources opened up to any principal holding at least one assigned page.
PAGE_OVERRIDE_RESOURCES: FrozenSet[str] = frozenset({"user", "role", "page"})


def permission_token(action: str, resource: str) -> str:
    """Build the ``action_resource`` token used as the grant unit."""
    return f"{action}_{resource}"


def _crud(resource: str) -> set:
    return {permission_token(a, resource) for a in ("create", "update", "delete", "view")}


ROLE_PERMISSIONS: Mapping[str, FrozenSet[str]] = MappingProxyType({
    ADMIN: frozenset(
        _crud("user") | _crud("role") | _crud("page")
        | {"view_stats", "view_activity", "export_data"}
    ),
    MANAGER: frozenset({
        "view_user", "update_user",
        "view_role", "view_page",
        "view_stats", "view_activity",
    }),
    USER: frozenset({"view_user", "view_page", "view_role"}),
})
