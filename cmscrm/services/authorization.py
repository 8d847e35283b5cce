"""Authorization engine: role membership -> permission set -> allow/deny.

The engine is stateless apart from the store it queries; every decision
reads assignments fresh because they can change between requests.

Decision order for ``authorize``:

1. no principal, or an inactive one -> deny ``unauthenticated``
2. ``super_admin`` -> allow
3. ``admin`` -> allow
4. ``action_resource`` in the effective permission set -> allow
5. resource is user/role/page and the principal has any assigned page -> allow
6. otherwise deny ``missing_permission``

Step 5 is intentionally broad: holding a single assigned page grants full
CRUD on users, roles and pages whatever the permission table says.
"""

import enum
import logging
from dataclasses import dataclass, field
from typing import FrozenSet, Iterable, Optional

from cmscrm.core.exceptions import AuthenticationError, AuthorizationError
from cmscrm.core.permissions import (
    ADMIN,
    PAGE_OVERRIDE_RESOURCES,
    ROLE_PERMISSIONS,
    SUPER_ADMIN,
    WILDCARD,
    permission_token,
)

logger = logging.getLogger("cmscrm.authz")

UNAUTHENTICATED = "unauthenticated"
MISSING_PERMISSION = "missing_permission"


class PrincipalStatus(str, enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


@dataclass(frozen=True)
class Principal:
    """Authenticated actor, normalized once at the authentication boundary."""

    id: int
    role_names: FrozenSet[str] = field(default_factory=frozenset)
    status: PrincipalStatus = PrincipalStatus.ACTIVE
    username: Optional[str] = None

    @classmethod
    def from_user(
        cls,
        user_id: int,
        status,
        role_names: Iterable[str],
        username: Optional[str] = None,
    ) -> "Principal":
        value = getattr(status, "value", status)
        return cls(
            id=user_id,
            role_names=frozenset(role_names),
            status=PrincipalStatus(value),
            username=username,
        )

    @property
    def is_active(self) -> bool:
        return self.status == PrincipalStatus.ACTIVE

    def has_role(self, role_name: str) -> bool:
        return role_name in self.role_names


@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: Optional[str] = None
    required_permission: Optional[str] = None

    @classmethod
    def allow(cls) -> "Decision":
        return cls(allowed=True)

    @classmethod
    def deny(cls, reason: str, required_permission: Optional[str] = None) -> "Decision":
        return cls(allowed=False, reason=reason, required_permission=required_permission)

    def __bool__(self) -> bool:
        return self.allowed


class AuthorizationEngine:
    """Computes effective permissions and makes allow/deny decisions.

    ``store`` must provide ``roles_have_assigned_pages(role_names)`` and
    ``page_has_active_role_link(role_names, page_url)``; store errors
    propagate unchanged (``StoreUnavailableError``).
    """

    def __init__(self, store):
        self.store = store

    @staticmethod
    def effective_permissions(principal: Principal) -> FrozenSet[str]:
        """Union of the table entries for every role, plus ``*`` for super_admin."""
        tokens = set()
        for role_name in principal.role_names:
            tokens |= ROLE_PERMISSIONS.get(role_name, frozenset())
        if principal.has_role(SUPER_ADMIN):
            tokens.add(WILDCARD)
        return frozenset(tokens)

    def has_assigned_pages(self, principal: Principal) -> bool:
        return self.store.roles_have_assigned_pages(principal.role_names)

    def authorize(self, principal: Optional[Principal], action: str, resource: str) -> Decision:
        if principal is None or not principal.is_active:
            return Decision.deny(UNAUTHENTICATED)

        if principal.has_role(SUPER_ADMIN) or principal.has_role(ADMIN):
            return Decision.allow()

        required = permission_token(action, resource)
        if required in self.effective_permissions(principal):
            return Decision.allow()

        if resource in PAGE_OVERRIDE_RESOURCES and self.has_assigned_pages(principal):
            logger.info(
                "Granting %s to user %s through assigned pages", required, principal.id
            )
            return Decision.allow()

        return Decision.deny(MISSING_PERMISSION, required)

    def can_access_page(self, principal: Optional[Principal], page_url: str) -> bool:
        if principal is None or not principal.is_active:
            return False
        if principal.has_role(SUPER_ADMIN):
            return True
        return self.store.page_has_active_role_link(principal.role_names, page_url)

    def require(self, principal: Optional[Principal], action: str, resource: str) -> Principal:
        """Raise on deny, return the principal on allow."""
        decision = self.authorize(principal, action, resource)
        if decision.allowed:
            return principal
        if decision.reason == UNAUTHENTICATED:
            raise AuthenticationError("Authentication required")
        logger.warning(
            "Access denied for user %s: required permission %s, roles: %s",
            principal.id,
            decision.required_permission,
            ", ".join(sorted(principal.role_names)) or "none",
        )
        raise AuthorizationError(
            f"Access denied. Required permission: {decision.required_permission}",
            required_permission=decision.required_permission,
        )
