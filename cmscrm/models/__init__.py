"""Models package: import all models so metadata.create_all sees them."""

from cmscrm.models.role import Role
from cmscrm.models.user import User, UserStatusEnum
from cmscrm.models.page import Page, PageStatusEnum
from cmscrm.models.assignment import UserRole, RolePage, RolePageOrder
from cmscrm.models.audit_log import AuditLog
from cmscrm.models.login_activity import LoginActivity, RefreshToken

__all__ = [
    "Role", "User", "UserStatusEnum", "Page", "PageStatusEnum",
    "UserRole", "RolePage", "RolePageOrder",
    "AuditLog", "LoginActivity", "RefreshToken",
]
