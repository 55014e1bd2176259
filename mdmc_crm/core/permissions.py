"""
Roles, permission sets and the authorization checks built on them.
"""
import uuid
from enum import Enum
from typing import Iterable, List, Optional, Union

from mdmc_crm.core.exceptions import ForbiddenError


class Role(str, Enum):
    ADMIN = "admin"
    MANAGER = "manager"
    AGENT = "agent"
    VIEWER = "viewer"


class Permission:
    USERS_READ = "users.read"
    USERS_WRITE = "users.write"
    USERS_DELETE = "users.delete"
    LEADS_READ = "leads.read"
    LEADS_WRITE = "leads.write"
    LEADS_DELETE = "leads.delete"
    CAMPAIGNS_READ = "campaigns.read"
    CAMPAIGNS_WRITE = "campaigns.write"
    CAMPAIGNS_DELETE = "campaigns.delete"
    ANALYTICS_READ = "analytics.read"
    ANALYTICS_WRITE = "analytics.write"
    DASHBOARD_READ = "dashboard.read"
    DASHBOARD_WRITE = "dashboard.write"
    SETTINGS_READ = "settings.read"
    SETTINGS_WRITE = "settings.write"


ROLE_PERMISSIONS = {
    Role.ADMIN: [
        Permission.USERS_READ, Permission.USERS_WRITE, Permission.USERS_DELETE,
        Permission.LEADS_READ, Permission.LEADS_WRITE, Permission.LEADS_DELETE,
        Permission.CAMPAIGNS_READ, Permission.CAMPAIGNS_WRITE, Permission.CAMPAIGNS_DELETE,
        Permission.ANALYTICS_READ, Permission.ANALYTICS_WRITE,
        Permission.DASHBOARD_READ, Permission.DASHBOARD_WRITE,
        Permission.SETTINGS_READ, Permission.SETTINGS_WRITE,
    ],
    Role.MANAGER: [
        Permission.USERS_READ, Permission.USERS_WRITE,
        Permission.LEADS_READ, Permission.LEADS_WRITE, Permission.LEADS_DELETE,
        Permission.CAMPAIGNS_READ, Permission.CAMPAIGNS_WRITE, Permission.CAMPAIGNS_DELETE,
        Permission.ANALYTICS_READ, Permission.ANALYTICS_WRITE,
        Permission.DASHBOARD_READ, Permission.DASHBOARD_WRITE,
    ],
    Role.AGENT: [
        Permission.LEADS_READ, Permission.LEADS_WRITE,
        Permission.CAMPAIGNS_READ, Permission.CAMPAIGNS_WRITE,
        Permission.ANALYTICS_READ,
        Permission.DASHBOARD_READ,
    ],
    Role.VIEWER: [
        Permission.LEADS_READ,
        Permission.CAMPAIGNS_READ,
        Permission.ANALYTICS_READ,
        Permission.DASHBOARD_READ,
    ],
}

MANAGER_AND_ABOVE = (Role.ADMIN, Role.MANAGER)


def permissions_for_role(role: Union[Role, str]) -> List[str]:
    """Default permission set granted to a role."""
    return list(ROLE_PERMISSIONS[Role(role)])


def is_admin(user) -> bool:
    return Role(user.role) == Role.ADMIN


def is_agent(user) -> bool:
    return Role(user.role) == Role.AGENT


def has_permission(user, permission: str) -> bool:
    if is_admin(user):
        return True
    return permission in (user.permissions or [])


def authorize(
    user,
    permission: Optional[str] = None,
    roles: Optional[Iterable[Union[Role, str]]] = None
) -> None:
    """
    Pass when the account is an admin, holds ``permission`` or has one of
    ``roles``. Raises ForbiddenError otherwise.
    """
    if is_admin(user):
        return
    if permission is not None and permission in (user.permissions or []):
        return
    if roles is not None and Role(user.role) in {Role(r) for r in roles}:
        return
    raise ForbiddenError("Insufficient permissions")


def check_ownership(user, owner_id: Optional[uuid.UUID]) -> bool:
    """Admins own everything, everyone else only what carries their id."""
    if is_admin(user):
        return True
    return owner_id is not None and owner_id == user.id
