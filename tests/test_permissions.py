import uuid
from types import SimpleNamespace

import pytest

from mdmc_crm.core.exceptions import ForbiddenError
from mdmc_crm.core.permissions import (
    Permission,
    Role,
    authorize,
    check_ownership,
    has_permission,
    permissions_for_role,
)


def account(role: Role, permissions=None):
    return SimpleNamespace(
        id=uuid.uuid4(),
        role=role.value,
        permissions=permissions_for_role(role) if permissions is None else permissions
    )


def test_admin_holds_every_permission():
    assert len(permissions_for_role(Role.ADMIN)) == 15


def test_manager_permissions():
    assert set(permissions_for_role(Role.MANAGER)) == {
        "users.read", "users.write",
        "leads.read", "leads.write", "leads.delete",
        "campaigns.read", "campaigns.write", "campaigns.delete",
        "analytics.read", "analytics.write",
        "dashboard.read", "dashboard.write",
    }


def test_agent_permissions():
    assert set(permissions_for_role(Role.AGENT)) == {
        "leads.read", "leads.write",
        "campaigns.read", "campaigns.write",
        "analytics.read", "dashboard.read",
    }


def test_viewer_permissions():
    assert set(permissions_for_role(Role.VIEWER)) == {
        "leads.read", "campaigns.read", "analytics.read", "dashboard.read",
    }


def test_admin_passes_checks_even_with_an_empty_permission_list():
    admin = account(Role.ADMIN, permissions=[])

    assert has_permission(admin, Permission.SETTINGS_WRITE)
    authorize(admin, permission=Permission.USERS_DELETE)
    authorize(admin, roles=[Role.MANAGER])


def test_authorize_by_permission():
    viewer = account(Role.VIEWER)

    authorize(viewer, permission=Permission.LEADS_READ)
    with pytest.raises(ForbiddenError):
        authorize(viewer, permission=Permission.LEADS_WRITE)


def test_authorize_by_role():
    manager = account(Role.MANAGER)
    agent = account(Role.AGENT)

    authorize(manager, roles=(Role.ADMIN, Role.MANAGER))
    with pytest.raises(ForbiddenError):
        authorize(agent, roles=(Role.ADMIN, Role.MANAGER))


def test_authorize_without_a_requirement_denies_non_admins():
    with pytest.raises(ForbiddenError):
        authorize(account(Role.MANAGER))


def test_revoked_permission_is_not_granted_by_role():
    agent = account(Role.AGENT, permissions=[Permission.LEADS_READ])

    assert not has_permission(agent, Permission.LEADS_WRITE)


def test_check_ownership():
    agent = account(Role.AGENT)
    admin = account(Role.ADMIN)

    assert check_ownership(agent, agent.id)
    assert not check_ownership(agent, uuid.uuid4())
    assert not check_ownership(agent, None)
    assert check_ownership(admin, uuid.uuid4())
    assert check_ownership(admin, None)
