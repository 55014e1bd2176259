from mdmc_crm.core.permissions import Role, permissions_for_role

from conftest import PASSWORD


async def test_admin_creates_accounts(client, admin, auth_headers):
    response = await client.post(
        "/api/users/",
        json={
            "first_name": "Riley",
            "last_name": "Stone",
            "email": "riley@mdmcmusicads.com",
            "password": "temporary-pass",
            "role": "manager",
        },
        headers=auth_headers(admin)
    )

    assert response.status_code == 201
    body = response.json()
    assert body["role"] == "manager"
    assert body["permissions"] == permissions_for_role(Role.MANAGER)

    response = await client.post(
        "/api/auth/login", json={"email": "riley@mdmcmusicads.com", "password": "temporary-pass"}
    )
    assert response.status_code == 200


async def test_managers_cannot_create_accounts(client, manager, auth_headers):
    response = await client.post(
        "/api/users/",
        json={"first_name": "A", "last_name": "B", "email": "ab@example.com", "password": "temporary-pass"},
        headers=auth_headers(manager)
    )

    assert response.status_code == 403


async def test_viewers_cannot_list_accounts(client, viewer, auth_headers):
    response = await client.get("/api/users/", headers=auth_headers(viewer))

    assert response.status_code == 403


async def test_list_accounts_by_role(client, manager, agent, make_user, auth_headers):
    await make_user(Role.AGENT)

    response = await client.get("/api/users/", params={"role": "agent"}, headers=auth_headers(manager))

    body = response.json()
    assert body["total"] == 2
    assert {item["role"] for item in body["items"]} == {"agent"}


async def test_manager_cannot_change_roles(client, manager, agent, auth_headers):
    response = await client.put(f"/api/users/{agent.id}", json={"role": "admin"}, headers=auth_headers(manager))
    assert response.status_code == 403

    response = await client.patch(f"/api/users/{agent.id}/role", json={"role": "manager"}, headers=auth_headers(manager))
    assert response.status_code == 403


async def test_manager_updates_agent_profile(client, manager, agent, auth_headers):
    response = await client.put(f"/api/users/{agent.id}", json={"phone": "+1 555 0100"}, headers=auth_headers(manager))

    assert response.status_code == 200
    assert response.json()["phone"] == "+1 555 0100"


async def test_manager_cannot_modify_admins(client, manager, admin, auth_headers):
    response = await client.put(f"/api/users/{admin.id}", json={"phone": "+1 555 0100"}, headers=auth_headers(manager))

    assert response.status_code == 403


async def test_role_change_resets_permissions(client, admin, agent, auth_headers):
    response = await client.patch(f"/api/users/{agent.id}/role", json={"role": "manager"}, headers=auth_headers(admin))

    assert response.status_code == 200
    assert response.json()["permissions"] == permissions_for_role(Role.MANAGER)


async def test_admin_cannot_change_own_role(client, admin, auth_headers):
    response = await client.patch(f"/api/users/{admin.id}/role", json={"role": "agent"}, headers=auth_headers(admin))

    assert response.status_code == 400


async def test_admin_cannot_deactivate_self(client, admin, auth_headers):
    response = await client.delete(f"/api/users/{admin.id}", headers=auth_headers(admin))

    assert response.status_code == 400


async def test_deactivation_ends_sessions(client, admin, agent, auth_headers):
    login = await client.post("/api/auth/login", json={"email": agent.email, "password": PASSWORD})
    refresh_token = login.json()["refresh_token"]

    response = await client.delete(f"/api/users/{agent.id}", headers=auth_headers(admin))
    assert response.status_code == 200
    assert response.json()["is_active"] is False

    response = await client.post("/api/auth/refresh", json={"refresh_token": refresh_token})
    assert response.status_code == 401
    response = await client.get("/api/auth/profile", headers=auth_headers(agent))
    assert response.status_code == 401

    response = await client.patch(f"/api/users/{agent.id}/activate", headers=auth_headers(admin))
    assert response.json()["is_active"] is True


async def test_permission_overrides(client, admin, agent, auth_headers, lead_payload):
    response = await client.patch(
        f"/api/users/{agent.id}/permissions", json={"permissions": ["leads.read", "leads.fly"]},
        headers=auth_headers(admin)
    )
    assert response.status_code == 400

    response = await client.patch(
        f"/api/users/{agent.id}/permissions", json={"permissions": ["leads.read"]},
        headers=auth_headers(admin)
    )
    assert response.json()["permissions"] == ["leads.read"]

    response = await client.post("/api/leads/", json=lead_payload(), headers=auth_headers(agent))
    assert response.status_code == 403

    response = await client.get(f"/api/users/{agent.id}/permissions", headers=auth_headers(admin))
    assert response.json() == {"user_id": str(agent.id), "role": "agent", "permissions": ["leads.read"]}


async def test_user_stats(client, manager, agent, viewer, auth_headers):
    response = await client.get("/api/users/stats", headers=auth_headers(manager))

    body = response.json()
    assert body["total"] == 3
    assert body["by_role"] == {"manager": 1, "agent": 1, "viewer": 1}
    assert body["active"] == 3


async def test_update_rejects_null_for_required_fields(client, admin, agent, auth_headers):
    for field in ("last_name", "role", "is_active"):
        response = await client.put(f"/api/users/{agent.id}", json={field: None}, headers=auth_headers(admin))

        assert response.status_code == 400, field
        assert response.json()["errors"][0]["field"] == field


async def test_deactivating_through_update_ends_sessions(client, admin, agent, auth_headers):
    login = await client.post("/api/auth/login", json={"email": agent.email, "password": PASSWORD})
    refresh_token = login.json()["refresh_token"]

    response = await client.put(f"/api/users/{agent.id}", json={"is_active": False}, headers=auth_headers(admin))
    assert response.status_code == 200
    assert response.json()["is_active"] is False

    response = await client.patch(f"/api/users/{agent.id}/activate", headers=auth_headers(admin))
    assert response.json()["is_active"] is True

    response = await client.post("/api/auth/refresh", json={"refresh_token": refresh_token})
    assert response.status_code == 401


async def test_bulk_role_change_resets_permissions(client, admin, make_user, auth_headers):
    first, second = await make_user(Role.AGENT), await make_user(Role.AGENT)

    response = await client.patch(
        "/api/users/bulk",
        json={"user_ids": [str(first.id), str(second.id), str(first.id)], "updates": {"role": "viewer"}},
        headers=auth_headers(admin)
    )

    assert response.status_code == 200
    assert response.json() == {"matched": 2, "modified": 2}
    for user in (first, second):
        body = (await client.get(f"/api/users/{user.id}", headers=auth_headers(admin))).json()
        assert body["role"] == "viewer"
        assert body["permissions"] == permissions_for_role(Role.VIEWER)


async def test_bulk_update_is_all_or_nothing(client, admin, agent, auth_headers):
    response = await client.patch(
        "/api/users/bulk",
        json={"user_ids": [str(agent.id), "00000000-0000-0000-0000-000000000000"], "updates": {"phone": "+1 555 0100"}},
        headers=auth_headers(admin)
    )
    assert response.status_code == 404

    body = (await client.get(f"/api/users/{agent.id}", headers=auth_headers(admin))).json()
    assert body["phone"] is None


async def test_bulk_update_rules(client, admin, manager, agent, auth_headers):
    response = await client.patch(
        "/api/users/bulk", json={"user_ids": [str(agent.id)], "updates": {"phone": "1"}},
        headers=auth_headers(manager)
    )
    assert response.status_code == 403

    response = await client.patch(
        "/api/users/bulk", json={"user_ids": [str(admin.id), str(agent.id)], "updates": {"is_active": False}},
        headers=auth_headers(admin)
    )
    assert response.status_code == 400

    response = await client.patch(
        "/api/users/bulk", json={"user_ids": [str(agent.id)], "updates": {"email": "same@example.com"}},
        headers=auth_headers(admin)
    )
    assert response.status_code == 400


async def test_bulk_deactivation_ends_sessions(client, admin, agent, auth_headers):
    login = await client.post("/api/auth/login", json={"email": agent.email, "password": PASSWORD})
    refresh_token = login.json()["refresh_token"]

    response = await client.patch(
        "/api/users/bulk", json={"user_ids": [str(agent.id)], "updates": {"is_active": False}},
        headers=auth_headers(admin)
    )
    assert response.status_code == 200

    response = await client.post("/api/auth/refresh", json={"refresh_token": refresh_token})
    assert response.status_code == 401


async def test_user_activity(client, manager, agent, auth_headers):
    await client.post("/api/auth/login", json={"email": agent.email, "password": PASSWORD})

    response = await client.get(f"/api/users/{agent.id}/activity", headers=auth_headers(manager))

    assert response.status_code == 200
    body = response.json()
    assert body["user"] == {"id": str(agent.id), "name": "Test Agent", "email": agent.email, "role": "agent"}
    assert body["stats"]["login_count"] == 1
    assert body["stats"]["last_login_at"] is not None
    assert body["stats"]["account_age_days"] == 0

    response = await client.get(f"/api/users/{manager.id}/activity", headers=auth_headers(agent))
    assert response.status_code == 403
