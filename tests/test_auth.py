from datetime import timedelta

from mdmc_crm.core.permissions import Role, permissions_for_role
from mdmc_crm.core.security import create_access_token

from conftest import PASSWORD


async def register(client, email="jordan@mdmcmusicads.com", **extra):
    body = {
        "first_name": "Jordan",
        "last_name": "Lee",
        "email": email,
        "password": "securepassword123",
        **extra
    }
    return await client.post("/api/auth/register", json=body)


async def login(client, email, password=PASSWORD):
    return await client.post("/api/auth/login", json={"email": email, "password": password})


async def test_register_creates_agent_with_default_permissions(client, mail):
    response = await register(client)

    assert response.status_code == 201
    body = response.json()
    assert body["user"]["role"] == "agent"
    assert body["user"]["permissions"] == permissions_for_role(Role.AGENT)
    assert body["user"]["is_verified"] is False
    assert body["access_token"]
    assert body["refresh_token"]
    assert body["_dev_verification_token"]
    assert mail.get_last_email()["to"] == "jordan@mdmcmusicads.com"


async def test_register_duplicate_email_conflicts(client):
    await register(client)
    response = await register(client, email="Jordan@MDMCMusicAds.com")

    assert response.status_code == 409
    assert response.json()["success"] is False


async def test_register_cannot_pick_a_privileged_role(client):
    response = await register(client, role="admin")

    assert response.status_code == 403


async def test_register_validation_errors_use_the_envelope(client):
    response = await register(client, password="short")

    assert response.status_code == 400
    body = response.json()
    assert body["code"] == "VALIDATION_ERROR"
    assert [error["field"] for error in body["errors"]] == ["password"]


async def test_login_with_wrong_password(client, agent):
    response = await login(client, agent.email, "not-the-password")

    assert response.status_code == 401
    assert response.headers["WWW-Authenticate"] == "Bearer"
    assert response.json()["message"] == "Incorrect email or password"


async def test_login_returns_tokens_and_counts_logins(client, agent):
    response = await login(client, agent.email)

    assert response.status_code == 200
    body = response.json()
    assert body["token_type"] == "bearer"
    assert body["user"]["id"] == str(agent.id)
    assert body["user"]["login_count"] == 1


async def test_deactivated_account_cannot_login(client, make_user):
    user = await make_user(is_active=False)

    response = await login(client, user.email)

    assert response.status_code == 401


async def test_admin_login_rejects_other_roles(client, agent, admin):
    response = await client.post("/api/auth/admin-login", json={"email": agent.email, "password": PASSWORD})
    assert response.status_code == 403

    response = await client.post("/api/auth/admin-login", json={"email": admin.email, "password": PASSWORD})
    assert response.status_code == 200
    assert response.json()["user"]["role"] == "admin"


async def test_oauth2_form_login(client, agent):
    response = await client.post("/api/auth/token", data={"username": agent.email, "password": PASSWORD})

    assert response.status_code == 200
    assert response.json()["access_token"]


async def test_missing_token_is_unauthorized(client):
    response = await client.get("/api/auth/profile")

    assert response.status_code == 401
    assert response.headers["WWW-Authenticate"] == "Bearer"
    assert response.json()["message"] == "Not authenticated"


async def test_expired_access_token(client, agent):
    token = create_access_token(agent.id, expires_delta=timedelta(seconds=-5))

    response = await client.get("/api/auth/profile", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 401
    assert response.json()["code"] == "TOKEN_EXPIRED"


async def test_refresh_token_cannot_be_used_as_access_token(client, agent):
    tokens = (await login(client, agent.email)).json()

    response = await client.get(
        "/api/auth/profile", headers={"Authorization": f"Bearer {tokens['refresh_token']}"}
    )

    assert response.status_code == 401
    assert response.json()["code"] == "INVALID_TOKEN"


async def test_deactivated_account_token_is_rejected(client, make_user, auth_headers):
    user = await make_user(is_active=False)

    response = await client.get("/api/auth/profile", headers=auth_headers(user))

    assert response.status_code == 401


async def test_check_returns_permissions(client, viewer, auth_headers):
    response = await client.get("/api/auth/check", headers=auth_headers(viewer))

    assert response.status_code == 200
    body = response.json()
    assert body["is_authenticated"] is True
    assert body["permissions"] == permissions_for_role(Role.VIEWER)


async def test_update_profile(client, agent, auth_headers):
    response = await client.put(
        "/api/auth/profile", json={"first_name": "Sam", "timezone": "Europe/Paris"}, headers=auth_headers(agent)
    )

    assert response.status_code == 200
    assert response.json()["full_name"] == "Sam Agent"
    assert response.json()["timezone"] == "Europe/Paris"


async def test_profile_fields_cannot_be_cleared(client, agent, auth_headers):
    response = await client.put("/api/auth/profile", json={"first_name": None}, headers=auth_headers(agent))

    assert response.status_code == 400
    assert response.json()["errors"][0]["field"] == "first_name"

    response = await client.put("/api/auth/profile", json={"phone": None}, headers=auth_headers(agent))
    assert response.status_code == 200


async def test_refresh_issues_a_new_access_token(client, agent):
    tokens = (await login(client, agent.email)).json()

    response = await client.post("/api/auth/refresh", json={"refresh_token": tokens["refresh_token"]})

    assert response.status_code == 200
    new_access = response.json()["access_token"]
    profile = await client.get("/api/auth/profile", headers={"Authorization": f"Bearer {new_access}"})
    assert profile.status_code == 200


async def test_only_five_refresh_tokens_stay_live(client, agent):
    refresh_tokens = [(await login(client, agent.email)).json()["refresh_token"] for _ in range(6)]

    oldest = await client.post("/api/auth/refresh", json={"refresh_token": refresh_tokens[0]})
    assert oldest.status_code == 401

    for token in refresh_tokens[1:]:
        response = await client.post("/api/auth/refresh", json={"refresh_token": token})
        assert response.status_code == 200


async def test_logout_revokes_the_refresh_token(client, agent, auth_headers):
    tokens = (await login(client, agent.email)).json()

    response = await client.post(
        "/api/auth/logout", json={"refresh_token": tokens["refresh_token"]}, headers=auth_headers(agent)
    )
    assert response.status_code == 200

    response = await client.post("/api/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
    assert response.status_code == 401


async def test_logout_all_revokes_every_session(client, agent, auth_headers):
    first = (await login(client, agent.email)).json()
    second = (await login(client, agent.email)).json()

    response = await client.post("/api/auth/logout-all", headers=auth_headers(agent))
    assert response.json()["message"] == "Logged out from 2 devices"

    for tokens in (first, second):
        response = await client.post("/api/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
        assert response.status_code == 401


async def test_change_password_revokes_refresh_tokens(client, agent, auth_headers):
    tokens = (await login(client, agent.email)).json()

    response = await client.post(
        "/api/auth/change-password",
        json={"current_password": "wrong-password", "new_password": "new-password-1"},
        headers=auth_headers(agent)
    )
    assert response.status_code == 401

    response = await client.post(
        "/api/auth/change-password",
        json={"current_password": PASSWORD, "new_password": "new-password-1"},
        headers=auth_headers(agent)
    )
    assert response.status_code == 200

    response = await client.post("/api/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
    assert response.status_code == 401
    assert (await login(client, agent.email)).status_code == 401
    assert (await login(client, agent.email, "new-password-1")).status_code == 200


async def test_password_reset_flow(client, agent, mail):
    response = await client.post("/api/auth/forgot-password", json={"email": agent.email})
    assert response.status_code == 200
    token = response.json()["_dev_reset_token"]
    assert mail.get_last_email()["to"] == agent.email

    response = await client.post(
        "/api/auth/reset-password", json={"token": token, "new_password": "brand-new-pass"}
    )
    assert response.status_code == 200
    assert (await login(client, agent.email, "brand-new-pass")).status_code == 200

    response = await client.post(
        "/api/auth/reset-password", json={"token": token, "new_password": "another-pass-1"}
    )
    assert response.status_code == 400


async def test_forgot_password_does_not_reveal_unknown_emails(client, mail):
    response = await client.post("/api/auth/forgot-password", json={"email": "nobody@example.com"})

    assert response.status_code == 200
    assert "_dev_reset_token" not in response.json()
    assert mail.sent_emails == []


async def test_email_verification_link(client):
    registered = (await register(client)).json()
    token = registered["_dev_verification_token"]
    headers = {"Authorization": f"Bearer {registered['access_token']}"}

    response = await client.get(f"/api/auth/verify-email/{token}")
    assert response.status_code == 200

    profile = await client.get("/api/auth/profile", headers=headers)
    assert profile.json()["is_verified"] is True

    response = await client.post("/api/auth/verify-email", json={"token": token})
    assert response.status_code == 400


async def test_resend_verification_skips_verified_accounts(client, agent):
    response = await client.post("/api/auth/resend-verification", json={"email": agent.email})

    assert response.status_code == 200
    assert "_dev_verification_token" not in response.json()


async def test_google_sign_in_requires_configuration(client):
    response = await client.get("/api/auth/google")

    assert response.status_code == 502
    assert response.json()["success"] is False
