import uuid

from mdmc_crm.models.lead import Lead
from mdmc_crm.services.lead_service import score_after_outcome


async def create_lead(client, user, headers, payload):
    response = await client.post("/api/leads/", json=payload, headers=headers(user))
    assert response.status_code == 201, response.text
    return response.json()


def test_score_after_outcome_is_clamped():
    assert score_after_outcome(50, "positive") == 60
    assert score_after_outcome(95, "positive") == 100
    assert score_after_outcome(50, "negative") == 45
    assert score_after_outcome(3, "negative") == 0
    assert score_after_outcome(50, "neutral") == 50
    assert score_after_outcome(50, None) == 50


async def test_agent_owns_the_leads_they_create(client, agent, auth_headers, lead_payload):
    lead = await create_lead(client, agent, auth_headers, lead_payload())

    assert lead["assigned_to"] == str(agent.id)
    assert lead["assigned_at"] is not None
    assert lead["created_by"] == str(agent.id)
    assert lead["tags"] == ["new-single"]
    assert lead["temperature"] == "cold"
    assert lead["full_name"] == "Maya Reyes"


async def test_agent_cannot_assign_to_someone_else(client, agent, manager, auth_headers, lead_payload):
    response = await client.post(
        "/api/leads/", json=lead_payload(assigned_to=str(manager.id)), headers=auth_headers(agent)
    )

    assert response.status_code == 403


async def test_duplicate_lead_email_conflicts(client, manager, auth_headers, lead_payload):
    await create_lead(client, manager, auth_headers, lead_payload(email="dup@artist.io"))

    response = await client.post(
        "/api/leads/", json=lead_payload(email="DUP@artist.io"), headers=auth_headers(manager)
    )

    assert response.status_code == 409


async def test_budget_range_is_validated(client, manager, auth_headers, lead_payload):
    response = await client.post(
        "/api/leads/", json=lead_payload(budget_min=2000, budget_max=500), headers=auth_headers(manager)
    )

    assert response.status_code == 400
    assert response.json()["code"] == "VALIDATION_ERROR"


async def test_viewer_cannot_create_leads(client, viewer, auth_headers, lead_payload):
    response = await client.post("/api/leads/", json=lead_payload(), headers=auth_headers(viewer))

    assert response.status_code == 403


async def test_agents_only_see_their_own_leads(client, agent, make_user, manager, auth_headers, lead_payload):
    other_agent = await make_user()
    mine = await create_lead(client, agent, auth_headers, lead_payload())
    theirs = await create_lead(client, other_agent, auth_headers, lead_payload())

    response = await client.get("/api/leads/", headers=auth_headers(agent))
    body = response.json()
    assert body["total"] == 1
    assert [item["id"] for item in body["items"]] == [mine["id"]]

    response = await client.get(f"/api/leads/{theirs['id']}", headers=auth_headers(agent))
    assert response.status_code == 403

    response = await client.get("/api/leads/", headers=auth_headers(manager))
    assert response.json()["total"] == 2


async def test_agent_filter_cannot_widen_scope(client, agent, make_user, auth_headers, lead_payload):
    other_agent = await make_user()
    await create_lead(client, other_agent, auth_headers, lead_payload())

    response = await client.get(
        "/api/leads/", params={"assigned_to": str(other_agent.id)}, headers=auth_headers(agent)
    )

    assert response.json()["total"] == 0


async def test_list_filters_and_pagination(client, manager, auth_headers, lead_payload):
    for index in range(3):
        await create_lead(client, manager, auth_headers, lead_payload(first_name=f"Artist{index}", source="referral"))
    await create_lead(client, manager, auth_headers, lead_payload(source="event", tags=["festival"]))

    response = await client.get(
        "/api/leads/", params={"source": "referral", "limit": 2, "page": 2}, headers=auth_headers(manager)
    )
    body = response.json()
    assert body["total"] == 3
    assert len(body["items"]) == 1
    assert body["pages"] == 2

    response = await client.get("/api/leads/", params={"tags": "festival"}, headers=auth_headers(manager))
    assert response.json()["total"] == 1

    response = await client.get("/api/leads/", params={"search": "artist1"}, headers=auth_headers(manager))
    assert response.json()["total"] == 1


async def test_interactions_move_the_score(client, agent, auth_headers, lead_payload):
    lead = await create_lead(client, agent, auth_headers, lead_payload(score=95))
    url = f"/api/leads/{lead['id']}/interactions"

    response = await client.post(
        url, json={"type": "call", "description": "Loved the pitch", "outcome": "positive"},
        headers=auth_headers(agent)
    )
    assert response.status_code == 201
    body = response.json()
    assert body["score"] == 100
    assert body["temperature"] == "hot"
    assert body["interaction_count"] == 1
    assert body["last_interaction"]["created_by"] == str(agent.id)

    response = await client.post(
        url, json={"type": "email", "description": "No budget yet", "outcome": "negative"},
        headers=auth_headers(agent)
    )
    assert response.json()["score"] == 95
    assert response.json()["interaction_count"] == 2


async def test_warm_after_first_interaction(client, agent, auth_headers, lead_payload):
    lead = await create_lead(client, agent, auth_headers, lead_payload(score=40))

    response = await client.post(
        f"/api/leads/{lead['id']}/interactions", json={"type": "note", "description": "Left a voicemail"},
        headers=auth_headers(agent)
    )

    assert response.json()["temperature"] == "warm"
    assert response.json()["score"] == 40


async def test_convert_marks_lead_won(client, agent, auth_headers, lead_payload):
    lead = await create_lead(client, agent, auth_headers, lead_payload())

    response = await client.patch(
        f"/api/leads/{lead['id']}/convert", json={"conversion_value": 1500}, headers=auth_headers(agent)
    )

    body = response.json()
    assert body["status"] == "won"
    assert body["score"] == 100
    assert body["conversion_value"] == 1500
    assert body["converted_at"] is not None


async def test_mark_lost_records_a_negative_note(client, agent, auth_headers, lead_payload):
    lead = await create_lead(client, agent, auth_headers, lead_payload())

    response = await client.patch(
        f"/api/leads/{lead['id']}/lost", json={"reason": "Went with another agency"}, headers=auth_headers(agent)
    )

    body = response.json()
    assert body["status"] == "lost"
    assert body["score"] == 45
    assert body["last_interaction"]["outcome"] == "negative"
    assert "Went with another agency" in body["last_interaction"]["description"]


async def test_soft_deleted_leads_disappear(client, manager, auth_headers, lead_payload, session_factory):
    lead = await create_lead(client, manager, auth_headers, lead_payload())

    response = await client.delete(f"/api/leads/{lead['id']}", headers=auth_headers(manager))
    assert response.status_code == 200

    response = await client.get(f"/api/leads/{lead['id']}", headers=auth_headers(manager))
    assert response.status_code == 404
    response = await client.get("/api/leads/", headers=auth_headers(manager))
    assert response.json()["total"] == 0

    async with session_factory() as session:
        stored = await session.get(Lead, uuid.UUID(lead["id"]))
        assert stored.is_deleted is True
        assert stored.deleted_at is not None


async def test_agents_cannot_delete_leads(client, agent, auth_headers, lead_payload):
    lead = await create_lead(client, agent, auth_headers, lead_payload())

    response = await client.delete(f"/api/leads/{lead['id']}", headers=auth_headers(agent))

    assert response.status_code == 403


async def test_only_admins_reassign(client, admin, manager, agent, auth_headers, lead_payload):
    lead = await create_lead(client, manager, auth_headers, lead_payload())
    url = f"/api/leads/{lead['id']}/assign"

    response = await client.patch(url, json={"assigned_to": str(agent.id)}, headers=auth_headers(manager))
    assert response.status_code == 403

    response = await client.patch(url, json={"assigned_to": str(agent.id)}, headers=auth_headers(admin))
    assert response.status_code == 200
    assert response.json()["assigned_to"] == str(agent.id)

    response = await client.get(f"/api/leads/{lead['id']}", headers=auth_headers(agent))
    assert response.status_code == 200


async def test_bulk_update_is_all_or_nothing(client, agent, make_user, auth_headers, lead_payload, session_factory):
    other_agent = await make_user()
    mine = await create_lead(client, agent, auth_headers, lead_payload())
    theirs = await create_lead(client, other_agent, auth_headers, lead_payload())

    response = await client.patch(
        "/api/leads/bulk",
        json={"lead_ids": [mine["id"], theirs["id"]], "updates": {"priority": "urgent"}},
        headers=auth_headers(agent)
    )
    assert response.status_code == 403

    async with session_factory() as session:
        stored = await session.get(Lead, uuid.UUID(mine["id"]))
        assert stored.priority == "medium"

    response = await client.patch(
        "/api/leads/bulk",
        json={"lead_ids": [mine["id"], str(uuid.uuid4())], "updates": {"priority": "urgent"}},
        headers=auth_headers(agent)
    )
    assert response.status_code == 404

    response = await client.patch(
        "/api/leads/bulk",
        json={"lead_ids": [mine["id"]], "updates": {"priority": "urgent", "status": "contacted"}},
        headers=auth_headers(agent)
    )
    assert response.json() == {"matched": 1, "modified": 1}


async def test_bulk_update_rejects_email(client, manager, auth_headers, lead_payload):
    lead = await create_lead(client, manager, auth_headers, lead_payload())

    response = await client.patch(
        "/api/leads/bulk",
        json={"lead_ids": [lead["id"]], "updates": {"email": "same@artist.io"}},
        headers=auth_headers(manager)
    )

    assert response.status_code == 400


async def test_overdue_follow_ups(client, agent, auth_headers, lead_payload):
    lead = await create_lead(client, agent, auth_headers, lead_payload())
    await create_lead(client, agent, auth_headers, lead_payload())

    await client.patch(
        f"/api/leads/{lead['id']}/follow-up",
        json={"next_follow_up": "2020-01-01T09:00:00Z", "reason": "Send proposal"},
        headers=auth_headers(agent)
    )

    response = await client.get("/api/leads/overdue", headers=auth_headers(agent))
    overdue = response.json()
    assert [item["id"] for item in overdue] == [lead["id"]]
    assert overdue[0]["is_overdue"] is True
    assert overdue[0]["follow_up_reason"] == "Send proposal"


async def test_stats_are_scoped(client, agent, manager, auth_headers, lead_payload):
    await create_lead(client, agent, auth_headers, lead_payload())
    await create_lead(client, manager, auth_headers, lead_payload())

    agent_stats = (await client.get("/api/leads/stats", headers=auth_headers(agent))).json()
    manager_stats = (await client.get("/api/leads/stats", headers=auth_headers(manager))).json()

    assert agent_stats["total"] == 1
    assert manager_stats["total"] == 2


async def test_export_csv_and_json(client, manager, auth_headers, lead_payload):
    await create_lead(client, manager, auth_headers, lead_payload(email="export@artist.io"))

    response = await client.get("/api/leads/export", headers=auth_headers(manager))
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    lines = response.text.strip().splitlines()
    assert lines[0].startswith("id,first_name,last_name,email")
    assert "export@artist.io" in lines[1]

    response = await client.get("/api/leads/export", params={"format": "json"}, headers=auth_headers(manager))
    body = response.json()
    assert body["total"] == 1
    assert body["items"][0]["email"] == "export@artist.io"


async def test_update_rejects_null_for_required_fields(client, manager, auth_headers, lead_payload):
    lead = await create_lead(client, manager, auth_headers, lead_payload())

    for field in ("score", "first_name", "status", "tags"):
        response = await client.put(f"/api/leads/{lead['id']}", json={field: None}, headers=auth_headers(manager))

        assert response.status_code == 400, field
        body = response.json()
        assert body["code"] == "VALIDATION_ERROR"
        assert [error["field"] for error in body["errors"]] == [field]

    response = await client.put(
        f"/api/leads/{lead['id']}", json={"phone": None, "artist_name": None}, headers=auth_headers(manager)
    )
    assert response.status_code == 200
    assert response.json()["artist_name"] is None
    assert response.json()["score"] == 50


async def test_bulk_update_rejects_null_for_required_fields(client, manager, auth_headers, lead_payload):
    lead = await create_lead(client, manager, auth_headers, lead_payload())

    response = await client.patch(
        "/api/leads/bulk",
        json={"lead_ids": [lead["id"]], "updates": {"priority": None}},
        headers=auth_headers(manager)
    )

    assert response.status_code == 400
    assert response.json()["errors"][0]["field"] == "updates.priority"


async def test_tag_filter_matches_wildcard_characters_literally(client, manager, auth_headers, lead_payload):
    await create_lead(client, manager, auth_headers, lead_payload(tags=["50%_off"]))
    await create_lead(client, manager, auth_headers, lead_payload(tags=["50%-off"]))
    await create_lead(client, manager, auth_headers, lead_payload(tags=["500off"]))

    response = await client.get("/api/leads/", params={"tags": "50%_off"}, headers=auth_headers(manager))
    body = response.json()
    assert body["total"] == 1
    assert body["items"][0]["tags"] == ["50%_off"]

    response = await client.get("/api/leads/", params={"search": "_"}, headers=auth_headers(manager))
    assert response.json()["total"] == 0
