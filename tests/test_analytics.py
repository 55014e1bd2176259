from datetime import date, datetime, timedelta

import pytest

from mdmc_crm.services.analytics_service import bucket_key, percent_change, score_band

PAST = {"period1_start": "2000-01-01T00:00:00", "period1_end": "2000-12-31T00:00:00"}
WHOLE = {"period2_start": "2000-01-01T00:00:00", "period2_end": "2100-01-01T00:00:00"}


async def create_lead(client, user, headers, payload):
    response = await client.post("/api/leads/", json=payload, headers=headers(user))
    assert response.status_code == 201, response.text
    return response.json()


def test_bucket_keys():
    value = datetime(2030, 1, 2, 15, 30)

    assert bucket_key(value, "day") == "2030-01-02"
    assert bucket_key(value, "week") == "2030-W01"
    assert bucket_key(value, "month") == "2030-01"


def test_score_bands():
    assert score_band(0) == "0-25"
    assert score_band(25) == "0-25"
    assert score_band(26) == "26-50"
    assert score_band(75) == "51-75"
    assert score_band(100) == "76-100"


def test_percent_change_without_baseline_is_zero():
    assert percent_change(0, 40) == 0
    assert percent_change(50, 75) == pytest.approx(50.0)
    assert percent_change(200, 50) == pytest.approx(-75.0)


async def test_comparison_requires_all_dates(client, manager, auth_headers):
    response = await client.get(
        "/api/analytics/comparison", params={"period1_start": "2030-01-01T00:00:00"},
        headers=auth_headers(manager)
    )

    assert response.status_code == 400
    assert response.json()["message"] == "All period dates are required for comparison"


async def test_comparison_rejects_unknown_metric(client, manager, auth_headers):
    response = await client.get(
        "/api/analytics/comparison", params={"metric": "likes", **PAST, **WHOLE},
        headers=auth_headers(manager)
    )

    assert response.status_code == 400


async def test_comparison_of_lead_counts(client, manager, auth_headers, lead_payload):
    await create_lead(client, manager, auth_headers, lead_payload())
    await create_lead(client, manager, auth_headers, lead_payload())

    response = await client.get(
        "/api/analytics/comparison", params={"metric": "leads", **PAST, **WHOLE},
        headers=auth_headers(manager)
    )

    body = response.json()
    assert body["period1"]["value"] == 0
    assert body["period2"]["value"] == 2
    assert body["change"] == {"absolute": 2, "percentage": 0}


async def test_comparison_of_revenue(client, manager, auth_headers, lead_payload):
    lead = await create_lead(client, manager, auth_headers, lead_payload())
    await client.patch(
        f"/api/leads/{lead['id']}/convert", json={"conversion_value": 1200}, headers=auth_headers(manager)
    )

    response = await client.get(
        "/api/analytics/comparison", params={"metric": "revenue", **PAST, **WHOLE},
        headers=auth_headers(manager)
    )

    body = response.json()
    assert body["period2"]["value"] == 1200
    assert body["period2"]["details"] == {"lead_revenue": 1200, "campaign_revenue": 0}


async def test_invalid_group_by(client, manager, auth_headers):
    response = await client.get("/api/analytics/leads", params={"group_by": "year"}, headers=auth_headers(manager))

    assert response.status_code == 400


async def test_dashboard_is_scoped_to_the_agent(client, agent, manager, auth_headers, lead_payload):
    mine = await create_lead(client, agent, auth_headers, lead_payload())
    await create_lead(client, manager, auth_headers, lead_payload())
    await client.patch(
        f"/api/leads/{mine['id']}/convert", json={"conversion_value": 800}, headers=auth_headers(agent)
    )

    agent_view = (await client.get("/api/analytics/dashboard", headers=auth_headers(agent))).json()
    manager_view = (await client.get("/api/analytics/dashboard", headers=auth_headers(manager))).json()

    assert agent_view["overview"]["leads"]["total"] == 1
    assert agent_view["overview"]["leads"]["converted"] == 1
    assert agent_view["overview"]["leads"]["conversion_rate"] == pytest.approx(100.0)
    assert manager_view["overview"]["leads"]["total"] == 2
    assert manager_view["overview"]["leads"]["conversion_rate"] == pytest.approx(50.0)

    today = datetime.utcnow().date().isoformat()
    assert manager_view["trends"]["lead_conversion"] == [{"period": today, "total": 2, "converted": 1}]


async def test_dashboard_campaign_roi(client, manager, auth_headers, campaign_payload):
    response = await client.post("/api/campaigns/", json=campaign_payload(status="active"), headers=auth_headers(manager))
    campaign = response.json()
    await client.patch(
        f"/api/campaigns/{campaign['id']}/metrics", json={"revenue": 1500, "spent": 500},
        headers=auth_headers(manager)
    )

    body = (await client.get("/api/analytics/dashboard", headers=auth_headers(manager))).json()

    campaigns = body["overview"]["campaigns"]
    assert campaigns["total"] == 1
    assert campaigns["active"] == 1
    assert campaigns["total_spend"] == 500
    assert campaigns["roi"] == pytest.approx(200.0)


async def test_lead_analytics_funnel_lists_every_stage(client, manager, auth_headers, lead_payload):
    await create_lead(client, manager, auth_headers, lead_payload(score=90, genre="Rock"))
    await create_lead(client, manager, auth_headers, lead_payload(score=20, genre="Rock", status="qualified"))

    body = (await client.get("/api/analytics/leads", headers=auth_headers(manager))).json()

    assert body["summary"]["total_leads"] == 2
    assert [stage["status"] for stage in body["funnel"]] == [
        "new", "contacted", "qualified", "proposal_sent", "negotiating", "won"
    ]
    assert {stage["status"]: stage["count"] for stage in body["funnel"]}["qualified"] == 1
    assert body["distributions"]["by_score"] == {"76-100": 1, "0-25": 1}
    assert body["distributions"]["by_genre"] == [{"genre": "Rock", "count": 2}]


async def test_viewer_can_read_analytics(client, viewer, auth_headers):
    response = await client.get("/api/analytics/revenue", headers=auth_headers(viewer))

    assert response.status_code == 200
    assert response.json()["summary"]["leads"]["count"] == 0


async def test_dashboard_chart_covers_each_day(client, agent, auth_headers, lead_payload):
    await create_lead(client, agent, auth_headers, lead_payload())

    body = (await client.get("/api/dashboard/chart", params={"days": 7}, headers=auth_headers(agent))).json()

    today = datetime.utcnow().date()
    assert len(body["labels"]) == 7
    assert body["labels"][0] == (today - timedelta(days=6)).isoformat()
    assert body["labels"][-1] == today.isoformat()
    assert body["data"][-1] == 1
    assert body["total"] == 1


async def test_dashboard_overview(client, agent, auth_headers, lead_payload):
    lead = await create_lead(client, agent, auth_headers, lead_payload(score=85))
    await client.patch(
        f"/api/leads/{lead['id']}/follow-up",
        json={"next_follow_up": (datetime.utcnow() + timedelta(days=2)).isoformat()},
        headers=auth_headers(agent)
    )

    body = (await client.get("/api/dashboard/overview", headers=auth_headers(agent))).json()

    assert body["metrics"]["leads"]["total"] == 1
    assert body["metrics"]["leads"]["new_today"] == 1
    assert body["metrics"]["leads"]["hot"] == 1
    assert [item["id"] for item in body["recent_activity"]["leads"]] == [lead["id"]]
    assert [item["id"] for item in body["upcoming_tasks"]] == [lead["id"]]


async def test_quick_actions(client, agent, auth_headers, lead_payload):
    hot = await create_lead(client, agent, auth_headers, lead_payload(score=90))
    await create_lead(client, agent, auth_headers, lead_payload(score=40))

    body = (await client.get("/api/dashboard/quick-actions", headers=auth_headers(agent))).json()

    assert [item["id"] for item in body["leads_needing_attention"]] == [hot["id"]]
    assert body["overdue_follow_ups"] == []


async def test_dashboard_requires_authentication(client):
    response = await client.get("/api/dashboard/overview")

    assert response.status_code == 401


def test_week_buckets_follow_iso_calendar():
    assert bucket_key(datetime.combine(date(2029, 12, 31), datetime.min.time()), "week") == "2030-W01"


async def test_dashboard_widgets(client, agent, auth_headers, lead_payload):
    await create_lead(client, agent, auth_headers, lead_payload())
    won = await create_lead(client, agent, auth_headers, lead_payload())
    await client.patch(f"/api/leads/{won['id']}/convert", json={"conversion_value": 300}, headers=auth_headers(agent))
    await client.patch(
        f"/api/leads/{won['id']}/follow-up",
        json={"next_follow_up": (datetime.utcnow() + timedelta(days=2)).isoformat()},
        headers=auth_headers(agent)
    )

    body = (await client.get("/api/dashboard/widgets", headers=auth_headers(agent))).json()

    assert set(body) == {"leads", "campaigns", "tasks", "performance"}
    assert body["leads"]["stats"]["total"] == 2
    assert body["leads"]["stats"]["converted"] == 1
    assert body["leads"]["distribution"] == {"new": 1, "won": 1}
    assert body["campaigns"]["stats"]["total"] == 0
    assert body["tasks"] == {"overdue": 0, "today": 0, "upcoming": 1}
    today = datetime.utcnow().date().isoformat()
    assert body["performance"] == [{"date": today, "leads": 2, "conversions": 1}]


async def test_dashboard_widgets_by_name(client, agent, auth_headers):
    response = await client.get("/api/dashboard/widgets", params={"widgets": "tasks, leads"}, headers=auth_headers(agent))
    assert set(response.json()) == {"tasks", "leads"}

    response = await client.get("/api/dashboard/widgets", params={"widgets": "weather"}, headers=auth_headers(agent))
    assert response.status_code == 400


async def test_team_performance(client, admin, manager, agent, auth_headers, lead_payload, campaign_payload):
    await create_lead(client, agent, auth_headers, lead_payload())
    won = await create_lead(client, agent, auth_headers, lead_payload())
    await client.patch(f"/api/leads/{won['id']}/convert", json={"conversion_value": 800}, headers=auth_headers(agent))
    response = await client.post("/api/campaigns/", json=campaign_payload(), headers=auth_headers(manager))
    assert response.status_code == 201

    response = await client.get("/api/dashboard/team-performance", headers=auth_headers(manager))

    assert response.status_code == 200
    body = response.json()
    stats = {entry["user_id"]: entry for entry in body["team_stats"]}
    assert set(stats) == {str(manager.id), str(agent.id)}
    assert stats[str(agent.id)]["lead_count"] == 2
    assert stats[str(agent.id)]["conversions"] == 1
    assert stats[str(agent.id)]["campaign_count"] == 0
    assert stats[str(manager.id)]["campaign_count"] == 1

    top = body["top_performers"][0]
    assert top["user_id"] == str(agent.id)
    assert top["conversion_count"] == 1
    assert top["total_revenue"] == 800
    assert len(body["recent_activity"]) == 2


async def test_team_performance_is_for_managers(client, agent, auth_headers):
    response = await client.get("/api/dashboard/team-performance", headers=auth_headers(agent))

    assert response.status_code == 403
