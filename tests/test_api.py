"""
HTTP smoke tests: routers, error mapping and the inline automation trigger.
"""
import uuid

import httpx
import pytest

from app.core.db import get_session, get_session_factory
from app.core.security import Principal, get_principal
from app.main import app

PREFIX = "/api/v1"


@pytest.fixture
async def client(session_factory, people):
    state = {"principal": Principal(user_id=people["owner"].id, org_id=people["owner"].org_id, role="OWNER")}

    async def _session():
        async with session_factory() as s:
            yield s

    app.dependency_overrides[get_session] = _session
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_principal] = lambda: state["principal"]

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        c.state = state
        yield c
    app.dependency_overrides.clear()


def rule_body(**fields):
    body = {
        "name": "Urgent VPN",
        "trigger": "TICKET_CREATED",
        "conditions": [{"field": "subject", "operator": "contains", "value": "vpn"}],
        "actions": [{"type": "set_priority", "priority": "P1"}],
    }
    body.update(fields)
    return body


class TestHealth:
    async def test_health(self, client):
        r = await client.get(f"{PREFIX}/health")
        assert r.status_code == 200
        assert r.json() == {"status": "ok"}


class TestAutomationRules:

    async def test_crud(self, client):
        r = await client.post(f"{PREFIX}/automation-rules", json=rule_body())
        assert r.status_code == 201, r.text
        rule_id = r.json()["id"]

        r = await client.get(f"{PREFIX}/automation-rules")
        assert [x["id"] for x in r.json()["data"]] == [rule_id]

        r = await client.patch(f"{PREFIX}/automation-rules/{rule_id}", json={"is_active": False})
        assert r.status_code == 200 and r.json()["is_active"] is False

        r = await client.get(f"{PREFIX}/automation-rules/{rule_id}/executions")
        assert r.json()["meta"] == {"page": 1, "page_size": 20, "total": 0, "total_pages": 0}

        r = await client.delete(f"{PREFIX}/automation-rules/{rule_id}")
        assert r.status_code == 200 and r.json() == {"id": rule_id}
        assert (await client.get(f"{PREFIX}/automation-rules/{rule_id}")).status_code == 404

    async def test_invalid_rule_is_400(self, client):
        r = await client.post(f"{PREFIX}/automation-rules", json=rule_body(actions=[{"type": "assign_team"}]))
        assert r.status_code == 400
        assert r.json()["detail"] == "Action 1 (assign_team): team_id is required."

    async def test_team_admin_global_rule_is_403(self, client, people):
        client.state["principal"] = Principal(
            user_id=uuid.uuid4(), org_id=people["owner"].org_id, role="TEAM_ADMIN", primary_team_id=people["team"].id,
        )
        r = await client.post(f"{PREFIX}/automation-rules", json=rule_body())
        assert r.status_code == 403

    async def test_agents_are_rejected(self, client, people):
        client.state["principal"] = Principal(user_id=people["agent"].id, org_id=people["agent"].org_id, role="AGENT")
        assert (await client.get(f"{PREFIX}/automation-rules")).status_code == 403

    async def test_dry_run(self, client, seed, people):
        ticket = await seed.ticket(people["requester"], subject="VPN flapping")
        rule_id = (await client.post(f"{PREFIX}/automation-rules", json=rule_body())).json()["id"]
        miss_id = (await client.post(f"{PREFIX}/automation-rules", json=rule_body(
            name="Printers", conditions=[{"field": "subject", "operator": "contains", "value": "printer"}],
        ))).json()["id"]

        r = await client.post(f"{PREFIX}/automation-rules/{rule_id}/test", json={"ticket_id": str(ticket.id)})
        assert r.json() == {
            "matched": True,
            "actions_that_would_run": [{"type": "set_priority", "priority": "P1"}],
            "message": "Rule would run.",
        }
        r = await client.post(f"{PREFIX}/automation-rules/{miss_id}/test", json={"ticket_id": str(ticket.id)})
        assert r.json()["message"] == "Conditions did not match"

        r = await client.post(f"{PREFIX}/automation-rules/{rule_id}/test", json={})
        assert r.json()["matched"] is False

        r = await client.post(f"{PREFIX}/automation-rules/{rule_id}/test", json={"ticket_id": str(uuid.uuid4())})
        assert r.status_code == 404

        assert (await seed.get_ticket(ticket.id)).priority == "P3"


class TestTickets:

    async def test_create_fires_ticket_created(self, client, seed):
        await client.post(f"{PREFIX}/automation-rules", json=rule_body())

        r = await client.post(f"{PREFIX}/tickets", json={"subject": "VPN is down"})
        assert r.status_code == 201, r.text
        body = r.json()
        assert body["priority"] == "P1"

        detail = (await client.get(f"{PREFIX}/tickets/{body['id']}")).json()
        assert [e["type"] for e in detail["events"]] == [
            "TICKET_CREATED", "TICKET_PRIORITY_CHANGED", "AUTOMATION_RULE_EXECUTED",
        ]

    async def test_status_change_fires_status_changed(self, client, seed, people):
        await client.post(f"{PREFIX}/automation-rules", json=rule_body(
            name="Note on progress", trigger="STATUS_CHANGED",
            conditions=[{"field": "status", "operator": "equals", "value": "IN_PROGRESS"}],
            actions=[{"type": "add_internal_note", "body": "Work started"}],
        ))
        ticket = await seed.ticket(people["requester"])

        r = await client.post(f"{PREFIX}/tickets/{ticket.id}/status", json={"status": "IN_PROGRESS"})
        assert r.status_code == 200 and r.json()["status"] == "IN_PROGRESS"
        [msg] = await seed.messages(ticket.id)
        assert msg.body == "[Automation] Work started"

    async def test_invalid_transition_is_400(self, client, seed, people):
        ticket = await seed.ticket(people["requester"])
        r = await client.post(f"{PREFIX}/tickets/{ticket.id}/status", json={"status": "REOPENED"})
        assert r.status_code == 400

    async def test_sla_events_are_deduplicated(self, client, seed, people):
        await client.post(f"{PREFIX}/automation-rules", json=rule_body(
            name="Breach", trigger="SLA_BREACHED",
            conditions=[{"field": "assigned_team_id", "operator": "isNotEmpty"}],
            actions=[{"type": "notify_team_lead", "body": "Breached"}],
        ))
        ticket = await seed.ticket(people["requester"], assigned_team_id=people["team"].id)

        for _ in range(2):
            r = await client.post(f"{PREFIX}/tickets/{ticket.id}/sla-events", json={"trigger": "SLA_BREACHED"})
            assert r.status_code == 202
        assert len(await seed.notifications(ticket.id)) == 1

        r = await client.post(f"{PREFIX}/tickets/{uuid.uuid4()}/sla-events", json={"trigger": "SLA_BREACHED"})
        assert r.status_code == 404
