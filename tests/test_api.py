"""
HTTP tests for the alert API.

These tests verify:
1. Authentication and the staff / organization-member split
2. The create -> save -> publish flow over HTTP
3. Service errors map to 404 / 409 / 422
4. Client portal and per-user notification routes
"""

from uuid import uuid4

import pytest
from httpx import ASGITransport, AsyncClient

from compliance_alerts.api.common import get_message_transport
from compliance_alerts.core.database import get_session
from compliance_alerts.core.security import create_access_token
from compliance_alerts.main import app


def auth(user) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(str(user.id))}"}


@pytest.fixture
async def client(session, transport):
    async def override_session():
        yield session

    async def override_transport():
        yield transport

    app.dependency_overrides[get_session] = override_session
    app.dependency_overrides[get_message_transport] = override_transport
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


COMPLETE = {
    "category": "Geldwäscherei",
    "summary": "Die Revision des GwG verschärft die Sorgfaltspflichten.",
    "legal_basis": "GwG Art. 3-8",
    "deadline": "01.01.2026",
    "severity": "critical",
}


async def create_draft(client, staff, title="GwG-Revision") -> dict:
    response = await client.post("/api/v1/alerts", json={"title": title}, headers=auth(staff))
    assert response.status_code == 201
    return response.json()


# =============================================================================
# TEST: AUTHENTICATION
# =============================================================================


class TestAuthentication:
    """Who may call what."""

    async def test_missing_token(self, client):
        response = await client.get("/api/v1/alerts")
        assert response.status_code == 401

    async def test_invalid_token(self, client):
        response = await client.get("/api/v1/alerts", headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 401

    async def test_client_user_cannot_author(self, client, alice):
        response = await client.post("/api/v1/alerts", json={"title": "Test"}, headers=auth(alice))
        assert response.status_code == 403

    async def test_health(self, client):
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"


# =============================================================================
# TEST: AUTHORING AND PUBLICATION
# =============================================================================


class TestAlertFlow:
    """Draft to published over HTTP."""

    async def test_create_save_publish(self, client, staff, transport, org_a, org_b):
        draft = await create_draft(client, staff)
        assert draft["status"] == "draft"
        assert draft["version"] == 1
        assert draft["created_by"] == str(staff.id)
        assert draft["suggestions"] is not None

        response = await client.put(
            f"/api/v1/alerts/{draft['id']}/draft",
            json={
                **COMPLETE,
                "affected_clients": [
                    {"organization_id": str(org_a.id), "risk": "high", "reason": "Treuhandmandate"},
                ],
                "expected_version": 1,
            },
            headers=auth(staff),
        )
        assert response.status_code == 200
        saved = response.json()
        assert saved["version"] == 2
        assert [c["organization_id"] for c in saved["affected_clients"]] == [str(org_a.id)]
        assert saved["affected_clients"][0]["suggestion"] == {
            "risk": "high",
            "reason": "Treuhandmandate",
            "comment": None,
        }

        response = await client.post(
            f"/api/v1/alerts/{draft['id']}/publish",
            json={
                "source_link": "https://www.fedlex.admin.ch/eli/cc/2015/508",
                "affected_clients": [
                    {"organization_id": str(org_a.id), "risk": "high"},
                    {"organization_id": str(org_b.id)},
                ],
            },
            headers=auth(staff),
        )
        assert response.status_code == 200
        body = response.json()
        assert body["alert"]["status"] == "new"
        assert body["alert"]["suggestions"] is None
        assert all(c["suggestion"] is None for c in body["alert"]["affected_clients"])
        assert body["alert"]["source_link"] == "https://www.fedlex.admin.ch/eli/cc/2015/508"
        assert body["dispatch"]["sent"] == 3
        assert body["dispatch"]["errors"] == 0
        assert transport.recipients() == ["alice@alpha.ch", "andreas@alpha.ch", "bruno@beta.ch"]

        response = await client.get(f"/api/v1/alerts/{draft['id']}/notification-log", headers=auth(staff))
        assert response.status_code == 200
        assert len(response.json()) == 3

    async def test_list_by_status(self, client, staff):
        draft = await create_draft(client, staff)
        dismissed = await create_draft(client, staff, title="Irrelevant")
        await client.post(f"/api/v1/alerts/{dismissed['id']}/dismiss", headers=auth(staff))

        response = await client.get("/api/v1/alerts", params={"status": "draft"}, headers=auth(staff))

        assert [a["id"] for a in response.json()] == [draft["id"]]

    async def test_status_update(self, client, staff, org_a):
        draft = await create_draft(client, staff)
        await client.post(
            f"/api/v1/alerts/{draft['id']}/publish",
            json={**COMPLETE, "affected_clients": [{"organization_id": str(org_a.id)}]},
            headers=auth(staff),
        )

        response = await client.patch(
            f"/api/v1/alerts/{draft['id']}/status",
            json={"status": "acknowledged"},
            headers=auth(staff),
        )

        assert response.status_code == 200
        assert response.json()["status"] == "acknowledged"


# =============================================================================
# TEST: ERROR MAPPING
# =============================================================================


class TestErrorMapping:
    """Service errors as HTTP status codes."""

    async def test_unknown_alert(self, client, staff):
        response = await client.get(f"/api/v1/alerts/{uuid4()}", headers=auth(staff))
        assert response.status_code == 404

    async def test_missing_fields(self, client, staff):
        draft = await create_draft(client, staff)

        response = await client.post(
            f"/api/v1/alerts/{draft['id']}/publish",
            json={"summary": "Nur Zusammenfassung"},
            headers=auth(staff),
        )

        assert response.status_code == 422
        detail = response.json()["detail"]
        assert detail["fields"] == ["category", "legal_basis", "deadline"]

    async def test_invalid_transition(self, client, staff):
        draft = await create_draft(client, staff)

        response = await client.post(f"/api/v1/alerts/{draft['id']}/restore", headers=auth(staff))

        assert response.status_code == 409

    async def test_stale_version(self, client, staff):
        draft = await create_draft(client, staff)
        await client.put(f"/api/v1/alerts/{draft['id']}/draft", json={}, headers=auth(staff))

        response = await client.put(
            f"/api/v1/alerts/{draft['id']}/draft",
            json={"summary": "Überholt", "expected_version": 1},
            headers=auth(staff),
        )

        assert response.status_code == 409

    async def test_dispatch_of_draft(self, client, staff):
        draft = await create_draft(client, staff)

        response = await client.post(f"/api/v1/alerts/{draft['id']}/dispatch", headers=auth(staff))

        assert response.status_code == 409


# =============================================================================
# TEST: CLIENT PORTAL
# =============================================================================


class TestClientPortal:
    """What organization members see and do."""

    async def _publish(self, client, staff, org) -> dict:
        draft = await create_draft(client, staff)
        response = await client.post(
            f"/api/v1/alerts/{draft['id']}/publish",
            json={**COMPLETE, "affected_clients": [{"organization_id": str(org.id), "risk": "high"}]},
            headers=auth(staff),
        )
        return response.json()["alert"]

    async def test_member_sees_published_alerts(self, client, staff, alice, org_a):
        alert = await self._publish(client, staff, org_a)

        response = await client.get(f"/api/v1/organizations/{org_a.id}/alerts", headers=auth(alice))

        assert response.status_code == 200
        [view] = response.json()
        assert view["alert_id"] == alert["id"]
        assert view["risk"] == "high"
        assert view["is_new"] is True

    async def test_non_member_is_forbidden(self, client, alice, org_b):
        response = await client.get(f"/api/v1/organizations/{org_b.id}/alerts", headers=auth(alice))
        assert response.status_code == 403

    async def test_member_works_on_actions(self, client, staff, alice, org_a):
        alert = await self._publish(client, staff, org_a)
        link_id = alert["affected_clients"][0]["id"]

        response = await client.post(
            f"/api/v1/affected-clients/{link_id}/actions",
            json={"text": "KYC-Formulare aktualisieren", "due_date": "2025-06-30"},
            headers=auth(staff),
        )
        assert response.status_code == 201
        action = response.json()
        assert action["status"] == "offen"

        response = await client.patch(
            f"/api/v1/client-actions/{action['id']}/status",
            json={"status": "in_arbeit"},
            headers=auth(alice),
        )
        assert response.status_code == 200

        response = await client.post(
            f"/api/v1/client-actions/{action['id']}/comments",
            json={"text": "Formulare sind in Prüfung"},
            headers=auth(alice),
        )
        assert response.status_code == 201
        assert response.json()["author_name"] == "Alice Keller"

        response = await client.get(f"/api/v1/client-actions/{action['id']}/comments", headers=auth(alice))
        comments = response.json()
        assert [c["is_system"] for c in comments] == [True, False]
        assert comments[0]["text"] == "Status geändert von Offen auf In Arbeit durch Alice Keller"

        response = await client.delete(f"/api/v1/comments/{comments[0]['id']}", headers=auth(alice))
        assert response.status_code == 409

    async def test_notifications_inbox(self, client, staff, alice, org_a):
        await self._publish(client, staff, org_a)

        response = await client.get("/api/v1/me/notifications", headers=auth(alice))
        [notification] = response.json()
        assert notification["title"] == "Neue regulatorische Meldung"

        response = await client.post(
            f"/api/v1/me/notifications/{notification['id']}/read",
            headers=auth(alice),
        )
        assert response.status_code == 200
        assert response.json()["read_at"] is not None

        response = await client.get("/api/v1/me/notifications", params={"unread_only": True}, headers=auth(alice))
        assert response.json() == []
