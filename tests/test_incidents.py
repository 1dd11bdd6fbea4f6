"""
Integration tests for incident endpoints.

Tests cover:
- Role gating (viewers read, editors and admins write)
- Tenant isolation on reads and writes
- Resolution timestamps, assignment and CVE validation
"""

from __future__ import annotations

import pytest

from cti_shared.schemas.common import Role

INCIDENT = {
    "title": "Suspicious VPN logins",
    "description": "Logins from unusual ASNs outside business hours",
    "priority": "High",
    "cve_ids": ["CVE-2024-3400"],
}


@pytest.fixture
async def tenants(make_org, make_user):
    """Two organizations, each with an admin, an editor and a viewer."""
    result = {}
    for name in ("org1", "org2"):
        org = await make_org(name)
        result[name] = {
            "org": org,
            "admin": await make_user(Role.ADMIN, org),
            "editor": await make_user(Role.EDITOR, org),
            "viewer": await make_user(Role.VIEWER, org),
        }
    return result


async def _create(client, headers, user, **overrides):
    response = await client.post("/api/v1/incidents", json={**INCIDENT, **overrides}, headers=headers(user))
    assert response.status_code == 201, response.text
    return response.json()


class TestIncidentCrud:
    async def test_editor_reports_incident(self, client, headers, tenants):
        editor = tenants["org1"]["editor"]
        data = await _create(client, headers, editor)
        assert data["organization_id"] == tenants["org1"]["org"].id
        assert data["reported_by_user_id"] == editor.id
        assert data["status"] == "Open"
        assert data["date_resolved"] is None

    async def test_viewer_cannot_create(self, client, headers, tenants):
        response = await client.post(
            "/api/v1/incidents", json=INCIDENT, headers=headers(tenants["org1"]["viewer"])
        )
        assert response.status_code == 403
        assert response.json()["error"] == "InsufficientRole"

    async def test_viewer_reads(self, client, headers, tenants):
        created = await _create(client, headers, tenants["org1"]["editor"])
        viewer = tenants["org1"]["viewer"]

        listing = await client.get("/api/v1/incidents", headers=headers(viewer))
        assert [i["id"] for i in listing.json()["data"]] == [created["id"]]
        single = await client.get(f"/api/v1/incidents/{created['id']}", headers=headers(viewer))
        assert single.status_code == 200

    async def test_resolution_sets_timestamp(self, client, headers, tenants):
        editor = tenants["org1"]["editor"]
        created = await _create(client, headers, editor)

        response = await client.patch(
            f"/api/v1/incidents/{created['id']}",
            json={"status": "Resolved", "resolution_notes": "Rotated credentials"},
            headers=headers(editor),
        )
        assert response.status_code == 200
        assert response.json()["date_resolved"] is not None

        reopened = await client.patch(
            f"/api/v1/incidents/{created['id']}", json={"status": "Open"}, headers=headers(editor)
        )
        assert reopened.json()["date_resolved"] is None

    async def test_assign_to_member(self, client, headers, tenants):
        editor = tenants["org1"]["editor"]
        created = await _create(client, headers, editor)

        response = await client.patch(
            f"/api/v1/incidents/{created['id']}",
            json={"assigned_to_user_id": tenants["org1"]["viewer"].id},
            headers=headers(editor),
        )
        assert response.status_code == 200
        assert response.json()["assigned_to_user_id"] == tenants["org1"]["viewer"].id

    async def test_cannot_assign_outside_org(self, client, headers, tenants):
        editor = tenants["org1"]["editor"]
        created = await _create(client, headers, editor)

        response = await client.patch(
            f"/api/v1/incidents/{created['id']}",
            json={"assigned_to_user_id": tenants["org2"]["viewer"].id},
            headers=headers(editor),
        )
        assert response.status_code == 400

    async def test_invalid_cve(self, client, headers, tenants):
        response = await client.post(
            "/api/v1/incidents",
            json={**INCIDENT, "cve_ids": ["CVE-24-1"]},
            headers=headers(tenants["org1"]["editor"]),
        )
        assert response.status_code == 400

    async def test_delete(self, client, headers, tenants):
        editor = tenants["org1"]["editor"]
        created = await _create(client, headers, editor)

        response = await client.delete(f"/api/v1/incidents/{created['id']}", headers=headers(editor))
        assert response.status_code == 200
        gone = await client.get(f"/api/v1/incidents/{created['id']}", headers=headers(editor))
        assert gone.status_code == 404


class TestTenantIsolation:
    async def test_foreign_incident_not_listed(self, client, headers, tenants):
        await _create(client, headers, tenants["org2"]["editor"])
        listing = await client.get("/api/v1/incidents", headers=headers(tenants["org1"]["admin"]))
        assert listing.json()["data"] == []

    async def test_foreign_incident_not_found(self, client, headers, tenants):
        foreign = await _create(client, headers, tenants["org2"]["editor"])
        response = await client.get(
            f"/api/v1/incidents/{foreign['id']}", headers=headers(tenants["org1"]["admin"])
        )
        assert response.status_code == 404

    async def test_editor_cannot_update_foreign_incident(self, client, headers, tenants):
        foreign = await _create(client, headers, tenants["org2"]["editor"])
        response = await client.patch(
            f"/api/v1/incidents/{foreign['id']}",
            json={"title": "Tampered"},
            headers=headers(tenants["org1"]["editor"]),
        )
        assert response.status_code == 403
        assert response.json()["error"] == "WrongOrganization"

    async def test_admin_cannot_delete_foreign_incident(self, client, headers, tenants):
        foreign = await _create(client, headers, tenants["org2"]["editor"])
        response = await client.delete(
            f"/api/v1/incidents/{foreign['id']}", headers=headers(tenants["org1"]["admin"])
        )
        assert response.status_code == 403

    async def test_unassigned_user_sees_nothing(self, client, headers, make_user):
        user = await make_user()
        response = await client.get("/api/v1/incidents", headers=headers(user))
        assert response.status_code == 403
