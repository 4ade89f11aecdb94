"""
Tests — Users and projects API.

Covers:
    - user CRUD, duplicate email → 409 ERR_CONFLICT_DUPLICATE
    - DELETE /users/<id>: 409 CRITICAL_DEPENDENCY / REASSIGNMENT_NEEDED, replacement via query
    - /me, and self-edit of name / email (never roles)
    - project create / update / membership, role checks on owner and scrum master
    - request id / duration headers
"""

import pytest

from board_service.models import db as _db
from board_service.models.auth import User


@pytest.fixture()
def admin_headers(admin, auth_headers):
    return auth_headers(admin)


# ═════════════════════════════════════════════════════════════════════════════
# USERS
# ═════════════════════════════════════════════════════════════════════════════

class TestUsersApi:

    def test_create_user(self, client, admin_headers):
        res = client.post(
            "/api/v1/users",
            json={"email": "new.dev@example.com", "full_name": "New Dev", "roles": ["developer"]},
            headers=admin_headers,
        )
        assert res.status_code == 201
        body = res.get_json()
        assert body["roles"] == ["DEV"]
        assert body["is_active"] is True

    def test_duplicate_email(self, client, dev, admin_headers):
        res = client.post(
            "/api/v1/users",
            json={"email": dev.email.upper(), "full_name": "Copy", "roles": ["DEV"]},
            headers=admin_headers,
        )
        assert res.status_code == 409
        assert res.get_json()["type"] == "ERR_CONFLICT_DUPLICATE"

    def test_list_users(self, client, admin, po, dev, admin_headers):
        body = client.get("/api/v1/users?role=PO", headers=admin_headers).get_json()
        assert body["total"] == 1
        assert body["items"][0]["id"] == po.id

    def test_me(self, client, dev, auth_headers):
        body = client.get("/api/v1/me", headers=auth_headers(dev)).get_json()
        assert body["id"] == dev.id
        assert body["roles"] == ["DEV"]

    def test_self_edit_profile(self, client, dev, auth_headers):
        res = client.put(
            f"/api/v1/users/{dev.id}",
            json={"full_name": "Dana Dev", "email": "Dana.Dev@Example.com"},
            headers=auth_headers(dev),
        )
        assert res.status_code == 200
        body = res.get_json()
        assert body["full_name"] == "Dana Dev"
        assert body["email"] == "Dana.Dev@example.com"

        res = client.put("/api/v1/me", json={"full_name": "Dana D."}, headers=auth_headers(dev))
        assert res.status_code == 200
        assert res.get_json()["full_name"] == "Dana D."

    def test_self_edit_cannot_change_roles(self, client, dev, auth_headers):
        res = client.put("/api/v1/me", json={"roles": ["ADMIN"]}, headers=auth_headers(dev))
        assert res.status_code == 403
        assert res.get_json()["type"] == "ERR_FORBIDDEN"
        assert client.get("/api/v1/me", headers=auth_headers(dev)).get_json()["roles"] == ["DEV"]

    def test_cannot_edit_other_user(self, client, dev, dev2, auth_headers):
        res = client.put(f"/api/v1/users/{dev2.id}", json={"full_name": "Mine"}, headers=auth_headers(dev))
        assert res.status_code == 403

    def test_non_admin_cannot_create(self, client, sm, auth_headers):
        res = client.post(
            "/api/v1/users",
            json={"email": "x@example.com", "full_name": "X", "roles": ["DEV"]},
            headers=auth_headers(sm),
        )
        assert res.status_code == 403

    def test_deactivate_critical(self, client, project, po, admin_headers):
        res = client.delete(f"/api/v1/users/{po.id}", headers=admin_headers)
        assert res.status_code == 409
        body = res.get_json()
        assert body["type"] == "CRITICAL_DEPENDENCY"
        assert body["details"]["projects"][0]["id"] == project.id

    def test_deactivate_needs_reassignment(self, client, issue, dev, admin_headers):
        res = client.delete(f"/api/v1/users/{dev.id}", headers=admin_headers)
        assert res.status_code == 409
        body = res.get_json()
        assert body["type"] == "REASSIGNMENT_NEEDED"
        assert body["details"]["issue_ids"] == [issue.id]

    def test_deactivate_with_replacement(self, client, issue, dev, dev2, admin_headers):
        res = client.delete(f"/api/v1/users/{dev.id}?replacement_user_id={dev2.id}", headers=admin_headers)
        assert res.status_code == 200
        assert res.get_json()["is_active"] is False

        issue_body = client.get(f"/api/v1/issues/{issue.id}", headers=admin_headers).get_json()
        assert [a["id"] for a in issue_body["assignees"]] == [dev2.id]

    def test_deactivated_user_locked_out(self, client, dev, admin_headers, auth_headers):
        assert client.delete(f"/api/v1/users/{dev.id}", headers=admin_headers).status_code == 200
        assert client.get("/api/v1/me", headers=auth_headers(dev)).status_code == 403

        assert client.put(f"/api/v1/users/{dev.id}/activate", headers=admin_headers).status_code == 200
        assert client.get("/api/v1/me", headers=auth_headers(dev)).status_code == 200


# ═════════════════════════════════════════════════════════════════════════════
# PROJECTS
# ═════════════════════════════════════════════════════════════════════════════

class TestProjectsApi:

    def test_po_creates_own_project(self, client, po, sm, auth_headers):
        res = client.post(
            "/api/v1/projects",
            json={"name": "Mobile App", "scrum_master_id": sm.id, "start_date": "2026-11-01"},
            headers=auth_headers(po),
        )
        assert res.status_code == 201
        body = res.get_json()
        assert body["owner_id"] == po.id
        assert body["scrum_master_id"] == sm.id
        assert body["status"] == "ACTIVE"

    def test_duplicate_name(self, client, project, po, auth_headers):
        res = client.post("/api/v1/projects", json={"name": project.name}, headers=auth_headers(po))
        assert res.status_code == 409
        assert res.get_json()["type"] == "ERR_CONFLICT_DUPLICATE"

    def test_scrum_master_must_hold_sm_role(self, client, po, dev, auth_headers):
        res = client.post(
            "/api/v1/projects", json={"name": "Bad SM", "scrum_master_id": dev.id}, headers=auth_headers(po),
        )
        assert res.status_code == 422

    def test_dates_in_order(self, client, po, auth_headers):
        res = client.post(
            "/api/v1/projects",
            json={"name": "Backwards", "start_date": "2026-12-01", "end_date": "2026-11-01"},
            headers=auth_headers(po),
        )
        assert res.status_code == 422

    def test_dev_cannot_create(self, client, dev, auth_headers):
        assert client.post("/api/v1/projects", json={"name": "Nope"}, headers=auth_headers(dev)).status_code == 403

    def test_other_po_cannot_edit(self, client, project, make_user, auth_headers):
        stranger = make_user("Other PO", ["PO"])
        res = client.put(f"/api/v1/projects/{project.id}", json={"name": "Taken over"}, headers=auth_headers(stranger))
        assert res.status_code == 403

    def test_membership(self, client, project, dev2, sm, auth_headers):
        res = client.post(f"/api/v1/projects/{project.id}/members", json={"user_id": dev2.id}, headers=auth_headers(sm))
        assert res.status_code == 200
        assert dev2.id in [m["id"] for m in res.get_json()["members"]]

        res = client.delete(f"/api/v1/projects/{project.id}/members/{dev2.id}", headers=auth_headers(sm))
        assert dev2.id not in [m["id"] for m in res.get_json()["members"]]

    def test_mine_filter(self, client, project, admin, dev, dev2, auth_headers):
        assert [p["id"] for p in client.get("/api/v1/projects?mine=true", headers=auth_headers(dev)).get_json()] == [project.id]
        assert client.get("/api/v1/projects?mine=true", headers=auth_headers(dev2)).get_json() == []


class TestRequestHeaders:

    def test_request_id_echoed(self, client, admin_headers):
        res = client.get("/api/v1/me", headers={**admin_headers, "X-Request-ID": "trace-123"})
        assert res.headers["X-Request-ID"] == "trace-123"
        assert "X-Request-Duration-Ms" in res.headers

    def test_unknown_route(self, client, admin_headers):
        res = client.get("/api/v1/nowhere", headers=admin_headers)
        assert res.status_code == 404
        assert res.get_json()["type"] == "ERR_NOT_FOUND"

    def test_user_row_unchanged_on_rejected_update(self, client, dev, admin_headers):
        res = client.put(f"/api/v1/users/{dev.id}", json={"email": "broken"}, headers=admin_headers)
        assert res.status_code == 422
        assert _db.session.get(User, dev.id).email == dev.email
