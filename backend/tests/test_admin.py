"""
Admin endpoint tests: users, roles, role permissions, per-user overrides
and the security event log.
"""

import pytest

from businesshub.models import User, Role, SecurityEvent, UserRole
from businesshub.services import user_admin_service
from businesshub.validation import ConflictError, ValidationError

from conftest import get_auth_token, auth_headers, PASSWORD


NEW_PASSWORD = "Another1Pass!"


class TestUserManagement:

    def test_create_user_with_role(self, client, db_session, admin_headers):
        resp = client.post(
            "/api/admin/users",
            json={
                "username": "newtech",
                "email": "newtech@example.com",
                "password": NEW_PASSWORD,
                "name": "New Tech",
                "role": "user",
            },
            headers=admin_headers,
        )
        assert resp.status_code == 201
        data = resp.get_json()
        assert data["user"]["username"] == "newtech"
        assert "warning" not in data

        token = get_auth_token(client, "newtech", NEW_PASSWORD)
        me = client.get("/api/businesses", headers=auth_headers(token))
        assert me.status_code == 200

        assert db_session.query(SecurityEvent).filter_by(event_type="USER_CREATED").count() == 1

    def test_unknown_role_is_a_warning(self, client, admin_headers):
        resp = client.post(
            "/api/admin/users",
            json={"username": "x1", "email": "x1@example.com", "password": NEW_PASSWORD, "role": "ghost"},
            headers=admin_headers,
        )
        assert resp.status_code == 201
        assert "role assignment failed" in resp.get_json()["warning"]

    def test_weak_password(self, client, admin_headers):
        resp = client.post(
            "/api/admin/users",
            json={"username": "weak", "email": "weak@example.com", "password": "password"},
            headers=admin_headers,
        )
        assert resp.status_code == 400

    def test_duplicate_username(self, client, admin_headers, user_a):
        resp = client.post(
            "/api/admin/users",
            json={"username": user_a.username, "email": "other@example.com", "password": NEW_PASSWORD},
            headers=admin_headers,
        )
        assert resp.status_code == 409

    def test_manager_can_create_user(self, client, manager_headers):
        resp = client.post(
            "/api/admin/users",
            json={"username": "helper", "email": "helper@example.com", "password": NEW_PASSWORD},
            headers=manager_headers,
        )
        assert resp.status_code == 201

    def test_update_email_conflict(self, client, admin_headers, user_a, manager_a):
        resp = client.put(
            f"/api/admin/users/{user_a.id}",
            json={"email": manager_a.email},
            headers=admin_headers,
        )
        assert resp.status_code == 409

    def test_update_name(self, client, admin_headers, user_a):
        resp = client.put(f"/api/admin/users/{user_a.id}", json={"name": "Uma User"}, headers=admin_headers)
        assert resp.status_code == 200
        assert resp.get_json()["user"]["name"] == "Uma User"
        assert resp.get_json()["user"]["roles"] == ["user"]

    def test_user_detail(self, client, admin_headers, user_a):
        resp = client.get(f"/api/admin/users/{user_a.id}", headers=admin_headers)
        assert resp.status_code == 200
        data = resp.get_json()["user"]
        assert "VIEW_BUSINESSES" in data["permissions"]
        assert "MANAGE_BUSINESSES" not in data["permissions"]

    def test_cannot_deactivate_self(self, client, admin_a, admin_headers):
        resp = client.post(f"/api/admin/users/{admin_a.id}/deactivate", headers=admin_headers)
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "Cannot deactivate your own account"

    def test_deactivate_and_reactivate(self, client, db_session, admin_headers, user_a, user_headers):
        resp = client.post(f"/api/admin/users/{user_a.id}/deactivate", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.get_json()["sessions_revoked"] == 1

        assert client.get("/api/businesses", headers=user_headers).status_code == 401

        resp = client.post(f"/api/admin/users/{user_a.id}/deactivate", headers=admin_headers)
        assert resp.status_code == 400

        listed = client.get("/api/admin/users", headers=admin_headers).get_json()["users"]
        assert user_a.username not in [u["username"] for u in listed]
        listed = client.get("/api/admin/users?include_inactive=true", headers=admin_headers).get_json()["users"]
        assert user_a.username in [u["username"] for u in listed]

        resp = client.post(f"/api/admin/users/{user_a.id}/reactivate", headers=admin_headers)
        assert resp.status_code == 200
        assert get_auth_token(client, user_a.username)

    def test_reset_password(self, client, admin_headers, user_a, user_headers):
        resp = client.post(
            f"/api/admin/users/{user_a.id}/reset-password",
            json={"new_password": NEW_PASSWORD},
            headers=admin_headers,
        )
        assert resp.status_code == 200
        assert client.get("/api/businesses", headers=user_headers).status_code == 401

        old = client.post("/api/auth/login", json={"username": user_a.username, "password": PASSWORD})
        assert old.status_code == 401
        assert get_auth_token(client, user_a.username, NEW_PASSWORD)

    def test_reset_password_weak(self, client, admin_headers, user_a):
        resp = client.post(
            f"/api/admin/users/{user_a.id}/reset-password",
            json={"new_password": "short"},
            headers=admin_headers,
        )
        assert resp.status_code == 400


class TestRoleManagement:

    def test_role_crud(self, client, db_session, org_a, admin_headers):
        resp = client.post(
            "/api/admin/roles",
            json={"name": "engineer", "description": "Field engineers"},
            headers=admin_headers,
        )
        assert resp.status_code == 201
        assert resp.get_json()["role"]["user_count"] == 0

        assert client.post("/api/admin/roles", json={"name": "engineer"}, headers=admin_headers).status_code == 409

        resp = client.put("/api/admin/roles/engineer", json={"name": "field-engineer"}, headers=admin_headers)
        assert resp.status_code == 200

        resp = client.delete("/api/admin/roles/field-engineer", headers=admin_headers)
        assert resp.status_code == 200
        assert db_session.query(Role).filter_by(org_id=org_a.id, name="field-engineer").first() is None

    def test_admin_role_protected(self, client, admin_headers):
        assert client.delete("/api/admin/roles/admin", headers=admin_headers).status_code == 400
        resp = client.put("/api/admin/roles/admin", json={"name": "root"}, headers=admin_headers)
        assert resp.status_code == 400

    def test_role_in_use(self, db_session, org_a, user_a):
        with pytest.raises(ConflictError):
            user_admin_service.delete_role(role_name="user", org_id=org_a.id)

    def test_unknown_role(self, client, admin_headers):
        assert client.get("/api/admin/roles/ghost", headers=admin_headers).status_code == 404

    def test_role_detail_lists_permissions(self, client, admin_headers):
        resp = client.get("/api/admin/roles/manager", headers=admin_headers)
        codes = {p["code"] for p in resp.get_json()["role"]["permissions"]}
        assert "EXPORT_DATA" in codes
        assert "IMPORT_DATA" not in codes

    def test_assign_and_remove_role(self, client, db_session, admin_headers, user_a):
        resp = client.post(f"/api/admin/users/{user_a.id}/roles", json={"role_name": "manager"}, headers=admin_headers)
        assert resp.status_code == 200
        assert sorted(resp.get_json()["roles"]) == ["manager", "user"]

        resp = client.delete(f"/api/admin/users/{user_a.id}/roles/manager", headers=admin_headers)
        assert resp.status_code == 200
        assert db_session.query(UserRole).filter_by(user_id=user_a.id).count() == 1

        resp = client.delete(f"/api/admin/users/{user_a.id}/roles/manager", headers=admin_headers)
        assert resp.status_code == 400

    def test_assign_foreign_user(self, client, admin_headers, admin_b):
        resp = client.post(f"/api/admin/users/{admin_b.id}/roles", json={"role_name": "user"}, headers=admin_headers)
        assert resp.status_code == 404

    def test_grant_and_revoke_role_permission(self, client, admin_headers, user_headers):
        assert client.post("/api/businesses", json={"name": "X"}, headers=user_headers).status_code == 403

        resp = client.post(
            "/api/admin/roles/user/permissions",
            json={"permission_code": "MANAGE_BUSINESSES"},
            headers=admin_headers,
        )
        assert resp.status_code == 201
        assert client.post("/api/businesses", json={"name": "X"}, headers=user_headers).status_code == 201

        resp = client.delete("/api/admin/roles/user/permissions/MANAGE_BUSINESSES", headers=admin_headers)
        assert resp.status_code == 200
        resp = client.delete("/api/admin/roles/user/permissions/MANAGE_BUSINESSES", headers=admin_headers)
        assert resp.status_code == 400

    def test_grant_unknown_permission(self, client, admin_headers):
        resp = client.post(
            "/api/admin/roles/user/permissions",
            json={"permission_code": "FLY"},
            headers=admin_headers,
        )
        assert resp.status_code == 400


class TestPermissionOverrides:

    def test_deny_override(self, client, admin_headers, user_a, user_headers):
        resp = client.post(
            f"/api/admin/users/{user_a.id}/permission-overrides",
            json={"permission_code": "VIEW_BUSINESSES", "override_type": "deny", "reason": "Contractor"},
            headers=admin_headers,
        )
        assert resp.status_code == 201
        assert client.get("/api/businesses", headers=user_headers).status_code == 403

        resp = client.delete(
            f"/api/admin/users/{user_a.id}/permission-overrides/VIEW_BUSINESSES",
            headers=admin_headers,
        )
        assert resp.status_code == 200
        assert client.get("/api/businesses", headers=user_headers).status_code == 200

    def test_grant_override(self, client, admin_headers, user_a, user_headers):
        client.post(
            f"/api/admin/users/{user_a.id}/permission-overrides",
            json={"permission_code": "VIEW_ANALYTICS", "override_type": "GRANT"},
            headers=admin_headers,
        )
        assert client.get("/api/analytics/dashboard", headers=user_headers).status_code == 200

        overrides = client.get(
            f"/api/admin/users/{user_a.id}/permission-overrides", headers=admin_headers
        ).get_json()["overrides"]
        assert [o["permission_code"] for o in overrides] == ["VIEW_ANALYTICS"]

    @pytest.mark.parametrize("code", ["MANAGE_PERMISSIONS", "SYSTEM_ADMIN"])
    def test_protected_codes_rejected(self, client, admin_headers, user_a, code):
        resp = client.post(
            f"/api/admin/users/{user_a.id}/permission-overrides",
            json={"permission_code": code, "override_type": "GRANT"},
            headers=admin_headers,
        )
        assert resp.status_code == 400

    def test_revoke_missing_override(self, client, admin_headers, user_a):
        resp = client.delete(
            f"/api/admin/users/{user_a.id}/permission-overrides/VIEW_TASKS",
            headers=admin_headers,
        )
        assert resp.status_code == 404


class TestSecurityEvents:

    def test_filter_by_type(self, client, admin_headers, user_headers):
        client.post("/api/businesses", json={"name": "Denied"}, headers=user_headers)

        resp = client.get("/api/admin/security-events?event_type=PERMISSION_DENIED", headers=admin_headers)
        assert resp.status_code == 200
        events = resp.get_json()["events"]
        assert len(events) == 1
        assert events[0]["resource"] == "/api/businesses"

    def test_events_are_tenant_scoped(self, client, admin_headers, admin_b_headers):
        client.post("/api/admin/roles", json={"name": "auditor"}, headers=admin_headers)

        events = client.get("/api/admin/security-events", headers=admin_b_headers).get_json()["events"]
        assert all(e["event_type"] != "ROLE_CREATED" for e in events)


class TestServiceRules:

    def test_missing_fields(self, db_session, org_a):
        with pytest.raises(ValidationError):
            user_admin_service.create_user_account(username="a", email="", password=NEW_PASSWORD, org_id=org_a.id)

    def test_reactivate_active_user(self, db_session, org_a, user_a):
        with pytest.raises(ValidationError, match="already active"):
            user_admin_service.reactivate_user(user_id=user_a.id, org_id=org_a.id)

    def test_deactivated_user_keeps_row(self, db_session, org_a, admin_a, user_a):
        user_admin_service.deactivate_user(user_id=user_a.id, acting_user_id=admin_a.id, org_id=org_a.id)
        assert db_session.get(User, user_a.id).is_active is False
