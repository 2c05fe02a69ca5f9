"""
Authorization tests for BusinessHub.

Verifies:
- Unauthenticated requests return 401
- The basic user role is denied administrative operations (403)
- Admin role can perform privileged operations
- Login, logout and session validation
"""

import pytest

from businesshub.models import SecurityEvent
from conftest import PASSWORD, get_auth_token, auth_headers


# =============================================================================
# UNAUTHENTICATED ACCESS - 401
# =============================================================================


class TestUnauthenticatedAccess:
    """All protected endpoints return 401 without a token."""

    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/admin/users"),
            ("POST", "/api/admin/users"),
            ("GET", "/api/admin/roles"),
            ("GET", "/api/admin/permissions"),
            ("GET", "/api/businesses"),
            ("POST", "/api/businesses"),
            ("GET", "/api/products"),
            ("GET", "/api/product-instances"),
            ("GET", "/api/business-products"),
            ("GET", "/api/quotes"),
            ("GET", "/api/tasks"),
            ("GET", "/api/messages"),
            ("GET", "/api/documents"),
            ("GET", "/api/analytics/dashboard"),
            ("GET", "/api/data/export"),
        ],
    )
    def test_requires_auth(self, client, db_session, method, path):
        resp = getattr(client, method.lower())(path)
        assert resp.status_code == 401, f"{method} {path} returned {resp.status_code}"

    def test_garbage_token_rejected(self, client, db_session):
        resp = client.get("/api/businesses", headers=auth_headers("not-a-real-token"))
        assert resp.status_code == 401
        assert resp.get_json()["error"] == "Invalid or expired token"


# =============================================================================
# BASIC USER DENIED ADMINISTRATIVE OPERATIONS - 403
# =============================================================================


class TestUserRoleDenied:
    """The user role can read and work on tasks, quotes and messages only."""

    def test_cannot_list_users(self, client, user_headers):
        resp = client.get("/api/admin/users", headers=user_headers)
        assert resp.status_code == 403
        assert resp.get_json()["required_permission"] == "VIEW_USERS"

    def test_cannot_create_user(self, client, user_headers):
        resp = client.post(
            "/api/admin/users",
            json={"username": "x", "email": "x@x.com", "password": "P@ssw0rd123!"},
            headers=user_headers,
        )
        assert resp.status_code == 403

    def test_cannot_create_role(self, client, user_headers):
        resp = client.post("/api/admin/roles", json={"name": "evil-role"}, headers=user_headers)
        assert resp.status_code == 403

    def test_cannot_create_business(self, client, user_headers):
        resp = client.post("/api/businesses", json={"name": "Nope Ltd"}, headers=user_headers)
        assert resp.status_code == 403

    def test_cannot_create_product(self, client, user_headers):
        resp = client.post("/api/products", json={"name": "Nope"}, headers=user_headers)
        assert resp.status_code == 403

    def test_cannot_view_analytics(self, client, user_headers):
        resp = client.get("/api/analytics/dashboard", headers=user_headers)
        assert resp.status_code == 403

    def test_cannot_export_data(self, client, user_headers):
        resp = client.get("/api/data/export?type=businesses", headers=user_headers)
        assert resp.status_code == 403

    def test_cannot_view_audit_log(self, client, user_headers):
        resp = client.get("/api/admin/security-events", headers=user_headers)
        assert resp.status_code == 403

    def test_denial_is_logged(self, client, db_session, user_a, user_headers):
        client.get("/api/admin/users", headers=user_headers)
        event = db_session.query(SecurityEvent).filter_by(
            event_type="PERMISSION_DENIED", user_id=user_a.id
        ).first()
        assert event is not None
        assert event.success is False
        assert event.org_id == user_a.org_id

    def test_can_read_businesses(self, client, user_headers):
        resp = client.get("/api/businesses", headers=user_headers)
        assert resp.status_code == 200

    def test_can_work_with_tasks(self, client, user_headers):
        resp = client.post("/api/tasks", json={"title": "Call back"}, headers=user_headers)
        assert resp.status_code == 201


class TestManagerAccess:
    """Managers run the CRM but not user administration."""

    def test_can_view_analytics(self, client, manager_headers):
        resp = client.get("/api/analytics/dashboard", headers=manager_headers)
        assert resp.status_code == 200

    def test_cannot_import_data(self, client, manager_headers):
        resp = client.post("/api/data/import", headers=manager_headers)
        assert resp.status_code == 403

    def test_cannot_manage_permissions(self, client, manager_headers):
        resp = client.post(
            "/api/admin/roles/user/permissions",
            json={"permission_code": "SYSTEM_ADMIN"},
            headers=manager_headers,
        )
        assert resp.status_code == 403


# =============================================================================
# ADMIN CAN PERFORM PRIVILEGED OPERATIONS - 200
# =============================================================================


class TestAdminAccess:
    """Admin role can perform privileged operations."""

    def test_can_list_users(self, client, admin_headers):
        resp = client.get("/api/admin/users", headers=admin_headers)
        assert resp.status_code == 200

    def test_can_list_roles(self, client, admin_headers):
        resp = client.get("/api/admin/roles", headers=admin_headers)
        assert resp.status_code == 200
        names = {r["name"] for r in resp.get_json()["roles"]}
        assert {"admin", "manager", "user"} <= names

    def test_can_list_permissions(self, client, admin_headers):
        resp = client.get("/api/admin/permissions", headers=admin_headers)
        assert resp.status_code == 200
        data = resp.get_json()
        assert len(data.get("permissions", [])) > 0

    def test_can_view_security_events(self, client, admin_headers):
        resp = client.get("/api/admin/security-events", headers=admin_headers)
        assert resp.status_code == 200


# =============================================================================
# AUTHENTICATION FLOW
# =============================================================================


class TestLogin:

    def test_login_returns_token_and_permissions(self, client, admin_a):
        resp = client.post("/api/auth/login", json={"username": "admin_a", "password": PASSWORD})
        assert resp.status_code == 200
        data = resp.get_json()
        assert data["token"]
        assert data["org_id"] == admin_a.org_id
        assert "admin" in data["roles"]
        assert "MANAGE_PERMISSIONS" in data["permissions"]

    def test_login_by_email(self, client, admin_a):
        resp = client.post("/api/auth/login", json={"email": "admin_a@example.com", "password": PASSWORD})
        assert resp.status_code == 200

    def test_wrong_password(self, client, admin_a):
        resp = client.post("/api/auth/login", json={"username": "admin_a", "password": "Wrong123!"})
        assert resp.status_code == 401

    def test_missing_fields(self, client, db_session):
        resp = client.post("/api/auth/login", json={"username": "admin_a"})
        assert resp.status_code == 400

    def test_self_registration_disabled(self, client, db_session):
        resp = client.post("/api/auth/register", json={"username": "x"})
        assert resp.status_code == 403

    def test_logout_revokes_token(self, client, admin_a):
        token = get_auth_token(client, "admin_a")
        headers = auth_headers(token)

        assert client.post("/api/auth/logout", headers=headers).status_code == 200
        assert client.get("/api/auth/me", headers=headers).status_code == 401

    def test_validate(self, client, admin_a, admin_headers):
        resp = client.post("/api/auth/validate", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.get_json()["user"]["username"] == "admin_a"

    def test_deactivated_user_cannot_login(self, client, db_session, user_a):
        user_a.is_active = False
        db_session.commit()
        assert get_auth_token(client, "user_a") is None

    def test_lockout_after_repeated_failures(self, client, app, monkeypatch, admin_a):
        monkeypatch.setitem(app.config, "LOGIN_MAX_FAILED_ATTEMPTS", 4)
        bad = {"username": "admin_a", "password": "Wrong123!"}

        first = client.post("/api/auth/login", json=bad)
        assert first.status_code == 401
        assert "warning" in first.get_json()

        statuses = [client.post("/api/auth/login", json=bad).status_code for _ in range(3)]
        assert statuses == [401, 401, 429]

        # Correct password is refused while locked
        resp = client.post("/api/auth/login", json={"username": "admin_a", "password": PASSWORD})
        assert resp.status_code == 429
        assert resp.get_json()["locked"] is True

        status = client.get("/api/auth/lockout-status/admin_a").get_json()
        assert status["locked"] is True
        assert status["failed_attempts"] == 4

    def test_change_password_keeps_current_session(self, client, admin_a):
        first = auth_headers(get_auth_token(client, "admin_a"))
        second = auth_headers(get_auth_token(client, "admin_a"))

        resp = client.post(
            "/api/auth/change-password",
            json={"current_password": PASSWORD, "new_password": "Changed1Pass!"},
            headers=first,
        )
        assert resp.status_code == 200
        assert resp.get_json()["sessions_revoked"] == 1

        assert client.get("/api/auth/me", headers=first).status_code == 200
        assert client.get("/api/auth/me", headers=second).status_code == 401

    def test_change_password_rejects_weak(self, client, admin_a, admin_headers):
        resp = client.post(
            "/api/auth/change-password",
            json={"current_password": PASSWORD, "new_password": "weak"},
            headers=admin_headers,
        )
        assert resp.status_code == 400


# =============================================================================
# PUBLIC ENDPOINTS - NO AUTH REQUIRED
# =============================================================================


class TestPublicEndpoints:
    """System health and version endpoints are public."""

    def test_health(self, client, setup_roles):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.get_json()["status"] == "healthy"

    def test_version(self, client, db_session):
        resp = client.get("/version")
        assert resp.status_code == 200
        assert resp.get_json()["api_version"] == "1.0.0"
