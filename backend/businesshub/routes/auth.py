# Overview: Login, logout and session introspection endpoints.

"""
Staff sign in with their username or email and receive an opaque bearer
token. There is no self-registration: accounts are created by an admin
(POST /api/admin/users) or with `flask users create`.
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..services import auth_service
from ..services import session_service
from ..services import login_throttle_service
from ..services import permission_service
from ..decorators import require_auth


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")

# Failed logins left before lockout at which the response starts warning.
LOCKOUT_WARNING_THRESHOLD = 3


def _identity(user, org_id: int) -> dict:
    return {
        "user": user.to_dict(),
        "roles": permission_service.get_user_role_names(user.id),
        "permissions": sorted(permission_service.get_user_permissions(user.id)),
        "org_id": org_id,
    }


def _locked_response(seconds_remaining: int | None):
    minutes = login_throttle_service.lockout_period().total_seconds() // 60
    if seconds_remaining:
        minutes = seconds_remaining // 60 + 1
    return jsonify({
        "error": "Account temporarily locked due to too many failed login attempts",
        "locked": True,
        "retry_after_seconds": seconds_remaining,
        "retry_after_minutes": int(minutes),
    }), 429


@auth_bp.post("/register")
def register_route():
    return jsonify({
        "error": "Self-registration is disabled. Contact an administrator to create an account."
    }), 403


@auth_bp.post("/login")
def login_route():
    """
    Request body:
    - username (or email / identifier): str (required)
    - password: str (required)
    - org_id: int (optional) - only match accounts in this organization
    """
    data = request.get_json(silent=True) or {}
    identifier = data.get("username") or data.get("email") or data.get("identifier")
    password = data.get("password")
    if not identifier or not password:
        return jsonify({"error": "username/email and password required"}), 400

    client = {"ip_address": request.remote_addr, "user_agent": request.headers.get("User-Agent")}

    try:
        locked, seconds_remaining = login_throttle_service.is_account_locked(identifier)
        if locked:
            return _locked_response(seconds_remaining)

        user = auth_service.authenticate(identifier, password, org_id=data.get("org_id"))
        if user is None:
            failures = login_throttle_service.record_failed_attempt(identifier=identifier, **client)
            remaining = login_throttle_service.max_failed_attempts() - failures
            if remaining <= 0:
                return _locked_response(None)

            body = {"error": "Invalid credentials"}
            if remaining <= LOCKOUT_WARNING_THRESHOLD:
                body["warning"] = f"{remaining} attempts remaining before account lockout"
            return jsonify(body), 401

        login_throttle_service.record_successful_login(user, identifier=identifier, **client)
        session, token = session_service.create_session(user_id=user.id, **client)

    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Login failed for %s", identifier)
        return jsonify({"error": "Internal server error"}), 500

    current_app.logger.info("User %s signed in to org %s", user.username, session.org_id)
    body = _identity(user, session.org_id)
    body.update({"token": token, "session": session.to_dict(), "message": "Login successful"})
    return jsonify(body), 200


@auth_bp.get("/lockout-status/<identifier>")
def lockout_status_route(identifier: str):
    return jsonify(login_throttle_service.get_lockout_status(identifier))


@auth_bp.post("/logout")
def logout_route():
    """Revoke the bearer token sent with the request."""
    scheme, _, token = (request.headers.get("Authorization") or "").partition(" ")
    if scheme != "Bearer" or not token.strip():
        return jsonify({"error": "Authorization header required"}), 401

    if not session_service.revoke_session(token.strip(), reason="User logout"):
        return jsonify({"error": "Invalid or expired token"}), 401
    return jsonify({"message": "Logout successful"}), 200


@auth_bp.post("/validate")
@require_auth
def validate_route():
    """Used by the frontend on load to decide which navigation to show."""
    body = _identity(g.current_user, g.org_id)
    body["message"] = "Token valid"
    return jsonify(body), 200


@auth_bp.get("/me")
@require_auth
def me_route():
    return jsonify(_identity(g.current_user, g.org_id))


@auth_bp.post("/change-password")
@require_auth
def change_password_route():
    """
    Change your own password; every other session of yours is revoked.

    Request body: current_password, new_password (both required).
    """
    data = request.get_json(silent=True) or {}
    current_password = data.get("current_password")
    new_password = data.get("new_password")
    if not current_password or not new_password:
        return jsonify({"error": "current_password and new_password required"}), 400

    user = g.current_user
    if not auth_service.verify_password(current_password, user.password_hash):
        return jsonify({"error": "Invalid password"}), 401

    try:
        user.password_hash = auth_service.hash_password(new_password)
    except auth_service.PasswordValidationError as e:
        return jsonify({"error": str(e)}), 400

    revoked = session_service.revoke_all_user_sessions(
        user.id, reason="Password changed", except_session_id=g.session_context.session.id
    )
    permission_service.log_security_event(
        user_id=user.id,
        event_type="PASSWORD_CHANGED",
        success=True,
        resource=request.path,
        action="Changed own password",
        reason=f"Revoked {revoked} sessions",
        ip_address=request.remote_addr,
        user_agent=request.headers.get("User-Agent"),
        org_id=g.org_id,
    )
    return jsonify({"message": "Password changed", "sessions_revoked": revoked})
