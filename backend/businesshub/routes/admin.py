# Overview: Flask API routes for admin operations; parses input and returns JSON responses.

"""
Admin routes for user and role management.

Provides endpoints for:
- User management (list, create, update, deactivate, password reset)
- Role management (list, create, update, delete, assign, revoke)
- Permission management (catalogue, role grants, per-user overrides)
- Security event log

All endpoints require authentication and appropriate permissions. Users and
roles from another organization are reported as not found.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..extensions import db
from ..models import User, Role, Permission, UserPermissionOverride
from ..services import permission_service, user_admin_service
from ..services.auth_service import PasswordValidationError
from ..services.user_admin_service import USER_UPDATE_POLICY, ROLE_POLICY
from ..services.tenant_service import TenantAccessError
from ..decorators import require_auth, require_permission
from ..permissions import get_permission_categories
from ..validation import validate_payload, ValidationError, ConflictError, NotFoundError

admin_bp = Blueprint("admin", __name__, url_prefix="/api/admin")


def _audit(event_type: str, *, target_user_id: int | None = None, reason: str | None = None) -> None:
    permission_service.log_security_event(
        user_id=g.current_user.id,
        event_type=event_type,
        success=True,
        resource=request.path,
        action=request.method,
        reason=reason,
        ip_address=request.remote_addr,
        user_agent=request.headers.get("User-Agent"),
        org_id=g.org_id,
        target_user_id=target_user_id,
    )


# =============================================================================
# USER MANAGEMENT
# =============================================================================

@admin_bp.get("/users")
@require_auth
@require_permission("VIEW_USERS")
def list_users():
    """
    List users of the caller's organization with their roles.

    Query params:
    - include_inactive: bool (default false) - include deactivated users
    """
    include_inactive = request.args.get("include_inactive", "false").lower() == "true"
    users = user_admin_service.list_users(org_id=g.org_id, include_inactive=include_inactive)
    return jsonify({"users": users, "count": len(users)})


@admin_bp.get("/users/<int:user_id>")
@require_auth
@require_permission("VIEW_USERS")
def get_user(user_id: int):
    """User with roles, effective permissions and overrides."""
    try:
        user = user_admin_service.get_user_detail(user_id=user_id, org_id=g.org_id)
    except TenantAccessError:
        return jsonify({"error": "User not found"}), 404
    return jsonify({"user": user})


@admin_bp.post("/users")
@require_auth
@require_permission("CREATE_USER")
def create_user():
    """
    Create a new user.

    Request body:
    - username, email, password: str (required)
    - name, color: str (optional)
    - role: str (optional) - role to assign
    """
    data = request.get_json(silent=True) or {}

    try:
        user, warning = user_admin_service.create_user_account(
            username=data.get("username"),
            email=data.get("email"),
            password=data.get("password"),
            org_id=g.org_id,
            name=data.get("name"),
            color=data.get("color"),
            role_name=data.get("role"),
        )
    except (PasswordValidationError, ValidationError) as e:
        return jsonify({"error": str(e)}), 400
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to create user")
        return jsonify({"error": "Internal server error"}), 500

    _audit("USER_CREATED", target_user_id=user.id, reason=f"Created user {user.username}")

    body = {"user": user.to_dict(), "message": "User created successfully"}
    if warning:
        body["warning"] = warning
    return jsonify(body), 201


@admin_bp.put("/users/<int:user_id>")
@require_auth
@require_permission("EDIT_USER")
def update_user(user_id: int):
    """Request body: email, name, color (all optional)."""
    data = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=User, payload=data, policy=USER_UPDATE_POLICY, partial=True)
        user = user_admin_service.update_user(user_id=user_id, patch=patch, org_id=g.org_id)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except TenantAccessError:
        return jsonify({"error": "User not found"}), 404

    _audit("USER_UPDATED", target_user_id=user_id)
    return jsonify({"user": user, "message": "User updated successfully"})


@admin_bp.post("/users/<int:user_id>/deactivate")
@require_auth
@require_permission("DEACTIVATE_USER")
def deactivate_user(user_id: int):
    """Deactivate a user and revoke every session they hold."""
    try:
        user, revoked = user_admin_service.deactivate_user(
            user_id=user_id,
            acting_user_id=g.current_user.id,
            org_id=g.org_id,
        )
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except TenantAccessError:
        return jsonify({"error": "User not found"}), 404

    _audit("USER_DEACTIVATED", target_user_id=user.id, reason=f"{revoked} sessions revoked")
    return jsonify({
        "message": f"User {user.username} deactivated",
        "sessions_revoked": revoked,
        "user": user.to_dict(),
    })


@admin_bp.post("/users/<int:user_id>/reactivate")
@require_auth
@require_permission("DEACTIVATE_USER")
def reactivate_user(user_id: int):
    try:
        user = user_admin_service.reactivate_user(user_id=user_id, org_id=g.org_id)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except TenantAccessError:
        return jsonify({"error": "User not found"}), 404

    _audit("USER_REACTIVATED", target_user_id=user.id)
    return jsonify({"message": f"User {user.username} reactivated", "user": user.to_dict()})


@admin_bp.post("/users/<int:user_id>/reset-password")
@require_auth
@require_permission("EDIT_USER")
def reset_password(user_id: int):
    """
    Reset a user's password. Every session of that user is revoked.

    Request body:
    - new_password: str (required)
    """
    data = request.get_json(silent=True) or {}

    try:
        user, revoked = user_admin_service.reset_password(
            user_id=user_id,
            new_password=data.get("new_password"),
            org_id=g.org_id,
        )
    except (PasswordValidationError, ValidationError) as e:
        return jsonify({"error": str(e)}), 400
    except TenantAccessError:
        return jsonify({"error": "User not found"}), 404

    _audit("PASSWORD_RESET", target_user_id=user.id, reason=f"{revoked} sessions revoked")
    return jsonify({
        "message": f"Password reset for {user.username}",
        "sessions_revoked": revoked,
    })


# =============================================================================
# ROLE MANAGEMENT
# =============================================================================

@admin_bp.get("/roles")
@require_auth
@require_permission("VIEW_USERS")
def list_roles():
    """List roles of the caller's organization with permission and user counts."""
    return jsonify({"roles": user_admin_service.list_roles(org_id=g.org_id)})


@admin_bp.get("/roles/<role_name>")
@require_auth
@require_permission("VIEW_USERS")
def get_role(role_name: str):
    try:
        role = user_admin_service.get_role_detail(role_name=role_name, org_id=g.org_id)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify({"role": role})


@admin_bp.post("/roles")
@require_auth
@require_permission("MANAGE_PERMISSIONS")
def create_role():
    """Request body: name (required), description, color."""
    data = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Role, payload=data, policy=ROLE_POLICY, partial=False)
        role = user_admin_service.create_role(patch=patch, org_id=g.org_id)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409

    _audit("ROLE_CREATED", reason=f"Created role {role['name']}")
    return jsonify({"role": role, "message": "Role created successfully"}), 201


@admin_bp.put("/roles/<role_name>")
@require_auth
@require_permission("MANAGE_PERMISSIONS")
def update_role(role_name: str):
    data = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Role, payload=data, policy=ROLE_POLICY, partial=True)
        role = user_admin_service.update_role(role_name=role_name, patch=patch, org_id=g.org_id)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404

    return jsonify({"role": role, "message": "Role updated successfully"})


@admin_bp.delete("/roles/<role_name>")
@require_auth
@require_permission("MANAGE_PERMISSIONS")
def delete_role(role_name: str):
    try:
        user_admin_service.delete_role(role_name=role_name, org_id=g.org_id)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404

    _audit("ROLE_DELETED", reason=f"Deleted role {role_name}")
    return jsonify({"message": f"Role {role_name} deleted"})


@admin_bp.post("/users/<int:user_id>/roles")
@require_auth
@require_permission("ASSIGN_ROLES")
def assign_role(user_id: int):
    """Request body: role_name (required)."""
    data = request.get_json(silent=True) or {}
    role_name = data.get("role_name")
    if not role_name:
        return jsonify({"error": "role_name required"}), 400

    try:
        user_admin_service.assign_role_to_user(user_id=user_id, role_name=role_name, org_id=g.org_id)
    except TenantAccessError:
        return jsonify({"error": "User not found"}), 404
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404

    _audit("ROLE_ASSIGNED", target_user_id=user_id, reason=f"Assigned role {role_name}")
    return jsonify({
        "message": f"Role {role_name} assigned",
        "roles": permission_service.get_user_role_names(user_id),
    })


@admin_bp.delete("/users/<int:user_id>/roles/<role_name>")
@require_auth
@require_permission("ASSIGN_ROLES")
def remove_role(user_id: int, role_name: str):
    try:
        user = user_admin_service.remove_role_from_user(user_id=user_id, role_name=role_name, org_id=g.org_id)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except TenantAccessError:
        return jsonify({"error": "User not found"}), 404
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404

    _audit("ROLE_REVOKED", target_user_id=user_id, reason=f"Removed role {role_name}")
    return jsonify({"message": f"Role {role_name} removed from {user.username}"})


# =============================================================================
# PERMISSION MANAGEMENT
# =============================================================================

@admin_bp.get("/permissions")
@require_auth
@require_permission("VIEW_USERS")
def list_permissions():
    """
    List the permission catalogue.

    Query params:
    - category: str (optional)
    """
    category = request.args.get("category")
    query = db.session.query(Permission)
    if category:
        query = query.filter_by(category=category)
    permissions = query.order_by(Permission.category, Permission.code).all()
    return jsonify({"permissions": [p.to_dict() for p in permissions]})


@admin_bp.get("/permissions/categories")
@require_auth
@require_permission("VIEW_USERS")
def list_permission_categories():
    return jsonify({"categories": get_permission_categories()})


@admin_bp.post("/roles/<role_name>/permissions")
@require_auth
@require_permission("MANAGE_PERMISSIONS")
def grant_role_permission(role_name: str):
    """Request body: permission_code (required)."""
    data = request.get_json(silent=True) or {}
    permission_code = data.get("permission_code")
    if not permission_code:
        return jsonify({"error": "permission_code required"}), 400

    try:
        permission_service.grant_permission_to_role(g.org_id, role_name, permission_code)
    except ValueError as e:
        return jsonify({"error": str(e)}), 400

    _audit("PERMISSION_GRANTED", reason=f"{permission_code} granted to role {role_name}")
    return jsonify({"message": f"Permission {permission_code} granted to role {role_name}"}), 201


@admin_bp.delete("/roles/<role_name>/permissions/<permission_code>")
@require_auth
@require_permission("MANAGE_PERMISSIONS")
def revoke_role_permission(role_name: str, permission_code: str):
    try:
        revoked = permission_service.revoke_permission_from_role(g.org_id, role_name, permission_code)
    except ValueError as e:
        return jsonify({"error": str(e)}), 400

    if not revoked:
        return jsonify({"error": "Permission was not granted to this role"}), 400

    _audit("PERMISSION_REVOKED", reason=f"{permission_code} revoked from role {role_name}")
    return jsonify({"message": f"Permission {permission_code} revoked from role {role_name}"})


# =============================================================================
# PER-USER PERMISSION OVERRIDES
# =============================================================================

@admin_bp.get("/users/<int:user_id>/permission-overrides")
@require_auth
@require_permission("MANAGE_PERMISSIONS")
def list_permission_overrides(user_id: int):
    try:
        user = user_admin_service.get_user(user_id, g.org_id)
    except TenantAccessError:
        return jsonify({"error": "User not found"}), 404

    overrides = db.session.query(UserPermissionOverride).filter_by(user_id=user.id).all()
    return jsonify({"overrides": [o.to_dict() for o in overrides]})


@admin_bp.post("/users/<int:user_id>/permission-overrides")
@require_auth
@require_permission("MANAGE_PERMISSIONS")
def create_permission_override(user_id: int):
    """
    Grant or deny one permission to one user, on top of their roles.

    Request body:
    - permission_code: str (required)
    - override_type: "GRANT" | "DENY" (required)
    - reason: str (optional)
    """
    try:
        user = user_admin_service.get_user(user_id, g.org_id)
    except TenantAccessError:
        return jsonify({"error": "User not found"}), 404

    data = request.get_json(silent=True) or {}
    permission_code = data.get("permission_code")
    override_type = (data.get("override_type") or "").upper()
    if not permission_code or not override_type:
        return jsonify({"error": "permission_code and override_type are required"}), 400

    try:
        override = permission_service.grant_permission_override(
            user_id=user.id,
            permission_code=permission_code,
            granted_by_user_id=g.current_user.id,
            override_type=override_type,
            reason=data.get("reason"),
        )
    except ValueError as e:
        return jsonify({"error": str(e)}), 400

    _audit("PERMISSION_OVERRIDE_SET", target_user_id=user.id, reason=f"{override_type} {permission_code}")
    return jsonify({"override": override.to_dict()}), 201


@admin_bp.delete("/users/<int:user_id>/permission-overrides/<permission_code>")
@require_auth
@require_permission("MANAGE_PERMISSIONS")
def revoke_permission_override(user_id: int, permission_code: str):
    try:
        user = user_admin_service.get_user(user_id, g.org_id)
    except TenantAccessError:
        return jsonify({"error": "User not found"}), 404

    override = permission_service.revoke_permission_override(
        user_id=user.id,
        permission_code=permission_code,
        revoked_by_user_id=g.current_user.id,
    )
    if not override:
        return jsonify({"error": "Override not found"}), 404

    _audit("PERMISSION_OVERRIDE_REVOKED", target_user_id=user.id, reason=permission_code)
    return jsonify({"override": override.to_dict()})


# =============================================================================
# SECURITY EVENTS
# =============================================================================

@admin_bp.get("/security-events")
@require_auth
@require_permission("VIEW_AUDIT_LOG")
def list_security_events():
    """
    Newest-first audit trail of the caller's organization.

    Query params:
    - event_type: str (optional)
    - user_id: int (optional)
    - limit: int (default 100, max 500)
    """
    events = permission_service.list_security_events(
        org_id=g.org_id,
        event_type=request.args.get("event_type"),
        user_id=request.args.get("user_id", type=int),
        limit=request.args.get("limit", default=100, type=int),
    )
    return jsonify({"events": events, "count": len(events)})
