# Overview: Effective-permission resolution, per-user overrides and the security event log.

"""
Permissions in BusinessHub are the union of a user's role grants, adjusted
by per-user GRANT/DENY overrides. Roles live inside one organization, while
permission codes are a global catalog seeded from PERMISSION_DEFINITIONS.

Every denial is written to security_events under the caller's org_id, so
each tenant's admins only ever see their own audit trail.
"""

from ..extensions import db
from ..models import UserRole, Role, RolePermission, Permission, SecurityEvent, UserPermissionOverride
from ..permissions import PERMISSION_DEFINITIONS, DEFAULT_ROLE_PERMISSIONS
from businesshub.time_utils import utcnow


# Codes an override can never add or remove; only the admin role carries them.
PROTECTED_PERMISSIONS = {
    "SYSTEM_ADMIN",
    "MANAGE_PERMISSIONS",
}

OVERRIDE_TYPES = ("GRANT", "DENY")


class PermissionDeniedError(Exception):
    """The caller does not hold the permission a route requires."""


def log_security_event(
    user_id: int | None,
    event_type: str,
    success: bool,
    resource: str | None = None,
    action: str | None = None,
    reason: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
    org_id: int | None = None,
    target_user_id: int | None = None,
) -> SecurityEvent:
    """
    Append one row to the audit trail and commit it.

    Used for logins and logouts, denials, admin changes to users and roles,
    and bulk data imports/exports.
    """
    event = SecurityEvent(
        org_id=org_id,
        user_id=user_id,
        target_user_id=target_user_id,
        event_type=event_type,
        success=success,
        resource=resource,
        action=action,
        reason=reason,
        ip_address=ip_address,
        user_agent=user_agent,
        occurred_at=utcnow(),
    )
    db.session.add(event)
    db.session.commit()
    return event


def list_security_events(
    *,
    org_id: int,
    event_type: str | None = None,
    user_id: int | None = None,
    limit: int = 100,
) -> list[dict]:
    """Newest-first audit trail for one organization."""
    query = db.session.query(SecurityEvent).filter(SecurityEvent.org_id == org_id)
    if event_type:
        query = query.filter(SecurityEvent.event_type == event_type)
    if user_id:
        query = query.filter(SecurityEvent.user_id == user_id)

    limit = max(1, min(limit, 500))
    events = query.order_by(SecurityEvent.occurred_at.desc(), SecurityEvent.id.desc()).limit(limit)
    return [e.to_dict() for e in events]


def _role_permission_codes(user_id: int) -> set[str]:
    rows = (
        db.session.query(Permission.code)
        .join(RolePermission, RolePermission.permission_id == Permission.id)
        .join(UserRole, UserRole.role_id == RolePermission.role_id)
        .filter(UserRole.user_id == user_id)
    )
    return {code for (code,) in rows}


def get_user_permissions(user_id: int) -> set[str]:
    """
    Effective permission codes for a user.

    Role grants first, then active overrides: GRANT adds a code, DENY
    removes it. Overrides on PROTECTED_PERMISSIONS are ignored.
    """
    codes = _role_permission_codes(user_id)

    active_overrides = db.session.query(UserPermissionOverride).filter_by(user_id=user_id, is_active=True)
    for override in active_overrides:
        code = override.permission_code
        if code in PROTECTED_PERMISSIONS:
            continue
        if override.override_type == "GRANT":
            codes.add(code)
        else:
            codes.discard(code)

    return codes


def require_permission(
    user_id: int,
    permission_code: str,
    resource: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
    org_id: int | None = None,
) -> None:
    """Raise PermissionDeniedError (after logging PERMISSION_DENIED) unless the user holds the code."""
    if permission_code in get_user_permissions(user_id):
        return

    log_security_event(
        user_id=user_id,
        event_type="PERMISSION_DENIED",
        success=False,
        resource=resource,
        action=permission_code,
        reason=f"Missing permission: {permission_code}",
        ip_address=ip_address,
        user_agent=user_agent,
        org_id=org_id,
    )
    raise PermissionDeniedError(f"Permission denied: {permission_code}")


def get_user_role_names(user_id: int) -> list[str]:
    rows = (
        db.session.query(Role.name)
        .join(UserRole, UserRole.role_id == Role.id)
        .filter(UserRole.user_id == user_id)
        .order_by(Role.name)
    )
    return [name for (name,) in rows]


# =============================================================================
# PER-USER OVERRIDES
# =============================================================================

def grant_permission_override(
    *,
    user_id: int,
    permission_code: str,
    granted_by_user_id: int,
    override_type: str,
    reason: str | None = None,
) -> UserPermissionOverride:
    """
    Set a GRANT or DENY override for one user and one code.

    A user has at most one override row per code; setting it again
    replaces the type and reactivates a revoked row.
    """
    if permission_code in PROTECTED_PERMISSIONS:
        raise ValueError("Permission overrides cannot modify admin permissions")
    if override_type not in OVERRIDE_TYPES:
        raise ValueError("override_type must be GRANT or DENY")
    _get_permission(permission_code)

    override = db.session.query(UserPermissionOverride).filter_by(
        user_id=user_id, permission_code=permission_code
    ).first()
    if override is None:
        override = UserPermissionOverride(user_id=user_id, permission_code=permission_code)
        db.session.add(override)

    override.override_type = override_type
    override.reason = reason
    override.granted_by_user_id = granted_by_user_id
    override.granted_at = utcnow()
    override.is_active = True
    override.revoked_by_user_id = None
    override.revoked_at = None

    db.session.commit()
    return override


def revoke_permission_override(
    *,
    user_id: int,
    permission_code: str,
    revoked_by_user_id: int,
) -> UserPermissionOverride | None:
    """Deactivate the user's active override for a code; None when there is none."""
    override = db.session.query(UserPermissionOverride).filter_by(
        user_id=user_id, permission_code=permission_code, is_active=True
    ).first()
    if override is None:
        return None

    override.is_active = False
    override.revoked_by_user_id = revoked_by_user_id
    override.revoked_at = utcnow()
    db.session.commit()
    return override


# =============================================================================
# CATALOG AND ROLE GRANTS
# =============================================================================

def initialize_permissions() -> int:
    """Insert any catalog codes missing from the permissions table. Returns the number added."""
    known = {code for (code,) in db.session.query(Permission.code)}
    missing = [row for row in PERMISSION_DEFINITIONS if row[0] not in known]

    for code, name, description, category in missing:
        db.session.add(Permission(code=code, name=name, description=description, category=category))

    db.session.commit()
    return len(missing)


def assign_default_role_permissions(org_id: int | None = None) -> int:
    """
    Give each built-in role (admin, manager, user) its default codes.

    Limited to one organization when org_id is given. Existing links are
    left alone, so running it twice adds nothing.
    """
    permission_ids = {p.code: p.id for p in db.session.query(Permission)}
    roles = db.session.query(Role).filter(Role.name.in_(list(DEFAULT_ROLE_PERMISSIONS)))
    if org_id is not None:
        roles = roles.filter(Role.org_id == org_id)

    added = 0
    for role in roles.all():
        linked = {pid for (pid,) in db.session.query(RolePermission.permission_id).filter_by(role_id=role.id)}
        wanted = {permission_ids[c] for c in DEFAULT_ROLE_PERMISSIONS[role.name] if c in permission_ids}
        for permission_id in sorted(wanted - linked):
            db.session.add(RolePermission(role_id=role.id, permission_id=permission_id))
            added += 1

    db.session.commit()
    return added


def _get_role(org_id: int, role_name: str) -> Role:
    role = db.session.query(Role).filter_by(org_id=org_id, name=role_name).first()
    if not role:
        raise ValueError(f"Role '{role_name}' not found")
    return role


def _get_permission(permission_code: str) -> Permission:
    permission = db.session.query(Permission).filter_by(code=permission_code).first()
    if not permission:
        raise ValueError(f"Permission '{permission_code}' not found")
    return permission


def _role_grant(org_id: int, role_name: str, permission_code: str):
    role = _get_role(org_id, role_name)
    permission = _get_permission(permission_code)
    link = db.session.query(RolePermission).filter_by(role_id=role.id, permission_id=permission.id).first()
    return role, permission, link


def grant_permission_to_role(org_id: int, role_name: str, permission_code: str) -> RolePermission:
    """Link a code to an organization's role. Granting twice returns the existing link."""
    role, permission, link = _role_grant(org_id, role_name, permission_code)
    if link is None:
        link = RolePermission(role_id=role.id, permission_id=permission.id)
        db.session.add(link)
        db.session.commit()
    return link


def revoke_permission_from_role(org_id: int, role_name: str, permission_code: str) -> bool:
    """Unlink a code from a role. False when the role never had it."""
    _, _, link = _role_grant(org_id, role_name, permission_code)
    if link is None:
        return False

    db.session.delete(link)
    db.session.commit()
    return True
