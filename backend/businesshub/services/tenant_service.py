"""
Multi-Tenant Service: Tenant Validation and Scoping Helpers

Every request is scoped to an organization, and ids arriving from client
input must be checked against it before use.

SECURITY INVARIANTS:
1. Every authenticated request has g.org_id set
2. Entity ids from client input are validated against g.org_id
3. Cross-tenant access attempts are logged as security events
4. A row in another organization is reported exactly like a missing row

USAGE:
    from businesshub.services.tenant_service import require_entity_in_org

    business = require_entity_in_org(Business, business_id, g.org_id, "Business")
"""

from flask import g, has_request_context, request
from ..extensions import db
from ..models import Organization
from .auth_service import create_default_roles
from .permission_service import log_security_event, assign_default_role_permissions


class TenantAccessError(Exception):
    """Raised when cross-tenant access is attempted."""
    pass


def get_current_org_id() -> int:
    """
    Get current tenant's org_id from Flask g context.

    Raises TenantAccessError if org_id not set.
    """
    org_id = getattr(g, 'org_id', None)
    if org_id is None:
        raise TenantAccessError("Tenant context not established")
    return org_id


def resolve_org_id(org_id: int | None = None) -> int:
    """Explicit org_id wins; otherwise fall back to g.org_id."""
    if org_id is not None:
        return org_id
    return get_current_org_id()


def require_entity_in_org(model, entity_id, org_id: int, label: str):
    """
    Load a tenant-owned row by id, or raise TenantAccessError.

    Unknown ids and ids owned by another organization raise the same
    "<label> not found" message; only the latter is logged as a security event.
    """
    try:
        entity_id = int(entity_id)
    except (TypeError, ValueError):
        raise TenantAccessError(f"{label} not found")

    entity = db.session.get(model, entity_id)

    if not entity:
        raise TenantAccessError(f"{label} not found")

    if entity.org_id != org_id:
        _log_cross_tenant_attempt(
            f"{label} {entity_id} belongs to org {entity.org_id}, not {org_id}",
            org_id=org_id,
        )
        raise TenantAccessError(f"{label} not found")

    return entity


def validate_org_active(org_id: int) -> Organization:
    """
    Validate that an organization exists and is active.

    Raises TenantAccessError if org doesn't exist or is inactive.
    """
    org = db.session.get(Organization, org_id)

    if not org:
        raise TenantAccessError("Organization not found")

    if not org.is_active:
        raise TenantAccessError("Organization is not active")

    return org


def scoped_query(model, org_id: int | None = None):
    """
    Base query for a tenant-owned model (one with an org_id column).

    Usage:
        businesses = scoped_query(Business).filter_by(status="Active").all()
    """
    if org_id is None:
        org_id = get_current_org_id()

    return db.session.query(model).filter(model.org_id == org_id)


def _log_cross_tenant_attempt(reason: str, org_id: int | None = None) -> None:
    """Persist a CROSS_TENANT_ACCESS_DENIED security event."""
    user = getattr(g, 'current_user', None)
    user_id = user.id if user is not None and hasattr(user, 'id') else None

    in_request = has_request_context()
    log_security_event(
        user_id=user_id,
        event_type="CROSS_TENANT_ACCESS_DENIED",
        success=False,
        resource=request.path if in_request else None,
        action=request.method if in_request else None,
        reason=reason,
        ip_address=request.remote_addr if in_request else None,
        user_agent=request.headers.get("User-Agent") if in_request else None,
        org_id=org_id,
    )


def create_organization(name: str, code: str) -> Organization:
    """
    Add a tenant and give it the built-in roles with their default permissions.

    Raises ValueError when the code is already taken.
    """
    if db.session.query(Organization.id).filter_by(code=code).first():
        raise ValueError(f"Organization with code '{code}' already exists")

    org = Organization(name=name, code=code, is_active=True)
    db.session.add(org)
    db.session.commit()

    create_default_roles(org.id)
    assign_default_role_permissions(org.id)
    return org
