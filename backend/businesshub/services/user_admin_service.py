# Overview: Service-layer operations for user and role administration; encapsulates business logic and database work.

"""
User Administration

Everything here is scoped to one organization: users and roles from another
organization are reported as not found. Security events for these actions
are written by the admin routes, which know the request context.
"""

from __future__ import annotations

import logging

from sqlalchemy import func

from ..extensions import db
from ..models import User, Role, UserRole, Permission, RolePermission, UserPermissionOverride
from ..validation import ModelValidationPolicy, ValidationError, ConflictError, NotFoundError
from . import auth_service, session_service, permission_service
from .tenant_service import require_entity_in_org, resolve_org_id

logger = logging.getLogger(__name__)


USER_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields={"email", "name", "color"},
)

ROLE_POLICY = ModelValidationPolicy(
    writable_fields={"name", "description", "color"},
    required_on_create={"name"},
)

# Roles every organization relies on; they can be edited but not deleted.
UNDELETABLE_ROLES = {"admin"}


def get_user(user_id: int, org_id: int) -> User:
    return require_entity_in_org(User, user_id, org_id, "User")


def get_role(role_name: str, org_id: int) -> Role:
    role = db.session.query(Role).filter_by(org_id=org_id, name=role_name).first()
    if not role:
        raise NotFoundError("Role not found")
    return role


def _user_with_roles(user: User) -> dict:
    row = user.to_dict()
    row["roles"] = permission_service.get_user_role_names(user.id)
    return row


def list_users(*, org_id: int | None = None, include_inactive: bool = False) -> list[dict]:
    org_id = resolve_org_id(org_id)
    query = db.session.query(User).filter(User.org_id == org_id)
    if not include_inactive:
        query = query.filter(User.is_active.is_(True))
    return [_user_with_roles(u) for u in query.order_by(User.username).all()]


def get_user_detail(*, user_id: int, org_id: int | None = None) -> dict:
    """User with roles, effective permissions and active overrides."""
    org_id = resolve_org_id(org_id)
    user = get_user(user_id, org_id)

    row = _user_with_roles(user)
    row["permissions"] = sorted(permission_service.get_user_permissions(user.id))
    overrides = db.session.query(UserPermissionOverride).filter_by(user_id=user.id).all()
    row["permission_overrides"] = [o.to_dict() for o in overrides]
    return row


def create_user_account(
    *,
    username: str,
    email: str,
    password: str,
    org_id: int | None = None,
    name: str | None = None,
    color: str | None = None,
    role_name: str | None = None,
) -> tuple[User, str | None]:
    """
    Create a user and optionally give it a role.

    Returns (user, warning); the warning is set when the user was created but
    the role could not be assigned.

    Raises:
        PasswordValidationError: weak password
        ConflictError: username or email taken in the organization
    """
    org_id = resolve_org_id(org_id)
    if not all([username, email, password]):
        raise ValidationError("username, email, and password required")

    try:
        user = auth_service.create_user(username, email, password, org_id, name=name, color=color)
    except ValueError as e:
        raise ConflictError(str(e))

    warning = None
    if role_name:
        try:
            auth_service.assign_role(user.id, role_name)
        except ValueError as e:
            warning = f"User created but role assignment failed: {e}"

    logger.info("Created user %s in org %s", user.username, org_id)
    return user, warning


def update_user(*, user_id: int, patch: dict, org_id: int | None = None) -> dict:
    org_id = resolve_org_id(org_id)
    user = get_user(user_id, org_id)

    if patch.get("email"):
        taken = db.session.query(User.id).filter(
            User.org_id == org_id,
            User.email == patch["email"],
            User.id != user.id,
        ).first()
        if taken:
            raise ConflictError("Email already in use")
    if "email" in patch and not patch["email"]:
        raise ValidationError("email cannot be empty")
    if "color" in patch and not patch["color"]:
        raise ValidationError("color cannot be empty")

    for k, v in patch.items():
        setattr(user, k, v)

    db.session.commit()
    return _user_with_roles(user)


def deactivate_user(*, user_id: int, acting_user_id: int, org_id: int | None = None) -> tuple[User, int]:
    """Deactivate and log the user out everywhere. Returns (user, sessions_revoked)."""
    org_id = resolve_org_id(org_id)
    user = get_user(user_id, org_id)

    if not user.is_active:
        raise ValidationError("User is already deactivated")
    if user.id == acting_user_id:
        raise ValidationError("Cannot deactivate your own account")

    user.is_active = False
    revoked = session_service.revoke_all_user_sessions(user.id, reason="Account deactivated by admin")
    db.session.commit()
    return user, revoked


def reactivate_user(*, user_id: int, org_id: int | None = None) -> User:
    org_id = resolve_org_id(org_id)
    user = get_user(user_id, org_id)
    if user.is_active:
        raise ValidationError("User is already active")

    user.is_active = True
    db.session.commit()
    return user


def reset_password(*, user_id: int, new_password: str, org_id: int | None = None) -> tuple[User, int]:
    """Set a new password (strength-checked) and revoke every session."""
    org_id = resolve_org_id(org_id)
    user = get_user(user_id, org_id)
    if not new_password:
        raise ValidationError("new_password required")

    user.password_hash = auth_service.hash_password(new_password)
    revoked = session_service.revoke_all_user_sessions(user.id, reason="Password reset by admin")
    db.session.commit()
    return user, revoked


# -- roles --

def _role_with_counts(role: Role) -> dict:
    row = role.to_dict()
    row["permission_count"] = db.session.query(func.count(RolePermission.id)).filter_by(role_id=role.id).scalar()
    row["user_count"] = db.session.query(func.count(UserRole.id)).filter_by(role_id=role.id).scalar()
    return row


def list_roles(*, org_id: int | None = None) -> list[dict]:
    org_id = resolve_org_id(org_id)
    roles = db.session.query(Role).filter(Role.org_id == org_id).order_by(Role.name).all()
    return [_role_with_counts(r) for r in roles]


def get_role_detail(*, role_name: str, org_id: int | None = None) -> dict:
    org_id = resolve_org_id(org_id)
    role = get_role(role_name, org_id)

    permissions = (
        db.session.query(Permission)
        .join(RolePermission, RolePermission.permission_id == Permission.id)
        .filter(RolePermission.role_id == role.id)
        .order_by(Permission.category, Permission.code)
        .all()
    )
    row = _role_with_counts(role)
    row["permissions"] = [p.to_dict() for p in permissions]
    return row


def create_role(*, patch: dict, org_id: int | None = None) -> dict:
    org_id = resolve_org_id(org_id)
    if db.session.query(Role.id).filter_by(org_id=org_id, name=patch["name"]).first():
        raise ConflictError("Role already exists")

    role = Role(org_id=org_id, **patch)
    db.session.add(role)
    db.session.commit()
    return _role_with_counts(role)


def update_role(*, role_name: str, patch: dict, org_id: int | None = None) -> dict:
    org_id = resolve_org_id(org_id)
    role = get_role(role_name, org_id)

    new_name = patch.get("name")
    if "name" in patch and not new_name:
        raise ValidationError("name cannot be empty")
    if new_name and new_name != role.name:
        if role.name in UNDELETABLE_ROLES:
            raise ValidationError(f"Role {role.name} cannot be renamed")
        if db.session.query(Role.id).filter_by(org_id=org_id, name=new_name).first():
            raise ConflictError("Role already exists")

    for k, v in patch.items():
        setattr(role, k, v)

    db.session.commit()
    return _role_with_counts(role)


def delete_role(*, role_name: str, org_id: int | None = None) -> bool:
    """Roles still held by users cannot be deleted."""
    org_id = resolve_org_id(org_id)
    role = get_role(role_name, org_id)

    if role.name in UNDELETABLE_ROLES:
        raise ValidationError(f"Role {role.name} cannot be deleted")
    if db.session.query(UserRole.id).filter_by(role_id=role.id).first():
        raise ConflictError("Role is assigned to users; remove it from them first")

    db.session.query(RolePermission).filter_by(role_id=role.id).delete(synchronize_session=False)
    db.session.delete(role)
    db.session.commit()
    return True


def assign_role_to_user(*, user_id: int, role_name: str, org_id: int | None = None) -> UserRole:
    org_id = resolve_org_id(org_id)
    user = get_user(user_id, org_id)
    get_role(role_name, org_id)
    return auth_service.assign_role(user.id, role_name)


def remove_role_from_user(*, user_id: int, role_name: str, org_id: int | None = None) -> User:
    org_id = resolve_org_id(org_id)
    user = get_user(user_id, org_id)
    role = get_role(role_name, org_id)

    user_role = db.session.query(UserRole).filter_by(user_id=user.id, role_id=role.id).first()
    if not user_role:
        raise ValidationError("User does not have this role")

    db.session.delete(user_role)
    db.session.commit()
    return user
