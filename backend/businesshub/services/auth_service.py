# Overview: Password hashing, credential checks and user/role bootstrap for BusinessHub.

"""
Staff accounts belong to exactly one organization. Usernames and emails are
unique inside that organization only, so two companies may both have a
"support" login.

Passwords are stored as bcrypt hashes (cost 12) and must pass the strength
rules in validate_password_strength before they are hashed. Session tokens
are handled by session_service.
"""

import re

import bcrypt

from ..extensions import db
from ..models import User, Role, UserRole, Organization
from ..models.auth import DEFAULT_USER_COLOR
from ..permissions import DEFAULT_ROLES
from businesshub.time_utils import utcnow


BCRYPT_ROUNDS = 12
MIN_PASSWORD_LENGTH = 8

# (pattern, what the password is missing)
PASSWORD_RULES = (
    (r"[A-Z]", "uppercase letter"),
    (r"[a-z]", "lowercase letter"),
    (r"\d", "digit"),
    (r"[!@#$%^&*(),.'\":{}|<>]", "special character"),
)


class PasswordValidationError(Exception):
    """The password is too weak to be stored."""


def validate_password_strength(password: str) -> None:
    """
    Raise PasswordValidationError unless the password has at least
    MIN_PASSWORD_LENGTH characters and one of each PASSWORD_RULES class.
    """
    if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
        raise PasswordValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")

    for pattern, label in PASSWORD_RULES:
        if not re.search(pattern, password):
            raise PasswordValidationError(f"Password must contain at least one {label}")


def hash_password(password: str) -> str:
    validate_password_strength(password)
    hashed = bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=BCRYPT_ROUNDS))
    return hashed.decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Compare against a stored hash; a malformed hash counts as a mismatch."""
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


def _active_org(org_id: int) -> Organization:
    org = db.session.get(Organization, org_id)
    if org is None:
        raise ValueError("Organization not found")
    if not org.is_active:
        raise ValueError("Organization is not active")
    return org


def create_user(
    username: str,
    email: str,
    password: str,
    org_id: int,
    name: str | None = None,
    color: str | None = None,
) -> User:
    """
    Add a staff account to an active organization.

    ValueError for an unknown/inactive org or a username/email already used
    in that org; PasswordValidationError for a weak password.
    """
    _active_org(org_id)

    clash = db.session.query(User.id).filter(
        User.org_id == org_id,
        db.or_(User.username == username, User.email == email),
    ).first()
    if clash:
        raise ValueError("Username or email already exists in this organization")

    user = User(
        org_id=org_id,
        username=username,
        email=email,
        name=name,
        color=color or DEFAULT_USER_COLOR,
        password_hash=hash_password(password),
    )
    db.session.add(user)
    db.session.commit()
    return user


def authenticate(username: str, password: str, org_id: int | None = None) -> User | None:
    """
    Check a login (username or email) and password.

    Returns the user and stamps last_login_at when the account and its
    organization are both active and the password matches; None otherwise.
    """
    candidates = db.session.query(User).filter(
        db.or_(User.username == username, User.email == username),
        User.is_active.is_(True),
    )
    if org_id is not None:
        candidates = candidates.filter(User.org_id == org_id)

    user = candidates.first()
    if user is None:
        return None

    org = db.session.get(Organization, user.org_id)
    if org is None or not org.is_active:
        return None
    if not verify_password(password, user.password_hash):
        return None

    user.last_login_at = utcnow()
    db.session.commit()
    return user


def assign_role(user_id: int, role_name: str) -> UserRole:
    """Give a user one of their own organization's roles. Assigning twice is a no-op."""
    user = db.session.get(User, user_id)
    if user is None:
        raise ValueError("User not found")

    role = db.session.query(Role).filter_by(org_id=user.org_id, name=role_name).first()
    if role is None:
        raise ValueError(f"Role {role_name} not found")

    link = db.session.query(UserRole).filter_by(user_id=user.id, role_id=role.id).first()
    if link is None:
        link = UserRole(user_id=user.id, role_id=role.id)
        db.session.add(link)
        db.session.commit()
    return link


def create_default_roles(org_id: int) -> int:
    """Add the built-in admin/manager/user roles an organization is missing."""
    existing = {name for (name,) in db.session.query(Role.name).filter_by(org_id=org_id)}
    missing = [row for row in DEFAULT_ROLES if row[0] not in existing]

    for name, description, color in missing:
        db.session.add(Role(org_id=org_id, name=name, description=description, color=color))

    db.session.commit()
    return len(missing)
