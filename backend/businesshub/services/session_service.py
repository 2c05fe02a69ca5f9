# Overview: Bearer-token sessions bound to one user and one organization.

"""
The client holds an opaque random token; only its SHA-256 digest is stored
in session_tokens. A session remembers the user's org_id when it is opened,
and every authenticated request is scoped to that organization.

A session stops working when any of these happens:
- it passes expires_at (SESSION_ABSOLUTE_HOURS after login)
- it sits unused for longer than SESSION_IDLE_HOURS
- it is revoked (logout, password reset, deactivation)
- its user or organization is deactivated
"""

import hashlib
import secrets
from dataclasses import dataclass
from datetime import timedelta

from flask import current_app, has_app_context

from ..extensions import db
from ..models import SessionToken, User, Organization
from businesshub.time_utils import utcnow


DEFAULT_ABSOLUTE_HOURS = 24
DEFAULT_IDLE_HOURS = 2
TOKEN_BYTES = 32


@dataclass
class SessionContext:
    """What require_auth binds to the request once a token checks out."""
    user: User
    session: SessionToken
    org_id: int


def _hours_setting(key: str, default: int) -> timedelta:
    hours = current_app.config.get(key, default) if has_app_context() else default
    return timedelta(hours=hours)


def generate_token() -> str:
    return secrets.token_hex(TOKEN_BYTES)


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def _live_session(token: str) -> SessionToken | None:
    return db.session.query(SessionToken).filter_by(token_hash=hash_token(token), is_revoked=False).first()


def _mark_revoked(sessions, reason: str) -> int:
    now = utcnow()
    count = 0
    for session in sessions:
        session.is_revoked = True
        session.revoked_at = now
        session.revoked_reason = reason
        count += 1
    db.session.commit()
    return count


def create_session(
    user_id: int,
    user_agent: str | None = None,
    ip_address: str | None = None
) -> tuple[SessionToken, str]:
    """
    Open a session for a user whose organization is active.

    Returns (session row, plaintext token). The plaintext is not stored
    anywhere, so this is the only chance to hand it to the client.
    """
    user = db.session.get(User, user_id)
    if user is None:
        raise ValueError("User not found")
    if not user.org_id:
        raise ValueError("User must belong to an organization")

    org = db.session.get(Organization, user.org_id)
    if org is None or not org.is_active:
        raise ValueError("Organization is not active")

    token = generate_token()
    now = utcnow()
    session = SessionToken(
        user_id=user.id,
        org_id=user.org_id,
        token_hash=hash_token(token),
        created_at=now,
        last_used_at=now,
        expires_at=now + _hours_setting("SESSION_ABSOLUTE_HOURS", DEFAULT_ABSOLUTE_HOURS),
        user_agent=user_agent,
        ip_address=ip_address,
        is_revoked=False,
    )
    db.session.add(session)
    db.session.commit()
    return session, token


def validate_session(token: str) -> SessionContext | None:
    """
    Resolve a plaintext token to a SessionContext, or None.

    Idle sessions and sessions of deactivated users or organizations are
    revoked on the spot. A good token refreshes last_used_at.
    """
    session = _live_session(token)
    if session is None:
        return None

    now = utcnow()
    if session.expires_at < now:
        return None

    revoke_reason = None
    if now - session.last_used_at > _hours_setting("SESSION_IDLE_HOURS", DEFAULT_IDLE_HOURS):
        revoke_reason = "Idle timeout"
    elif session.user is None or not session.user.is_active:
        revoke_reason = "User account deactivated"
    elif session.organization is None or not session.organization.is_active:
        revoke_reason = "Organization deactivated"

    if revoke_reason:
        _mark_revoked([session], revoke_reason)
        return None

    session.last_used_at = now
    db.session.commit()
    return SessionContext(user=session.user, session=session, org_id=session.org_id)


def revoke_session(token: str, reason: str = "User logout") -> bool:
    session = _live_session(token)
    if session is None:
        return False
    _mark_revoked([session], reason)
    return True


def revoke_all_user_sessions(
    user_id: int,
    reason: str = "Revoke all sessions",
    except_session_id: int | None = None,
) -> int:
    """Revoke every live session of a user, optionally sparing one. Returns how many were revoked."""
    live = db.session.query(SessionToken).filter_by(user_id=user_id, is_revoked=False)
    if except_session_id is not None:
        live = live.filter(SessionToken.id != except_session_id)
    return _mark_revoked(live.all(), reason)


def cleanup_expired_sessions(*, older_than_days: int = 30) -> int:
    """Delete expired or revoked sessions created before the cutoff."""
    now = utcnow()
    deleted = db.session.query(SessionToken).filter(
        db.or_(SessionToken.expires_at < now, SessionToken.is_revoked.is_(True)),
        SessionToken.created_at < now - timedelta(days=older_than_days),
    ).delete(synchronize_session=False)
    db.session.commit()
    return deleted
