# Overview: Failed-login counting and temporary account lockout.

"""
Login attempts are recorded as LOGIN_FAILED / LOGIN_SUCCESS rows in
security_events, keyed by the identifier the caller typed (kept in the
event's action column). Once an identifier collects LOGIN_MAX_FAILED_ATTEMPTS
failures inside the lockout window, further logins are refused until
LOGIN_LOCKOUT_MINUTES have passed since the latest failure.
"""

from datetime import timedelta

from flask import current_app, has_app_context

from ..extensions import db
from ..models import SecurityEvent, User
from businesshub.time_utils import utcnow


MAX_FAILED_ATTEMPTS = 10
LOCKOUT_MINUTES = 15
LOGIN_RESOURCE = "/api/auth/login"


def max_failed_attempts() -> int:
    if has_app_context():
        return current_app.config.get("LOGIN_MAX_FAILED_ATTEMPTS", MAX_FAILED_ATTEMPTS)
    return MAX_FAILED_ATTEMPTS


def lockout_period() -> timedelta:
    minutes = LOCKOUT_MINUTES
    if has_app_context():
        minutes = current_app.config.get("LOGIN_LOCKOUT_MINUTES", minutes)
    return timedelta(minutes=minutes)


def _failures(identifier: str):
    return db.session.query(SecurityEvent).filter(
        SecurityEvent.event_type == "LOGIN_FAILED",
        SecurityEvent.action == identifier,
    )


def get_recent_failed_attempts(identifier: str) -> int:
    return _failures(identifier).filter(SecurityEvent.occurred_at >= utcnow() - lockout_period()).count()


def is_account_locked(identifier: str) -> tuple[bool, int | None]:
    """(True, seconds left) while the identifier is locked out, else (False, None)."""
    if get_recent_failed_attempts(identifier) < max_failed_attempts():
        return False, None

    latest = _failures(identifier).order_by(SecurityEvent.occurred_at.desc()).first()
    unlock_at = latest.occurred_at + lockout_period()
    now = utcnow()
    if now >= unlock_at:
        return False, None
    return True, int((unlock_at - now).total_seconds())


def _record(event_type: str, identifier: str, user: User | None, success: bool, **extra) -> None:
    db.session.add(SecurityEvent(
        user_id=user.id if user else None,
        org_id=user.org_id if user else None,
        event_type=event_type,
        resource=LOGIN_RESOURCE,
        action=identifier,
        success=success,
        occurred_at=utcnow(),
        **extra,
    ))
    db.session.commit()


def record_failed_attempt(
    identifier: str,
    ip_address: str | None = None,
    user_agent: str | None = None,
    reason: str = "Invalid credentials"
) -> int:
    """Log a failure and return how many failures the identifier now has in the window."""
    user = db.session.query(User).filter(
        db.or_(User.username == identifier, User.email == identifier)
    ).first()
    _record("LOGIN_FAILED", identifier, user, False, reason=reason, ip_address=ip_address, user_agent=user_agent)
    return get_recent_failed_attempts(identifier)


def record_successful_login(
    user: User,
    identifier: str,
    ip_address: str | None = None,
    user_agent: str | None = None
) -> None:
    _record("LOGIN_SUCCESS", identifier, user, True, ip_address=ip_address, user_agent=user_agent)


def get_lockout_status(identifier: str) -> dict:
    locked, seconds_remaining = is_account_locked(identifier)
    return {
        "locked": locked,
        "failed_attempts": get_recent_failed_attempts(identifier),
        "max_attempts": max_failed_attempts(),
        "seconds_until_unlock": seconds_remaining,
        "lockout_minutes": int(lockout_period().total_seconds() // 60),
    }
