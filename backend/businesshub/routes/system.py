# Overview: System health and version endpoints.

"""
System health and version endpoints.

/health checks the database, the session table and the permission catalogue
and answers 503 when any of them is unreachable.
"""

import sys
import time
from flask import Blueprint, current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import Organization, User, Role, Permission, SessionToken
from ..permissions import DEFAULT_ROLES
from businesshub.time_utils import utcnow, to_utc_z

API_VERSION = "1.0.0"

system_bp = Blueprint("system", __name__)


def _elapsed_ms(start_time: float) -> float:
    return round((time.time() - start_time) * 1000, 2)


def check_database_health() -> dict:
    start_time = time.time()
    try:
        details = {
            "organizations": db.session.query(Organization).count(),
            "users": db.session.query(User).count(),
            "roles": db.session.query(Role).count(),
            "permissions": db.session.query(Permission).count(),
        }
        return {"status": "healthy", "latency_ms": _elapsed_ms(start_time), "details": details}
    except SQLAlchemyError:
        current_app.logger.exception("Database health check failed")
        return {"status": "unhealthy", "latency_ms": _elapsed_ms(start_time), "error": "Database error"}


def check_session_service_health() -> dict:
    start_time = time.time()
    try:
        active_sessions = db.session.query(SessionToken).filter_by(is_revoked=False).count()
        expired_sessions = db.session.query(SessionToken).filter(
            SessionToken.expires_at < utcnow(),
            SessionToken.is_revoked.is_(False),
        ).count()
        return {
            "status": "healthy",
            "latency_ms": _elapsed_ms(start_time),
            "details": {
                "active_sessions": active_sessions,
                "expired_pending_cleanup": expired_sessions,
            },
        }
    except SQLAlchemyError:
        current_app.logger.exception("Session service health check failed")
        return {"status": "unhealthy", "latency_ms": _elapsed_ms(start_time), "error": "Session service error"}


def check_auth_service_health() -> dict:
    """Degraded when the permission catalogue or a default role is missing."""
    start_time = time.time()
    try:
        existing = {name for (name,) in db.session.query(Role.name).distinct().all()}
        missing_roles = [name for name, _, _ in DEFAULT_ROLES if name not in existing]
        permission_count = db.session.query(Permission).count()

        result = {
            "status": "healthy",
            "latency_ms": _elapsed_ms(start_time),
            "details": {
                "permissions_initialized": permission_count > 0,
                "permission_count": permission_count,
            },
        }
        if missing_roles or permission_count == 0:
            result["status"] = "degraded"
            if missing_roles:
                result["warning"] = f"Missing roles: {', '.join(missing_roles)}"
        return result
    except SQLAlchemyError:
        current_app.logger.exception("Auth service health check failed")
        return {"status": "unhealthy", "latency_ms": _elapsed_ms(start_time), "error": "Auth service error"}


@system_bp.get("/health")
def health():
    """
    Returns:
    - 200: healthy or degraded
    - 503: one or more checks unhealthy
    """
    start_time = time.time()

    checks = {
        "database": check_database_health(),
        "session_service": check_session_service_health(),
        "auth_service": check_auth_service_health(),
    }
    statuses = [c["status"] for c in checks.values()]

    if "unhealthy" in statuses:
        overall_status, http_status = "unhealthy", 503
    elif "degraded" in statuses:
        overall_status, http_status = "degraded", 200
    else:
        overall_status, http_status = "healthy", 200

    return {
        "status": overall_status,
        "timestamp": to_utc_z(utcnow()),
        "total_latency_ms": _elapsed_ms(start_time),
        "checks": checks,
    }, http_status


@system_bp.get("/version")
def version():
    """Non-sensitive deployment information."""
    return {
        "api_version": API_VERSION,
        "environment": "development" if current_app.debug else "production",
        "python_version": sys.version.split()[0],
        "server_time": to_utc_z(utcnow()),
    }
