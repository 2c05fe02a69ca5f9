# Overview: Service-layer operations for maintenance; encapsulates business logic and database work.

from __future__ import annotations

import logging
from datetime import timedelta

from ..extensions import db
from ..models import SecurityEvent
from .session_service import cleanup_expired_sessions
from businesshub.time_utils import utcnow

logger = logging.getLogger(__name__)


def cleanup_security_events(*, retention_days: int = 90) -> int:
    """Delete security events older than retention_days."""
    if retention_days < 1:
        raise ValueError("retention_days must be at least 1")

    cutoff = utcnow() - timedelta(days=retention_days)
    deleted = db.session.query(SecurityEvent).filter(
        SecurityEvent.occurred_at < cutoff
    ).delete(synchronize_session=False)
    db.session.commit()
    logger.info("Removed %s security events older than %s days", deleted, retention_days)
    return deleted


def cleanup_sessions(*, older_than_days: int = 30) -> int:
    deleted = cleanup_expired_sessions(older_than_days=older_than_days)
    logger.info("Removed %s expired or revoked sessions", deleted)
    return deleted
