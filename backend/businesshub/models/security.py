from __future__ import annotations

from ..extensions import db
from businesshub.time_utils import to_utc_z


class SecurityEvent(db.Model):
    """
    Security event audit log with tenant context.

    Doubles as the privileged-action log: admin user/role changes are written
    here next to login attempts, permission denials and cross-tenant access attempts.

    IMMUTABLE: Never update. Rows are only removed by the retention cleanup.
    """
    __tablename__ = "security_events"
    __table_args__ = (
        db.Index("ix_security_events_user_type", "user_id", "event_type"),
        db.Index("ix_security_events_org_occurred", "org_id", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Nullable for pre-auth events (failed logins)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=True, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)

    event_type = db.Column(db.String(64), nullable=False, index=True)  # PERMISSION_DENIED, LOGIN_FAILED, USER_CREATED, ...
    resource = db.Column(db.String(255), nullable=True)  # e.g., "/api/admin/users"
    action = db.Column(db.String(255), nullable=True)    # e.g., "POST", "ASSIGN_ROLES"
    target_user_id = db.Column(db.Integer, nullable=True)

    success = db.Column(db.Boolean, nullable=False, index=True)
    reason = db.Column(db.Text, nullable=True)

    ip_address = db.Column(db.String(45), nullable=True)
    user_agent = db.Column(db.String(512), nullable=True)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    user = db.relationship("User", backref=db.backref("security_events", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "user_id": self.user_id,
            "user": self.user.to_summary() if self.user else None,
            "event_type": self.event_type,
            "resource": self.resource,
            "action": self.action,
            "target_user_id": self.target_user_id,
            "success": self.success,
            "reason": self.reason,
            "ip_address": self.ip_address,
            "occurred_at": to_utc_z(self.occurred_at),
        }
