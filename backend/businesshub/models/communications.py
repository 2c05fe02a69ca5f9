from __future__ import annotations

from ..extensions import db
from businesshub.time_utils import to_utc_z


TASK_STATUSES = ("pending", "in-progress", "completed")
TASK_PRIORITIES = ("low", "medium", "high")
MESSAGE_STATUSES = ("sent", "read", "archived")


class Task(db.Model):
    """
    Calendar task, optionally tied to a business and an assignee.

    Recurring tasks are stored as one parent row (recurring=True,
    recurrence_end_date set) plus one child row per occurrence pointing at the
    parent through parent_task_id.
    """
    __tablename__ = "tasks"
    __table_args__ = (
        db.Index("ix_tasks_org_start", "org_id", "start_date"),
        db.Index("ix_tasks_parent", "parent_task_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)

    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)

    start_date = db.Column(db.DateTime(timezone=True), nullable=True)
    end_date = db.Column(db.DateTime(timezone=True), nullable=True)
    all_day = db.Column(db.Boolean, nullable=False, default=False)

    recurring = db.Column(db.Boolean, nullable=False, default=False)
    recurring_pattern = db.Column(db.String(32), nullable=True)  # daily, weekly, monthly, yearly, custom-N
    recurrence_end_date = db.Column(db.DateTime(timezone=True), nullable=True)
    parent_task_id = db.Column(db.Integer, db.ForeignKey("tasks.id"), nullable=True)

    business_id = db.Column(db.Integer, db.ForeignKey("businesses.id"), nullable=True, index=True)
    assignee_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)
    created_by_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    status = db.Column(db.String(16), nullable=False, default="pending", index=True)
    priority = db.Column(db.String(16), nullable=False, default="medium")

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    business = db.relationship("Business", backref=db.backref("tasks", lazy=True))
    assignee = db.relationship("User", foreign_keys=[assignee_id])
    created_by = db.relationship("User", foreign_keys=[created_by_id])
    parent_task = db.relationship("Task", remote_side=[id], backref=db.backref("instances", lazy=True))

    def __repr__(self) -> str:
        return f"<Task id={self.id} title={self.title!r} status={self.status}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "start_date": to_utc_z(self.start_date),
            "end_date": to_utc_z(self.end_date),
            "all_day": self.all_day,
            "recurring": self.recurring,
            "recurring_pattern": self.recurring_pattern,
            "recurrence_end_date": to_utc_z(self.recurrence_end_date),
            "parent_task_id": self.parent_task_id,
            "business_id": self.business_id,
            "business": self.business.to_summary() if self.business else None,
            "assignee_id": self.assignee_id,
            "assignee": self.assignee.to_summary() if self.assignee else None,
            "created_by": self.created_by.to_summary() if self.created_by else None,
            "status": self.status,
            "priority": self.priority,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Message(db.Model):
    """Internal message between users (or to an outside email address)."""
    __tablename__ = "messages"
    __table_args__ = (
        db.Index("ix_messages_org_created", "org_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)

    sender_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    sender = db.Column(db.String(255), nullable=True)
    sender_email = db.Column(db.String(255), nullable=False)
    recipient = db.Column(db.String(255), nullable=True)
    recipient_email = db.Column(db.String(255), nullable=True, index=True)

    subject = db.Column(db.String(255), nullable=False)
    content = db.Column(db.Text, nullable=False)
    category = db.Column(db.String(64), nullable=False, default="General")
    status = db.Column(db.String(16), nullable=False, default="sent")

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sender_user_id": self.sender_user_id,
            "sender": self.sender,
            "sender_email": self.sender_email,
            "recipient": self.recipient,
            "recipient_email": self.recipient_email,
            "subject": self.subject,
            "content": self.content,
            "category": self.category,
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
        }
