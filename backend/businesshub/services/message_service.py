# Overview: Service-layer operations for internal messages; encapsulates business logic and database work.

from __future__ import annotations

from ..extensions import db
from ..models import Message, User
from ..models.communications import MESSAGE_STATUSES
from ..validation import ModelValidationPolicy, enforce_choice
from .tenant_service import require_entity_in_org, resolve_org_id
from .query_helpers import apply_equals_filter, apply_search, paginate


MESSAGE_CREATE_POLICY = ModelValidationPolicy(
    writable_fields={
        "sender", "sender_email", "recipient", "recipient_email",
        "subject", "content", "category", "status",
    },
    required_on_create={"subject", "content", "sender_email"},
)

MESSAGE_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields={"status", "category"},
)


def get_message(message_id: int, org_id: int) -> Message:
    return require_entity_in_org(Message, message_id, org_id, "Message")


def list_messages(
    *,
    org_id: int | None = None,
    category: str | None = None,
    status: str | None = None,
    search: str | None = None,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    """Newest first; search matches subject, content and sender."""
    org_id = resolve_org_id(org_id)

    query = db.session.query(Message).filter(Message.org_id == org_id)
    query = apply_equals_filter(query, Message.category, category)
    query = apply_equals_filter(query, Message.status, status)
    query = apply_search(query, [Message.subject, Message.content, Message.sender, Message.sender_email], search)
    query = query.order_by(Message.created_at.desc(), Message.id.desc())

    return paginate(query, page=page, per_page=per_page, serialize=lambda m: m.to_dict())


def create_message(*, patch: dict, org_id: int | None = None, user_id: int | None = None) -> dict:
    """The sender name defaults to the acting user's display name."""
    org_id = resolve_org_id(org_id)
    enforce_choice(patch, "status", MESSAGE_STATUSES)

    message = Message(org_id=org_id, sender_user_id=user_id, category="General", status="sent")
    for k, v in patch.items():
        if v is not None:
            setattr(message, k, v)

    if not message.sender and user_id is not None:
        user = db.session.get(User, user_id)
        if user is not None:
            message.sender = user.display_name

    db.session.add(message)
    db.session.commit()
    return message.to_dict()


def update_message(*, message_id: int, patch: dict, org_id: int | None = None) -> dict:
    org_id = resolve_org_id(org_id)
    message = get_message(message_id, org_id)
    enforce_choice(patch, "status", MESSAGE_STATUSES)

    for k, v in patch.items():
        if v is not None:
            setattr(message, k, v)

    db.session.commit()
    return message.to_dict()


def delete_message(*, message_id: int, org_id: int | None = None) -> bool:
    org_id = resolve_org_id(org_id)
    message = get_message(message_id, org_id)
    db.session.delete(message)
    db.session.commit()
    return True
