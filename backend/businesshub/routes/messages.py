# Overview: Flask API routes for messages operations; parses input and returns JSON responses.

from flask import Blueprint, request, g

from ..decorators import require_auth, require_permission
from ..models import Message
from ..services import message_service
from ..services.message_service import MESSAGE_CREATE_POLICY, MESSAGE_UPDATE_POLICY
from ..services.tenant_service import TenantAccessError
from ..validation import validate_payload, ValidationError


messages_bp = Blueprint("messages", __name__, url_prefix="/api/messages")


@messages_bp.get("")
@require_auth
@require_permission("VIEW_MESSAGES")
def list_messages_route():
    return message_service.list_messages(
        org_id=g.org_id,
        category=request.args.get("category"),
        status=request.args.get("status"),
        search=request.args.get("search"),
        page=request.args.get("page", type=int),
        per_page=request.args.get("per_page", type=int),
    )


@messages_bp.post("")
@require_auth
@require_permission("SEND_MESSAGES")
def create_message_route():
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Message, payload=payload, policy=MESSAGE_CREATE_POLICY, partial=False)
        created = message_service.create_message(patch=patch, org_id=g.org_id, user_id=g.current_user.id)
    except ValidationError as e:
        return {"error": str(e)}, 400

    return created, 201


@messages_bp.get("/<int:message_id>")
@require_auth
@require_permission("VIEW_MESSAGES")
def get_message_route(message_id: int):
    try:
        return message_service.get_message(message_id, g.org_id).to_dict()
    except TenantAccessError as e:
        return {"error": str(e)}, 404


@messages_bp.put("/<int:message_id>")
@require_auth
@require_permission("SEND_MESSAGES")
def update_message_route(message_id: int):
    """Only status and category can change once a message exists."""
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Message, payload=payload, policy=MESSAGE_UPDATE_POLICY, partial=True)
        return message_service.update_message(message_id=message_id, patch=patch, org_id=g.org_id)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except TenantAccessError as e:
        return {"error": str(e)}, 404


@messages_bp.delete("/<int:message_id>")
@require_auth
@require_permission("SEND_MESSAGES")
def delete_message_route(message_id: int):
    try:
        message_service.delete_message(message_id=message_id, org_id=g.org_id)
    except TenantAccessError as e:
        return {"error": str(e)}, 404

    return {"message": "Message deleted"}
