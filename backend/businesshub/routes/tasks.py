# Overview: Flask API routes for tasks operations; parses input and returns JSON responses.

"""
Task routes, including recurring series.

GET /api/tasks without a date range returns the window from three months
back to two years ahead. start_date/end_date accept ISO-8601 strings.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_auth, require_permission
from ..models import Task
from ..services import task_service
from ..services.task_service import TASK_POLICY
from ..services.tenant_service import TenantAccessError
from ..validation import validate_payload, ValidationError
from businesshub.time_utils import parse_iso_datetime


tasks_bp = Blueprint("tasks", __name__, url_prefix="/api/tasks")


@tasks_bp.get("")
@require_auth
@require_permission("VIEW_TASKS")
def list_tasks_route():
    try:
        start_date = parse_iso_datetime(request.args.get("start_date"))
        end_date = parse_iso_datetime(request.args.get("end_date"))
    except ValueError:
        return jsonify({"error": "start_date and end_date must be ISO-8601 dates"}), 400

    items = task_service.list_tasks(
        org_id=g.org_id,
        assignee_id=request.args.get("assignee_id", type=int),
        business_id=request.args.get("business_id", type=int),
        status=request.args.get("status"),
        start_date=start_date,
        end_date=end_date,
    )
    return jsonify({"items": items, "count": len(items)})


@tasks_bp.post("")
@require_auth
@require_permission("MANAGE_TASKS")
def create_task_route():
    """
    Recurring tasks (recurring=true with recurring_pattern and start_date)
    also get their occurrence rows for the next five years.
    """
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Task, payload=payload, policy=TASK_POLICY, partial=False)
        created = task_service.create_task(patch=patch, org_id=g.org_id, user_id=g.current_user.id)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except TenantAccessError as e:
        return {"error": str(e)}, 404
    except Exception:
        current_app.logger.exception("Failed to create task")
        return {"error": "Internal server error"}, 500

    return created, 201


@tasks_bp.get("/notifications")
@require_auth
@require_permission("VIEW_TASKS")
def notifications_route():
    days_ahead = request.args.get("days_ahead", default=7, type=int)
    try:
        return task_service.get_notifications(org_id=g.org_id, days_ahead=days_ahead)
    except ValidationError as e:
        return {"error": str(e)}, 400


@tasks_bp.post("/extend-recurring")
@require_auth
@require_permission("MANAGE_TASKS")
def extend_recurring_route():
    return task_service.extend_recurring(org_id=g.org_id)


@tasks_bp.get("/<int:task_id>")
@require_auth
@require_permission("VIEW_TASKS")
def get_task_route(task_id: int):
    try:
        return task_service.get_task(task_id, g.org_id).to_dict()
    except TenantAccessError as e:
        return {"error": str(e)}, 404


@tasks_bp.put("/<int:task_id>")
@require_auth
@require_permission("MANAGE_TASKS")
def update_task_route(task_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Task, payload=payload, policy=TASK_POLICY, partial=True)
        return task_service.update_task(task_id=task_id, patch=patch, org_id=g.org_id)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except TenantAccessError as e:
        return {"error": str(e)}, 404


@tasks_bp.delete("/<int:task_id>")
@require_auth
@require_permission("MANAGE_TASKS")
def delete_task_route(task_id: int):
    """Deletes one task; occurrences of a deleted parent are kept as standalone tasks."""
    try:
        task_service.delete_task(task_id=task_id, org_id=g.org_id)
    except TenantAccessError as e:
        return {"error": str(e)}, 404

    return {"message": "Task deleted"}


@tasks_bp.delete("/<int:task_id>/series")
@require_auth
@require_permission("MANAGE_TASKS")
def delete_series_route(task_id: int):
    """Delete a whole recurring series given the parent or any occurrence."""
    try:
        return task_service.delete_series(task_id=task_id, org_id=g.org_id)
    except TenantAccessError as e:
        return {"error": str(e)}, 404
    except ValidationError as e:
        return {"error": str(e)}, 400
