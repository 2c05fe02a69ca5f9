# Overview: Flask API routes for serialized product instances; parses input and returns JSON responses.

"""
Serial number routes.

Every state change goes through instance_service, which owns the status
transition table and the in-stock placement invariant.

SECURITY:
- Read operations require VIEW_INVENTORY
- Writes, bulk operations, import and export require MANAGE_SERIAL_NUMBERS
"""

from flask import Blueprint, request, jsonify, g, current_app, Response

from ..decorators import require_auth, require_permission
from ..models import ProductInstance
from ..services import instance_service
from ..services.instance_service import INSTANCE_CREATE_POLICY, INSTANCE_UPDATE_POLICY
from ..services.tenant_service import TenantAccessError
from ..validation import validate_payload, ValidationError, ConflictError


product_instances_bp = Blueprint("product_instances", __name__, url_prefix="/api/product-instances")


def _list_filters() -> dict:
    return {
        "product_id": request.args.get("product_id", type=int),
        "product_ids": request.args.get("product_ids"),
        "business_id": request.args.get("business_id", type=int),
        "status": request.args.get("status"),
        "search": request.args.get("search"),
    }


@product_instances_bp.get("")
@require_auth
@require_permission("VIEW_INVENTORY")
def list_instances_route():
    """
    Query params: product_id, product_ids (comma list), business_id, status,
    search (serial/license substring), page, per_page.
    """
    return instance_service.list_instances(
        org_id=g.org_id,
        page=request.args.get("page", type=int),
        per_page=request.args.get("per_page", type=int),
        **_list_filters(),
    )


@product_instances_bp.get("/export")
@require_auth
@require_permission("MANAGE_SERIAL_NUMBERS")
def export_instances_route():
    """CSV download with the same filters as the list."""
    text, filename = instance_service.export_instances_csv(org_id=g.org_id, **_list_filters())
    return Response(
        text,
        mimetype="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@product_instances_bp.post("/import")
@require_auth
@require_permission("MANAGE_SERIAL_NUMBERS")
def import_instances_route():
    """
    Multipart upload:
    - file: CSV with the export headers (plus optional "Product SKU")
    - product_id: default product for rows without a SKU
    """
    if "file" not in request.files:
        return jsonify({"error": "file is required"}), 400

    upload = request.files["file"]
    try:
        text = upload.stream.read().decode("utf-8-sig")
    except UnicodeDecodeError:
        return jsonify({"error": "CSV file must be UTF-8 encoded"}), 400

    try:
        result = instance_service.import_instances_csv(
            text=text,
            org_id=g.org_id,
            product_id=request.form.get("product_id", type=int),
            user_id=g.current_user.id,
        )
    except TenantAccessError as e:
        return jsonify({"error": str(e)}), 404
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to import serial numbers")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify(result), 201 if result["created"] else 200


@product_instances_bp.post("/bulk")
@require_auth
@require_permission("MANAGE_SERIAL_NUMBERS")
def bulk_instances_route():
    """
    Request body:
    - operation: create | update | delete
    - instances: list of objects (update/delete items carry "id")
    """
    data = request.get_json(silent=True) or {}

    def validate_item(raw: dict, operation: str) -> dict:
        if operation == "create":
            return validate_payload(model=ProductInstance, payload=raw, policy=INSTANCE_CREATE_POLICY, partial=False)
        return validate_payload(model=ProductInstance, payload=raw, policy=INSTANCE_UPDATE_POLICY, partial=True)

    try:
        result = instance_service.bulk_instances(
            operation=data.get("operation"),
            items=data.get("instances"),
            org_id=g.org_id,
            user_id=g.current_user.id,
            validate_item=validate_item,
        )
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    return jsonify(result)


@product_instances_bp.get("/<int:instance_id>")
@require_auth
@require_permission("VIEW_INVENTORY")
def get_instance_route(instance_id: int):
    try:
        return instance_service.get_instance(instance_id, g.org_id).to_dict()
    except TenantAccessError as e:
        return {"error": str(e)}, 404


@product_instances_bp.post("")
@require_auth
@require_permission("MANAGE_SERIAL_NUMBERS")
def create_instance_route():
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=ProductInstance, payload=payload, policy=INSTANCE_CREATE_POLICY, partial=False)
        created = instance_service.create_instance(patch=patch, org_id=g.org_id, user_id=g.current_user.id)
    except TenantAccessError as e:
        return {"error": str(e)}, 404
    except ConflictError as e:
        return {"error": str(e)}, 409
    except ValidationError as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to create product instance")
        return {"error": "Internal server error"}, 500

    return created, 201


@product_instances_bp.put("/<int:instance_id>")
@require_auth
@require_permission("MANAGE_SERIAL_NUMBERS")
def update_instance_route(instance_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=ProductInstance, payload=payload, policy=INSTANCE_UPDATE_POLICY, partial=True)
        return instance_service.update_instance(
            instance_id=instance_id,
            patch=patch,
            org_id=g.org_id,
            user_id=g.current_user.id,
        )
    except TenantAccessError as e:
        return {"error": str(e)}, 404
    except ConflictError as e:
        return {"error": str(e)}, 409
    except ValidationError as e:
        return {"error": str(e)}, 400


@product_instances_bp.post("/<int:instance_id>/return")
@require_auth
@require_permission("MANAGE_SERIAL_NUMBERS")
def return_instance_route(instance_id: int):
    """Return to the available pool."""
    try:
        instance = instance_service.return_instance(
            instance_id=instance_id,
            org_id=g.org_id,
            user_id=g.current_user.id,
        )
    except TenantAccessError as e:
        return {"error": str(e)}, 404
    except ValidationError as e:
        return {"error": str(e)}, 400

    return {"instance": instance, "message": "Serial number returned to available pool"}


@product_instances_bp.delete("/<int:instance_id>")
@require_auth
@require_permission("MANAGE_SERIAL_NUMBERS")
def delete_instance_route(instance_id: int):
    try:
        instance_service.delete_instance(instance_id=instance_id, org_id=g.org_id)
    except TenantAccessError as e:
        return {"error": str(e)}, 404

    return {"message": "Serial number deleted"}
