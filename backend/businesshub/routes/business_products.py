# Overview: Flask API routes for quantity-based product assignments; parses input and returns JSON responses.

"""
Business product (non-serialized) assignment routes.

POST is an upsert on (business, product): 201 when a row is created, 200
when the quantity of an existing row was incremented.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_auth, require_permission
from ..models import BusinessProduct
from ..services import business_product_service
from ..services.business_product_service import BUSINESS_PRODUCT_CREATE_POLICY, BUSINESS_PRODUCT_UPDATE_POLICY
from ..services.tenant_service import TenantAccessError
from ..validation import validate_payload, ValidationError


business_products_bp = Blueprint("business_products", __name__, url_prefix="/api/business-products")


@business_products_bp.get("")
@require_auth
@require_permission("VIEW_INVENTORY")
def list_business_products_route():
    try:
        items = business_product_service.list_business_products(
            org_id=g.org_id,
            business_id=request.args.get("business_id", type=int),
        )
    except TenantAccessError as e:
        return jsonify({"error": str(e)}), 404

    return jsonify({"items": items, "count": len(items)})


@business_products_bp.post("")
@require_auth
@require_permission("ASSIGN_PRODUCTS")
def create_business_product_route():
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(
            model=BusinessProduct,
            payload=payload,
            policy=BUSINESS_PRODUCT_CREATE_POLICY,
            partial=False,
        )
        row, created = business_product_service.assign_product(
            patch=patch,
            org_id=g.org_id,
            user_id=g.current_user.id,
        )
    except TenantAccessError as e:
        return {"error": str(e)}, 404
    except ValidationError as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to assign product")
        return {"error": "Internal server error"}, 500

    return {"business_product": row, "created": created}, 201 if created else 200


@business_products_bp.put("/<int:assignment_id>")
@require_auth
@require_permission("ASSIGN_PRODUCTS")
def update_business_product_route(assignment_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(
            model=BusinessProduct,
            payload=payload,
            policy=BUSINESS_PRODUCT_UPDATE_POLICY,
            partial=True,
        )
        return business_product_service.update_business_product(
            assignment_id=assignment_id,
            patch=patch,
            org_id=g.org_id,
        )
    except TenantAccessError as e:
        return {"error": str(e)}, 404
    except ValidationError as e:
        return {"error": str(e)}, 400


@business_products_bp.delete("/<int:assignment_id>")
@require_auth
@require_permission("ASSIGN_PRODUCTS")
def delete_business_product_route(assignment_id: int):
    try:
        business_product_service.delete_business_product(assignment_id=assignment_id, org_id=g.org_id)
    except TenantAccessError as e:
        return {"error": str(e)}, 404

    return {"message": "Product assignment deleted"}
