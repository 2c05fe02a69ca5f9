# Overview: Flask API routes for products operations; parses input and returns JSON responses.

"""
Product catalog routes with multi-tenant support.

MULTI-TENANT: All product operations are scoped to the caller's organization.
The org_id is derived from g.org_id (set by @require_auth).

SECURITY: All routes require authentication.
- Read operations require VIEW_INVENTORY permission
- Write operations require MANAGE_PRODUCTS permission
"""
from flask import Blueprint, request, g, current_app

from ..services import product_service
from ..services.product_service import PRODUCT_POLICY
from ..services.tenant_service import TenantAccessError
from ..models import Product
from ..validation import (
    validate_payload,
    enforce_rules_product,
    ValidationError,
    ConflictError,
)
from ..decorators import require_auth, require_permission

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


def _parse_bool_arg(name: str) -> bool | None:
    raw = request.args.get(name)
    if raw is None or raw == "":
        return None
    lowered = raw.strip().lower()
    if lowered in {"true", "1", "yes"}:
        return True
    if lowered in {"false", "0", "no"}:
        return False
    return None


@products_bp.get("")
@require_auth
@require_permission("VIEW_INVENTORY")
def list_products():
    """
    List products with instance counts and assigned quantities.

    Query params:
    - category, pricing_type: exact match ("All ..." is ignored)
    - is_serialized: true/false
    - search: name, description or SKU substring
    - page / per_page: optional pagination (default 20, max 100)
    """
    result = product_service.list_products(
        org_id=g.org_id,
        category=request.args.get("category"),
        pricing_type=request.args.get("pricing_type"),
        is_serialized=_parse_bool_arg("is_serialized"),
        search=request.args.get("search"),
        page=request.args.get("page", type=int),
        per_page=request.args.get("per_page", type=int),
    )
    return result


@products_bp.get("/<int:product_id>")
@require_auth
@require_permission("VIEW_INVENTORY")
def get_product_route(product_id: int):
    try:
        return product_service.get_product_detail(product_id=product_id, org_id=g.org_id)
    except TenantAccessError as e:
        return {"error": str(e)}, 404


@products_bp.post("")
@require_auth
@require_permission("MANAGE_PRODUCTS")
def create_product_route():
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
        enforce_rules_product(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        created = product_service.create_product(patch=patch, org_id=g.org_id)
    except ConflictError as e:
        return {"error": str(e)}, 409
    except Exception:
        current_app.logger.exception("Failed to create product")
        return {"error": "Internal server error"}, 500

    return created, 201


@products_bp.put("/<int:product_id>")
@require_auth
@require_permission("MANAGE_PRODUCTS")
def update_product_route(product_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
        enforce_rules_product(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        return product_service.update_product(product_id=product_id, patch=patch, org_id=g.org_id)
    except TenantAccessError as e:
        return {"error": str(e)}, 404
    except ConflictError as e:
        return {"error": str(e)}, 409
    except ValidationError as e:
        return {"error": str(e)}, 400


@products_bp.delete("/<int:product_id>")
@require_auth
@require_permission("MANAGE_PRODUCTS")
def delete_product_route(product_id: int):
    """409 while serial numbers, assignments or quote lines reference the product."""
    try:
        product_service.delete_product(product_id=product_id, org_id=g.org_id)
    except TenantAccessError as e:
        return {"error": str(e)}, 404
    except ConflictError as e:
        return {"error": str(e)}, 409

    return {"message": "Product deleted"}
