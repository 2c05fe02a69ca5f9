# Overview: Flask API routes for businesses and their sub-resources; parses input and returns JSON responses.

"""
Business (CRM) routes.

MULTI-TENANT: every business id in the path is checked against g.org_id;
businesses of another organization answer 404.

Sub-resources:
- /contacts, /notes          CRUD
- /quotes, /tasks            read-only views
- /products                  quantity assignments (list, assign, remove)
- /assignment-options        what can be assigned right now
- /assignments               the assign-to-business workflow
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_auth, require_permission
from ..models import Business, Contact, Note, BusinessProduct
from ..services import (
    business_service,
    business_product_service,
    assignment_service,
    quote_service,
    task_service,
)
from ..services.business_service import BUSINESS_POLICY, CONTACT_POLICY, NOTE_POLICY
from ..services.business_product_service import BUSINESS_PRODUCT_UPDATE_POLICY
from ..services.tenant_service import TenantAccessError
from ..validation import validate_payload, ValidationError, NotFoundError


businesses_bp = Blueprint("businesses", __name__, url_prefix="/api/businesses")


@businesses_bp.get("")
@require_auth
@require_permission("VIEW_BUSINESSES")
def list_businesses_route():
    """
    Query params: category, status, location ("All ..." is ignored),
    search (name, description, email), page, per_page.
    """
    return business_service.list_businesses(
        org_id=g.org_id,
        category=request.args.get("category"),
        status=request.args.get("status"),
        location=request.args.get("location"),
        search=request.args.get("search"),
        page=request.args.get("page", type=int),
        per_page=request.args.get("per_page", type=int),
    )


@businesses_bp.post("")
@require_auth
@require_permission("MANAGE_BUSINESSES")
def create_business_route():
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Business, payload=payload, policy=BUSINESS_POLICY, partial=False)
        created = business_service.create_business(patch=patch, org_id=g.org_id)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except TenantAccessError as e:
        return {"error": str(e)}, 404
    except Exception:
        current_app.logger.exception("Failed to create business")
        return {"error": "Internal server error"}, 500

    return created, 201


@businesses_bp.get("/<int:business_id>")
@require_auth
@require_permission("VIEW_BUSINESSES")
def get_business_route(business_id: int):
    """Business bundle: contacts, notes, tasks, quotes, documents and products."""
    try:
        return business_service.get_business_bundle(business_id, g.org_id)
    except TenantAccessError as e:
        return {"error": str(e)}, 404


@businesses_bp.put("/<int:business_id>")
@require_auth
@require_permission("MANAGE_BUSINESSES")
def update_business_route(business_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Business, payload=payload, policy=BUSINESS_POLICY, partial=True)
        return business_service.update_business(business_id=business_id, patch=patch, org_id=g.org_id)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except TenantAccessError as e:
        return {"error": str(e)}, 404


@businesses_bp.delete("/<int:business_id>")
@require_auth
@require_permission("MANAGE_BUSINESSES")
def delete_business_route(business_id: int):
    try:
        business_service.delete_business(business_id=business_id, org_id=g.org_id, user_id=g.current_user.id)
    except TenantAccessError as e:
        return {"error": str(e)}, 404
    except Exception:
        current_app.logger.exception("Failed to delete business")
        return {"error": "Internal server error"}, 500

    return {"message": "Business deleted"}


# =============================================================================
# CONTACTS
# =============================================================================

@businesses_bp.get("/<int:business_id>/contacts")
@require_auth
@require_permission("VIEW_BUSINESSES")
def list_contacts_route(business_id: int):
    try:
        items = business_service.list_contacts(business_id=business_id, org_id=g.org_id)
    except TenantAccessError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify({"items": items, "count": len(items)})


@businesses_bp.post("/<int:business_id>/contacts")
@require_auth
@require_permission("MANAGE_CONTACTS")
def create_contact_route(business_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Contact, payload=payload, policy=CONTACT_POLICY, partial=False)
        created = business_service.create_contact(business_id=business_id, patch=patch, org_id=g.org_id)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except TenantAccessError as e:
        return {"error": str(e)}, 404

    return created, 201


@businesses_bp.put("/<int:business_id>/contacts/<int:contact_id>")
@require_auth
@require_permission("MANAGE_CONTACTS")
def update_contact_route(business_id: int, contact_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Contact, payload=payload, policy=CONTACT_POLICY, partial=True)
        return business_service.update_contact(
            business_id=business_id,
            contact_id=contact_id,
            patch=patch,
            org_id=g.org_id,
        )
    except ValidationError as e:
        return {"error": str(e)}, 400
    except (TenantAccessError, NotFoundError) as e:
        return {"error": str(e)}, 404


@businesses_bp.delete("/<int:business_id>/contacts/<int:contact_id>")
@require_auth
@require_permission("MANAGE_CONTACTS")
def delete_contact_route(business_id: int, contact_id: int):
    try:
        business_service.delete_contact(business_id=business_id, contact_id=contact_id, org_id=g.org_id)
    except (TenantAccessError, NotFoundError) as e:
        return {"error": str(e)}, 404

    return {"message": "Contact deleted"}


# =============================================================================
# NOTES
# =============================================================================

@businesses_bp.get("/<int:business_id>/notes")
@require_auth
@require_permission("VIEW_BUSINESSES")
def list_notes_route(business_id: int):
    try:
        items = business_service.list_notes(business_id=business_id, org_id=g.org_id)
    except TenantAccessError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify({"items": items, "count": len(items)})


@businesses_bp.post("/<int:business_id>/notes")
@require_auth
@require_permission("MANAGE_CONTACTS")
def create_note_route(business_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Note, payload=payload, policy=NOTE_POLICY, partial=False)
        created = business_service.create_note(
            business_id=business_id,
            patch=patch,
            org_id=g.org_id,
            created_by_user_id=g.current_user.id,
        )
    except ValidationError as e:
        return {"error": str(e)}, 400
    except TenantAccessError as e:
        return {"error": str(e)}, 404

    return created, 201


@businesses_bp.put("/<int:business_id>/notes/<int:note_id>")
@require_auth
@require_permission("MANAGE_CONTACTS")
def update_note_route(business_id: int, note_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Note, payload=payload, policy=NOTE_POLICY, partial=True)
        return business_service.update_note(business_id=business_id, note_id=note_id, patch=patch, org_id=g.org_id)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except (TenantAccessError, NotFoundError) as e:
        return {"error": str(e)}, 404


@businesses_bp.delete("/<int:business_id>/notes/<int:note_id>")
@require_auth
@require_permission("MANAGE_CONTACTS")
def delete_note_route(business_id: int, note_id: int):
    try:
        business_service.delete_note(business_id=business_id, note_id=note_id, org_id=g.org_id)
    except (TenantAccessError, NotFoundError) as e:
        return {"error": str(e)}, 404

    return {"message": "Note deleted"}


# =============================================================================
# READ-ONLY VIEWS
# =============================================================================

@businesses_bp.get("/<int:business_id>/quotes")
@require_auth
@require_permission("VIEW_QUOTES")
def list_business_quotes_route(business_id: int):
    try:
        business_service.get_business(business_id, g.org_id)
    except TenantAccessError as e:
        return {"error": str(e)}, 404

    return quote_service.list_quotes(org_id=g.org_id, business_id=business_id)


@businesses_bp.get("/<int:business_id>/tasks")
@require_auth
@require_permission("VIEW_TASKS")
def list_business_tasks_route(business_id: int):
    try:
        items = task_service.list_business_tasks(business_id=business_id, org_id=g.org_id)
    except TenantAccessError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify({"items": items, "count": len(items)})


# =============================================================================
# PRODUCT ASSIGNMENTS
# =============================================================================

@businesses_bp.get("/<int:business_id>/products")
@require_auth
@require_permission("VIEW_INVENTORY")
def list_business_products_route(business_id: int):
    try:
        items = business_product_service.list_business_products(org_id=g.org_id, business_id=business_id)
    except TenantAccessError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify({"items": items, "count": len(items)})


@businesses_bp.post("/<int:business_id>/products/<int:product_id>")
@require_auth
@require_permission("ASSIGN_PRODUCTS")
def assign_business_product_route(business_id: int, product_id: int):
    """Body (optional): quantity, status, valid_from, valid_to, notes."""
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(
            model=BusinessProduct,
            payload=payload,
            policy=BUSINESS_PRODUCT_UPDATE_POLICY,
            partial=True,
        )
        patch.update({"business_id": business_id, "product_id": product_id})
        row, created = business_product_service.assign_product(
            patch=patch,
            org_id=g.org_id,
            user_id=g.current_user.id,
        )
    except TenantAccessError as e:
        return {"error": str(e)}, 404
    except ValidationError as e:
        return {"error": str(e)}, 400

    return {"business_product": row, "created": created}, 201 if created else 200


@businesses_bp.delete("/<int:business_id>/products/<int:product_id>")
@require_auth
@require_permission("ASSIGN_PRODUCTS")
def remove_business_product_route(business_id: int, product_id: int):
    try:
        business_product_service.remove_product_from_business(
            business_id=business_id,
            product_id=product_id,
            org_id=g.org_id,
        )
    except (TenantAccessError, NotFoundError) as e:
        return {"error": str(e)}, 404

    return {"message": "Product removed from business"}


@businesses_bp.get("/<int:business_id>/assignment-options")
@require_auth
@require_permission("ASSIGN_PRODUCTS")
def assignment_options_route(business_id: int):
    try:
        return assignment_service.get_assignment_options(business_id=business_id, org_id=g.org_id)
    except TenantAccessError as e:
        return {"error": str(e)}, 404


@businesses_bp.post("/<int:business_id>/assignments")
@require_auth
@require_permission("ASSIGN_PRODUCTS")
def create_assignment_route(business_id: int):
    """
    Assign either one in-stock serial number or a quantity of a
    non-serialized product. Nothing is written when validation fails.
    """
    payload = request.get_json(silent=True) or {}

    try:
        result = assignment_service.assign_to_business(
            business_id=business_id,
            payload=payload,
            org_id=g.org_id,
            user_id=g.current_user.id,
        )
    except TenantAccessError as e:
        return {"error": str(e)}, 404
    except ValidationError as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to assign to business")
        return {"error": "Internal server error"}, 500

    return result, 201
