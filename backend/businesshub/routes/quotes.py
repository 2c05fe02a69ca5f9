# Overview: Flask API routes for quotes operations; parses input and returns JSON responses.

"""
Quote routes.

Totals (subtotal, 20% VAT, total, hardware/software split) are computed on
every read and never accepted from the client. GET /<id>/pdf returns the same
figures as a printable PDF.
"""

import io

from flask import Blueprint, request, g, current_app, send_file

from ..decorators import require_auth, require_permission
from ..models import Quote
from ..services import quote_service, quote_pdf_service
from ..services.quote_service import QUOTE_POLICY
from ..services.tenant_service import TenantAccessError
from ..validation import validate_payload, ValidationError


quotes_bp = Blueprint("quotes", __name__, url_prefix="/api/quotes")


@quotes_bp.get("")
@require_auth
@require_permission("VIEW_QUOTES")
def list_quotes_route():
    return quote_service.list_quotes(
        org_id=g.org_id,
        status=request.args.get("status"),
        business_id=request.args.get("business_id", type=int),
        search=request.args.get("search"),
        page=request.args.get("page", type=int),
        per_page=request.args.get("per_page", type=int),
    )


@quotes_bp.post("")
@require_auth
@require_permission("MANAGE_QUOTES")
def create_quote_route():
    """Body: business_id, title, description?, status?, items: [{product_id, quantity, price_cents?}]"""
    payload = request.get_json(silent=True) or {}
    items = payload.pop("items", None)

    try:
        patch = validate_payload(model=Quote, payload=payload, policy=QUOTE_POLICY, partial=False)
        created = quote_service.create_quote(
            patch=patch,
            items=items,
            org_id=g.org_id,
            user_id=g.current_user.id,
        )
    except ValidationError as e:
        return {"error": str(e)}, 400
    except TenantAccessError as e:
        return {"error": str(e)}, 404
    except Exception:
        current_app.logger.exception("Failed to create quote")
        return {"error": "Internal server error"}, 500

    return created, 201


@quotes_bp.post("/preview-totals")
@require_auth
@require_permission("VIEW_QUOTES")
def preview_totals_route():
    payload = request.get_json(silent=True) or {}

    try:
        return quote_service.preview_totals(items=payload.get("items"), org_id=g.org_id)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except TenantAccessError as e:
        return {"error": str(e)}, 404


@quotes_bp.get("/<int:quote_id>")
@require_auth
@require_permission("VIEW_QUOTES")
def get_quote_route(quote_id: int):
    try:
        return quote_service.get_quote(quote_id, g.org_id).to_dict()
    except TenantAccessError as e:
        return {"error": str(e)}, 404


@quotes_bp.get("/<int:quote_id>/pdf")
@require_auth
@require_permission("VIEW_QUOTES")
def quote_pdf_route(quote_id: int):
    try:
        data = quote_pdf_service.quote_pdf(quote_id, g.org_id)
    except TenantAccessError as e:
        return {"error": str(e)}, 404

    return send_file(
        io.BytesIO(data),
        mimetype="application/pdf",
        as_attachment=True,
        download_name=f"quote-{quote_id}.pdf",
    )


@quotes_bp.put("/<int:quote_id>")
@require_auth
@require_permission("MANAGE_QUOTES")
def update_quote_route(quote_id: int):
    """Partial update. When "items" is present the line items are replaced."""
    payload = request.get_json(silent=True) or {}
    replace_items = "items" in payload
    items = payload.pop("items", None)

    try:
        patch = validate_payload(model=Quote, payload=payload, policy=QUOTE_POLICY, partial=True)
        return quote_service.update_quote(
            quote_id=quote_id,
            patch=patch,
            items=items,
            replace_items=replace_items,
            org_id=g.org_id,
        )
    except ValidationError as e:
        return {"error": str(e)}, 400
    except TenantAccessError as e:
        return {"error": str(e)}, 404


@quotes_bp.delete("/<int:quote_id>")
@require_auth
@require_permission("MANAGE_QUOTES")
def delete_quote_route(quote_id: int):
    try:
        quote_service.delete_quote(quote_id=quote_id, org_id=g.org_id)
    except TenantAccessError as e:
        return {"error": str(e)}, 404

    return {"message": "Quote deleted"}
