# Overview: Flask API routes for documents operations; parses input and returns JSON responses.

"""
Document routes.

POST /api/documents records metadata only. POST /api/documents/upload takes
multipart form data (file, name?, category?, business_id?) and stores the
file under the organization's upload directory.
"""

from flask import Blueprint, request, g, current_app, send_file

from ..decorators import require_auth, require_permission
from ..models import Document
from ..services import document_service
from ..services.document_service import DOCUMENT_CREATE_POLICY, DOCUMENT_UPDATE_POLICY
from ..services.tenant_service import TenantAccessError
from ..validation import validate_payload, ValidationError, NotFoundError


documents_bp = Blueprint("documents", __name__, url_prefix="/api/documents")


@documents_bp.get("")
@require_auth
@require_permission("VIEW_DOCUMENTS")
def list_documents_route():
    return document_service.list_documents(
        org_id=g.org_id,
        category=request.args.get("category"),
        search=request.args.get("search"),
        business_id=request.args.get("business_id", type=int),
        page=request.args.get("page", type=int),
        per_page=request.args.get("per_page", type=int),
    )


@documents_bp.post("")
@require_auth
@require_permission("MANAGE_DOCUMENTS")
def create_document_route():
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Document, payload=payload, policy=DOCUMENT_CREATE_POLICY, partial=False)
        created = document_service.create_document(patch=patch, org_id=g.org_id, user_id=g.current_user.id)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except TenantAccessError as e:
        return {"error": str(e)}, 404

    return created, 201


@documents_bp.post("/upload")
@require_auth
@require_permission("MANAGE_DOCUMENTS")
def upload_document_route():
    business_id = request.form.get("business_id")
    if business_id not in (None, ""):
        try:
            business_id = int(business_id)
        except ValueError:
            return {"error": "business_id must be an integer"}, 400
    else:
        business_id = None

    try:
        created = document_service.save_upload(
            request.files.get("file"),
            org_id=g.org_id,
            user_id=g.current_user.id,
            name=request.form.get("name"),
            category=request.form.get("category"),
            business_id=business_id,
        )
    except ValidationError as e:
        return {"error": str(e)}, 400
    except TenantAccessError as e:
        return {"error": str(e)}, 404
    except OSError:
        current_app.logger.exception("Failed to store uploaded document")
        return {"error": "Internal server error"}, 500

    return created, 201


@documents_bp.get("/<int:document_id>")
@require_auth
@require_permission("VIEW_DOCUMENTS")
def get_document_route(document_id: int):
    try:
        return document_service.get_document(document_id, g.org_id).to_dict()
    except TenantAccessError as e:
        return {"error": str(e)}, 404


@documents_bp.get("/<int:document_id>/download")
@require_auth
@require_permission("VIEW_DOCUMENTS")
def download_document_route(document_id: int):
    try:
        path, download_name = document_service.resolve_download(document_id=document_id, org_id=g.org_id)
    except (TenantAccessError, NotFoundError) as e:
        return {"error": str(e)}, 404

    return send_file(path, as_attachment=True, download_name=download_name)


@documents_bp.put("/<int:document_id>")
@require_auth
@require_permission("MANAGE_DOCUMENTS")
def update_document_route(document_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Document, payload=payload, policy=DOCUMENT_UPDATE_POLICY, partial=True)
        return document_service.update_document(document_id=document_id, patch=patch, org_id=g.org_id)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except TenantAccessError as e:
        return {"error": str(e)}, 404


@documents_bp.delete("/<int:document_id>")
@require_auth
@require_permission("MANAGE_DOCUMENTS")
def delete_document_route(document_id: int):
    try:
        document_service.delete_document(document_id=document_id, org_id=g.org_id)
    except TenantAccessError as e:
        return {"error": str(e)}, 404

    return {"message": "Document deleted"}
