# Overview: Service-layer operations for documents and uploaded files; encapsulates business logic and database work.

"""
Document Service

Two kinds of rows share the documents table:
- metadata rows (is_uploaded=False) that point at an external path
- uploaded rows whose file lives under UPLOAD_FOLDER/org_<id>/ and is owned
  by this service (removed together with the row)
"""

from __future__ import annotations

import logging
import os
import uuid

from flask import current_app
from werkzeug.utils import secure_filename

from ..extensions import db
from ..models import Document, Business, User
from ..validation import ModelValidationPolicy, ValidationError, NotFoundError
from .tenant_service import require_entity_in_org, resolve_org_id
from .query_helpers import apply_equals_filter, apply_search, paginate

logger = logging.getLogger(__name__)


DOCUMENT_CREATE_POLICY = ModelValidationPolicy(
    writable_fields={"name", "doc_type", "size_bytes", "path", "category", "business_id"},
    required_on_create={"name", "path"},
)

DOCUMENT_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields={"name", "category", "business_id"},
)


def get_document(document_id: int, org_id: int) -> Document:
    return require_entity_in_org(Document, document_id, org_id, "Document")


def _upload_root() -> str:
    return os.path.abspath(current_app.config["UPLOAD_FOLDER"])


def _allowed_extensions() -> set[str]:
    return {ext.lower() for ext in current_app.config.get("ALLOWED_UPLOAD_EXTENSIONS", set())}


def _uploader_name(user_id: int | None) -> str | None:
    if user_id is None:
        return None
    user = db.session.get(User, user_id)
    return user.display_name if user else None


def _check_business(patch: dict, org_id: int) -> None:
    if patch.get("business_id") is not None:
        require_entity_in_org(Business, patch["business_id"], org_id, "Business")


def list_documents(
    *,
    org_id: int | None = None,
    category: str | None = None,
    search: str | None = None,
    business_id: int | None = None,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    org_id = resolve_org_id(org_id)

    query = db.session.query(Document).filter(Document.org_id == org_id)
    query = apply_equals_filter(query, Document.category, category)
    if business_id is not None:
        query = query.filter(Document.business_id == business_id)
    query = apply_search(query, [Document.name, Document.doc_type, Document.uploaded_by], search)
    query = query.order_by(Document.created_at.desc(), Document.id.desc())

    return paginate(query, page=page, per_page=per_page, serialize=lambda d: d.to_dict())


def create_document(*, patch: dict, org_id: int | None = None, user_id: int | None = None) -> dict:
    """Metadata-only document; the path is stored as given."""
    org_id = resolve_org_id(org_id)
    _check_business(patch, org_id)

    doc = Document(
        org_id=org_id,
        category="General",
        is_uploaded=False,
        uploaded_by_user_id=user_id,
        uploaded_by=_uploader_name(user_id),
    )
    for k, v in patch.items():
        if v is not None:
            setattr(doc, k, v)

    db.session.add(doc)
    db.session.commit()
    return doc.to_dict()


def save_upload(
    file_storage,
    *,
    org_id: int | None = None,
    user_id: int | None = None,
    name: str | None = None,
    category: str | None = None,
    business_id: int | None = None,
) -> dict:
    """
    Store a werkzeug FileStorage under the organization's upload directory
    and record it.

    Raises ValidationError for a missing file or a disallowed extension.
    """
    org_id = resolve_org_id(org_id)
    if file_storage is None or not file_storage.filename:
        raise ValidationError("file is required")

    original = secure_filename(file_storage.filename)
    if not original or "." not in original:
        raise ValidationError("File must have an extension")
    ext = original.rsplit(".", 1)[1].lower()
    if ext not in _allowed_extensions():
        raise ValidationError(f"File type .{ext} is not allowed")

    if business_id is not None:
        require_entity_in_org(Business, business_id, org_id, "Business")

    relative_dir = f"org_{org_id}"
    stored_name = f"{uuid.uuid4().hex}_{original}"
    target_dir = os.path.join(_upload_root(), relative_dir)
    os.makedirs(target_dir, exist_ok=True)

    target = os.path.join(target_dir, stored_name)
    file_storage.save(target)
    size = os.path.getsize(target)

    doc = Document(
        org_id=org_id,
        business_id=business_id,
        name=(name or "").strip() or original,
        doc_type=ext.upper(),
        size_bytes=size,
        path=f"{relative_dir}/{stored_name}",
        is_uploaded=True,
        category=(category or "").strip() or "General",
        uploaded_by_user_id=user_id,
        uploaded_by=_uploader_name(user_id),
    )
    db.session.add(doc)
    db.session.commit()

    logger.info("Stored upload %s (%s bytes) for org %s", doc.path, size, org_id)
    return doc.to_dict()


def resolve_download(*, document_id: int, org_id: int | None = None) -> tuple[str, str]:
    """
    Return (absolute_path, download_name) for an uploaded document.

    Raises NotFoundError for metadata-only rows and missing files.
    """
    org_id = resolve_org_id(org_id)
    doc = get_document(document_id, org_id)
    if not doc.is_uploaded:
        raise NotFoundError("Document has no stored file")

    root = _upload_root()
    full_path = os.path.abspath(os.path.join(root, doc.path))
    if not full_path.startswith(root + os.sep) or not os.path.isfile(full_path):
        raise NotFoundError("Stored file not found")

    ext = doc.path.rsplit(".", 1)[-1].lower()
    download_name = doc.name if doc.name.lower().endswith(f".{ext}") else f"{doc.name}.{ext}"
    return full_path, secure_filename(download_name) or os.path.basename(full_path)


def update_document(*, document_id: int, patch: dict, org_id: int | None = None) -> dict:
    org_id = resolve_org_id(org_id)
    doc = get_document(document_id, org_id)
    _check_business(patch, org_id)
    if "name" in patch and not (patch["name"] or "").strip():
        raise ValidationError("name cannot be empty")

    for k, v in patch.items():
        setattr(doc, k, v)

    db.session.commit()
    return doc.to_dict()


def delete_document(*, document_id: int, org_id: int | None = None) -> bool:
    """Delete the row and, for uploads, the stored file."""
    org_id = resolve_org_id(org_id)
    doc = get_document(document_id, org_id)

    stored = None
    if doc.is_uploaded:
        stored = os.path.abspath(os.path.join(_upload_root(), doc.path))

    db.session.delete(doc)
    db.session.commit()

    if stored and os.path.isfile(stored):
        try:
            os.remove(stored)
            logger.info("Removed stored file %s", stored)
        except OSError:
            logger.warning("Could not remove stored file %s", stored, exc_info=True)
    return True
