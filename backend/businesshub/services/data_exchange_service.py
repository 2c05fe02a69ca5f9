# Overview: Service-layer operations for bulk data export and import; encapsulates business logic and database work.

"""
Data Exchange Service

Export: businesses, contacts, products, quotes or users as CSV or JSON.
Import: businesses, contacts or products from CSV, JSON or Excel (.xlsx).

Import headers are matched loosely ("Support Expiry", "support_expiry" and
"support-expiry" are the same column). Each row is validated and committed on
its own; failures are reported per row and never stop the file.
"""

from __future__ import annotations

import csv
import io
import json
import logging
from decimal import Decimal, InvalidOperation

from sqlalchemy import func

from ..extensions import db
from ..models import Business, Contact, Product, Quote, User
from ..validation import (
    ValidationError,
    ConflictError,
    NotFoundError,
    validate_payload,
    enforce_rules_product,
)
from .tenant_service import TenantAccessError, resolve_org_id
from .business_service import BUSINESS_POLICY, CONTACT_POLICY
from .product_service import PRODUCT_POLICY, _ensure_sku_unique
from .quote_totals import compute_quote_totals
from .permission_service import get_user_role_names
from businesshub.time_utils import utcnow, to_utc_z

logger = logging.getLogger(__name__)


EXPORT_TYPES = ("businesses", "contacts", "products", "quotes", "users")
EXPORT_FORMATS = ("csv", "json")
IMPORT_TYPES = ("businesses", "contacts", "products")
EXCEL_EXTENSIONS = {"xlsx", "xlsm", "xltx", "xltm"}

_ROW_ERRORS = (ValidationError, ConflictError, NotFoundError, TenantAccessError)


def _business_row(b: Business) -> dict:
    return {
        "id": b.id,
        "name": b.name,
        "description": b.description,
        "category": b.category,
        "location": b.location,
        "phone": b.phone,
        "email": b.email,
        "website": b.website,
        "status": b.status,
        "support_contract": b.support_contract,
        "support_expiry": to_utc_z(b.support_expiry),
        "created_at": to_utc_z(b.created_at),
    }


def _contact_row(c: Contact) -> dict:
    return {
        "id": c.id,
        "business_id": c.business_id,
        "business": c.business.name if c.business else None,
        "name": c.name,
        "email": c.email,
        "phone": c.phone,
        "position": c.position,
        "created_at": to_utc_z(c.created_at),
    }


def _product_row(p: Product) -> dict:
    return {
        "id": p.id,
        "name": p.name,
        "description": p.description,
        "category": p.category,
        "sku": p.sku,
        "price_cents": p.price_cents,
        "pricing_type": p.pricing_type,
        "is_serialized": p.is_serialized,
        "created_at": to_utc_z(p.created_at),
    }


def _quote_row(q: Quote) -> dict:
    totals = compute_quote_totals(q.items)
    return {
        "id": q.id,
        "business_id": q.business_id,
        "business": q.business.name if q.business else None,
        "title": q.title,
        "status": q.status,
        "item_count": len(q.items),
        "subtotal_cents": totals.subtotal_cents,
        "vat_cents": totals.vat_cents,
        "total_cents": totals.total_cents,
        "created_at": to_utc_z(q.created_at),
    }


def _user_row(u: User) -> dict:
    return {
        "id": u.id,
        "username": u.username,
        "name": u.name,
        "email": u.email,
        "is_active": u.is_active,
        "roles": ";".join(get_user_role_names(u.id)),
        "created_at": to_utc_z(u.created_at),
        "last_login_at": to_utc_z(u.last_login_at),
    }


_EXPORTERS = {
    "businesses": (Business, _business_row, lambda: Business.name.asc()),
    "contacts": (Contact, _contact_row, lambda: Contact.name.asc()),
    "products": (Product, _product_row, lambda: Product.name.asc()),
    "quotes": (Quote, _quote_row, lambda: Quote.created_at.desc()),
    "users": (User, _user_row, lambda: User.username.asc()),
}


def export_rows(*, export_type: str, org_id: int | None = None) -> list[dict]:
    org_id = resolve_org_id(org_id)
    if export_type not in _EXPORTERS:
        raise ValidationError(f"type must be one of: {', '.join(EXPORT_TYPES)}")

    model, serialize, order = _EXPORTERS[export_type]
    rows = (
        db.session.query(model)
        .filter(model.org_id == org_id)
        .order_by(order(), model.id.asc())
        .all()
    )
    return [serialize(r) for r in rows]


def export_data(*, export_type: str, fmt: str = "csv", org_id: int | None = None) -> tuple[str, str, str]:
    """Returns (content, filename, mimetype)."""
    if fmt not in EXPORT_FORMATS:
        raise ValidationError(f"format must be one of: {', '.join(EXPORT_FORMATS)}")

    rows = export_rows(export_type=export_type, org_id=org_id)
    stamp = utcnow().date().isoformat()
    filename = f"{export_type}-{stamp}.{fmt}"

    if fmt == "json":
        return json.dumps(rows, indent=2, ensure_ascii=False), filename, "application/json"

    output = io.StringIO()
    if rows:
        writer = csv.DictWriter(output, fieldnames=list(rows[0].keys()))
        writer.writeheader()
        writer.writerows(rows)
    return output.getvalue(), filename, "text/csv"


def read_upload_rows(filename: str, stream) -> list[dict]:
    """
    Parse an uploaded file into a list of dict rows by extension.

    Raises ValidationError for unsupported formats or unreadable content.
    """
    ext = (filename or "").rsplit(".", 1)[-1].lower() if "." in (filename or "") else ""

    if ext == "csv":
        try:
            text = stream.read().decode("utf-8-sig")
        except UnicodeDecodeError:
            raise ValidationError("CSV file must be UTF-8 encoded")
        return [dict(row) for row in csv.DictReader(io.StringIO(text))]

    if ext == "json":
        try:
            rows = json.load(stream)
        except ValueError:
            raise ValidationError("Invalid JSON file")
        if isinstance(rows, dict):
            rows = rows.get("rows", [])
        if not isinstance(rows, list):
            raise ValidationError("JSON import must be a list of objects")
        return rows

    if ext in EXCEL_EXTENSIONS:
        from openpyxl import load_workbook
        from openpyxl.utils.exceptions import InvalidFileException
        from zipfile import BadZipFile

        try:
            wb = load_workbook(stream, read_only=True, data_only=True)
        except (InvalidFileException, BadZipFile, KeyError, OSError):
            raise ValidationError("Invalid Excel file")
        sheet = wb.active
        data = list(sheet.values)
        wb.close()
        if not data:
            return []
        headers = [str(h) if h is not None else "" for h in data[0]]
        return [
            {headers[i]: row[i] for i in range(len(headers)) if headers[i]}
            for row in data[1:]
            if any(cell not in (None, "") for cell in row)
        ]

    raise ValidationError("Unsupported file format")


def _normalize_key(key) -> str:
    return str(key or "").strip().lower().replace(" ", "_").replace("-", "_")


def _clean_row(raw: dict) -> dict:
    row = {}
    for key, value in raw.items():
        if isinstance(value, str):
            value = value.strip()
        if value in (None, ""):
            continue
        row[_normalize_key(key)] = value
    return row


def _parse_price_cents(row: dict) -> None:
    """`price` in pounds ("12.50", "£1,200") becomes price_cents."""
    if "price" not in row:
        return
    raw = row.pop("price")
    if "price_cents" in row:
        return
    text = str(raw).replace("£", "").replace(",", "").strip()
    try:
        pence = (Decimal(text) * 100).quantize(Decimal("1"))
    except InvalidOperation:
        raise ValidationError(f"Invalid price: {raw}")
    row["price_cents"] = int(pence)


def _pick(row: dict, policy) -> dict:
    return {k: v for k, v in row.items() if k in policy.writable_fields}


def _import_business(row: dict, org_id: int) -> Business:
    patch = validate_payload(model=Business, payload=_pick(row, BUSINESS_POLICY), policy=BUSINESS_POLICY, partial=False)
    patch.pop("owner_user_id", None)
    business = Business(org_id=org_id, **patch)
    db.session.add(business)
    return business


def _import_contact(row: dict, org_id: int) -> Contact:
    business = None
    if row.get("business_id") is not None:
        try:
            business_id = int(row["business_id"])
        except (TypeError, ValueError):
            raise ValidationError("business_id must be an integer")
        business = db.session.query(Business).filter_by(id=business_id, org_id=org_id).first()
    else:
        name = str(row.get("business") or row.get("business_name") or row.get("customer") or "").strip()
        if not name:
            raise ValidationError("business is required")
        business = (
            db.session.query(Business)
            .filter(Business.org_id == org_id, func.lower(Business.name) == name.lower())
            .first()
        )
    if business is None:
        raise ValidationError("Unknown business")

    patch = validate_payload(model=Contact, payload=_pick(row, CONTACT_POLICY), policy=CONTACT_POLICY, partial=False)
    contact = Contact(org_id=org_id, business_id=business.id, **patch)
    db.session.add(contact)
    return contact


def _import_product(row: dict, org_id: int) -> Product:
    _parse_price_cents(row)
    patch = validate_payload(model=Product, payload=_pick(row, PRODUCT_POLICY), policy=PRODUCT_POLICY, partial=False)
    enforce_rules_product(patch)
    _ensure_sku_unique(org_id, patch.get("sku"))
    product = Product(org_id=org_id, **patch)
    db.session.add(product)
    return product


_IMPORTERS = {
    "businesses": _import_business,
    "contacts": _import_contact,
    "products": _import_product,
}


def import_rows(*, import_type: str, rows: list, org_id: int | None = None) -> dict:
    """
    Create one record per row.

    Returns {type, total_rows, created, items, errors: [{row, error}]} where
    row is 1-based over data rows.
    """
    org_id = resolve_org_id(org_id)
    importer = _IMPORTERS.get(import_type)
    if importer is None:
        raise ValidationError(f"type must be one of: {', '.join(IMPORT_TYPES)}")

    created = []
    errors = []
    for index, raw in enumerate(rows, start=1):
        if not isinstance(raw, dict):
            errors.append({"row": index, "error": "Row must be an object"})
            continue
        try:
            record = importer(_clean_row(raw), org_id)
            db.session.commit()
            created.append(record.to_dict())
        except _ROW_ERRORS as e:
            db.session.rollback()
            errors.append({"row": index, "error": str(e)})

    logger.info(
        "Imported %s for org %s: %s created, %s failed",
        import_type, org_id, len(created), len(errors),
    )
    return {
        "type": import_type,
        "total_rows": len(rows),
        "created": len(created),
        "items": created,
        "errors": errors,
    }
