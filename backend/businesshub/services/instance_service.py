# Overview: Service-layer operations for serialized product instances; encapsulates business logic and database work.

"""
Product Instance Service

A ProductInstance is one serialized unit (serial or license number) of a
serialized product. Its status follows an explicit transition table:

    in-stock   -> sold, on-car, office-use, swapped
    sold       -> on-car, office-use, swapped, returned
    on-car     -> sold, office-use, swapped, returned
    office-use -> sold, on-car, swapped, returned
    swapped    -> sold, on-car, office-use, returned

Same-status edits are always allowed. "returned" is never stored: it puts
the unit back in the available pool (status in-stock, no business, no
contact, no sold/warranty dates).

INVARIANT: status == in-stock  <=>  business_id IS NULL AND contact_id IS NULL
"""

from __future__ import annotations

import csv
import io
import logging
from datetime import datetime

from sqlalchemy import func

from ..extensions import db
from ..models import Product, ProductInstance, Business, Contact
from ..models.inventory import (
    INSTANCE_IN_STOCK,
    INSTANCE_SOLD,
    INSTANCE_ON_CAR,
    INSTANCE_OFFICE_USE,
    INSTANCE_SWAPPED,
    INSTANCE_RETURNED,
    INSTANCE_STATUSES,
)
from ..validation import ModelValidationPolicy, ValidationError, ConflictError, NotFoundError, enforce_choice
from .tenant_service import require_entity_in_org, resolve_org_id, TenantAccessError
from .query_helpers import apply_search, parse_id_list, paginate, is_filter_value
from businesshub.time_utils import utcnow, add_months

logger = logging.getLogger(__name__)


ALLOWED_TRANSITIONS = {
    INSTANCE_IN_STOCK: {INSTANCE_SOLD, INSTANCE_ON_CAR, INSTANCE_OFFICE_USE, INSTANCE_SWAPPED},
    INSTANCE_SOLD: {INSTANCE_ON_CAR, INSTANCE_OFFICE_USE, INSTANCE_SWAPPED, INSTANCE_RETURNED},
    INSTANCE_ON_CAR: {INSTANCE_SOLD, INSTANCE_OFFICE_USE, INSTANCE_SWAPPED, INSTANCE_RETURNED},
    INSTANCE_OFFICE_USE: {INSTANCE_SOLD, INSTANCE_ON_CAR, INSTANCE_SWAPPED, INSTANCE_RETURNED},
    INSTANCE_SWAPPED: {INSTANCE_SOLD, INSTANCE_ON_CAR, INSTANCE_OFFICE_USE, INSTANCE_RETURNED},
}

# Warranty length (months) by product category; anything else gets the default
WARRANTY_MONTHS_BY_CATEGORY = {
    "hardware": 12,
    "software": 6,
    "services": 3,
    "support": 12,
}
DEFAULT_WARRANTY_MONTHS = 12

RETURNED_COMMENT = "Returned to available pool"

INSTANCE_CREATE_POLICY = ModelValidationPolicy(
    writable_fields={
        "product_id", "serial_number", "license_number", "status",
        "business_id", "contact_id", "warranty_expiry", "comments",
    },
    required_on_create={"product_id"},
)

INSTANCE_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields={
        "serial_number", "license_number", "status",
        "business_id", "contact_id", "warranty_expiry", "comments",
    },
)

# CSV columns for the serial-number sheet, in order
CSV_IDENTIFIER_COLUMN = "Serial Number"
CSV_CUSTOMER_COLUMN = "Customer"
CSV_COMMENTS_COLUMN = "Comments"
CSV_STATUS_COLUMNS = [
    ("Sold", INSTANCE_SOLD),
    ("On Car", INSTANCE_ON_CAR),
    ("Office Use", INSTANCE_OFFICE_USE),
    ("Back in Stock", INSTANCE_IN_STOCK),
    ("Swapped", INSTANCE_SWAPPED),
]
CSV_HEADERS = [CSV_IDENTIFIER_COLUMN, CSV_CUSTOMER_COLUMN, CSV_COMMENTS_COLUMN] + [
    label for label, _ in CSV_STATUS_COLUMNS
]
CSV_TICK = "✓"


def can_transition(current: str, target: str) -> bool:
    if current == target:
        return True
    return target in ALLOWED_TRANSITIONS.get(current, set())


def warranty_months_for(category: str | None) -> int:
    return WARRANTY_MONTHS_BY_CATEGORY.get((category or "").strip().lower(), DEFAULT_WARRANTY_MONTHS)


def default_warranty_expiry(product: Product, start: datetime) -> datetime:
    return add_months(start, warranty_months_for(product.category))


def get_instance(instance_id: int, org_id: int) -> ProductInstance:
    return require_entity_in_org(ProductInstance, instance_id, org_id, "Product instance")


def _ensure_identifier_unique(org_id: int, field: str, value: str | None, exclude_id: int | None = None) -> None:
    if not value:
        return
    column = getattr(ProductInstance, field)
    query = db.session.query(ProductInstance.id).filter(ProductInstance.org_id == org_id, column == value)
    if exclude_id is not None:
        query = query.filter(ProductInstance.id != exclude_id)
    if query.first():
        label = "Serial number" if field == "serial_number" else "License number"
        raise ConflictError(f"{label} already exists")


def return_instance_to_pool(instance: ProductInstance, *, user_id: int | None = None) -> None:
    """Reset an instance to the available pool. Caller commits."""
    instance.status = INSTANCE_IN_STOCK
    instance.business_id = None
    instance.contact_id = None
    instance.sold_date = None
    instance.warranty_expiry = None
    instance.comments = RETURNED_COMMENT
    if user_id is not None:
        instance.last_updated_by_user_id = user_id


def _resolve_placement(
    org_id: int,
    status: str,
    business_id: int | None,
    contact_id: int | None,
) -> tuple[Business | None, Contact | None]:
    """
    Check business/contact against the target status.

    In-stock units carry neither; every other status needs a business, and a
    contact (when given) must belong to that business.
    """
    if status == INSTANCE_IN_STOCK:
        if business_id is not None or contact_id is not None:
            raise ValidationError("In-stock serial numbers cannot be assigned to a business or contact")
        return None, None

    if business_id is None:
        raise ValidationError(f"A business is required for status {status}")

    business = require_entity_in_org(Business, business_id, org_id, "Business")

    contact = None
    if contact_id is not None:
        contact = require_entity_in_org(Contact, contact_id, org_id, "Contact")
        if contact.business_id != business.id:
            raise ValidationError("Contact does not belong to the selected business")

    return business, contact


def _apply_dates(
    instance: ProductInstance,
    product: Product,
    *,
    previous_status: str | None,
    warranty_override: datetime | None,
) -> None:
    """Entering sold stamps sold_date and warranty; leaving it clears both."""
    if instance.status != INSTANCE_SOLD:
        instance.sold_date = None
        instance.warranty_expiry = None
        return

    if previous_status != INSTANCE_SOLD or instance.sold_date is None:
        instance.sold_date = utcnow()
        instance.warranty_expiry = warranty_override or default_warranty_expiry(product, instance.sold_date)
    elif warranty_override is not None:
        instance.warranty_expiry = warranty_override


def list_instances(
    *,
    org_id: int | None = None,
    product_id: int | None = None,
    product_ids: str | None = None,
    business_id: int | None = None,
    status: str | None = None,
    search: str | None = None,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    org_id = resolve_org_id(org_id)
    query = _filtered_query(
        org_id,
        product_id=product_id,
        product_ids=product_ids,
        business_id=business_id,
        status=status,
        search=search,
    )
    return paginate(query, page=page, per_page=per_page, serialize=lambda i: i.to_dict())


def _filtered_query(
    org_id: int,
    *,
    product_id: int | None = None,
    product_ids: str | None = None,
    business_id: int | None = None,
    status: str | None = None,
    search: str | None = None,
):
    query = db.session.query(ProductInstance).filter(ProductInstance.org_id == org_id)

    if product_id is not None:
        query = query.filter(ProductInstance.product_id == product_id)
    ids = parse_id_list(product_ids)
    if ids:
        query = query.filter(ProductInstance.product_id.in_(ids))
    if business_id is not None:
        query = query.filter(ProductInstance.business_id == business_id)
    if is_filter_value(status):
        query = query.filter(ProductInstance.status == status)

    query = apply_search(query, [ProductInstance.serial_number, ProductInstance.license_number], search)
    return query.order_by(ProductInstance.created_at.desc(), ProductInstance.id.desc())


def _build_instance(org_id: int, patch: dict, user_id: int | None) -> ProductInstance:
    """Validate and add a new instance to the session without committing."""
    enforce_choice(patch, "status", INSTANCE_STATUSES)

    serial = patch.get("serial_number")
    license_number = patch.get("license_number")
    if not serial and not license_number:
        raise ValidationError("Serial number or license number is required")

    product = require_entity_in_org(Product, patch["product_id"], org_id, "Product")
    if not product.is_serialized:
        raise ValidationError("Product is not configured for serial number tracking")

    _ensure_identifier_unique(org_id, "serial_number", serial)
    _ensure_identifier_unique(org_id, "license_number", license_number)

    status = patch.get("status") or INSTANCE_IN_STOCK
    if status == INSTANCE_RETURNED:
        status = INSTANCE_IN_STOCK

    business, contact = _resolve_placement(org_id, status, patch.get("business_id"), patch.get("contact_id"))

    instance = ProductInstance(
        org_id=org_id,
        product_id=product.id,
        serial_number=serial,
        license_number=license_number,
        status=status,
        business_id=business.id if business else None,
        contact_id=contact.id if contact else None,
        comments=patch.get("comments"),
        last_updated_by_user_id=user_id,
    )
    _apply_dates(instance, product, previous_status=None, warranty_override=patch.get("warranty_expiry"))

    db.session.add(instance)
    return instance


def create_instance(*, patch: dict, org_id: int | None = None, user_id: int | None = None) -> dict:
    """
    Create a serialized unit.

    Raises:
        ValidationError: product not serialized, missing identifier, bad placement
        ConflictError: serial or license number already used in the organization
        TenantAccessError: product, business or contact not in the organization
    """
    org_id = resolve_org_id(org_id)
    instance = _build_instance(org_id, patch, user_id)
    db.session.commit()
    return instance.to_dict()


def _apply_update(instance: ProductInstance, patch: dict, user_id: int | None) -> None:
    org_id = instance.org_id
    enforce_choice(patch, "status", INSTANCE_STATUSES)

    previous_status = instance.status
    target_status = patch.get("status") or previous_status

    if not can_transition(previous_status, target_status):
        raise ValidationError(f"Invalid status transition from {previous_status} to {target_status}")

    if target_status == INSTANCE_RETURNED:
        return_instance_to_pool(instance, user_id=user_id)
        return

    serial = patch.get("serial_number", instance.serial_number)
    license_number = patch.get("license_number", instance.license_number)
    if not serial and not license_number:
        raise ValidationError("Serial number or license number is required")
    if serial != instance.serial_number:
        _ensure_identifier_unique(org_id, "serial_number", serial, exclude_id=instance.id)
    if license_number != instance.license_number:
        _ensure_identifier_unique(org_id, "license_number", license_number, exclude_id=instance.id)

    if target_status == INSTANCE_IN_STOCK:
        business_id = patch.get("business_id")
        contact_id = patch.get("contact_id")
    else:
        business_id = patch.get("business_id", instance.business_id)
        if "contact_id" in patch:
            contact_id = patch["contact_id"]
        elif business_id == instance.business_id:
            contact_id = instance.contact_id
        else:
            contact_id = None

    business, contact = _resolve_placement(org_id, target_status, business_id, contact_id)

    instance.serial_number = serial
    instance.license_number = license_number
    instance.status = target_status
    instance.business_id = business.id if business else None
    instance.contact_id = contact.id if contact else None
    if "comments" in patch:
        instance.comments = patch["comments"]
    if user_id is not None:
        instance.last_updated_by_user_id = user_id

    _apply_dates(
        instance,
        instance.product,
        previous_status=previous_status,
        warranty_override=patch.get("warranty_expiry"),
    )


def update_instance(
    *,
    instance_id: int,
    patch: dict,
    org_id: int | None = None,
    user_id: int | None = None,
) -> dict:
    """Partial update, checked against the transition table."""
    org_id = resolve_org_id(org_id)
    instance = get_instance(instance_id, org_id)
    _apply_update(instance, patch, user_id)
    db.session.commit()
    return instance.to_dict()


def return_instance(*, instance_id: int, org_id: int | None = None, user_id: int | None = None) -> dict:
    """Return to pool from any assigned status."""
    org_id = resolve_org_id(org_id)
    instance = get_instance(instance_id, org_id)
    if instance.status == INSTANCE_IN_STOCK:
        raise ValidationError("Serial number is already in stock")

    return_instance_to_pool(instance, user_id=user_id)
    db.session.commit()
    return instance.to_dict()


def delete_instance(*, instance_id: int, org_id: int | None = None) -> bool:
    org_id = resolve_org_id(org_id)
    instance = get_instance(instance_id, org_id)
    db.session.delete(instance)
    db.session.commit()
    return True


def assign_instance_to_business(
    instance: ProductInstance,
    business: Business,
    *,
    status: str,
    warranty_override: datetime | None = None,
    comments: str | None = None,
    user_id: int | None = None,
) -> None:
    """
    Move an in-stock unit to a business. Caller validates and commits.

    The contact is cleared; the status must be one the in-stock state can
    move to.
    """
    if not can_transition(instance.status, status) or status in (INSTANCE_IN_STOCK, INSTANCE_RETURNED):
        raise ValidationError(f"Invalid status transition from {instance.status} to {status}")

    previous_status = instance.status
    instance.status = status
    instance.business_id = business.id
    instance.contact_id = None
    if comments is not None:
        instance.comments = comments
    instance.last_updated_by_user_id = user_id
    _apply_dates(instance, instance.product, previous_status=previous_status, warranty_override=warranty_override)


# -- Bulk operations --

BULK_OPERATIONS = ("create", "update", "delete")

_BULK_ITEM_ERRORS = (ValidationError, ConflictError, NotFoundError, TenantAccessError)


def bulk_instances(
    *,
    operation: str,
    items: list,
    org_id: int | None = None,
    user_id: int | None = None,
    validate_item=None,
) -> dict:
    """
    Apply one operation to many instances.

    Items are independent: a failing item is rolled back and reported, the
    rest still apply. validate_item(raw, operation) may normalize a raw item
    into a patch (routes pass validate_payload here).
    """
    org_id = resolve_org_id(org_id)
    if operation not in BULK_OPERATIONS:
        raise ValidationError("Invalid operation. Use: create, update, or delete")
    if not isinstance(items, list):
        raise ValidationError("instances must be a list")

    results = []
    succeeded = 0
    for raw in items:
        if not isinstance(raw, dict):
            results.append({"error": "Each instance must be an object", "data": raw})
            continue
        try:
            if operation == "create":
                patch = validate_item(raw, operation) if validate_item else raw
                instance = _build_instance(org_id, patch, user_id)
                db.session.commit()
                data = instance.to_dict()
            else:
                instance_id = raw.get("id")
                if not instance_id:
                    raise ValidationError("Instance ID is required")
                instance = get_instance(instance_id, org_id)
                if operation == "update":
                    fields = {k: v for k, v in raw.items() if k != "id"}
                    patch = validate_item(fields, operation) if validate_item else fields
                    _apply_update(instance, patch, user_id)
                    db.session.commit()
                    data = instance.to_dict()
                else:
                    data = {"id": instance.id}
                    db.session.delete(instance)
                    db.session.commit()
            results.append({"success": True, "data": data})
            succeeded += 1
        except _BULK_ITEM_ERRORS as e:
            db.session.rollback()
            results.append({"error": str(e), "data": raw})

    return {
        "operation": operation,
        "processed": len(items),
        "results": results,
        "summary": {"succeeded": succeeded, "failed": len(items) - succeeded},
    }


# -- CSV export / import --

def export_instances_csv(
    *,
    org_id: int | None = None,
    product_id: int | None = None,
    product_ids: str | None = None,
    business_id: int | None = None,
    status: str | None = None,
    search: str | None = None,
) -> tuple[str, str]:
    """Returns (csv_text, filename) for the serial-number sheet."""
    org_id = resolve_org_id(org_id)
    instances = _filtered_query(
        org_id,
        product_id=product_id,
        product_ids=product_ids,
        business_id=business_id,
        status=status,
        search=search,
    ).all()

    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow(CSV_HEADERS)
    for instance in instances:
        writer.writerow(
            [
                instance.identifier or "",
                instance.business.name if instance.business else "",
                instance.comments or "",
            ]
            + [CSV_TICK if instance.status == status_value else "" for _, status_value in CSV_STATUS_COLUMNS]
        )

    filename = f"serial-numbers-{utcnow().date().isoformat()}.csv"
    return output.getvalue(), filename


def _row_status(row: dict) -> str | None:
    ticked = [value for label, value in CSV_STATUS_COLUMNS if (row.get(label) or "").strip()]
    if len(ticked) > 1:
        raise ValidationError("More than one status column is ticked")
    return ticked[0] if ticked else None


def import_instances_csv(
    *,
    text: str,
    org_id: int | None = None,
    product_id: int | None = None,
    user_id: int | None = None,
) -> dict:
    """
    Create instances from a serial-number sheet.

    The product comes from product_id or a per-row "Product SKU" column.
    Customer names are matched case-insensitively against the organization's
    businesses. A row without a ticked status is sold when it names a
    customer and in stock otherwise.
    """
    org_id = resolve_org_id(org_id)

    default_product = None
    if product_id is not None:
        default_product = require_entity_in_org(Product, product_id, org_id, "Product")

    reader = csv.DictReader(io.StringIO(text))
    if not reader.fieldnames or CSV_IDENTIFIER_COLUMN not in reader.fieldnames:
        raise ValidationError(f"CSV must include a '{CSV_IDENTIFIER_COLUMN}' column")

    created = []
    errors = []
    total = 0
    for row_number, row in enumerate(reader, start=2):
        total += 1
        try:
            serial = (row.get(CSV_IDENTIFIER_COLUMN) or "").strip()
            if not serial:
                raise ValidationError("Serial number is required")

            product = default_product
            sku = (row.get("Product SKU") or "").strip()
            if sku:
                product = db.session.query(Product).filter_by(org_id=org_id, sku=sku).first()
                if not product:
                    raise ValidationError(f"Unknown product SKU: {sku}")
            if product is None:
                raise ValidationError("No product selected for this row")

            customer = (row.get(CSV_CUSTOMER_COLUMN) or "").strip()
            business = None
            if customer:
                business = (
                    db.session.query(Business)
                    .filter(Business.org_id == org_id, func.lower(Business.name) == customer.lower())
                    .first()
                )
                if not business:
                    raise ValidationError(f"Unknown customer: {customer}")

            status = _row_status(row) or (INSTANCE_SOLD if business else INSTANCE_IN_STOCK)

            instance = _build_instance(
                org_id,
                {
                    "product_id": product.id,
                    "serial_number": serial,
                    "status": status,
                    "business_id": business.id if business and status != INSTANCE_IN_STOCK else None,
                    "comments": (row.get(CSV_COMMENTS_COLUMN) or "").strip() or None,
                },
                user_id,
            )
            db.session.commit()
            created.append(instance.to_dict())
        except _BULK_ITEM_ERRORS as e:
            db.session.rollback()
            errors.append({"row": row_number, "error": str(e)})

    logger.info("Serial number import for org %s: %s created, %s failed", org_id, len(created), len(errors))
    return {
        "total_rows": total,
        "created": len(created),
        "items": created,
        "errors": errors,
    }
