# Overview: Service-layer operations for quantity-based product assignments; encapsulates business logic and database work.

"""
Business Product Service

Non-serialized products are assigned to businesses by quantity. There is one
BusinessProduct row per (business, product): assigning again increments the
quantity on that row. unit_price_cents is the catalog price captured on the
first assignment and is never refreshed from later catalog edits.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from ..extensions import db
from ..models import Business, Product, BusinessProduct
from ..models.inventory import ASSIGNMENT_ACTIVE, ASSIGNMENT_STATUSES
from ..validation import (
    ModelValidationPolicy,
    ValidationError,
    NotFoundError,
    enforce_choice,
    MAX_QUANTITY,
    check_quantity,
    enforce_positive_quantity,
    enforce_date_range,
)
from .tenant_service import require_entity_in_org, resolve_org_id
from businesshub.time_utils import utcnow


BUSINESS_PRODUCT_CREATE_POLICY = ModelValidationPolicy(
    writable_fields={"business_id", "product_id", "quantity", "status", "valid_from", "valid_to", "notes"},
    required_on_create={"business_id", "product_id"},
)

BUSINESS_PRODUCT_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields={"quantity", "status", "valid_from", "valid_to", "notes"},
)

SERIALIZED_PRODUCT_ERROR = "Cannot assign serialized product as non-serialized assignment"


@dataclass
class UpsertResult:
    row: BusinessProduct
    created: bool


def get_business_product(assignment_id: int, org_id: int) -> BusinessProduct:
    return require_entity_in_org(BusinessProduct, assignment_id, org_id, "Product assignment")


def list_business_products(*, org_id: int | None = None, business_id: int | None = None) -> list[dict]:
    """Newest assignment first."""
    org_id = resolve_org_id(org_id)
    query = db.session.query(BusinessProduct).filter(BusinessProduct.org_id == org_id)
    if business_id is not None:
        business = require_entity_in_org(Business, business_id, org_id, "Business")
        query = query.filter(BusinessProduct.business_id == business.id)
    rows = query.order_by(BusinessProduct.assigned_at.desc(), BusinessProduct.id.desc()).all()
    return [r.to_dict() for r in rows]


def upsert_business_product(
    business: Business,
    product: Product,
    *,
    quantity: int = 1,
    status: str | None = None,
    valid_from: datetime | None = None,
    valid_to: datetime | None = None,
    notes: str | None = None,
    user_id: int | None = None,
) -> UpsertResult:
    """
    Create the (business, product) row or add quantity to it. Caller commits.

    On increment the price snapshot and valid_from are kept; status,
    valid_to and notes are overwritten when given.
    """
    if product.is_serialized:
        raise ValidationError(SERIALIZED_PRODUCT_ERROR)
    check_quantity(quantity)
    if status is not None and status not in ASSIGNMENT_STATUSES:
        raise ValidationError(f"status must be one of: {', '.join(sorted(ASSIGNMENT_STATUSES))}")

    existing = db.session.query(BusinessProduct).filter_by(
        business_id=business.id,
        product_id=product.id,
    ).first()

    if existing:
        enforce_date_range(
            existing.valid_from,
            valid_to if valid_to is not None else existing.valid_to,
            start_label="valid_from",
            end_label="valid_to",
        )
        if existing.quantity + quantity > MAX_QUANTITY:
            raise ValidationError(f"Total quantity cannot exceed {MAX_QUANTITY:,}")
        existing.quantity += quantity
        if status is not None:
            existing.status = status
        if valid_to is not None:
            existing.valid_to = valid_to
        if notes is not None:
            existing.notes = notes
        return UpsertResult(row=existing, created=False)

    valid_from = valid_from or utcnow()
    enforce_date_range(valid_from, valid_to, start_label="valid_from", end_label="valid_to")

    row = BusinessProduct(
        org_id=business.org_id,
        business_id=business.id,
        product_id=product.id,
        quantity=quantity,
        unit_price_cents=product.price_cents,
        status=status or ASSIGNMENT_ACTIVE,
        valid_from=valid_from,
        valid_to=valid_to,
        notes=notes,
        assigned_by_user_id=user_id,
        assigned_at=utcnow(),
    )
    db.session.add(row)
    return UpsertResult(row=row, created=True)


def assign_product(
    *,
    patch: dict,
    org_id: int | None = None,
    user_id: int | None = None,
) -> tuple[dict, bool]:
    """
    Returns (assignment_dict, created).

    Raises:
        TenantAccessError: business or product not in the organization
        ValidationError: serialized product, bad quantity or date range
    """
    org_id = resolve_org_id(org_id)
    business = require_entity_in_org(Business, patch["business_id"], org_id, "Business")
    product = require_entity_in_org(Product, patch["product_id"], org_id, "Product")

    quantity = patch.get("quantity")
    result = upsert_business_product(
        business,
        product,
        quantity=1 if quantity is None else quantity,
        status=patch.get("status"),
        valid_from=patch.get("valid_from"),
        valid_to=patch.get("valid_to"),
        notes=patch.get("notes"),
        user_id=user_id,
    )
    db.session.commit()
    return result.row.to_dict(), result.created


def update_business_product(*, assignment_id: int, patch: dict, org_id: int | None = None) -> dict:
    org_id = resolve_org_id(org_id)
    row = get_business_product(assignment_id, org_id)

    enforce_positive_quantity(patch)
    enforce_choice(patch, "status", ASSIGNMENT_STATUSES)
    if "valid_from" in patch and patch["valid_from"] is None:
        raise ValidationError("valid_from cannot be null")
    enforce_date_range(
        patch.get("valid_from", row.valid_from),
        patch.get("valid_to", row.valid_to),
        start_label="valid_from",
        end_label="valid_to",
    )

    for k, v in patch.items():
        setattr(row, k, v)

    db.session.commit()
    return row.to_dict()


def delete_business_product(*, assignment_id: int, org_id: int | None = None) -> bool:
    org_id = resolve_org_id(org_id)
    row = get_business_product(assignment_id, org_id)
    db.session.delete(row)
    db.session.commit()
    return True


def remove_product_from_business(*, business_id: int, product_id: int, org_id: int | None = None) -> bool:
    """Delete the (business, product) row; NotFoundError when it does not exist."""
    org_id = resolve_org_id(org_id)
    business = require_entity_in_org(Business, business_id, org_id, "Business")
    product = require_entity_in_org(Product, product_id, org_id, "Product")

    row = db.session.query(BusinessProduct).filter_by(business_id=business.id, product_id=product.id).first()
    if not row:
        raise NotFoundError("Product is not assigned to this business")

    db.session.delete(row)
    db.session.commit()
    return True
