# Overview: Service-layer operations for the assign-to-business workflow; encapsulates business logic and database work.

"""
Assignment Workflow

A business can receive exactly one of two kinds of assignment per request:

- SerializedAssignment: one in-stock serial number of a serialized product
  moves to the business (default status sold).
- QuantityAssignment: a quantity of a non-serialized product is added to the
  business's BusinessProduct row.

parse_assignment turns a raw payload into one of the two, running every
check before anything is written. execute_assignment then performs the
single state change.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Union

from ..extensions import db
from ..models import Business, Product, ProductInstance, BusinessProduct
from ..models.inventory import INSTANCE_IN_STOCK, INSTANCE_SOLD
from ..validation import ValidationError, check_quantity
from businesshub.time_utils import parse_iso_datetime
from .tenant_service import require_entity_in_org, resolve_org_id
from .instance_service import ALLOWED_TRANSITIONS, assign_instance_to_business
from .business_product_service import upsert_business_product
from .business_service import get_business, get_business_bundle

logger = logging.getLogger(__name__)


class AssignmentError(ValidationError):
    """Workflow-state problem detected before any write."""


@dataclass(frozen=True)
class SerializedAssignment:
    product: Product
    instance: ProductInstance
    status: str = INSTANCE_SOLD
    warranty_expiry: datetime | None = None
    comments: str | None = None

    kind = "serialized"


@dataclass(frozen=True)
class QuantityAssignment:
    product: Product
    quantity: int = 1
    status: str | None = None
    valid_from: datetime | None = None
    valid_to: datetime | None = None
    notes: str | None = None

    kind = "quantity"


Assignment = Union[SerializedAssignment, QuantityAssignment]

_INT_PATTERN = re.compile(r"[+-]?[0-9]+")


def _parse_int(value, field: str) -> int:
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        text = value.strip()
        if _INT_PATTERN.fullmatch(text):
            return int(text)
    raise AssignmentError(f"{field} must be an integer")


def _parse_date(payload: dict, field: str) -> datetime | None:
    raw = payload.get(field)
    if raw in (None, ""):
        return None
    if isinstance(raw, datetime):
        return raw
    try:
        return parse_iso_datetime(str(raw))
    except ValueError:
        raise AssignmentError(f"{field} must be an ISO-8601 datetime")


def _optional_text(payload: dict, field: str) -> str | None:
    raw = payload.get(field)
    if raw is None:
        return None
    text = str(raw).strip()
    return text or None


def parse_assignment(payload: dict, *, org_id: int) -> Assignment:
    """
    Resolve the payload into exactly one assignment kind.

    Raises AssignmentError (400) for workflow problems and TenantAccessError
    (404) for ids outside the organization.
    """
    if not isinstance(payload, dict):
        raise AssignmentError("Invalid JSON payload")

    if payload.get("product_id") in (None, ""):
        raise AssignmentError("Please select a product")
    product_id = _parse_int(payload["product_id"], "product_id")
    product = require_entity_in_org(Product, product_id, org_id, "Product")

    instance_id = payload.get("instance_id")
    has_instance = instance_id not in (None, "")

    if product.is_serialized:
        if not has_instance:
            raise AssignmentError("Please select a serial number for this product")

        instance = require_entity_in_org(
            ProductInstance,
            _parse_int(instance_id, "instance_id"),
            org_id,
            "Product instance",
        )
        if instance.product_id != product.id:
            raise AssignmentError(
                "Serial number mismatch: the selected serial number does not belong to the selected product"
            )
        if instance.status != INSTANCE_IN_STOCK:
            raise AssignmentError("Serial number is not available for assignment")

        status = _optional_text(payload, "status") or INSTANCE_SOLD
        if status not in ALLOWED_TRANSITIONS[INSTANCE_IN_STOCK]:
            raise AssignmentError(
                f"status must be one of: {', '.join(sorted(ALLOWED_TRANSITIONS[INSTANCE_IN_STOCK]))}"
            )

        return SerializedAssignment(
            product=product,
            instance=instance,
            status=status,
            warranty_expiry=_parse_date(payload, "warranty_expiry"),
            comments=_optional_text(payload, "comments"),
        )

    if has_instance:
        raise AssignmentError("Non-serialized product cannot have a serial number selected.")

    quantity = payload.get("quantity")
    quantity = 1 if quantity in (None, "") else _parse_int(quantity, "quantity")
    try:
        check_quantity(quantity)
    except ValidationError as e:
        raise AssignmentError(str(e))

    valid_from = _parse_date(payload, "valid_from")
    valid_to = _parse_date(payload, "valid_to")
    if valid_from is not None and valid_to is not None and valid_to < valid_from:
        raise AssignmentError("valid_to must be on or after valid_from")

    return QuantityAssignment(
        product=product,
        quantity=quantity,
        status=_optional_text(payload, "status"),
        valid_from=valid_from,
        valid_to=valid_to,
        notes=_optional_text(payload, "notes"),
    )


def execute_assignment(business: Business, assignment: Assignment, *, user_id: int | None = None) -> dict:
    """Perform the single state change for a parsed assignment and commit."""
    if isinstance(assignment, SerializedAssignment):
        assign_instance_to_business(
            assignment.instance,
            business,
            status=assignment.status,
            warranty_override=assignment.warranty_expiry,
            comments=assignment.comments,
            user_id=user_id,
        )
        db.session.commit()
        logger.info(
            "Assigned serial %s to business %s as %s",
            assignment.instance.identifier, business.id, assignment.status,
        )
        return {"kind": assignment.kind, "created": False, "instance": assignment.instance.to_dict()}

    result = upsert_business_product(
        business,
        assignment.product,
        quantity=assignment.quantity,
        status=assignment.status,
        valid_from=assignment.valid_from,
        valid_to=assignment.valid_to,
        notes=assignment.notes,
        user_id=user_id,
    )
    db.session.commit()
    return {"kind": assignment.kind, "created": result.created, "business_product": result.row.to_dict()}


def assign_to_business(
    *,
    business_id: int,
    payload: dict,
    org_id: int | None = None,
    user_id: int | None = None,
) -> dict:
    """
    Parse, validate and execute one assignment.

    Returns {"assignment": ..., "business": <refreshed bundle>}.
    """
    org_id = resolve_org_id(org_id)
    business = get_business(business_id, org_id)

    assignment = parse_assignment(payload, org_id=org_id)
    outcome = execute_assignment(business, assignment, user_id=user_id)

    return {
        "assignment": outcome,
        "business": get_business_bundle(business.id, org_id),
    }


def get_assignment_options(*, business_id: int, org_id: int | None = None) -> dict:
    """
    What can be assigned to a business right now, and what already is.

    products: non-serialized catalog products
    instances: in-stock serial numbers (of serialized products)
    """
    org_id = resolve_org_id(org_id)
    business = get_business(business_id, org_id)

    products = (
        db.session.query(Product)
        .filter(Product.org_id == org_id, Product.is_serialized.is_(False))
        .order_by(Product.name.asc(), Product.id.asc())
        .all()
    )
    instances = (
        db.session.query(ProductInstance)
        .join(Product, Product.id == ProductInstance.product_id)
        .filter(
            ProductInstance.org_id == org_id,
            ProductInstance.status == INSTANCE_IN_STOCK,
            Product.is_serialized.is_(True),
        )
        .order_by(Product.name.asc(), ProductInstance.serial_number.asc(), ProductInstance.id.asc())
        .all()
    )
    assigned_products = (
        db.session.query(BusinessProduct)
        .filter_by(org_id=org_id, business_id=business.id)
        .order_by(BusinessProduct.assigned_at.desc(), BusinessProduct.id.desc())
        .all()
    )
    assigned_instances = (
        db.session.query(ProductInstance)
        .filter_by(org_id=org_id, business_id=business.id)
        .order_by(ProductInstance.updated_at.desc(), ProductInstance.id.desc())
        .all()
    )

    return {
        "business": business.to_summary(),
        "products": [p.to_dict() for p in products],
        "instances": [i.to_dict() for i in instances],
        "assigned_products": [bp.to_dict() for bp in assigned_products],
        "assigned_instances": [i.to_dict() for i in assigned_instances],
    }
